"""Hand-off of notifications to external delivery channels (email, push, SMS)."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from wealth_notify.domain.entities import Notification, NotificationChannel
from wealth_notify.infrastructure.email import send_digest_email, send_notification_email
from wealth_notify.utils import now_in_app_timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryReceipt:
    """Best-effort acknowledgement returned by a channel sender."""

    sent: bool
    sent_at: datetime | None = None
    error: str | None = None

    @classmethod
    def accepted(cls) -> "DeliveryReceipt":
        return cls(sent=True, sent_at=now_in_app_timezone())

    @classmethod
    def failed(cls, error: str) -> "DeliveryReceipt":
        return cls(sent=False, error=error)


class ChannelSender(Protocol):
    def enqueue(self, notification: Notification) -> DeliveryReceipt: ...


class EmailChannelSender:
    """Send notifications by e-mail to the recipient's directory address."""

    def __init__(
        self,
        resolve_email: Callable[[int], str | None],
        *,
        send: Callable[[str, Notification], bool] = send_notification_email,
    ) -> None:
        self._resolve_email = resolve_email
        self._send = send

    def enqueue(self, notification: Notification) -> DeliveryReceipt:
        email = self._resolve_email(notification.recipient_id)
        if not email:
            return DeliveryReceipt.failed("Recipient has no e-mail address")
        if not self._send(email, notification):
            return DeliveryReceipt.failed("E-mail provider rejected the message")
        return DeliveryReceipt.accepted()


class EmailDigestComposer:
    """Render and send digest e-mails to directory addresses."""

    def __init__(
        self,
        resolve_email: Callable[[int], str | None],
        resolve_name: Callable[[int], str],
        *,
        send: Callable[..., bool] = send_digest_email,
    ) -> None:
        self._resolve_email = resolve_email
        self._resolve_name = resolve_name
        self._send = send

    def send_digest(
        self, user_id: int, notifications: Sequence[Notification], *, frequency: str
    ) -> bool:
        email = self._resolve_email(user_id)
        if not email:
            logger.info("User %s has no e-mail address; digest not sent", user_id)
            return False
        return self._send(email, self._resolve_name(user_id), notifications, frequency=frequency)


@dataclass
class ChannelSenderRegistry:
    """The external-channel interface used by the dispatcher.

    Channels without a registered sender yield a failed receipt. Sender
    exceptions are converted into failed receipts so one channel never aborts
    the dispatch of another.
    """

    senders: Mapping[NotificationChannel, ChannelSender] = field(default_factory=dict)

    def enqueue(self, notification: Notification, channel: NotificationChannel) -> DeliveryReceipt:
        sender = self.senders.get(channel)
        if sender is None:
            logger.info(
                "No sender configured for %s; notification %s not delivered there",
                channel.value,
                notification.id,
            )
            return DeliveryReceipt.failed(f"No sender configured for channel {channel.value}")
        try:
            return sender.enqueue(notification)
        except Exception as exc:
            logger.exception(
                "Channel %s failed for notification %s", channel.value, notification.id
            )
            return DeliveryReceipt.failed(str(exc) or exc.__class__.__name__)


__all__ = [
    "ChannelSender",
    "ChannelSenderRegistry",
    "DeliveryReceipt",
    "EmailChannelSender",
    "EmailDigestComposer",
]

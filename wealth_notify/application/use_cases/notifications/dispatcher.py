"""Creation, fan-out and lifecycle of notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol

from sqlalchemy.orm import Session

from wealth_notify.config import get_settings
from wealth_notify.domain.entities import (
    ChannelDeliveryStatus,
    Notification,
    NotificationChannel,
    NotificationPriority,
)
from wealth_notify.infrastructure.channels import ChannelSenderRegistry
from wealth_notify.infrastructure.directory import UserDirectory
from wealth_notify.infrastructure.notifications import (
    EVENT_ALL_READ,
    EVENT_ARCHIVED,
    EVENT_DELETED,
    EVENT_READ,
    NotificationPublisher,
    RealtimeEventPublisher,
    notification_publisher,
    realtime_event_publisher,
)
from wealth_notify.infrastructure.repositories import NotificationFilter, NotificationRepository
from wealth_notify.utils import now_in_app_timezone, start_of_app_day

from .errors import NotificationNotFoundError, NotificationValidationError
from .preferences import (
    apply_quiet_hours,
    get_or_create_preferences,
    is_quiet_hours,
    is_type_enabled,
    resolve_channels,
)
from .requests import BroadcastRequest, NotificationRequest
from .validators import validate_broadcast_request, validate_notification_request

logger = logging.getLogger(__name__)


class RecipientDirectory(Protocol):
    def resolve_recipients(
        self,
        *,
        roles: Sequence[str] | None = None,
        team_ids: Sequence[str] | None = None,
    ) -> list[int]: ...


@dataclass
class NotificationStats:
    """Counters shown in the notification bell.

    ``by_type`` and ``by_priority`` only cover unread, non-archived items;
    ``today_count`` counts everything created since midnight in the app timezone.
    """

    unread_count: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    today_count: int = 0
    urgent_count: int = 0


class NotificationDispatcher:
    """Resolve preferences, persist and deliver notifications for a session.

    Rows are committed before anything is pushed, so a live client never sees
    a notification that failed to persist. Each recipient is processed on its
    own: a failure is logged and the batch continues with the next one.
    """

    def __init__(
        self,
        session: Session,
        *,
        publisher: NotificationPublisher = notification_publisher,
        events: RealtimeEventPublisher = realtime_event_publisher,
        channels: ChannelSenderRegistry | None = None,
        directory: RecipientDirectory | None = None,
        page_size: int | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
    ) -> None:
        self._session = session
        self._notifications = NotificationRepository(session)
        self._publisher = publisher
        self._events = events
        self._channels = channels or ChannelSenderRegistry()
        self._directory = directory
        self._page_size = page_size or get_settings().notification_page_size
        self._clock = clock

    def create(
        self, request: NotificationRequest, *, created_by: int | None = None
    ) -> list[Notification]:
        """Create one notification per recipient and deliver it.

        Recipients that disabled the type, or whose channels all resolve away,
        are skipped without error.
        """

        now = self._clock()
        issues = validate_notification_request(request, now=now)
        if issues:
            raise NotificationValidationError(issues)

        created: list[Notification] = []
        for recipient_id in dict.fromkeys(request.recipient_ids):
            try:
                notification = self._create_for_recipient(
                    request, recipient_id, created_by=created_by, now=now
                )
            except Exception:
                self._session.rollback()
                logger.exception(
                    "Failed to create %s notification for user %s",
                    request.type.value,
                    recipient_id,
                )
                continue
            if notification is not None:
                created.append(notification)

        logger.info(
            "Created %s %s notification(s) for %s recipient(s)",
            len(created),
            request.type.value,
            len(set(request.recipient_ids)),
        )
        return created

    def broadcast(self, request: BroadcastRequest, *, created_by: int | None = None) -> int:
        """Notify every active user matching the role and team filters.

        Returns the number of notifications actually created.
        """

        issues = validate_broadcast_request(request, now=self._clock())
        if issues:
            raise NotificationValidationError(issues)

        recipients = self._resolve_directory().resolve_recipients(
            roles=request.roles, team_ids=request.team_ids
        )
        if not recipients:
            logger.info("Broadcast %s matched no recipients", request.type.value)
            return 0
        return len(self.create(request.for_recipients(recipients), created_by=created_by))

    def mark_as_read(self, notification_id: int, owner_id: int) -> Notification:
        notification = self._notifications.mark_as_read(
            notification_id, owner_id, read_at=self._clock()
        )
        if notification is None:
            raise NotificationNotFoundError()
        self._events.dispatch(owner_id, event_type=EVENT_READ, payload={"id": notification_id})
        return notification

    def mark_many_as_read(self, notification_ids: Iterable[int], owner_id: int) -> int:
        """Mark the owner's ``notification_ids`` as read; foreign ids are ignored."""

        return self._notifications.mark_many_as_read(notification_ids, user_id=owner_id)

    def mark_all_as_read(self, owner_id: int) -> int:
        """Mark every unread, non-archived notification of the owner as read.

        A single aggregate event is emitted whatever the number of rows.
        """

        count = self._notifications.mark_all_as_read(owner_id, read_at=self._clock())
        self._events.dispatch(owner_id, event_type=EVENT_ALL_READ, payload={})
        return count

    def archive(self, notification_id: int, owner_id: int) -> None:
        if not self._notifications.archive(notification_id, owner_id, archived_at=self._clock()):
            raise NotificationNotFoundError()
        self._events.dispatch(
            owner_id, event_type=EVENT_ARCHIVED, payload={"id": notification_id}
        )

    def delete(self, notification_id: int, owner_id: int) -> None:
        if not self._notifications.delete(notification_id, owner_id):
            raise NotificationNotFoundError()
        self._events.dispatch(owner_id, event_type=EVENT_DELETED, payload={"id": notification_id})

    def get_for_user(
        self, owner_id: int, notification_filter: NotificationFilter | None = None
    ) -> Sequence[Notification]:
        return self._notifications.list_for_user(
            owner_id,
            notification_filter,
            now=self._clock(),
            default_limit=self._page_size,
        )

    def get_unread(self, owner_id: int) -> Sequence[Notification]:
        return self._notifications.list_unread_for_user(owner_id, limit=self._page_size)

    def get_stats(self, owner_id: int) -> NotificationStats:
        now = self._clock()
        by_type = self._notifications.count_unread_by_type(owner_id, now=now)
        by_priority = self._notifications.count_unread_by_priority(owner_id, now=now)
        return NotificationStats(
            unread_count=sum(by_type.values()),
            by_type=by_type,
            by_priority=by_priority,
            today_count=self._notifications.count_created_since(
                owner_id, start_of_app_day(now)
            ),
            urgent_count=by_priority.get(NotificationPriority.URGENT.value, 0),
        )

    def _create_for_recipient(
        self,
        request: NotificationRequest,
        recipient_id: int,
        *,
        created_by: int | None,
        now: datetime,
    ) -> Notification | None:
        preference = get_or_create_preferences(self._session, recipient_id)
        if not is_type_enabled(preference, request.type):
            logger.debug("User %s disabled %s notifications", recipient_id, request.type.value)
            return None

        resolved = resolve_channels(preference, request.type, request.channels)
        channels = apply_quiet_hours(
            resolved, request.priority, is_quiet_hours(preference, now)
        )
        if channels != resolved:
            # Dropped channels are discarded, not deferred until quiet hours end.
            logger.debug(
                "Quiet hours for user %s dropped %s",
                recipient_id,
                ", ".join(channel.value for channel in resolved if channel not in channels),
            )
        if not channels:
            logger.debug("No channel left for user %s; nothing created", recipient_id)
            return None

        delivery_status = {}
        if NotificationChannel.IN_APP in channels:
            delivery_status[NotificationChannel.IN_APP] = ChannelDeliveryStatus(
                sent=True, sent_at=now
            )

        notification = self._notifications.create(
            Notification(
                id=None,
                recipient_id=recipient_id,
                type=request.type,
                title=request.title,
                message=request.message,
                priority=request.priority,
                entity_type=request.entity_type,
                entity_id=request.entity_id,
                entity_name=request.entity_name,
                action_url=request.action_url,
                action_label=request.action_label,
                channels_sent=channels,
                delivery_status=delivery_status,
                expires_at=request.expires_at,
                metadata=dict(request.metadata or {}),
                created_by=created_by,
                created_at=now,
            )
        )

        if NotificationChannel.IN_APP in channels:
            self._publisher.dispatch(notification)

        receipts = {
            channel: self._enqueue(notification, channel)
            for channel in channels
            if channel != NotificationChannel.IN_APP
        }
        if receipts:
            try:
                notification = self._notifications.update_delivery_status(
                    notification.id, receipts
                )
            except Exception:
                # The row is already committed and pushed; keep it in the result.
                self._session.rollback()
                logger.exception(
                    "Failed to record delivery status of notification %s", notification.id
                )
                notification.delivery_status.update(receipts)
        return notification

    def _enqueue(
        self, notification: Notification, channel: NotificationChannel
    ) -> ChannelDeliveryStatus:
        try:
            receipt = self._channels.enqueue(notification, channel)
        except Exception as exc:
            logger.exception(
                "Channel %s raised for notification %s", channel.value, notification.id
            )
            return ChannelDeliveryStatus(sent=False, error=str(exc))
        if not receipt.sent:
            logger.warning(
                "Channel %s did not accept notification %s: %s",
                channel.value,
                notification.id,
                receipt.error,
            )
        return ChannelDeliveryStatus(
            sent=receipt.sent, sent_at=receipt.sent_at, error=receipt.error
        )

    def _resolve_directory(self) -> RecipientDirectory:
        if self._directory is None:
            self._directory = UserDirectory(self._session)
        return self._directory


__all__ = ["NotificationDispatcher", "NotificationStats", "RecipientDirectory"]

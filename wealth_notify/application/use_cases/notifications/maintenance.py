"""Periodic housekeeping: expiry cleanup and digest e-mails."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol, Sequence

from sqlalchemy.orm import Session

from wealth_notify.domain.entities import (
    DIGEST_DAILY,
    DIGEST_WEEKLY,
    PRIORITY_RANK,
    DigestSettings,
    Notification,
)
from wealth_notify.infrastructure.repositories import (
    NotificationPreferenceRepository,
    NotificationRepository,
)
from wealth_notify.utils import ensure_app_timezone, now_in_app_timezone, resolve_timezone

logger = logging.getLogger(__name__)

DIGEST_WINDOWS = {
    DIGEST_DAILY: timedelta(days=1),
    DIGEST_WEEKLY: timedelta(days=7),
}


class DigestComposer(Protocol):
    def send_digest(
        self, user_id: int, notifications: Sequence[Notification], *, frequency: str
    ) -> bool: ...


@dataclass
class DigestRunSummary:
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def cleanup_expired_notifications(session: Session, *, now: datetime | None = None) -> int:
    """Delete every notification whose expiry lies in the past.

    Notifications without ``expires_at`` are never removed here.
    """

    removed = NotificationRepository(session).delete_expired(now or now_in_app_timezone())
    logger.info("Removed %s expired notification(s)", removed)
    return removed


def digest_window(settings: DigestSettings, now: datetime) -> timedelta | None:
    """Return how far back the digest due at ``now`` looks, or ``None`` if not due.

    Weekly digests are only due on their ``day_of_week`` (0 = Sunday), read
    in the digest timezone.
    """

    window = DIGEST_WINDOWS.get(settings.frequency)
    if window is None:
        return None
    if settings.frequency == DIGEST_WEEKLY:
        local = now.astimezone(resolve_timezone(settings.timezone))
        if (local.weekday() + 1) % 7 != settings.day_of_week:
            return None
    return window


def _digest_order(notification: Notification) -> tuple[int, datetime]:
    return PRIORITY_RANK.get(notification.priority, 0), notification.created_at


def send_notification_digests(
    session: Session,
    *,
    composer: DigestComposer,
    now: datetime | None = None,
) -> DigestRunSummary:
    """Send the due digests; a failing user is logged and the run continues."""

    now = ensure_app_timezone(now) or now_in_app_timezone()
    notifications = NotificationRepository(session)
    summary = DigestRunSummary()

    for preference in NotificationPreferenceRepository(session).list_with_digest_enabled():
        user_id = preference.user_id
        try:
            window = digest_window(preference.digest_settings, now)
            if window is None:
                summary.skipped += 1
                continue

            items = notifications.list_created_since(user_id, now - window)
            if not items:
                summary.skipped += 1
                continue

            ordered = sorted(items, key=_digest_order, reverse=True)
            if composer.send_digest(
                user_id, ordered, frequency=preference.digest_settings.frequency
            ):
                summary.sent += 1
            else:
                logger.warning("Digest for user %s was not sent", user_id)
                summary.failed += 1
        except Exception:
            session.rollback()
            logger.exception("Failed to send notification digest to user %s", user_id)
            summary.failed += 1

    logger.info(
        "Digest run finished: %s sent, %s skipped, %s failed",
        summary.sent,
        summary.skipped,
        summary.failed,
    )
    return summary


__all__ = [
    "DigestComposer",
    "DigestRunSummary",
    "cleanup_expired_notifications",
    "digest_window",
    "send_notification_digests",
]

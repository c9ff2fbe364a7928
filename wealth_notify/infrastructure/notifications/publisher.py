"""Utility helpers to push new notifications to websocket subscribers."""

from __future__ import annotations

from typing import Any

from wealth_notify.domain.entities import Notification

from .realtime import EVENT_NOTIFICATION, RealtimeEventPublisher, realtime_event_publisher


class NotificationPublisher:
    """Serialize notifications and schedule their in-app delivery."""

    def __init__(self, events: RealtimeEventPublisher) -> None:
        self._events = events

    def dispatch(self, notification: Notification) -> None:
        """Schedule ``notification`` to be delivered to its recipient."""

        self._events.dispatch(
            notification.recipient_id,
            event_type=EVENT_NOTIFICATION,
            payload=serialize_notification(notification),
        )


def _iso_or_none(value) -> str | None:
    return value.isoformat() if value else None


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the client-safe websocket representation for ``notification``.

    Delivery bookkeeping, metadata and audit fields stay server side.
    """

    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority.value,
        "entity_type": notification.entity_type.value if notification.entity_type else None,
        "entity_id": notification.entity_id,
        "entity_name": notification.entity_name,
        "action_url": notification.action_url,
        "action_label": notification.action_label,
        "is_read": notification.is_read,
        "is_archived": notification.is_archived,
        "read_at": _iso_or_none(notification.read_at),
        "archived_at": _iso_or_none(notification.archived_at),
        "created_at": _iso_or_none(notification.created_at),
        "expires_at": _iso_or_none(notification.expires_at),
    }


notification_publisher = NotificationPublisher(realtime_event_publisher)


__all__ = [
    "NotificationPublisher",
    "notification_publisher",
    "serialize_notification",
]

"""Realtime notification helpers for the infrastructure layer."""

from .manager import (
    WS_POLICY_VIOLATION,
    ConnectionHandle,
    NotificationConnectionManager,
    notification_manager,
)
from .publisher import (
    NotificationPublisher,
    notification_publisher,
    serialize_notification,
)
from .realtime import (
    EVENT_ALL_READ,
    EVENT_ARCHIVED,
    EVENT_DELETED,
    EVENT_NOTIFICATION,
    EVENT_READ,
    RealtimeEventPublisher,
    realtime_event_publisher,
)

__all__ = [
    "ConnectionHandle",
    "EVENT_ALL_READ",
    "EVENT_ARCHIVED",
    "EVENT_DELETED",
    "EVENT_NOTIFICATION",
    "EVENT_READ",
    "NotificationConnectionManager",
    "NotificationPublisher",
    "RealtimeEventPublisher",
    "WS_POLICY_VIOLATION",
    "notification_manager",
    "notification_publisher",
    "realtime_event_publisher",
    "serialize_notification",
]

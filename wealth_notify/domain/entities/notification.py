"""Domain entity representing a notification delivered to one recipient."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping


class NotificationType(str, Enum):
    """Business events that can produce a notification."""

    TASK_DUE = "task_due"
    TASK_OVERDUE = "task_overdue"
    TASK_ASSIGNED = "task_assigned"
    TASK_COMPLETED = "task_completed"

    MEETING_REMINDER = "meeting_reminder"
    MEETING_SCHEDULED = "meeting_scheduled"
    MEETING_CANCELLED = "meeting_cancelled"
    MEETING_RESCHEDULED = "meeting_rescheduled"

    KYC_EXPIRING = "kyc_expiring"
    KYC_EXPIRED = "kyc_expired"
    KYC_VERIFIED = "kyc_verified"
    COMPLIANCE_REVIEW = "compliance_review"
    COMPLIANCE_OVERDUE = "compliance_overdue"

    DOCUMENT_UPLOADED = "document_uploaded"
    DOCUMENT_EXPIRING = "document_expiring"
    SIGNATURE_REQUIRED = "signature_required"
    SIGNATURE_RECEIVED = "signature_received"

    BILLING_GENERATED = "billing_generated"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_OVERDUE = "payment_overdue"

    ACCOUNT_OPENED = "account_opened"
    ACCOUNT_CLOSED = "account_closed"
    ACCOUNT_TRANSFER = "account_transfer"

    PROSPECT_CONVERTED = "prospect_converted"
    PROSPECT_LOST = "prospect_lost"
    PROSPECT_STALE = "prospect_stale"

    RISK_ALERT = "risk_alert"
    LIFE_EVENT_DETECTED = "life_event_detected"
    INSIGHT_GENERATED = "insight_generated"

    SYSTEM_ALERT = "system_alert"
    ANNOUNCEMENT = "announcement"
    SECURITY_ALERT = "security_alert"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationChannel(str, Enum):
    IN_APP = "in_app"
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class EntityType(str, Enum):
    """Kinds of CRM records a notification may reference."""

    HOUSEHOLD = "household"
    ACCOUNT = "account"
    PERSON = "person"
    TASK = "task"
    MEETING = "meeting"
    DOCUMENT = "document"
    INVOICE = "invoice"
    PROSPECT = "prospect"
    WORKFLOW = "workflow"


CHANNEL_ORDER: tuple[NotificationChannel, ...] = (
    NotificationChannel.IN_APP,
    NotificationChannel.EMAIL,
    NotificationChannel.PUSH,
    NotificationChannel.SMS,
)

PRIORITY_RANK: dict[NotificationPriority, int] = {
    NotificationPriority.URGENT: 3,
    NotificationPriority.HIGH: 2,
    NotificationPriority.NORMAL: 1,
    NotificationPriority.LOW: 0,
}

_ALL_CHANNELS = (
    NotificationChannel.IN_APP,
    NotificationChannel.EMAIL,
    NotificationChannel.PUSH,
)
_IN_APP_AND_EMAIL = (NotificationChannel.IN_APP, NotificationChannel.EMAIL)
_IN_APP_ONLY = (NotificationChannel.IN_APP,)

# Severity tiers: high -> in-app, email and push; medium -> in-app and email;
# everything else stays in-app.
DEFAULT_CHANNELS_BY_TYPE: Mapping[NotificationType, tuple[NotificationChannel, ...]] = {
    NotificationType.TASK_DUE: _IN_APP_AND_EMAIL,
    NotificationType.TASK_OVERDUE: _ALL_CHANNELS,
    NotificationType.TASK_ASSIGNED: _IN_APP_AND_EMAIL,
    NotificationType.TASK_COMPLETED: _IN_APP_ONLY,
    NotificationType.MEETING_REMINDER: _IN_APP_AND_EMAIL,
    NotificationType.MEETING_SCHEDULED: _IN_APP_ONLY,
    NotificationType.MEETING_CANCELLED: _IN_APP_ONLY,
    NotificationType.MEETING_RESCHEDULED: _IN_APP_ONLY,
    NotificationType.KYC_EXPIRING: _IN_APP_AND_EMAIL,
    NotificationType.KYC_EXPIRED: _ALL_CHANNELS,
    NotificationType.KYC_VERIFIED: _IN_APP_ONLY,
    NotificationType.COMPLIANCE_REVIEW: _IN_APP_AND_EMAIL,
    NotificationType.COMPLIANCE_OVERDUE: _ALL_CHANNELS,
    NotificationType.DOCUMENT_UPLOADED: _IN_APP_ONLY,
    NotificationType.DOCUMENT_EXPIRING: _IN_APP_AND_EMAIL,
    NotificationType.SIGNATURE_REQUIRED: _IN_APP_AND_EMAIL,
    NotificationType.SIGNATURE_RECEIVED: _IN_APP_ONLY,
    NotificationType.BILLING_GENERATED: _IN_APP_ONLY,
    NotificationType.PAYMENT_RECEIVED: _IN_APP_ONLY,
    NotificationType.PAYMENT_OVERDUE: _ALL_CHANNELS,
    NotificationType.ACCOUNT_OPENED: _IN_APP_ONLY,
    NotificationType.ACCOUNT_CLOSED: _IN_APP_ONLY,
    NotificationType.ACCOUNT_TRANSFER: _IN_APP_ONLY,
    NotificationType.PROSPECT_CONVERTED: _IN_APP_ONLY,
    NotificationType.PROSPECT_LOST: _IN_APP_ONLY,
    NotificationType.PROSPECT_STALE: _IN_APP_ONLY,
    NotificationType.RISK_ALERT: _ALL_CHANNELS,
    NotificationType.LIFE_EVENT_DETECTED: _IN_APP_ONLY,
    NotificationType.INSIGHT_GENERATED: _IN_APP_ONLY,
    NotificationType.SYSTEM_ALERT: _IN_APP_ONLY,
    NotificationType.ANNOUNCEMENT: _IN_APP_ONLY,
    NotificationType.SECURITY_ALERT: _ALL_CHANNELS,
}


def default_channels_for(notification_type: NotificationType) -> tuple[NotificationChannel, ...]:
    """Return the severity-tier channels for ``notification_type``."""

    return DEFAULT_CHANNELS_BY_TYPE.get(notification_type, _IN_APP_ONLY)


@dataclass
class ChannelDeliveryStatus:
    """Outcome of handing a notification to one delivery channel."""

    sent: bool
    sent_at: datetime | None = None
    delivered: bool = False
    delivered_at: datetime | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sent": self.sent,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "delivered": self.delivered,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelDeliveryStatus":
        return cls(
            sent=bool(data.get("sent")),
            sent_at=_parse_iso(data.get("sent_at")),
            delivered=bool(data.get("delivered")),
            delivered_at=_parse_iso(data.get("delivered_at")),
            error=data.get("error"),
        )


@dataclass
class Notification:
    """Message addressed to a single recipient.

    ``channels_sent`` is a tuple because it is fixed when the notification is
    created; only ``delivery_status`` records what happened afterwards.
    """

    id: int | None
    recipient_id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    entity_type: EntityType | None = None
    entity_id: str | None = None
    entity_name: str | None = None
    action_url: str | None = None
    action_label: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    is_archived: bool = False
    archived_at: datetime | None = None
    channels_sent: tuple[NotificationChannel, ...] = ()
    delivery_status: dict[NotificationChannel, ChannelDeliveryStatus] = field(
        default_factory=dict
    )
    expires_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_by: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


def _parse_iso(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


__all__ = [
    "CHANNEL_ORDER",
    "ChannelDeliveryStatus",
    "DEFAULT_CHANNELS_BY_TYPE",
    "EntityType",
    "Notification",
    "NotificationChannel",
    "NotificationPriority",
    "NotificationType",
    "PRIORITY_RANK",
    "default_channels_for",
]

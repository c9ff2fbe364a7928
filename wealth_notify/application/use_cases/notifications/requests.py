"""Input objects accepted by the notification dispatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Sequence

from wealth_notify.domain.entities import (
    EntityType,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)


@dataclass
class NotificationRequest:
    type: NotificationType
    title: str
    message: str
    recipient_ids: Sequence[int]
    priority: NotificationPriority = NotificationPriority.NORMAL
    entity_type: EntityType | None = None
    entity_id: str | None = None
    entity_name: str | None = None
    action_url: str | None = None
    action_label: str | None = None
    channels: Sequence[NotificationChannel] | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class BroadcastRequest:
    """Notification addressed through directory filters instead of ids.

    With neither ``roles`` nor ``team_ids`` every active user is targeted.
    """

    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: str | None = None
    action_label: str | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    roles: Sequence[str] | None = None
    team_ids: Sequence[str] | None = None

    def for_recipients(self, recipient_ids: Sequence[int]) -> NotificationRequest:
        return NotificationRequest(
            type=self.type,
            title=self.title,
            message=self.message,
            recipient_ids=list(recipient_ids),
            priority=self.priority,
            action_url=self.action_url,
            action_label=self.action_label,
            expires_at=self.expires_at,
            metadata=dict(self.metadata),
        )


__all__ = ["BroadcastRequest", "NotificationRequest"]

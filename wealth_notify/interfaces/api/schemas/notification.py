"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from wealth_notify.domain.entities import (
    EntityType,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
)


class NotificationRead(BaseModel):
    """Representation of a notification delivered to its recipient."""

    id: int
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority
    entity_type: EntityType | None = None
    entity_id: str | None = None
    entity_name: str | None = None
    action_url: str | None = None
    action_label: str | None = None
    is_read: bool
    read_at: datetime | None = None
    is_archived: bool
    archived_at: datetime | None = None
    channels_sent: list[NotificationChannel] = Field(default_factory=list)
    expires_at: datetime | None = None
    created_at: datetime | None = None


class NotificationCreate(BaseModel):
    """Payload accepted by the privileged create endpoint.

    Lengths and the recipient list are checked by the dispatcher so that the
    caller receives every problem at once.
    """

    model_config = ConfigDict(extra="forbid")

    type: NotificationType
    title: str
    message: str
    recipient_ids: list[int]
    priority: NotificationPriority = NotificationPriority.NORMAL
    entity_type: EntityType | None = None
    entity_id: str | None = None
    entity_name: str | None = None
    action_url: str | None = None
    action_label: str | None = None
    channels: list[NotificationChannel] | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class NotificationBroadcast(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    action_url: str | None = None
    action_label: str | None = None
    expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    roles: list[str] | None = Field(default=None, description="Role aliases to target")
    team_ids: list[str] | None = None


class BroadcastResult(BaseModel):
    created: int


class MarkAllReadResult(BaseModel):
    updated: int


class NotificationStatsRead(BaseModel):
    unread_count: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
    today_count: int
    urgent_count: int


__all__ = [
    "BroadcastResult",
    "MarkAllReadResult",
    "NotificationBroadcast",
    "NotificationCreate",
    "NotificationRead",
    "NotificationStatsRead",
]

"""Domain entity describing how a user wants to receive notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from .notification import (
    CHANNEL_ORDER,
    NotificationChannel,
    NotificationType,
    default_channels_for,
)

DIGEST_DAILY = "daily"
DIGEST_WEEKLY = "weekly"
DIGEST_FREQUENCIES = (DIGEST_DAILY, DIGEST_WEEKLY)

ALL_DAYS_OF_WEEK = [0, 1, 2, 3, 4, 5, 6]


@dataclass
class ChannelSettings:
    """Global on/off switch per delivery channel."""

    in_app: bool = True
    email: bool = True
    push: bool = True
    sms: bool = False

    def is_enabled(self, channel: NotificationChannel) -> bool:
        return bool(getattr(self, channel.value))

    def to_dict(self) -> dict[str, bool]:
        return {channel.value: self.is_enabled(channel) for channel in CHANNEL_ORDER}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "ChannelSettings":
        defaults = cls()
        data = data or {}
        return cls(
            **{
                channel.value: bool(data.get(channel.value, getattr(defaults, channel.value)))
                for channel in CHANNEL_ORDER
            }
        )


@dataclass
class TypeSetting:
    enabled: bool = True
    channels: list[NotificationChannel] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "channels": [c.value for c in self.channels]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TypeSetting":
        channels = []
        for raw in data.get("channels") or []:
            try:
                channels.append(NotificationChannel(raw))
            except ValueError:
                continue
        return cls(enabled=bool(data.get("enabled", True)), channels=channels)


@dataclass
class QuietHours:
    """Daily window in which non-urgent delivery is narrowed to in-app.

    ``days_of_week`` uses 0 for Sunday through 6 for Saturday.
    """

    enabled: bool = False
    start: str = "22:00"
    end: str = "07:00"
    timezone: str = "America/New_York"
    days_of_week: list[int] = field(default_factory=lambda: list(ALL_DAYS_OF_WEEK))

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "start": self.start,
            "end": self.end,
            "timezone": self.timezone,
            "days_of_week": list(self.days_of_week),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "QuietHours":
        defaults = cls()
        data = data or {}
        days = data.get("days_of_week")
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            start=data.get("start") or defaults.start,
            end=data.get("end") or defaults.end,
            timezone=data.get("timezone") or defaults.timezone,
            days_of_week=list(days) if days is not None else defaults.days_of_week,
        )


@dataclass
class DigestSettings:
    enabled: bool = True
    frequency: str = DIGEST_DAILY
    day_of_week: int | None = None
    time: str = "08:00"
    timezone: str = "America/New_York"

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "frequency": self.frequency,
            "day_of_week": self.day_of_week,
            "time": self.time,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "DigestSettings":
        defaults = cls()
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", defaults.enabled)),
            frequency=data.get("frequency") or defaults.frequency,
            day_of_week=data.get("day_of_week"),
            time=data.get("time") or defaults.time,
            timezone=data.get("timezone") or defaults.timezone,
        )


@dataclass
class NotificationPreference:
    """Delivery rules configured by one user (exactly one record per user)."""

    id: int | None
    user_id: int
    channel_settings: ChannelSettings = field(default_factory=ChannelSettings)
    type_settings: dict[NotificationType, TypeSetting] = field(default_factory=dict)
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    digest_settings: DigestSettings = field(default_factory=DigestSettings)
    push_token: str | None = None
    push_token_updated_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def type_setting(self, notification_type: NotificationType) -> TypeSetting | None:
        return self.type_settings.get(notification_type)


def default_type_settings() -> dict[NotificationType, TypeSetting]:
    """Return the per-type settings assigned to a brand new preference."""

    return {
        notification_type: TypeSetting(
            enabled=True, channels=list(default_channels_for(notification_type))
        )
        for notification_type in NotificationType
    }


def build_default_preference(user_id: int, *, timezone: str) -> NotificationPreference:
    """Return the documented default preference for ``user_id``."""

    return NotificationPreference(
        id=None,
        user_id=user_id,
        channel_settings=ChannelSettings(),
        type_settings=default_type_settings(),
        quiet_hours=QuietHours(timezone=timezone),
        digest_settings=DigestSettings(timezone=timezone),
    )


__all__ = [
    "ALL_DAYS_OF_WEEK",
    "ChannelSettings",
    "DIGEST_DAILY",
    "DIGEST_FREQUENCIES",
    "DIGEST_WEEKLY",
    "DigestSettings",
    "NotificationPreference",
    "QuietHours",
    "TypeSetting",
    "build_default_preference",
    "default_type_settings",
]

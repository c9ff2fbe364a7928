"""Schemas for the notification preference endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from wealth_notify.domain.entities import NotificationChannel

CLOCK_PATTERN = r"^([01]?\d|2[0-3]):[0-5]\d$"


class ChannelSettingsRead(BaseModel):
    in_app: bool
    email: bool
    push: bool
    sms: bool


class TypeSettingRead(BaseModel):
    enabled: bool
    channels: list[NotificationChannel]


class QuietHoursRead(BaseModel):
    enabled: bool
    start: str
    end: str
    timezone: str
    days_of_week: list[int]


class DigestSettingsRead(BaseModel):
    enabled: bool
    frequency: str
    day_of_week: int | None = None
    time: str
    timezone: str


class PreferenceRead(BaseModel):
    user_id: int
    channel_settings: ChannelSettingsRead
    type_settings: dict[str, TypeSettingRead]
    quiet_hours: QuietHoursRead
    digest_settings: DigestSettingsRead
    push_token: str | None = None
    push_token_updated_at: datetime | None = None
    updated_at: datetime | None = None


class ChannelSettingsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    in_app: bool | None = None
    email: bool | None = None
    push: bool | None = None
    sms: bool | None = None


class TypeSettingPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    channels: list[NotificationChannel] | None = None


class QuietHoursPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    start: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    end: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    timezone: str | None = None
    days_of_week: list[int] | None = None


class DigestSettingsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool | None = None
    frequency: Literal["daily", "weekly"] | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    time: str | None = Field(default=None, pattern=CLOCK_PATTERN)
    timezone: str | None = None


class PreferenceUpdate(BaseModel):
    """Partial update; omitted sections and fields keep their stored value."""

    model_config = ConfigDict(extra="forbid")

    channel_settings: ChannelSettingsPatch | None = None
    type_settings: dict[str, TypeSettingPatch] | None = None
    quiet_hours: QuietHoursPatch | None = None
    digest_settings: DigestSettingsPatch | None = None
    push_token: str | None = None


__all__ = [
    "ChannelSettingsPatch",
    "ChannelSettingsRead",
    "DigestSettingsPatch",
    "DigestSettingsRead",
    "PreferenceRead",
    "PreferenceUpdate",
    "QuietHoursPatch",
    "QuietHoursRead",
    "TypeSettingPatch",
    "TypeSettingRead",
]

"""Validation helpers for notification and preference inputs.

Each validator returns the list of problems found instead of raising, so the
caller decides how to report them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from wealth_notify.domain.entities import (
    DIGEST_FREQUENCIES,
    DIGEST_WEEKLY,
    NotificationChannel,
    NotificationPreference,
    NotificationType,
)
from wealth_notify.utils import ensure_app_timezone, is_valid_timezone, parse_clock_time

from .errors import ValidationIssue
from .requests import BroadcastRequest, NotificationRequest

TITLE_MAX_LENGTH = 200
MESSAGE_MAX_LENGTH = 2000
ENTITY_NAME_MAX_LENGTH = 200
ACTION_URL_MAX_LENGTH = 500
ACTION_LABEL_MAX_LENGTH = 100

_CHANNEL_VALUES = frozenset(channel.value for channel in NotificationChannel)
_TYPE_VALUES = frozenset(notification_type.value for notification_type in NotificationType)


def _check_text(
    issues: list[ValidationIssue], field: str, value: str | None, max_length: int, *, required: bool
) -> None:
    if value is None or not value.strip():
        if required:
            issues.append(ValidationIssue("missing", field, "This field is required"))
        return
    if len(value) > max_length:
        issues.append(
            ValidationIssue("too_long", field, f"Must be at most {max_length} characters")
        )


def _check_expiry(
    issues: list[ValidationIssue], expires_at: datetime | None, now: datetime
) -> None:
    if expires_at is not None and ensure_app_timezone(expires_at) <= now:
        issues.append(ValidationIssue("invalid", "expires_at", "Must be in the future"))


def _check_content(
    issues: list[ValidationIssue],
    request: NotificationRequest | BroadcastRequest,
    now: datetime,
) -> None:
    _check_text(issues, "title", request.title, TITLE_MAX_LENGTH, required=True)
    _check_text(issues, "message", request.message, MESSAGE_MAX_LENGTH, required=True)
    _check_text(issues, "action_url", request.action_url, ACTION_URL_MAX_LENGTH, required=False)
    _check_text(
        issues, "action_label", request.action_label, ACTION_LABEL_MAX_LENGTH, required=False
    )
    _check_expiry(issues, request.expires_at, now)


def validate_notification_request(
    request: NotificationRequest, *, now: datetime
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    _check_content(issues, request, now)
    _check_text(
        issues, "entity_name", request.entity_name, ENTITY_NAME_MAX_LENGTH, required=False
    )
    if not request.recipient_ids:
        issues.append(
            ValidationIssue("empty", "recipient_ids", "At least one recipient is required")
        )
    if request.channels is not None and not request.channels:
        issues.append(
            ValidationIssue("empty", "channels", "Omit channels or provide at least one")
        )
    return issues


def validate_broadcast_request(
    request: BroadcastRequest, *, now: datetime
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    _check_content(issues, request, now)
    return issues


def _check_clock(issues: list[ValidationIssue], field: str, value: str) -> None:
    try:
        parse_clock_time(value)
    except ValueError:
        issues.append(ValidationIssue("invalid", field, "Expected a time formatted as HH:mm"))


def _check_timezone(issues: list[ValidationIssue], field: str, value: str) -> None:
    if not is_valid_timezone(value):
        issues.append(ValidationIssue("invalid", field, f"Unknown timezone '{value}'"))


def _check_day(issues: list[ValidationIssue], field: str, value: object) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 6:
        issues.append(
            ValidationIssue("out_of_range", field, "Days are numbered 0 (Sunday) to 6")
        )


PREFERENCE_SECTIONS = (
    "channel_settings",
    "type_settings",
    "quiet_hours",
    "digest_settings",
    "push_token",
)


def validate_preference_patch(patch: Mapping[str, Any]) -> list[ValidationIssue]:
    """Reject unknown sections, notification types and channel names in ``patch``."""

    issues: list[ValidationIssue] = []
    for section in patch:
        if section not in PREFERENCE_SECTIONS:
            issues.append(ValidationIssue("unknown", section, "Unknown preference section"))

    channel_settings = patch.get("channel_settings") or {}
    for raw_key in channel_settings:
        key = getattr(raw_key, "value", raw_key)
        if key not in _CHANNEL_VALUES:
            issues.append(
                ValidationIssue("unknown", f"channel_settings.{key}", "Unknown channel")
            )

    type_settings = patch.get("type_settings") or {}
    for raw_key, setting in type_settings.items():
        type_key = getattr(raw_key, "value", raw_key)
        if type_key not in _TYPE_VALUES:
            issues.append(
                ValidationIssue("unknown", f"type_settings.{type_key}", "Unknown notification type")
            )
            continue
        for channel in (setting or {}).get("channels") or []:
            value = getattr(channel, "value", channel)
            if value not in _CHANNEL_VALUES:
                issues.append(
                    ValidationIssue(
                        "unknown", f"type_settings.{type_key}.channels", f"Unknown channel '{value}'"
                    )
                )
    return issues


def validate_preference(preference: NotificationPreference) -> list[ValidationIssue]:
    """Check a (merged) preference record before it is stored."""

    issues: list[ValidationIssue] = []
    quiet_hours = preference.quiet_hours
    _check_clock(issues, "quiet_hours.start", quiet_hours.start)
    _check_clock(issues, "quiet_hours.end", quiet_hours.end)
    _check_timezone(issues, "quiet_hours.timezone", quiet_hours.timezone)
    for index, day in enumerate(quiet_hours.days_of_week):
        _check_day(issues, f"quiet_hours.days_of_week[{index}]", day)

    digest = preference.digest_settings
    if digest.frequency not in DIGEST_FREQUENCIES:
        issues.append(
            ValidationIssue("invalid", "digest_settings.frequency", "Must be daily or weekly")
        )
    if digest.frequency == DIGEST_WEEKLY or digest.day_of_week is not None:
        if digest.day_of_week is None:
            issues.append(
                ValidationIssue(
                    "missing", "digest_settings.day_of_week", "Required for weekly digests"
                )
            )
        else:
            _check_day(issues, "digest_settings.day_of_week", digest.day_of_week)
    _check_clock(issues, "digest_settings.time", digest.time)
    _check_timezone(issues, "digest_settings.timezone", digest.timezone)
    return issues


__all__ = [
    "validate_broadcast_request",
    "validate_notification_request",
    "validate_preference",
    "validate_preference_patch",
]

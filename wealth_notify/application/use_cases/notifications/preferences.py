"""Preference lookup, update and channel resolution for notifications."""

from __future__ import annotations

import logging
from datetime import datetime, time, timedelta
from typing import Any, Iterable, Mapping

from sqlalchemy.orm import Session

from wealth_notify.config import get_settings
from wealth_notify.domain.entities import (
    CHANNEL_ORDER,
    ChannelSettings,
    DigestSettings,
    NotificationChannel,
    NotificationPreference,
    NotificationPriority,
    NotificationType,
    QuietHours,
    TypeSetting,
    build_default_preference,
    default_channels_for,
)
from wealth_notify.infrastructure.repositories import NotificationPreferenceRepository
from wealth_notify.utils import now_in_app_timezone, parse_clock_time, resolve_timezone

from .errors import NotificationValidationError
from .validators import validate_preference, validate_preference_patch

logger = logging.getLogger(__name__)

QUIET_HOURS_CHANNELS = frozenset({NotificationChannel.IN_APP})


def _default_preference(user_id: int) -> NotificationPreference:
    return build_default_preference(
        user_id, timezone=get_settings().default_preference_timezone
    )


def get_or_create_preferences(session: Session, user_id: int) -> NotificationPreference:
    """Return the preference of ``user_id``, creating the default one on first access."""

    return NotificationPreferenceRepository(session).get_or_create(
        user_id, _default_preference
    )


def _merged(current: Mapping[str, Any], changes: Mapping[str, Any] | None) -> dict[str, Any]:
    merged = dict(current)
    merged.update(
        {key: value for key, value in (changes or {}).items() if value is not None}
    )
    return merged


def _merge_type_settings(
    current: dict[NotificationType, TypeSetting], changes: Mapping[str, Any]
) -> dict[NotificationType, TypeSetting]:
    merged = dict(current)
    for raw_key, setting_changes in changes.items():
        notification_type = NotificationType(getattr(raw_key, "value", raw_key))
        existing = merged.get(notification_type) or TypeSetting(
            channels=list(default_channels_for(notification_type))
        )
        merged[notification_type] = TypeSetting.from_dict(
            _merged(existing.to_dict(), setting_changes)
        )
    return merged


def update_preferences(
    session: Session,
    user_id: int,
    patch: Mapping[str, Any],
    *,
    now: datetime | None = None,
) -> NotificationPreference:
    """Merge ``patch`` section by section into the stored preference.

    Channel toggles merge by channel, type settings by type and the quiet-hours
    and digest sections by field. Invalid input raises
    :class:`NotificationValidationError` and nothing is stored.
    """

    issues = validate_preference_patch(patch)
    if issues:
        raise NotificationValidationError(issues)

    current = get_or_create_preferences(session, user_id)
    updated = NotificationPreference(
        id=current.id,
        user_id=current.user_id,
        channel_settings=ChannelSettings.from_dict(
            _merged(current.channel_settings.to_dict(), patch.get("channel_settings"))
        ),
        type_settings=_merge_type_settings(
            current.type_settings, patch.get("type_settings") or {}
        ),
        quiet_hours=QuietHours.from_dict(
            _merged(current.quiet_hours.to_dict(), patch.get("quiet_hours"))
        ),
        digest_settings=DigestSettings.from_dict(
            _merged(current.digest_settings.to_dict(), patch.get("digest_settings"))
        ),
        push_token=current.push_token,
        push_token_updated_at=current.push_token_updated_at,
        created_at=current.created_at,
        updated_at=current.updated_at,
    )
    if "push_token" in patch:
        updated.push_token = patch["push_token"] or None
        updated.push_token_updated_at = now or now_in_app_timezone()

    issues = validate_preference(updated)
    if issues:
        raise NotificationValidationError(issues)

    logger.info("Updated notification preferences for user %s", user_id)
    return NotificationPreferenceRepository(session).update(updated)


def is_type_enabled(
    preference: NotificationPreference, notification_type: NotificationType
) -> bool:
    setting = preference.type_setting(notification_type)
    return setting is None or setting.enabled


def _ordered(channels: Iterable[NotificationChannel]) -> tuple[NotificationChannel, ...]:
    wanted = set(channels)
    return tuple(channel for channel in CHANNEL_ORDER if channel in wanted)


def resolve_channels(
    preference: NotificationPreference,
    notification_type: NotificationType,
    override: Iterable[NotificationChannel] | None = None,
) -> tuple[NotificationChannel, ...]:
    """Return the channels ``notification_type`` should use for this user.

    The explicit ``override`` wins, then the user's per-type channels, then the
    severity-tier default. Channels switched off globally are removed. A
    disabled type resolves to an empty tuple.
    """

    if not is_type_enabled(preference, notification_type):
        return ()

    override = list(override) if override is not None else None
    setting = preference.type_setting(notification_type)
    if override:
        candidates: Iterable[NotificationChannel] = override
    elif setting is not None and setting.channels:
        candidates = setting.channels
    else:
        candidates = default_channels_for(notification_type)

    return _ordered(
        channel for channel in candidates if preference.channel_settings.is_enabled(channel)
    )


def _window_day(local: datetime, start: time, end: time) -> datetime | None:
    """Return the local date whose window contains ``local``, or ``None``.

    The part of a window that wraps past midnight belongs to the day it
    started on.
    """

    current = time(local.hour, local.minute)
    if start <= end:
        return local if start <= current <= end else None
    if current >= start:
        return local
    if current <= end:
        return local - timedelta(days=1)
    return None


def is_quiet_hours(preference: NotificationPreference, now: datetime) -> bool:
    """Return whether ``now`` falls in the user's quiet-hours window.

    ``now`` is converted to the preference timezone and compared at minute
    resolution; both window edges are inclusive. ``days_of_week`` (0 for
    Sunday) names the day a window starts, so with a 22:00-07:00 window on
    Friday, Saturday 06:00 is still quiet.
    """

    quiet_hours = preference.quiet_hours
    if not quiet_hours.enabled:
        return False

    try:
        start = parse_clock_time(quiet_hours.start)
        end = parse_clock_time(quiet_hours.end)
    except ValueError:
        logger.warning(
            "Ignoring malformed quiet hours for user %s: %s-%s",
            preference.user_id,
            quiet_hours.start,
            quiet_hours.end,
        )
        return False

    local = now.astimezone(resolve_timezone(quiet_hours.timezone))
    window_day = _window_day(local, start, end)
    if window_day is None:
        return False
    return (window_day.weekday() + 1) % 7 in quiet_hours.days_of_week


def apply_quiet_hours(
    channels: Iterable[NotificationChannel],
    priority: NotificationPriority,
    in_quiet_hours: bool,
) -> tuple[NotificationChannel, ...]:
    """Narrow ``channels`` to in-app during quiet hours unless ``priority`` is urgent."""

    resolved = _ordered(channels)
    if not in_quiet_hours or priority == NotificationPriority.URGENT:
        return resolved
    return tuple(channel for channel in resolved if channel in QUIET_HOURS_CHANNELS)


__all__ = [
    "apply_quiet_hours",
    "get_or_create_preferences",
    "is_quiet_hours",
    "is_type_enabled",
    "resolve_channels",
    "update_preferences",
]

"""Tests for preference storage and channel resolution."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from wealth_notify.application.use_cases.notifications import (
    NotificationValidationError,
    apply_quiet_hours,
    get_or_create_preferences,
    is_quiet_hours,
    resolve_channels,
    update_preferences,
)
from wealth_notify.domain.entities import (
    ChannelSettings,
    NotificationChannel,
    NotificationPriority,
    NotificationType,
    QuietHours,
    TypeSetting,
    build_default_preference,
)
from wealth_notify.infrastructure import database
from wealth_notify.infrastructure.repositories import NotificationPreferenceRepository

IN_APP = NotificationChannel.IN_APP
EMAIL = NotificationChannel.EMAIL
PUSH = NotificationChannel.PUSH
SMS = NotificationChannel.SMS


def _quiet_preference(**quiet_hours):
    preference = build_default_preference(1, timezone="UTC")
    values = {"enabled": True, "start": "22:00", "end": "07:00", "timezone": "UTC"}
    values.update(quiet_hours)
    preference.quiet_hours = QuietHours(**values)
    return preference


def _utc(hour: int, minute: int = 0, day: int = 10) -> datetime:
    # 2024-01-10 is a Wednesday.
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def test_default_preference_uses_severity_tiers() -> None:
    preference = build_default_preference(7, timezone="America/New_York")

    assert resolve_channels(preference, NotificationType.SECURITY_ALERT) == (IN_APP, EMAIL, PUSH)
    assert resolve_channels(preference, NotificationType.TASK_DUE) == (IN_APP, EMAIL)
    assert resolve_channels(preference, NotificationType.ANNOUNCEMENT) == (IN_APP,)
    assert preference.quiet_hours.enabled is False
    assert preference.digest_settings.timezone == "America/New_York"
    assert preference.channel_settings.sms is False


def test_resolve_channels_prefers_override_then_type_settings() -> None:
    preference = build_default_preference(1, timezone="UTC")
    preference.type_settings[NotificationType.TASK_DUE] = TypeSetting(
        enabled=True, channels=[EMAIL, IN_APP]
    )

    assert resolve_channels(preference, NotificationType.TASK_DUE) == (IN_APP, EMAIL)
    assert resolve_channels(preference, NotificationType.TASK_DUE, [PUSH, PUSH]) == (PUSH,)


def test_resolve_channels_falls_back_to_tier_when_type_has_no_channels() -> None:
    preference = build_default_preference(1, timezone="UTC")
    preference.type_settings[NotificationType.RISK_ALERT] = TypeSetting(enabled=True, channels=[])

    assert resolve_channels(preference, NotificationType.RISK_ALERT) == (IN_APP, EMAIL, PUSH)


def test_resolve_channels_drops_globally_disabled_channels() -> None:
    preference = build_default_preference(1, timezone="UTC")
    preference.channel_settings = ChannelSettings(in_app=True, email=False, push=True, sms=False)

    assert resolve_channels(preference, NotificationType.KYC_EXPIRED) == (IN_APP, PUSH)
    assert resolve_channels(preference, NotificationType.KYC_EXPIRED, [EMAIL, SMS]) == ()


def test_resolve_channels_is_empty_for_disabled_type() -> None:
    preference = build_default_preference(1, timezone="UTC")
    preference.type_settings[NotificationType.TASK_DUE] = TypeSetting(
        enabled=False, channels=[IN_APP, EMAIL]
    )

    assert resolve_channels(preference, NotificationType.TASK_DUE) == ()
    assert resolve_channels(preference, NotificationType.TASK_DUE, [IN_APP]) == ()


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        (_utc(23, 30), True),
        (_utc(6, 0), True),
        (_utc(12, 0), False),
        (_utc(22, 0), True),
        (_utc(7, 0), True),
        (_utc(7, 1), False),
    ],
)
def test_quiet_hours_window_wrapping_midnight(moment: datetime, expected: bool) -> None:
    assert is_quiet_hours(_quiet_preference(), moment) is expected


def test_quiet_hours_same_day_window() -> None:
    preference = _quiet_preference(start="12:00", end="14:00")

    assert is_quiet_hours(preference, _utc(13, 15)) is True
    assert is_quiet_hours(preference, _utc(15, 0)) is False


def test_quiet_hours_disabled_is_never_quiet() -> None:
    preference = _quiet_preference(enabled=False)

    assert is_quiet_hours(preference, _utc(23, 30)) is False


def test_quiet_hours_use_the_preference_timezone() -> None:
    preference = _quiet_preference(timezone="America/New_York")

    # 03:30 UTC is 22:30 in New York; 17:00 UTC is noon there.
    assert is_quiet_hours(preference, _utc(3, 30, day=11)) is True
    assert is_quiet_hours(preference, _utc(17, 0)) is False


def test_quiet_hours_only_apply_on_selected_days() -> None:
    weekdays_only = _quiet_preference(days_of_week=[1, 2, 3, 4, 5])

    # 2024-01-07 is a Sunday, 2024-01-08 a Monday.
    assert is_quiet_hours(weekdays_only, _utc(23, 30, day=7)) is False
    assert is_quiet_hours(weekdays_only, _utc(23, 30, day=8)) is True


def test_after_midnight_part_of_a_window_follows_the_day_it_started() -> None:
    weekdays_only = _quiet_preference(days_of_week=[1, 2, 3, 4, 5])

    # Friday night's window runs into Saturday morning; Sunday's does not exist.
    assert is_quiet_hours(weekdays_only, _utc(23, 30, day=12)) is True
    assert is_quiet_hours(weekdays_only, _utc(6, 0, day=13)) is True
    assert is_quiet_hours(weekdays_only, _utc(23, 30, day=13)) is False
    assert is_quiet_hours(weekdays_only, _utc(6, 0, day=8)) is False
    assert is_quiet_hours(weekdays_only, _utc(6, 0, day=9)) is True


def test_malformed_quiet_hours_are_ignored() -> None:
    preference = _quiet_preference(start="late", end="07:00")

    assert is_quiet_hours(preference, _utc(23, 30)) is False


def test_apply_quiet_hours_narrows_non_urgent_to_in_app() -> None:
    channels = (IN_APP, EMAIL, PUSH)

    assert apply_quiet_hours(channels, NotificationPriority.HIGH, True) == (IN_APP,)
    assert apply_quiet_hours((EMAIL,), NotificationPriority.NORMAL, True) == ()
    assert apply_quiet_hours(channels, NotificationPriority.NORMAL, False) == channels


@pytest.mark.parametrize("hour", [0, 3, 6, 12, 22, 23])
def test_urgent_priority_is_never_narrowed(hour: int) -> None:
    preference = _quiet_preference(start="00:00", end="23:59")
    channels = resolve_channels(preference, NotificationType.SECURITY_ALERT)

    narrowed = apply_quiet_hours(
        channels, NotificationPriority.URGENT, is_quiet_hours(preference, _utc(hour))
    )

    assert narrowed == (IN_APP, EMAIL, PUSH)


def test_get_or_create_returns_the_same_row(db_session) -> None:
    first = get_or_create_preferences(db_session, 42)
    second = get_or_create_preferences(db_session, 42)

    assert first.id == second.id
    assert NotificationPreferenceRepository(db_session).count_for_user(42) == 1
    assert first.quiet_hours.timezone == "America/New_York"


def test_concurrent_first_access_creates_a_single_row(db_session) -> None:
    workers = 8
    barrier = threading.Barrier(workers)

    def _first_access(_: int) -> int:
        session = database.SessionLocal()
        try:
            barrier.wait(timeout=10)
            return get_or_create_preferences(session, 99).id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as executor:
        ids = list(executor.map(_first_access, range(workers)))

    assert len(set(ids)) == 1
    assert NotificationPreferenceRepository(db_session).count_for_user(99) == 1


def test_update_merges_sections(db_session) -> None:
    now = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)

    updated = update_preferences(
        db_session,
        5,
        {
            "channel_settings": {"email": False},
            "type_settings": {"task_due": {"enabled": False}},
            "quiet_hours": {"enabled": True, "start": "21:30"},
            "digest_settings": {"frequency": "weekly", "day_of_week": 1},
            "push_token": "device-token",
        },
        now=now,
    )

    assert updated.channel_settings.email is False
    assert updated.channel_settings.push is True
    assert updated.type_settings[NotificationType.TASK_DUE].enabled is False
    assert updated.type_settings[NotificationType.TASK_DUE].channels == [IN_APP, EMAIL]
    assert updated.quiet_hours.enabled is True
    assert updated.quiet_hours.start == "21:30"
    assert updated.quiet_hours.end == "07:00"
    assert updated.digest_settings.frequency == "weekly"
    assert updated.digest_settings.time == "08:00"
    assert updated.push_token == "device-token"
    assert updated.push_token_updated_at == now

    reloaded = get_or_create_preferences(db_session, 5)
    assert reloaded.channel_settings.email is False
    assert reloaded.type_settings[NotificationType.TASK_DUE].enabled is False


def test_update_rejects_invalid_values_without_storing(db_session) -> None:
    get_or_create_preferences(db_session, 6)

    with pytest.raises(NotificationValidationError) as excinfo:
        update_preferences(
            db_session,
            6,
            {
                "quiet_hours": {"timezone": "Mars/Olympus", "days_of_week": [9]},
                "digest_settings": {"frequency": "weekly"},
            },
        )

    fields = {issue.field for issue in excinfo.value.issues}
    assert fields == {
        "quiet_hours.timezone",
        "quiet_hours.days_of_week[0]",
        "digest_settings.day_of_week",
    }
    assert get_or_create_preferences(db_session, 6).quiet_hours.timezone == "America/New_York"


def test_update_rejects_unknown_types_and_channels(db_session) -> None:
    with pytest.raises(NotificationValidationError) as excinfo:
        update_preferences(
            db_session,
            8,
            {
                "type_settings": {
                    "not_a_type": {"enabled": False},
                    "task_due": {"channels": ["pigeon"]},
                }
            },
        )

    kinds = {(issue.kind, issue.field) for issue in excinfo.value.issues}
    assert ("unknown", "type_settings.not_a_type") in kinds
    assert ("unknown", "type_settings.task_due.channels") in kinds

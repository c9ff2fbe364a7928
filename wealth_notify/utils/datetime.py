"""Timezone helpers shared by storage, quiet hours and the scheduler.

Rows are stored as naive datetimes expressed in the application timezone;
the domain layer only ever sees aware values.
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from wealth_notify.config import get_settings

_FALLBACK_ZONE: Final[str] = "UTC"
# Labels such as ``UTC-05:00`` or ``GMT+1`` that are not IANA names.
_UTC_OFFSET_LABEL: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
_HH_MM: Final[re.Pattern[str]] = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _fixed_offset(label: str) -> timezone | None:
    found = _UTC_OFFSET_LABEL.match(label or "")
    if found is None:
        return None
    delta = timedelta(hours=int(found["hours"]), minutes=int(found["minutes"] or 0))
    return timezone(-delta if found["sign"] == "-" else delta)


def _zone(name: str) -> tzinfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return _fixed_offset(name)


def resolve_timezone(tz_name: str) -> tzinfo:
    """Return the zone named ``tz_name``; unknown names resolve to UTC."""

    return _zone(tz_name) or ZoneInfo(_FALLBACK_ZONE)


def is_valid_timezone(tz_name: str) -> bool:
    return bool(tz_name) and _zone(tz_name) is not None


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Zone used for storage and for "today" (``APP_TIMEZONE``, default UTC)."""

    configured = (get_settings().app_timezone or "").strip()
    return resolve_timezone(configured or _FALLBACK_ZONE)


def now_in_app_timezone() -> datetime:
    return datetime.now(tz=get_app_timezone())


def now_in_app_naive_datetime() -> datetime:
    """Column default: the current app-timezone wall clock without ``tzinfo``."""

    return now_in_app_timezone().replace(tzinfo=None)


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Express ``value`` in the app timezone; naive input is assumed to be in it."""

    if value is None:
        return None
    zone = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)


def ensure_app_naive_datetime(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return ensure_app_timezone(value).replace(tzinfo=None)


def start_of_app_day(value: datetime | None = None) -> datetime:
    """Return midnight of the app-timezone day containing ``value``."""

    localized = ensure_app_timezone(value) or now_in_app_timezone()
    return localized.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_clock_time(value: str) -> time:
    """Parse ``HH:mm`` (24h) into a :class:`datetime.time` or raise ``ValueError``."""

    found = _HH_MM.match((value or "").strip())
    if found is None:
        raise ValueError(f"Invalid time '{value}', expected HH:mm")
    return time(hour=int(found.group(1)), minute=int(found.group(2)))

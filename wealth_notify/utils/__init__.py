"""Utility helpers for reusable functionality."""

from .datetime import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    get_app_timezone,
    is_valid_timezone,
    now_in_app_naive_datetime,
    now_in_app_timezone,
    parse_clock_time,
    resolve_timezone,
    start_of_app_day,
)

__all__ = [
    "ensure_app_naive_datetime",
    "ensure_app_timezone",
    "get_app_timezone",
    "is_valid_timezone",
    "now_in_app_naive_datetime",
    "now_in_app_timezone",
    "parse_clock_time",
    "resolve_timezone",
    "start_of_app_day",
]

"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from prime_notifications.config import get_settings

_DEFAULT_TIMEZONE: Final[str] = "UTC"


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the configured application timezone.

    The value comes from ``APP_TIMEZONE``; unknown names fall back to UTC.
    """

    tz_name = (get_settings().app_timezone or "").strip() or _DEFAULT_TIMEZONE
    if tz_name.upper() == _DEFAULT_TIMEZONE:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def now_in_app_timezone() -> datetime:
    """Return the current time localized to the configured timezone."""

    return datetime.now(tz=get_app_timezone())


def now_in_app_naive_datetime() -> datetime:
    """Return the current localized time without attaching ``tzinfo``."""

    return now_in_app_timezone().replace(tzinfo=None)


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in the configured timezone.

    Naive values are assumed to already be local to the application timezone,
    which is how they are written to the database.
    """

    if value is None:
        return None

    tz = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def ensure_app_naive_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` localized to the app timezone but without ``tzinfo``."""

    localized = ensure_app_timezone(value)
    if localized is None:
        return None
    return localized.replace(tzinfo=None)

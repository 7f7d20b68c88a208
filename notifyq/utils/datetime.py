"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

_DEFAULT_TIMEZONE: Final[str] = "UTC"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)


def now_utc() -> datetime:
    """Return the current aware UTC time."""

    return datetime.now(tz=timezone.utc)


def now_naive_utc() -> datetime:
    """Return the current UTC time without attaching ``tzinfo``."""

    return now_utc().replace(tzinfo=None)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Normalize ``value`` to an aware UTC datetime.

    Naive values are assumed to already be expressed in UTC, which is how the
    repositories persist them.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_naive_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC but without ``tzinfo``.

    Timestamps are stored naive so that SQLite and server-side comparisons
    (``scheduled_at <= :now``) operate on a single representation.
    """

    normalized = ensure_utc(value)
    if normalized is None:
        return None
    return normalized.replace(tzinfo=None)


def resolve_timezone(tz_name: str | None, *, fallback: str = _DEFAULT_TIMEZONE) -> tzinfo:
    """Resolve ``tz_name`` into a ``tzinfo`` instance.

    Accepts IANA names and fixed offsets such as ``UTC-05:00``.
    """

    candidate = (tz_name or "").strip()
    if candidate:
        try:
            return ZoneInfo(candidate)
        except (ZoneInfoNotFoundError, ValueError):
            match = _OFFSET_PATTERN.match(candidate)
            if match:
                sign = -1 if match.group("sign") == "-" else 1
                hours = int(match.group("hours"))
                minutes = int(match.group("minutes") or 0)
                offset = timedelta(hours=hours, minutes=minutes)
                return timezone(sign * offset)
    return ZoneInfo(fallback)

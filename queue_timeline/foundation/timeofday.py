"""Minute-of-day helpers.

Every window and slot in the system is expressed as minutes since local
midnight.  Timestamps are converted to the venue timezone before their
minute-of-day is taken.
"""

from __future__ import annotations

import re
from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from queue_timeline.domain.errors import ParseError
from queue_timeline.foundation.clock import ensure_utc

MINUTES_PER_DAY = 24 * 60

_HHMM = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(text: str) -> int:
    """Parse a zero-padded 24h ``"HH:MM"`` string into minutes since midnight.

    Raises:
        ParseError: If *text* is not a valid time of day.
    """
    if not isinstance(text, str):
        raise ParseError(f"expected an 'HH:MM' string, got {type(text).__name__}")
    match = _HHMM.match(text.strip())
    if match is None:
        raise ParseError(f"malformed time of day: {text!r}")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ParseError(f"time of day out of range: {text!r}")
    return hour * 60 + minute


def format_hhmm(minutes: int) -> str:
    """Format minutes since midnight as ``"HH:MM"``, wrapping at 24h."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def resolve_timezone(name: str | tzinfo) -> tzinfo:
    """Turn an IANA name into a tzinfo.  Unknown names raise ParseError."""
    if isinstance(name, tzinfo):
        return name
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ParseError(f"unknown timezone: {name!r}") from exc


def to_datetime(value: datetime | str) -> datetime:
    """Coerce an ISO-8601 string or datetime into an aware datetime."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ParseError(f"malformed timestamp: {value!r}") from exc
        return ensure_utc(parsed)
    raise ParseError(f"expected a timestamp, got {type(value).__name__}")


def minute_of_day(value: datetime | str, tz: str | tzinfo = "UTC") -> int:
    """``hour * 60 + minute`` of *value* in the venue timezone *tz*."""
    local = to_datetime(value).astimezone(resolve_timezone(tz))
    return local.hour * 60 + local.minute

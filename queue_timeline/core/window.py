"""TimeWindowFilter — restrict record streams to a minute-of-day range.

The same ``[from_minute, to_minute]`` bounds are applied to every stream so
that downstream joins stay aligned.  Bounds are inclusive at both ends.
Filtering is pure: inputs are never mutated and order is preserved.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from pydantic import BaseModel, Field, model_validator

from queue_timeline.domain.errors import InconsistentWindow
from queue_timeline.domain.records import (
    RecordBundle,
    StatusChangeEvent,
    StatusSample,
    ThroughputRecord,
)
from queue_timeline.foundation.timeofday import (
    MINUTES_PER_DAY,
    format_hhmm,
    minute_of_day,
    parse_hhmm,
    resolve_timezone,
)

logger = logging.getLogger(__name__)


class TimeWindow(BaseModel):
    """A closed minute-of-day range, validated before any filtering."""

    from_minute: int = Field(..., ge=0, lt=MINUTES_PER_DAY)
    to_minute: int = Field(..., ge=0, lt=MINUTES_PER_DAY)

    model_config = {"frozen": True}

    @model_validator(mode="before")
    @classmethod
    def reject_inverted_bounds(cls, data):
        # Not a ValueError, so pydantic re-raises it as-is
        if isinstance(data, dict):
            lo, hi = data.get("from_minute"), data.get("to_minute")
            if isinstance(lo, int) and isinstance(hi, int) and lo > hi:
                raise InconsistentWindow(lo, hi)
        return data

    @classmethod
    def from_strings(cls, from_time: str, to_time: str) -> "TimeWindow":
        """Build a window from two ``"HH:MM"`` strings."""
        lo, hi = parse_hhmm(from_time), parse_hhmm(to_time)
        if lo > hi:
            raise InconsistentWindow(lo, hi)
        return cls(from_minute=lo, to_minute=hi)

    @classmethod
    def full_day(cls) -> "TimeWindow":
        return cls(from_minute=0, to_minute=MINUTES_PER_DAY - 1)

    def contains(self, minute: int) -> bool:
        return self.from_minute <= minute <= self.to_minute

    def __str__(self) -> str:
        return f"[{format_hhmm(self.from_minute)}, {format_hhmm(self.to_minute)}]"


# ── Stream filters ───────────────────────────────────────────────────────────

def filter_samples(
    samples: Iterable[StatusSample],
    window: TimeWindow,
    tz: str | tzinfo = "UTC",
) -> list[StatusSample]:
    """Keep samples whose ``observed_at`` minute-of-day lies in *window*."""
    zone = resolve_timezone(tz)
    return [s for s in samples if window.contains(minute_of_day(s.observed_at, zone))]


def filter_throughput(
    records: Iterable[ThroughputRecord],
    window: TimeWindow,
) -> list[ThroughputRecord]:
    """Keep throughput rows whose ``slot_start`` lies in *window*.

    Slot strings are already local wall-clock times, so no timezone applies.
    """
    return [r for r in records if window.contains(parse_hhmm(r.slot_start))]


def filter_events(
    events: Iterable[StatusChangeEvent],
    window: TimeWindow,
    tz: str | tzinfo = "UTC",
) -> list[StatusChangeEvent]:
    """Keep status-change events whose ``changed_at`` lies in *window*."""
    zone = resolve_timezone(tz)
    return [e for e in events if window.contains(minute_of_day(e.changed_at, zone))]


def apply_window(
    bundle: RecordBundle,
    window: TimeWindow,
    tz: str | tzinfo = "UTC",
) -> RecordBundle:
    """Filter all three streams with the same bounds."""
    zone = resolve_timezone(tz)
    filtered = RecordBundle(
        samples=filter_samples(bundle.samples, window, zone),
        throughput=filter_throughput(bundle.throughput, window),
        events=filter_events(bundle.events, window, zone),
    )
    logger.debug(
        "Window %s kept %s of %s",
        window,
        filtered.counts(),
        bundle.counts(),
    )
    return filtered


# ── Session bounds ───────────────────────────────────────────────────────────

def session_bounds(
    day: date,
    tz: str | tzinfo = "UTC",
    start_hour: int = 17,
    end_hour: int = 0,
) -> tuple[datetime, datetime]:
    """Start and end of one operating session, as aware datetimes.

    An *end_hour* at or before *start_hour* falls on the following calendar
    day, so the default 17 → 0 covers an evening running up to midnight.
    """
    zone = resolve_timezone(tz)
    start = datetime.combine(day, time(hour=start_hour), tzinfo=zone)
    end_day = day if end_hour > start_hour else day + timedelta(days=1)
    end = datetime.combine(end_day, time(hour=end_hour), tzinfo=zone)
    return start, end


def current_session(
    now: datetime,
    tz: str | tzinfo = "UTC",
    start_hour: int = 17,
    end_hour: int = 0,
) -> tuple[datetime, datetime]:
    """The session *now* belongs to in venue time.

    Until the previous night's session has ended, that session is current.
    Afterwards it is the one that opens later today.
    """
    zone = resolve_timezone(tz)
    local = now.astimezone(zone)
    previous = session_bounds(local.date() - timedelta(days=1), zone, start_hour, end_hour)
    if local < previous[1]:
        return previous
    return session_bounds(local.date(), zone, start_hour, end_hour)

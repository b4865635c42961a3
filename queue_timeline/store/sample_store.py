"""In-memory SampleStore with async-safe access.

Design notes:
    - An asyncio.Lock guards all mutations so concurrent ingest handlers
      never corrupt state.
    - The core consumes query results only; this store is the reference
      implementation of the query capability it needs.
    - Status samples and status-change events are append-only.
      Throughput rows are upserted on (entity, day, slot).
    - The only update to an event is stamping ``resolved_at`` on the
      latest open delay, done by replacing the frozen record.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Protocol

from queue_timeline.domain.enums import Status
from queue_timeline.domain.records import (
    RecordBundle,
    StatusChangeEvent,
    StatusSample,
    ThroughputRecord,
)
from queue_timeline.foundation.clock import utc_now

logger = logging.getLogger(__name__)


def operating_days(start: datetime, end: datetime) -> set[date]:
    """Calendar days on which a session inside ``[start, end]`` can begin.

    Dates are read in *start*'s timezone.  The day *end* falls on only
    counts when the range starts on it too.
    """
    first = start.date()
    last = end.astimezone(start.tzinfo).date()
    days = {first}
    day = first + timedelta(days=1)
    while day < last:
        days.add(day)
        day += timedelta(days=1)
    return days


class SampleStore(Protocol):
    """Query capability the recompute pipeline depends on."""

    async def query(self, start: datetime, end: datetime) -> RecordBundle:
        """Return every record of the three streams inside ``[start, end]``."""
        ...


class EntityDirectory:
    """Best-effort id → display name lookup."""

    __slots__ = ("_names",)

    def __init__(self, names: Optional[dict[str, str]] = None) -> None:
        self._names: dict[str, str] = dict(names or {})

    def register(self, entity_id: str, name: str) -> None:
        self._names[entity_id] = name

    def name_for(self, entity_id: str) -> Optional[str]:
        return self._names.get(entity_id)

    def as_dict(self) -> dict[str, str]:
        return dict(self._names)

    def __len__(self) -> int:
        return len(self._names)


class InMemorySampleStore:
    """Async-safe, in-memory store for the three record streams."""

    def __init__(self, directory: Optional[EntityDirectory] = None) -> None:
        self._lock = asyncio.Lock()
        self._samples: list[StatusSample] = []
        self._throughput: dict[tuple[str, date, str, str], ThroughputRecord] = {}
        self._events: list[StatusChangeEvent] = []
        self.directory = directory or EntityDirectory()

    # ── Ingest ───────────────────────────────────────────────────────────

    async def add_sample(self, sample: StatusSample) -> None:
        async with self._lock:
            self._samples.append(sample)
            logger.debug(
                "Stored sample %s=%s at %s",
                sample.entity_id,
                sample.status.value,
                sample.observed_at.isoformat(),
            )

    async def upsert_throughput(self, record: ThroughputRecord) -> bool:
        """Insert or correct a throughput row.  Returns True if it replaced one."""
        async with self._lock:
            replaced = record.record_key in self._throughput
            self._throughput[record.record_key] = record
            logger.debug(
                "%s throughput %s %s–%s = %d",
                "Corrected" if replaced else "Stored",
                record.entity_id,
                record.slot_start,
                record.slot_end,
                record.guest_count,
            )
            return replaced

    async def add_event(self, event: StatusChangeEvent) -> None:
        async with self._lock:
            self._events.append(event)

    async def resolve_delay(
        self,
        entity_id: str,
        at: Optional[datetime] = None,
    ) -> Optional[StatusChangeEvent]:
        """Stamp ``resolved_at`` on the entity's latest unresolved delay.

        Returns the updated event, or None if there was nothing to resolve.
        """
        at = at or utc_now()
        async with self._lock:
            open_delays = [
                (i, e)
                for i, e in enumerate(self._events)
                if e.entity_id == entity_id
                and e.status is Status.DELAYED
                and e.resolved_at is None
            ]
            if not open_delays:
                return None
            index, latest = max(open_delays, key=lambda pair: pair[1].changed_at)
            resolved = StatusChangeEvent.model_validate(
                {**latest.model_dump(), "resolved_at": at}
            )
            self._events[index] = resolved
            logger.info("Resolved delay for %s after %s", entity_id, at - latest.changed_at)
            return resolved

    # ── Query ────────────────────────────────────────────────────────────

    async def query(self, start: datetime, end: datetime) -> RecordBundle:
        """Records inside ``[start, end]``.

        Throughput rows carry an operating day rather than a timestamp.  A
        row is kept when its ``log_date`` is one of the days the range starts
        on, so a session running past midnight does not pick up the next
        night's counts.
        """
        days = operating_days(start, end)
        async with self._lock:
            return RecordBundle(
                samples=[s for s in self._samples if start <= s.observed_at <= end],
                throughput=[
                    r
                    for r in self._throughput.values()
                    if r.log_date in days
                ],
                events=[e for e in self._events if start <= e.changed_at <= end],
            )

    async def counts(self) -> dict[str, int]:
        async with self._lock:
            return {
                "samples": len(self._samples),
                "throughput": len(self._throughput),
                "events": len(self._events),
            }

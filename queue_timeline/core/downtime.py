"""DowntimeAnalyzer — statistics from the structured status-change log.

Each event's status holds from its ``changed_at`` until the next event for
the same entity, or until *now* for the entity's latest event.  Durations
are summed in seconds and rounded to whole minutes only once, at the end.

    total downtime     CLOSED + DELAYED time
    operating minutes  OPEN time
    average delay      mean of (resolved_at - changed_at) over resolved
                       DELAYED events; 0 when none are resolved, told apart
                       from "no delays" by ``delay_count``
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from queue_timeline.domain.enums import Status
from queue_timeline.domain.records import StatusChangeEvent
from queue_timeline.domain.views import DelaySnapshot, DowntimeSummary
from queue_timeline.foundation.clock import utc_now
from queue_timeline.foundation.rounding import minutes_between

logger = logging.getLogger(__name__)


def group_events(events: Iterable[StatusChangeEvent]) -> dict[str, list[StatusChangeEvent]]:
    """Events per entity, each list stable-sorted by ``changed_at``."""
    grouped: dict[str, list[StatusChangeEvent]] = {}
    for event in sorted(events, key=lambda e: e.changed_at):
        grouped.setdefault(event.entity_id, []).append(event)
    return grouped


def _held_seconds(
    ordered: list[StatusChangeEvent],
    now: datetime,
    predicate,
) -> float:
    """Seconds spent in statuses matching *predicate*.

    Spans are clamped at zero so a *now* earlier than the last event cannot
    produce negative time.
    """
    total = 0.0
    for i, event in enumerate(ordered):
        if not predicate(event.status):
            continue
        end = ordered[i + 1].changed_at if i + 1 < len(ordered) else now
        total += max((end - event.changed_at).total_seconds(), 0.0)
    return total


def _summarise(entity_id: str, ordered: list[StatusChangeEvent], now: datetime) -> DowntimeSummary:
    delays = [e for e in ordered if e.status is Status.DELAYED]
    resolved = [e for e in delays if e.resolved_at is not None]
    if resolved:
        mean_seconds = sum(
            (e.resolved_at - e.changed_at).total_seconds() for e in resolved
        ) / len(resolved)
        average = minutes_between(mean_seconds)
    else:
        average = 0

    return DowntimeSummary(
        entity_id=entity_id,
        total_downtime_minutes=minutes_between(
            _held_seconds(ordered, now, lambda s: s.counts_as_downtime)
        ),
        average_delay_minutes=average,
        delay_count=len(delays),
        resolved_delay_count=len(resolved),
        operating_minutes=minutes_between(
            _held_seconds(ordered, now, lambda s: s.is_nominal)
        ),
    )


def analyze_downtime(
    events: Iterable[StatusChangeEvent],
    now: Optional[datetime] = None,
) -> dict[str, DowntimeSummary]:
    """Per-entity downtime summaries, entities in order of first event."""
    now = now or utc_now()
    grouped = group_events(events)
    summaries = {eid: _summarise(eid, evs, now) for eid, evs in grouped.items()}
    logger.debug("Analyzed downtime for %d entities", len(summaries))
    return summaries


def operating_minutes(
    events: Iterable[StatusChangeEvent],
    entity_id: str,
    now: Optional[datetime] = None,
) -> int:
    """Minutes *entity_id* spent OPEN; 0 when it has no events."""
    ordered = group_events(e for e in events if e.entity_id == entity_id).get(entity_id, [])
    return minutes_between(_held_seconds(ordered, now or utc_now(), lambda s: s.is_nominal))


def delay_snapshots(
    events: Iterable[StatusChangeEvent],
    entity_id: str,
    now: Optional[datetime] = None,
) -> list[DelaySnapshot]:
    """One snapshot per DELAYED event; unresolved delays run until *now*."""
    now = now or utc_now()
    snapshots: list[DelaySnapshot] = []
    for event in sorted(events, key=lambda e: e.changed_at):
        if event.entity_id != entity_id or event.status is not Status.DELAYED:
            continue
        end = event.resolved_at or now
        snapshots.append(
            DelaySnapshot(
                reason=event.reason,
                notes=event.notes,
                started_at=event.changed_at,
                resolved_at=event.resolved_at,
                duration_minutes=max(minutes_between((end - event.changed_at).total_seconds()), 0),
            )
        )
    return snapshots

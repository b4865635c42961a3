"""SlotAggregator — throughput counts bucketed by slot across entities.

Slots are caller-defined "HH:MM" ranges shared by every entity on a day.
The aggregator builds a slot × entity matrix of guest counts, per-slot,
per-entity and grand totals, and folds in each entity's average OPEN wait
inside each slot.

Average-wait membership is half-open ``[start, end)``: a sample exactly on
a boundary belongs to the later slot only.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, tzinfo
from typing import Iterable, Mapping, Optional

from queue_timeline.domain.records import SlotKey, StatusSample, ThroughputRecord
from queue_timeline.domain.views import EntityColumn, SlotMatrix, SlotRow
from queue_timeline.foundation.rounding import round_half_up
from queue_timeline.foundation.timeofday import (
    MINUTES_PER_DAY,
    format_hhmm,
    minute_of_day,
    parse_hhmm,
    resolve_timezone,
)

logger = logging.getLogger(__name__)


# ── Name resolution ──────────────────────────────────────────────────────────

def resolve_entity_name(
    entity_id: str,
    directory: Optional[Mapping[str, str]],
    sample_names: Mapping[str, str],
    fallback_length: int = 8,
) -> str:
    """Directory name, else the name carried on samples, else a truncated id."""
    if directory:
        name = directory.get(entity_id)
        if name:
            return name
    name = sample_names.get(entity_id)
    if name:
        return name
    return entity_id[:fallback_length]


# ── Slot arithmetic ──────────────────────────────────────────────────────────

def slot_bounds(slot: SlotKey) -> tuple[int, int]:
    """Minute bounds of a slot.

    An end before the start wraps past midnight.  Equal ends give an empty
    slot that contains no minute.
    """
    start, end = parse_hhmm(slot[0]), parse_hhmm(slot[1])
    if end < start:
        end += MINUTES_PER_DAY
    return start, end


def in_slot(minute: int, bounds: tuple[int, int]) -> bool:
    start, end = bounds
    if end > MINUTES_PER_DAY and minute < start:
        minute += MINUTES_PER_DAY
    return start <= minute < end


def generate_hourly_slots(open_time: str, close_time: str) -> list[SlotKey]:
    """Contiguous hourly slots from *open_time* to *close_time*.

    The last slot is shortened to end at closing.  A closing time at or
    before opening is taken to be after midnight.
    """
    if not open_time or not close_time:
        return []
    cursor = parse_hhmm(open_time)
    end = parse_hhmm(close_time)
    if end <= cursor:
        end += MINUTES_PER_DAY

    slots: list[SlotKey] = []
    while cursor < end:
        nxt = min(cursor + 60, end)
        slots.append((format_hhmm(cursor), format_hhmm(nxt)))
        cursor = nxt
    return slots


def current_slot_index(slots: list[SlotKey], minute: int) -> int:
    """Index of the slot containing *minute*, or -1."""
    for i, slot in enumerate(slots):
        if in_slot(minute, slot_bounds(slot)):
            return i
    return -1


# ── Aggregation ──────────────────────────────────────────────────────────────

def _latest_per_key(records: Iterable[ThroughputRecord]) -> list[ThroughputRecord]:
    """Collapse corrections: the last record for each (entity, day, slot) wins."""
    latest: dict[tuple[str, date, str, str], ThroughputRecord] = {}
    for record in records:
        latest[record.record_key] = record
    return list(latest.values())


def aggregate_slots(
    throughput: Iterable[ThroughputRecord],
    samples: Iterable[StatusSample],
    directory: Optional[Mapping[str, str]] = None,
    tz: str | tzinfo = "UTC",
    fallback_length: int = 8,
) -> SlotMatrix:
    """Build the slot × entity matrix for filtered throughput and samples."""
    records = sorted(
        _latest_per_key(throughput),
        key=lambda r: (r.slot_start, r.slot_end, r.entity_id),
    )
    if not records:
        return SlotMatrix()

    sample_list = list(samples)
    zone = resolve_timezone(tz)

    slot_keys: list[SlotKey] = []
    entity_ids: list[str] = []
    counts: dict[SlotKey, dict[str, int]] = defaultdict(dict)
    for record in records:
        if record.slot_key not in counts:
            slot_keys.append(record.slot_key)
        if record.entity_id not in entity_ids:
            entity_ids.append(record.entity_id)
        cell = counts[record.slot_key]
        # Same slot on different days adds up
        cell[record.entity_id] = cell.get(record.entity_id, 0) + record.guest_count

    sample_names: dict[str, str] = {}
    open_minutes: dict[str, list[tuple[int, int]]] = defaultdict(list)
    for sample in sample_list:
        sample_names.setdefault(sample.entity_id, sample.entity_name)
        if sample.status.is_nominal:
            open_minutes[sample.entity_id].append(
                (minute_of_day(sample.observed_at, zone), sample.wait_minutes)
            )

    entities = [
        EntityColumn(
            entity_id=eid,
            name=resolve_entity_name(eid, directory, sample_names, fallback_length),
        )
        for eid in entity_ids
    ]

    rows: list[SlotRow] = []
    entity_totals = {eid: 0 for eid in entity_ids}
    for slot in slot_keys:
        bounds = slot_bounds(slot)
        row_counts = {eid: counts[slot].get(eid, 0) for eid in entity_ids}
        for eid, n in row_counts.items():
            entity_totals[eid] += n

        averages: dict[str, int] = {}
        for eid in entity_ids:
            waits = [w for m, w in open_minutes.get(eid, ()) if in_slot(m, bounds)]
            if waits:
                averages[eid] = round_half_up(sum(waits) / len(waits))

        rows.append(
            SlotRow(
                slot_start=slot[0],
                slot_end=slot[1],
                counts=row_counts,
                total=sum(row_counts.values()),
                average_wait=averages,
            )
        )

    grand_total = sum(entity_totals.values())
    logger.debug(
        "Aggregated %d slots x %d entities (%d guests)",
        len(rows),
        len(entities),
        grand_total,
    )
    return SlotMatrix(
        slots=rows,
        entities=entities,
        entity_totals=entity_totals,
        grand_total=grand_total,
    )

"""Figures that auto-populate an attraction's end-of-night show report."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from queue_timeline.core.downtime import delay_snapshots, operating_minutes
from queue_timeline.domain.records import StatusChangeEvent, ThroughputRecord
from queue_timeline.domain.views import ReportData, ThroughputSlot
from queue_timeline.foundation.clock import utc_now


def throughput_snapshot(
    records: Iterable[ThroughputRecord],
    entity_id: str,
) -> list[ThroughputSlot]:
    """The entity's slot counts in slot order."""
    own = sorted(
        (r for r in records if r.entity_id == entity_id),
        key=lambda r: (r.slot_start, r.slot_end),
    )
    return [
        ThroughputSlot(slot_start=r.slot_start, slot_end=r.slot_end, guest_count=r.guest_count)
        for r in own
    ]


def build_report_data(
    entity_id: str,
    events: Iterable[StatusChangeEvent],
    throughput: Iterable[ThroughputRecord],
    now: Optional[datetime] = None,
) -> ReportData:
    now = now or utc_now()
    event_list = list(events)
    hourly = throughput_snapshot(throughput, entity_id)
    return ReportData(
        entity_id=entity_id,
        total_operating_minutes=operating_minutes(event_list, entity_id, now),
        total_guests=sum(s.guest_count for s in hourly),
        hourly_throughput=hourly,
        delays=delay_snapshots(event_list, entity_id, now),
    )

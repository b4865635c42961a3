"""Pipeline — one full recomputation of every view from raw records.

Design principles:
    1. Pure function: accepts a RecordBundle and a TimeWindow, returns a
       DashboardView.
    2. No side effects, no state, no I/O.
    3. Recompute, never patch: every call starts from the raw records.
    4. The window is applied once, with the same bounds, to all streams.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, tzinfo
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from queue_timeline.config import DEFAULT_PALETTE
from queue_timeline.core.downtime import analyze_downtime
from queue_timeline.core.segments import segment_statuses
from queue_timeline.core.series import reconstruct_series
from queue_timeline.core.slots import aggregate_slots
from queue_timeline.core.window import TimeWindow, apply_window
from queue_timeline.domain.records import RecordBundle
from queue_timeline.domain.views import (
    DowntimeSummary,
    SlotMatrix,
    StatusInterval,
    TimelineSeries,
)
from queue_timeline.foundation.clock import utc_now

logger = logging.getLogger(__name__)


class DashboardView(BaseModel):
    """Every derived view for one window over one record set."""

    window: TimeWindow
    series: TimelineSeries
    intervals: dict[str, list[StatusInterval]] = Field(default_factory=dict)
    slots: SlotMatrix
    downtime: dict[str, DowntimeSummary] = Field(default_factory=dict)
    record_counts: dict[str, int] = Field(default_factory=dict, description="Records kept by the window")

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not any(self.record_counts.values())


def compute_dashboard(
    bundle: RecordBundle,
    window: TimeWindow,
    tz: str | tzinfo = "UTC",
    directory: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
    palette: Sequence[str] = DEFAULT_PALETTE,
    fallback_length: int = 8,
) -> DashboardView:
    """Filter *bundle* by *window* and run all four components over it."""
    filtered = apply_window(bundle, window, tz)
    view = DashboardView(
        window=window,
        series=reconstruct_series(filtered.samples, palette),
        intervals=segment_statuses(filtered.samples),
        slots=aggregate_slots(
            filtered.throughput,
            filtered.samples,
            directory=directory,
            tz=tz,
            fallback_length=fallback_length,
        ),
        downtime=analyze_downtime(filtered.events, now or utc_now()),
        record_counts=filtered.counts(),
    )
    logger.debug("Computed dashboard for window %s: %s", window, view.record_counts)
    return view


def fingerprint(
    bundle: RecordBundle,
    window: TimeWindow,
    directory: Optional[Mapping[str, str]] = None,
) -> str:
    """SHA-256 of the inputs in their given order, usable as a memo key.

    Order is kept because samples sharing a timestamp resolve by encounter
    order, so a permutation is not guaranteed to produce the same view.
    """
    digest = hashlib.sha256()
    for name, records in (
        ("samples", bundle.samples),
        ("throughput", bundle.throughput),
        ("events", bundle.events),
    ):
        lines = [r.model_dump_json() for r in records]
        digest.update(name.encode())
        digest.update(json.dumps(lines).encode())
    digest.update(window.model_dump_json().encode())
    digest.update(json.dumps(sorted((directory or {}).items())).encode())
    return digest.hexdigest()

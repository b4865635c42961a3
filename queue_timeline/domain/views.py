"""Derived view models — what the core hands to the presentation layer.

Every view is a plain, serialisable snapshot rebuilt from scratch on each
computation.  None of them hold references back to the input records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from queue_timeline.domain.enums import DelayReason, Status


# ── Series (forward-filled chart rows) ───────────────────────────────────────

class TimelineRow(BaseModel):
    """Every entity's wait value as of one instant.

    ``values`` maps entity name to wait minutes, ``None`` when the entity is
    not OPEN.  An entity with no observation yet has no key at all.
    """

    observed_at: datetime
    values: dict[str, Optional[int]] = Field(default_factory=dict)

    model_config = {"frozen": True}


class TimelineSeries(BaseModel):
    """Dense, time-ordered table for a multi-line wait-time chart."""

    entity_names: list[str] = Field(default_factory=list, description="Series order")
    colors: dict[str, str] = Field(default_factory=dict, description="Series colour per entity name")
    rows: list[TimelineRow] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.rows

    def to_chart_rows(self) -> list[dict[str, Any]]:
        """Flatten rows into ``{"time": epoch_ms, <name>: value, ...}`` dicts."""
        flat: list[dict[str, Any]] = []
        for row in self.rows:
            point: dict[str, Any] = {"time": int(row.observed_at.timestamp() * 1000)}
            point.update(row.values)
            flat.append(point)
        return flat


# ── Status intervals ─────────────────────────────────────────────────────────

class StatusInterval(BaseModel):
    """A maximal contiguous run of one non-nominal status for an entity."""

    entity_id: str
    entity_name: str
    status: Status
    start: datetime
    end: datetime

    model_config = {"frozen": True}

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


# ── Slot matrix ──────────────────────────────────────────────────────────────

class EntityColumn(BaseModel):
    entity_id: str
    name: str

    model_config = {"frozen": True}


class SlotRow(BaseModel):
    """One throughput slot across every entity."""

    slot_start: str
    slot_end: str
    counts: dict[str, int] = Field(default_factory=dict, description="Guest count per entity id")
    total: int = Field(0, description="Sum of counts across entities")
    average_wait: dict[str, int] = Field(
        default_factory=dict,
        description="Rounded mean OPEN wait per entity id; absent when no sample falls in the slot",
    )

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.slot_start}–{self.slot_end}"


class SlotMatrix(BaseModel):
    """Slot × entity guest counts with row, column and grand totals."""

    slots: list[SlotRow] = Field(default_factory=list)
    entities: list[EntityColumn] = Field(default_factory=list)
    entity_totals: dict[str, int] = Field(default_factory=dict)
    grand_total: int = 0

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.slots


# ── Downtime ─────────────────────────────────────────────────────────────────

class DelaySnapshot(BaseModel):
    """One DELAYED episode as it appears on a show report."""

    reason: Optional[DelayReason] = None
    notes: Optional[str] = None
    started_at: datetime
    resolved_at: Optional[datetime] = None
    duration_minutes: int = Field(..., ge=0)

    model_config = {"frozen": True}


class DowntimeSummary(BaseModel):
    """Per-entity downtime and delay statistics, all in whole minutes."""

    entity_id: str
    total_downtime_minutes: int = Field(..., ge=0, description="Time spent CLOSED or DELAYED")
    average_delay_minutes: int = Field(
        ..., ge=0, description="Mean resolved-delay duration (0 when none resolved)"
    )
    delay_count: int = Field(..., ge=0, description="All DELAYED events, resolved or not")
    resolved_delay_count: int = Field(..., ge=0)
    operating_minutes: int = Field(0, ge=0, description="Time spent OPEN")

    model_config = {"frozen": True}


# ── Show report ──────────────────────────────────────────────────────────────

class ThroughputSlot(BaseModel):
    slot_start: str
    slot_end: str
    guest_count: int

    model_config = {"frozen": True}


class ReportData(BaseModel):
    """Auto-populated figures for one entity's end-of-night show report."""

    entity_id: str
    total_operating_minutes: int
    total_guests: int
    hourly_throughput: list[ThroughputSlot] = Field(default_factory=list)
    delays: list[DelaySnapshot] = Field(default_factory=list)

    model_config = {"frozen": True}

"""Canonical input records — the three append-only logs the core consumes.

Records are created by upstream instrumentation, never by the core.  They
are validated at the boundary so downstream code never has to re-check
field constraints, and they are immutable after creation.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from queue_timeline.domain.enums import DelayReason, Status
from queue_timeline.foundation.clock import ensure_utc
from queue_timeline.foundation.timeofday import parse_hhmm


# ── Status / wait snapshot ───────────────────────────────────────────────────

class StatusSample(BaseModel):
    """One observed status/wait snapshot for an entity at an instant.

    Emitted only when an entity's state changes, not periodically.
    """

    entity_id: str = Field(..., min_length=1, max_length=256)
    entity_name: str = Field(..., min_length=1, max_length=256)
    status: Status
    wait_minutes: int = Field(0, ge=0, description="Posted queue time in minutes")
    observed_at: datetime = Field(..., description="When the snapshot was recorded")

    model_config = {"frozen": True}

    @field_validator("observed_at")
    @classmethod
    def observed_at_must_be_aware(cls, v: datetime) -> datetime:
        return ensure_utc(v)


# ── Throughput slot count ────────────────────────────────────────────────────

SlotKey = tuple[str, str]


class ThroughputRecord(BaseModel):
    """Guest count for one entity over one fixed slot of one operating day."""

    entity_id: str = Field(..., min_length=1, max_length=256)
    slot_start: str = Field(..., description="Zero-padded 'HH:MM'")
    slot_end: str = Field(..., description="Zero-padded 'HH:MM'")
    guest_count: int = Field(..., ge=0)
    log_date: date

    model_config = {"frozen": True}

    @field_validator("slot_start", "slot_end")
    @classmethod
    def slot_bound_must_parse(cls, v: str) -> str:
        # ParseError is a ValueError, so pydantic reports it as a validation error
        parse_hhmm(v)
        return v

    @property
    def slot_key(self) -> SlotKey:
        return (self.slot_start, self.slot_end)

    @property
    def record_key(self) -> tuple[str, date, str, str]:
        """Upsert identity: one row per (entity, day, slot)."""
        return (self.entity_id, self.log_date, self.slot_start, self.slot_end)


# ── Structured status-change audit entry ─────────────────────────────────────

class StatusChangeEvent(BaseModel):
    """A staff-initiated status transition with optional delay details.

    ``resolved_at`` is only set on DELAYED events once the delay clears;
    its absence means the delay is still open.
    """

    entity_id: str = Field(..., min_length=1, max_length=256)
    status: Status
    previous_status: Optional[Status] = None
    reason: Optional[DelayReason] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    changed_at: datetime
    changed_by: str = Field(..., min_length=1, max_length=256)
    resolved_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @field_validator("changed_at", "resolved_at")
    @classmethod
    def timestamps_must_be_aware(cls, v: datetime | None) -> datetime | None:
        if v is None:
            return v
        return ensure_utc(v)

    @model_validator(mode="after")
    def resolution_not_before_change(self) -> "StatusChangeEvent":
        if self.resolved_at is not None and self.resolved_at < self.changed_at:
            raise ValueError("resolved_at must not precede changed_at")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


# ── Query result ─────────────────────────────────────────────────────────────

class RecordBundle(BaseModel):
    """The three record streams for one bounded time range.

    No ordering guarantee: every consumer sorts by the domain timestamp.
    """

    samples: list[StatusSample] = Field(default_factory=list)
    throughput: list[ThroughputRecord] = Field(default_factory=list)
    events: list[StatusChangeEvent] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not (self.samples or self.throughput or self.events)

    def counts(self) -> dict[str, int]:
        return {
            "samples": len(self.samples),
            "throughput": len(self.throughput),
            "events": len(self.events),
        }

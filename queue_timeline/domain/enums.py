"""Controlled enumerations for the queue-timeline domain.

Every categorical field in the domain MUST reference an enum defined here.
Free-form strings are not acceptable for status fields.
"""

from __future__ import annotations

from enum import Enum


class Status(str, Enum):
    """Operating state of an attraction as shown on the board."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"
    DELAYED = "DELAYED"
    AT_CAPACITY = "AT CAPACITY"

    @property
    def is_nominal(self) -> bool:
        """Only OPEN carries a meaningful wait time."""
        return self is Status.OPEN

    @property
    def counts_as_downtime(self) -> bool:
        return self in (Status.CLOSED, Status.DELAYED)


class DelayReason(str, Enum):
    """Reasons staff may attach to a DELAYED status change."""

    TECHNICAL_ISSUE = "Technical Issue"
    GUEST_ACTION = "Guest Action"
    E_STOP = "E-Stop"
    WEATHER = "Weather"
    STAFFING = "Staffing"
    OTHER = "Other"


class RecordKind(str, Enum):
    """The three ingestible record streams."""

    SAMPLES = "samples"
    THROUGHPUT = "throughput"
    EVENTS = "events"

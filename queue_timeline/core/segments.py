"""StatusSegmenter — sparse status samples to closed non-nominal intervals.

One forward pass per entity over the time-sorted samples, tracking a single
open interval (status + start):

    non-OPEN, different status (or none open)  close prior at t, open new at t
    non-OPEN, same status                      no-op, interval continues
    OPEN                                       close open interval at t

An interval still open after the pass is closed at the timestamp of the
last sample of the whole filtered series, so an ongoing closure renders up
to the chart's right edge.

Two different non-OPEN statuses in succession share their boundary
timestamp.  A transition within the same instant yields a zero-width
interval, which is emitted unchanged.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from queue_timeline.core.series import sort_samples
from queue_timeline.domain.enums import Status
from queue_timeline.domain.records import StatusSample
from queue_timeline.domain.views import StatusInterval

logger = logging.getLogger(__name__)


class _OpenInterval:
    __slots__ = ("status", "start")

    def __init__(self, status: Status, start: datetime) -> None:
        self.status = status
        self.start = start


def segment_statuses(samples: Iterable[StatusSample]) -> dict[str, list[StatusInterval]]:
    """Return every non-nominal run, grouped by entity id.

    Entities appear in order of their first sample; entities that were never
    non-nominal map to an empty list.
    """
    ordered = sort_samples(samples)
    if not ordered:
        return {}

    series_end = ordered[-1].observed_at
    names: dict[str, str] = {}
    by_entity: dict[str, list[StatusSample]] = {}
    for sample in ordered:
        by_entity.setdefault(sample.entity_id, []).append(sample)
        names.setdefault(sample.entity_id, sample.entity_name)

    result: dict[str, list[StatusInterval]] = {}
    for entity_id, entity_samples in by_entity.items():
        result[entity_id] = _segment_entity(
            entity_id, names[entity_id], entity_samples, series_end
        )

    logger.debug(
        "Segmented %d samples into %d intervals",
        len(ordered),
        sum(len(v) for v in result.values()),
    )
    return result


def _segment_entity(
    entity_id: str,
    entity_name: str,
    samples: list[StatusSample],
    series_end: datetime,
) -> list[StatusInterval]:
    intervals: list[StatusInterval] = []
    current: Optional[_OpenInterval] = None

    def close(at: datetime) -> None:
        assert current is not None
        intervals.append(
            StatusInterval(
                entity_id=entity_id,
                entity_name=entity_name,
                status=current.status,
                start=current.start,
                end=at,
            )
        )

    for sample in samples:
        t = sample.observed_at
        if sample.status.is_nominal:
            if current is not None:
                close(t)
                current = None
        elif current is None or current.status is not sample.status:
            if current is not None:
                close(t)
            current = _OpenInterval(sample.status, t)

    if current is not None:
        close(series_end)

    return intervals


def flatten_intervals(by_entity: dict[str, list[StatusInterval]]) -> list[StatusInterval]:
    """All intervals in one list, ordered by start then entity order."""
    rank = {entity_id: i for i, entity_id in enumerate(by_entity)}
    flat = [iv for intervals in by_entity.values() for iv in intervals]
    return sorted(flat, key=lambda iv: (iv.start, rank[iv.entity_id]))

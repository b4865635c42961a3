"""SeriesReconstructor — sparse status samples to a dense chart table.

Samples are emitted only when an attraction changes state, so at any given
instant most entities have no observation.  Reconstruction is a pure fold
over the time-sorted samples into a ``name -> last value`` map:

    1. Stable-sort by ``observed_at`` (the log is not arrival-ordered).
    2. First appearance of each entity name fixes series order and colour.
    3. One row per distinct ``observed_at``; an entity sampled at that
       instant gets ``wait_minutes`` if OPEN, else ``None`` (a gap in its
       line, since non-open states have no wait time).
    4. Forward-fill: an entity missing from a row inherits its last-seen
       value, ``None`` included.  Before its first sample it stays absent.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

from queue_timeline.config import DEFAULT_PALETTE
from queue_timeline.domain.records import StatusSample
from queue_timeline.domain.views import TimelineRow, TimelineSeries

logger = logging.getLogger(__name__)


def sort_samples(samples: Iterable[StatusSample]) -> list[StatusSample]:
    """Stable sort by ``observed_at``; ties keep encounter order."""
    return sorted(samples, key=lambda s: s.observed_at)


def assign_colors(names: Sequence[str], palette: Sequence[str] = DEFAULT_PALETTE) -> dict[str, str]:
    """Map each series name to a palette colour, cycling when names outnumber colours."""
    if not palette:
        return {}
    return {name: palette[i % len(palette)] for i, name in enumerate(names)}


def reconstruct_series(
    samples: Iterable[StatusSample],
    palette: Sequence[str] = DEFAULT_PALETTE,
) -> TimelineSeries:
    """Build the forward-filled timeline for a set of filtered samples."""
    ordered = sort_samples(samples)
    if not ordered:
        return TimelineSeries()

    names: list[str] = []
    seen: set[str] = set()
    explicit: dict[datetime, dict[str, Optional[int]]] = {}

    for sample in ordered:
        name = sample.entity_name
        if name not in seen:
            seen.add(name)
            names.append(name)
        value = sample.wait_minutes if sample.status.is_nominal else None
        # Later samples at the same instant overwrite earlier ones
        explicit.setdefault(sample.observed_at, {})[name] = value

    rows: list[TimelineRow] = []
    last_known: dict[str, Optional[int]] = {}
    for instant in sorted(explicit):
        present = explicit[instant]
        values: dict[str, Optional[int]] = {}
        for name in names:
            if name in present:
                last_known[name] = present[name]
                values[name] = present[name]
            elif name in last_known:
                values[name] = last_known[name]
        rows.append(TimelineRow(observed_at=instant, values=values))

    logger.debug("Reconstructed %d rows for %d series", len(rows), len(names))
    return TimelineSeries(
        entity_names=names,
        colors=assign_colors(names, palette),
        rows=rows,
    )

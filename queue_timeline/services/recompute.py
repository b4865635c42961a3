"""RecomputeScheduler — re-runs the pipeline whenever its inputs change.

Triggers:
    - records_changed(): a record was ingested or corrected.
    - set_window(): the viewer's minute-of-day window moved.
    - set_range(): the query range (operating session) moved.

When built with a *session* callable the query range is re-read from it on
every run, so the live view rolls over to the next night on its own.  An
explicit set_range() pins the range and stops following.

Every trigger re-reads the store and recomputes from scratch.  Overlapping
recomputes are not cancelled: each takes a generation number and a result
that is no longer the newest when it finishes is discarded.  A result whose
input fingerprint matches the last published one is reused, not re-sent.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, tzinfo
from typing import Callable, Optional, Protocol, Sequence

from queue_timeline.config import DEFAULT_PALETTE
from queue_timeline.core.pipeline import DashboardView, compute_dashboard, fingerprint
from queue_timeline.core.window import TimeWindow
from queue_timeline.store.sample_store import EntityDirectory, SampleStore

logger = logging.getLogger(__name__)


class ViewPublisher(Protocol):
    """Receives each freshly computed view (e.g. the dashboard broadcaster)."""

    async def publish(self, view: DashboardView) -> None:
        ...


class RecomputeScheduler:
    """Keeps the live DashboardView in step with the store and window.

    Args:
        store: Source of the three record streams.
        start: Start of the query range.
        end: End of the query range.
        window: Initial minute-of-day window.
        tz: Venue timezone for minute-of-day evaluation.
        directory: Entity name lookup for the slot matrix.
        publisher: Optional subscriber for new views.
        session: Optional source of the current query range, consulted on
            every recompute.
    """

    def __init__(
        self,
        store: SampleStore,
        start: datetime,
        end: datetime,
        window: Optional[TimeWindow] = None,
        tz: str | tzinfo = "UTC",
        directory: Optional[EntityDirectory] = None,
        publisher: Optional[ViewPublisher] = None,
        palette: Sequence[str] = DEFAULT_PALETTE,
        fallback_length: int = 8,
        session: Optional[Callable[[], tuple[datetime, datetime]]] = None,
    ) -> None:
        if end < start:
            raise ValueError("query range end must not precede its start")
        self._store = store
        self._start = start
        self._end = end
        self._window = window or TimeWindow.full_day()
        self._tz = tz
        self._directory = directory
        self._publisher = publisher
        self._palette = tuple(palette)
        self._fallback_length = fallback_length
        self._session = session

        self._generation = 0
        self._fingerprint: Optional[str] = None
        self._view: Optional[DashboardView] = None
        self._lock = asyncio.Lock()

    # ── State ────────────────────────────────────────────────────────────

    @property
    def window(self) -> TimeWindow:
        return self._window

    @property
    def query_range(self) -> tuple[datetime, datetime]:
        return self._start, self._end

    @property
    def current_view(self) -> Optional[DashboardView]:
        """The most recently accepted view, or None before the first run."""
        return self._view

    @property
    def generation(self) -> int:
        return self._generation

    # ── Triggers ─────────────────────────────────────────────────────────

    async def records_changed(self) -> Optional[DashboardView]:
        return await self.recompute(reason="records changed")

    async def set_window(self, window: TimeWindow) -> Optional[DashboardView]:
        self._window = window
        return await self.recompute(reason=f"window {window}")

    async def set_range(self, start: datetime, end: datetime) -> Optional[DashboardView]:
        if end < start:
            raise ValueError("query range end must not precede its start")
        self._start, self._end = start, end
        self._session = None
        return await self.recompute(reason="range changed")

    # ── Recompute ────────────────────────────────────────────────────────

    def _follow_session(self) -> None:
        start, end = self._session()
        if (start, end) != (self._start, self._end):
            logger.info("Live session moved to %s .. %s", start.isoformat(), end.isoformat())
            self._start, self._end = start, end

    async def recompute(self, reason: str = "manual") -> Optional[DashboardView]:
        """Re-read the store and rebuild the view.

        Returns the accepted view, or None if this run was superseded by a
        newer one before it finished.
        """
        async with self._lock:
            self._generation += 1
            if self._session is not None:
                self._follow_session()
            generation = self._generation
            window, start, end = self._window, self._start, self._end

        bundle = await self._store.query(start, end)
        directory = self._directory.as_dict() if self._directory is not None else None
        key = fingerprint(bundle, window, directory)

        async with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale recompute %d (now %d)", generation, self._generation)
                return None
            if key == self._fingerprint and self._view is not None:
                logger.debug("Inputs unchanged (%s), reusing view", reason)
                return self._view

            view = compute_dashboard(
                bundle,
                window,
                tz=self._tz,
                directory=directory,
                palette=self._palette,
                fallback_length=self._fallback_length,
            )
            self._view = view
            self._fingerprint = key

        logger.info(
            "Recomputed dashboard (%s): window=%s records=%s",
            reason,
            window,
            view.record_counts,
        )
        if self._publisher is not None:
            await self._publisher.publish(view)
        return view

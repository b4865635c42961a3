"""REST endpoints for the derived views.

Paths:
    GET /api/dashboard           on-demand computation for any day/window
    GET /api/dashboard/live      the scheduler's current view
    PUT /api/window              move the live window (triggers recompute)
    GET /api/report/{entity_id}  show-report figures for one night

Time-of-day parameters are "HH:MM".  Malformed or inverted windows are
rejected with 400 before any record is read.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from queue_timeline.api.ws_dashboard import view_payload
from queue_timeline.config import Settings
from queue_timeline.core.pipeline import compute_dashboard
from queue_timeline.core.report import build_report_data
from queue_timeline.core.window import TimeWindow, current_session, session_bounds
from queue_timeline.domain.errors import TimelineError
from queue_timeline.foundation.clock import utc_now
from queue_timeline.foundation.timeofday import resolve_timezone
from queue_timeline.services.recompute import RecomputeScheduler
from queue_timeline.store.sample_store import InMemorySampleStore

logger = logging.getLogger(__name__)


class WindowRequest(BaseModel):
    from_time: str
    to_time: str


def _parse_window(from_time: str, to_time: str) -> TimeWindow:
    try:
        return TimeWindow.from_strings(from_time, to_time)
    except TimelineError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_analytics_router(
    store: InMemorySampleStore,
    scheduler: RecomputeScheduler,
    config: Settings,
) -> APIRouter:
    """Factory that wires the view endpoints to store, scheduler and config."""

    router = APIRouter(prefix="/api", tags=["analytics"])
    tz = resolve_timezone(config.venue_timezone)

    def _session(day: Optional[date]):
        if day is None:
            return current_session(utc_now(), tz, config.session_start_hour, config.session_end_hour)
        return session_bounds(day, tz, config.session_start_hour, config.session_end_hour)

    @router.get("/dashboard")
    async def dashboard(
        day: Optional[date] = None,
        from_time: str = "00:00",
        to_time: str = "23:59",
    ) -> dict[str, Any]:
        """Every view for one operating session, restricted to a window."""
        window = _parse_window(from_time, to_time)
        start, end = _session(day)
        bundle = await store.query(start, end)
        view = compute_dashboard(
            bundle,
            window,
            tz=tz,
            directory=store.directory.as_dict(),
            palette=config.series_palette,
            fallback_length=config.name_fallback_length,
        )
        return view_payload(view)

    @router.get("/dashboard/live")
    async def live_dashboard() -> dict[str, Any]:
        view = scheduler.current_view or await scheduler.recompute(reason="first request")
        if view is None:
            raise HTTPException(status_code=503, detail="Dashboard is being recomputed")
        return view_payload(view)

    @router.put("/window")
    async def set_window(body: WindowRequest) -> dict[str, Any]:
        window = _parse_window(body.from_time, body.to_time)
        await scheduler.set_window(window)
        logger.info("Live window moved to %s", window)
        return {"status": "ok", "window": str(window)}

    @router.get("/report/{entity_id}")
    async def report(entity_id: str, day: Optional[date] = None) -> dict[str, Any]:
        start, end = _session(day)
        bundle = await store.query(start, end)
        data = build_report_data(entity_id, bundle.events, bundle.throughput)
        return data.model_dump(mode="json")

    return router

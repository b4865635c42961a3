"""queue-timeline — live attraction timelines, slot totals and downtime.

This is the application entry point.  It wires the SampleStore,
RecomputeScheduler, DashboardManager and HTTP/WebSocket routes together.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from queue_timeline.api.analytics import create_analytics_router
from queue_timeline.api.ingest import create_ingest_router
from queue_timeline.api.ws_dashboard import DashboardManager, create_dashboard_router
from queue_timeline.config import Settings, settings
from queue_timeline.core.window import TimeWindow, current_session
from queue_timeline.foundation.clock import utc_now
from queue_timeline.foundation.timeofday import resolve_timezone
from queue_timeline.services.recompute import RecomputeScheduler
from queue_timeline.store.sample_store import InMemorySampleStore


def create_app(config: Settings = settings) -> FastAPI:
    """Build a fully wired application for *config*."""

    # ── State ────────────────────────────────────────────────────────────

    tz = resolve_timezone(config.venue_timezone)
    store = InMemorySampleStore()
    dashboard = DashboardManager()

    def live_session():
        return current_session(utc_now(), tz, config.session_start_hour, config.session_end_hour)

    start, end = live_session()
    scheduler = RecomputeScheduler(
        store,
        start,
        end,
        window=TimeWindow.from_strings(config.default_from_time, config.default_to_time),
        tz=tz,
        directory=store.directory,
        publisher=dashboard,
        palette=config.series_palette,
        fallback_length=config.name_fallback_length,
        session=live_session,
    )

    # ── App ──────────────────────────────────────────────────────────────

    app = FastAPI(
        title=config.app_name,
        description="Attraction status timelines, throughput slots and downtime",
        version="0.1.0",
    )
    app.state.store = store
    app.state.scheduler = scheduler
    app.state.dashboard = dashboard

    # ── Routes ───────────────────────────────────────────────────────────

    app.include_router(create_ingest_router(store, scheduler))
    app.include_router(create_analytics_router(store, scheduler, config))
    app.include_router(create_dashboard_router(dashboard))

    # ── Health ───────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict:
        counts = await store.counts()
        view = scheduler.current_view
        return {
            "status": "ok",
            "records": counts,
            "entities": len(store.directory),
            "window": str(scheduler.window),
            "recompute_generation": scheduler.generation,
            "dashboard_clients": dashboard.client_count,
            "has_view": view is not None,
        }

    return app


# ── Logging ──────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

app = create_app()

"""Dashboard WebSocket — pushes every recomputed view to connected screens.

Architecture:
    staff  →  /ws/records, /api/records  →  store ingests record
                                                  ↓
                                     RecomputeScheduler rebuilds view
                                                  ↓
    TV / admin  ←  /ws/dashboard  ←  broadcast to all connected clients

The DashboardManager is a singleton that tracks connected clients and
acts as the scheduler's ViewPublisher.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from queue_timeline.core.pipeline import DashboardView
from queue_timeline.core.segments import flatten_intervals

logger = logging.getLogger(__name__)


def view_payload(view: DashboardView) -> dict[str, Any]:
    """JSON-ready form of a view, with chart rows and bands pre-flattened."""
    return {
        "type": "dashboard",
        "window": {
            "from_minute": view.window.from_minute,
            "to_minute": view.window.to_minute,
            "label": str(view.window),
        },
        "empty": view.is_empty,
        "record_counts": view.record_counts,
        "series": {
            "entity_names": view.series.entity_names,
            "colors": view.series.colors,
            "rows": view.series.to_chart_rows(),
        },
        "intervals": [
            iv.model_dump(mode="json") for iv in flatten_intervals(view.intervals)
        ],
        "slots": view.slots.model_dump(mode="json"),
        "downtime": [s.model_dump(mode="json") for s in view.downtime.values()],
    }


class DashboardManager:
    """Tracks connected frontend WebSocket clients and broadcasts views."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._last_payload: str | None = None

    # ── Client management ────────────────────────────────────────────

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        async with self._lock:
            self._clients.add(ws)
            last = self._last_payload
        logger.info("Dashboard client connected (%d total)", len(self._clients))
        # New screens get the current view straight away
        if last is not None:
            await ws.send_text(last)

    async def disconnect(self, ws: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(ws)
        logger.info("Dashboard client disconnected (%d remaining)", len(self._clients))

    @property
    def client_count(self) -> int:
        return len(self._clients)

    # ── Broadcast ────────────────────────────────────────────────────

    async def publish(self, view: DashboardView) -> None:
        """Called by the RecomputeScheduler with each accepted view."""
        message = json.dumps(view_payload(view), default=str)
        async with self._lock:
            self._last_payload = message
        if not self._clients:
            return
        await self._broadcast(message)

    async def _broadcast(self, message: str) -> None:
        """Send *message* to all connected dashboard clients."""
        dead: set[WebSocket] = set()

        async with self._lock:
            clients = set(self._clients)

        for ws in clients:
            try:
                await ws.send_text(message)
            except Exception:
                dead.add(ws)

        if dead:
            async with self._lock:
                self._clients -= dead
            logger.info("Removed %d dead dashboard client(s)", len(dead))


# ── WebSocket endpoint ───────────────────────────────────────────────────


def create_dashboard_router(manager: DashboardManager) -> APIRouter:
    """Factory that creates the dashboard WebSocket endpoint."""

    router = APIRouter()

    @router.websocket("/ws/dashboard")
    async def dashboard_ws(websocket: WebSocket) -> None:
        await manager.connect(websocket)
        try:
            # Screens only listen; anything they send is a heartbeat
            while True:
                data = await websocket.receive_text()
                if data.strip().lower() == "ping":
                    await websocket.send_text("pong")
        except WebSocketDisconnect:
            await manager.disconnect(websocket)

    return router

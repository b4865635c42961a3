"""Record ingestion over REST and WebSocket.

Paths:
    POST /api/records/{kind}                 one record of kind samples,
                                             throughput or events
    POST /api/entities/{id}/resolve-delay    close the latest open delay
    PUT  /api/entities/{id}                  register a display name
    WS   /ws/records                         {"kind": ..., "record": {...}}
                                             per message, acknowledged

Payloads are validated at the boundary.  Every accepted record triggers a
recompute; invalid payloads are rejected and change nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field, ValidationError

from queue_timeline.domain.enums import RecordKind
from queue_timeline.domain.records import StatusChangeEvent, StatusSample, ThroughputRecord
from queue_timeline.services.recompute import RecomputeScheduler
from queue_timeline.store.sample_store import InMemorySampleStore

logger = logging.getLogger(__name__)


class ResolveDelayRequest(BaseModel):
    resolved_at: Optional[datetime] = None


class EntityNameRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)


async def store_record(
    store: InMemorySampleStore,
    kind: RecordKind,
    raw: dict[str, Any],
) -> dict[str, Any]:
    """Validate *raw* as a record of *kind* and store it.

    Raises:
        ValidationError: If the payload does not match the record schema.
    """
    if kind is RecordKind.SAMPLES:
        sample = StatusSample.model_validate(raw)
        await store.add_sample(sample)
        return {"status": "accepted", "kind": kind.value, "entity_id": sample.entity_id}
    if kind is RecordKind.THROUGHPUT:
        record = ThroughputRecord.model_validate(raw)
        replaced = await store.upsert_throughput(record)
        return {
            "status": "corrected" if replaced else "accepted",
            "kind": kind.value,
            "entity_id": record.entity_id,
        }
    event = StatusChangeEvent.model_validate(raw)
    await store.add_event(event)
    return {"status": "accepted", "kind": kind.value, "entity_id": event.entity_id}


def _error_detail(exc: ValidationError) -> list[dict[str, Any]]:
    return exc.errors(include_url=False, include_context=False, include_input=False)


def create_ingest_router(
    store: InMemorySampleStore,
    scheduler: RecomputeScheduler,
) -> APIRouter:
    """Factory that wires ingestion endpoints to a store and scheduler."""

    router = APIRouter()

    @router.post("/api/records/{kind}", tags=["ingest"])
    async def ingest_record(kind: RecordKind, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            ack = await store_record(store, kind, payload)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc
        await scheduler.records_changed()
        return ack

    @router.post("/api/entities/{entity_id}/resolve-delay", tags=["ingest"])
    async def resolve_delay(entity_id: str, body: ResolveDelayRequest) -> dict[str, Any]:
        try:
            event = await store.resolve_delay(entity_id, body.resolved_at)
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=_error_detail(exc)) from exc
        if event is None:
            raise HTTPException(status_code=404, detail=f"No open delay for {entity_id}")
        await scheduler.records_changed()
        return {"status": "resolved", "event": event.model_dump(mode="json")}

    @router.put("/api/entities/{entity_id}", tags=["ingest"])
    async def register_entity(entity_id: str, body: EntityNameRequest) -> dict[str, Any]:
        store.directory.register(entity_id, body.name)
        await scheduler.records_changed()
        return {"status": "registered", "entity_id": entity_id, "name": body.name}

    @router.websocket("/ws/records")
    async def ingest_stream(websocket: WebSocket) -> None:
        await websocket.accept()
        logger.info("Record source connected")

        try:
            while True:
                raw = await websocket.receive_json()

                # ── Validate at the boundary ─────────────────────────────
                try:
                    kind = RecordKind(raw.get("kind"))
                    ack = await store_record(store, kind, raw.get("record") or {})
                except (ValueError, AttributeError) as exc:
                    # ValidationError is a ValueError too
                    logger.debug("Rejected record message: %s", exc)
                    await websocket.send_json({
                        "status": "error",
                        "detail": "Record validation failed",
                    })
                    continue

                await websocket.send_json(ack)
                await scheduler.records_changed()

        except WebSocketDisconnect:
            logger.info("Record source disconnected")

    return router

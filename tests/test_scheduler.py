"""Tests for the RecomputeScheduler."""

import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest

from queue_timeline.core.pipeline import DashboardView
from queue_timeline.core.window import TimeWindow, current_session
from queue_timeline.domain.records import RecordBundle, StatusSample, ThroughputRecord
from queue_timeline.services.recompute import RecomputeScheduler
from queue_timeline.store.sample_store import EntityDirectory, InMemorySampleStore


_BASE = datetime(2026, 10, 17, 18, 0, 0, tzinfo=timezone.utc)


def _sample(
    entity: str = "A",
    status: str = "OPEN",
    wait: int = 10,
    at: datetime | str = _BASE,
    name: str | None = None,
) -> StatusSample:
    """Validated StatusSample; *at* may be a datetime or 'HH:MM' on the base day."""
    if isinstance(at, str):
        hour, minute = (int(p) for p in at.split(":"))
        at = _BASE.replace(hour=hour, minute=minute)
    return StatusSample.model_validate({
        "entity_id": entity,
        "entity_name": name or entity,
        "status": status,
        "wait_minutes": wait,
        "observed_at": at.isoformat(),
    })


def _throughput(
    entity: str = "A",
    start: str = "18:00",
    end: str = "18:15",
    count: int = 10,
    day: date = _BASE.date(),
) -> ThroughputRecord:
    return ThroughputRecord.model_validate({
        "entity_id": entity,
        "slot_start": start,
        "slot_end": end,
        "guest_count": count,
        "log_date": day.isoformat(),
    })


_END = _BASE + timedelta(hours=6)


class _RecordingPublisher:
    def __init__(self) -> None:
        self.views: list[DashboardView] = []

    async def publish(self, view: DashboardView) -> None:
        self.views.append(view)


class _GatedStore:
    """Wraps a store; the first query blocks until released."""

    def __init__(self, inner: InMemorySampleStore) -> None:
        self._inner = inner
        self.gate = asyncio.Event()
        self.first_call_started = asyncio.Event()
        self._calls = 0

    async def query(self, start: datetime, end: datetime) -> RecordBundle:
        self._calls += 1
        if self._calls == 1:
            self.first_call_started.set()
            await self.gate.wait()
        return await self._inner.query(start, end)


def _scheduler(store, publisher=None, directory=None) -> RecomputeScheduler:
    return RecomputeScheduler(store, _BASE, _END, publisher=publisher, directory=directory)


class TestRecompute:
    @pytest.mark.asyncio
    async def test_records_changed_publishes_view(self) -> None:
        store = InMemorySampleStore()
        publisher = _RecordingPublisher()
        scheduler = _scheduler(store, publisher)

        await store.add_sample(_sample("A", "OPEN", 10, "18:05"))
        view = await scheduler.records_changed()

        assert view is not None
        assert scheduler.current_view is view
        assert publisher.views == [view]
        assert view.record_counts["samples"] == 1

    @pytest.mark.asyncio
    async def test_unchanged_inputs_reuse_view_without_publishing(self) -> None:
        store = InMemorySampleStore()
        publisher = _RecordingPublisher()
        scheduler = _scheduler(store, publisher)
        await store.add_sample(_sample())

        first = await scheduler.recompute()
        second = await scheduler.recompute()

        assert first is second
        assert len(publisher.views) == 1

    @pytest.mark.asyncio
    async def test_new_record_produces_new_view(self) -> None:
        store = InMemorySampleStore()
        publisher = _RecordingPublisher()
        scheduler = _scheduler(store, publisher)

        await store.upsert_throughput(_throughput(count=10))
        await scheduler.records_changed()
        await store.upsert_throughput(_throughput(count=15))
        await scheduler.records_changed()

        assert [v.slots.grand_total for v in publisher.views] == [10, 15]

    @pytest.mark.asyncio
    async def test_set_window_recomputes(self) -> None:
        store = InMemorySampleStore()
        scheduler = _scheduler(store)
        await store.add_sample(_sample(at="18:05"))
        await store.add_sample(_sample(at="20:05"))

        view = await scheduler.set_window(TimeWindow.from_strings("18:00", "19:00"))

        assert scheduler.window == TimeWindow.from_strings("18:00", "19:00")
        assert view is not None
        assert view.record_counts["samples"] == 1

    @pytest.mark.asyncio
    async def test_directory_names_reach_slot_matrix(self) -> None:
        store = InMemorySampleStore()
        directory = EntityDirectory({"A": "Asylum"})
        scheduler = _scheduler(store, directory=directory)
        await store.upsert_throughput(_throughput("A"))

        view = await scheduler.recompute()

        assert view is not None
        assert view.slots.entities[0].name == "Asylum"

    @pytest.mark.asyncio
    async def test_stale_result_discarded(self) -> None:
        inner = InMemorySampleStore()
        await inner.add_sample(_sample())
        store = _GatedStore(inner)
        publisher = _RecordingPublisher()
        scheduler = _scheduler(store, publisher)

        slow = asyncio.create_task(scheduler.recompute(reason="slow"))
        await store.first_call_started.wait()
        fast = await scheduler.recompute(reason="fast")
        store.gate.set()
        stale = await slow

        assert stale is None
        assert fast is not None
        assert scheduler.current_view is fast
        assert publisher.views == [fast]

    def test_inverted_range_rejected(self) -> None:
        with pytest.raises(ValueError):
            RecomputeScheduler(InMemorySampleStore(), _END, _BASE)

    @pytest.mark.asyncio
    async def test_set_range(self) -> None:
        store = InMemorySampleStore()
        scheduler = _scheduler(store)
        await store.add_sample(_sample(at=_BASE + timedelta(days=1)))

        view = await scheduler.set_range(_BASE + timedelta(days=1), _END + timedelta(days=1))

        assert view is not None
        assert view.record_counts["samples"] == 1
        assert scheduler.query_range[0] == _BASE + timedelta(days=1)


class TestLiveSession:
    @pytest.mark.asyncio
    async def test_range_follows_clock_into_next_night(self) -> None:
        store = InMemorySampleStore()
        clock = [_BASE]
        scheduler = RecomputeScheduler(
            store,
            *current_session(clock[0]),
            session=lambda: current_session(clock[0]),
        )
        await store.add_sample(_sample("A", "OPEN", 10, _BASE))
        await store.upsert_throughput(_throughput(count=30))
        first = await scheduler.records_changed()
        assert first is not None
        assert first.slots.grand_total == 30

        clock[0] = _BASE + timedelta(days=1)
        await store.add_sample(_sample("A", "OPEN", 20, _BASE + timedelta(days=1, minutes=5)))
        await store.upsert_throughput(_throughput(count=25, day=date(2026, 10, 18)))
        second = await scheduler.records_changed()

        assert second is not None
        assert scheduler.query_range[0] == _BASE.replace(hour=17) + timedelta(days=1)
        assert second.record_counts["samples"] == 1
        assert second.series.rows[0].values == {"A": 20}
        assert second.slots.grand_total == 25

    @pytest.mark.asyncio
    async def test_set_range_stops_following(self) -> None:
        store = InMemorySampleStore()
        clock = [_BASE]
        scheduler = RecomputeScheduler(
            store,
            *current_session(clock[0]),
            session=lambda: current_session(clock[0]),
        )
        await scheduler.set_range(_BASE, _END)

        clock[0] = _BASE + timedelta(days=1)
        await scheduler.recompute()

        assert scheduler.query_range == (_BASE, _END)

"""Tests for the in-memory SampleStore."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from queue_timeline.core.window import session_bounds
from queue_timeline.domain.enums import Status
from queue_timeline.domain.records import StatusChangeEvent, StatusSample, ThroughputRecord
from queue_timeline.store.sample_store import EntityDirectory, InMemorySampleStore, operating_days


_BASE = datetime(2026, 10, 17, 18, 0, 0, tzinfo=timezone.utc)


def _event(
    entity: str = "A",
    status: str = "DELAYED",
    at: datetime = _BASE,
    resolved: datetime | None = None,
    **kw,
) -> StatusChangeEvent:
    payload = {
        "entity_id": entity,
        "status": status,
        "changed_at": at.isoformat(),
        "changed_by": "ops@venue",
        "resolved_at": resolved.isoformat() if resolved else None,
    }
    payload.update(kw)
    return StatusChangeEvent.model_validate(payload)


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


@pytest.fixture
def store() -> InMemorySampleStore:
    return InMemorySampleStore()


class TestSampleStore:
    @pytest.mark.asyncio
    async def test_query_bounds_inclusive(self, store: InMemorySampleStore) -> None:
        for minutes in (-1, 0, 30, 60, 61):
            await store.add_sample(_sample(at=_BASE + timedelta(minutes=minutes)))
        bundle = await store.query(_BASE, _BASE + timedelta(minutes=60))
        assert len(bundle.samples) == 3

    @pytest.mark.asyncio
    async def test_throughput_upsert(self, store: InMemorySampleStore) -> None:
        assert await store.upsert_throughput(_throughput(count=10)) is False
        assert await store.upsert_throughput(_throughput(count=12)) is True
        bundle = await store.query(_BASE, _BASE + timedelta(hours=1))
        assert [r.guest_count for r in bundle.throughput] == [12]

    @pytest.mark.asyncio
    async def test_throughput_selected_by_log_date(self, store: InMemorySampleStore) -> None:
        await store.upsert_throughput(_throughput(day=date(2026, 10, 16)))
        await store.upsert_throughput(_throughput(day=date(2026, 10, 17)))
        bundle = await store.query(_BASE, _BASE + timedelta(hours=1))
        assert [r.log_date for r in bundle.throughput] == [date(2026, 10, 17)]

    @pytest.mark.asyncio
    async def test_session_past_midnight_excludes_next_night(self, store: InMemorySampleStore) -> None:
        await store.upsert_throughput(_throughput(count=30, day=date(2026, 10, 17)))
        await store.upsert_throughput(_throughput(count=25, day=date(2026, 10, 18)))
        start, end = session_bounds(date(2026, 10, 17), "UTC", 17, 0)

        bundle = await store.query(start, end)

        assert [r.guest_count for r in bundle.throughput] == [30]

    @pytest.mark.asyncio
    async def test_session_ending_after_midnight_keeps_one_day(self, store: InMemorySampleStore) -> None:
        await store.upsert_throughput(_throughput(count=30, day=date(2026, 10, 17)))
        await store.upsert_throughput(_throughput(count=25, day=date(2026, 10, 18)))
        start, end = session_bounds(date(2026, 10, 17), "UTC", 17, 2)

        bundle = await store.query(start, end)

        assert [r.log_date for r in bundle.throughput] == [date(2026, 10, 17)]

    @pytest.mark.asyncio
    async def test_multi_night_range_keeps_each_start_day(self, store: InMemorySampleStore) -> None:
        for day in (16, 17, 18, 19):
            await store.upsert_throughput(_throughput(day=date(2026, 10, day)))
        start, _ = session_bounds(date(2026, 10, 17), "UTC", 17, 0)
        _, end = session_bounds(date(2026, 10, 18), "UTC", 17, 0)

        bundle = await store.query(start, end)

        assert sorted(r.log_date.day for r in bundle.throughput) == [17, 18]

    @pytest.mark.asyncio
    async def test_resolve_latest_open_delay(self, store: InMemorySampleStore) -> None:
        await store.add_event(_event("A", "DELAYED", _BASE))
        await store.add_event(_event("A", "OPEN", _BASE + timedelta(minutes=5)))
        await store.add_event(_event("A", "DELAYED", _BASE + timedelta(minutes=10)))

        resolved = await store.resolve_delay("A", _BASE + timedelta(minutes=14))
        assert resolved is not None
        assert resolved.changed_at == _BASE + timedelta(minutes=10)
        assert resolved.resolved_at == _BASE + timedelta(minutes=14)

        bundle = await store.query(_BASE, _BASE + timedelta(hours=1))
        delays = [e for e in bundle.events if e.status is Status.DELAYED]
        assert [e.resolved_at is not None for e in delays] == [False, True]

    @pytest.mark.asyncio
    async def test_resolve_without_open_delay(self, store: InMemorySampleStore) -> None:
        await store.add_event(_event("A", "CLOSED", _BASE))
        assert await store.resolve_delay("A", _BASE) is None

    @pytest.mark.asyncio
    async def test_counts(self, store: InMemorySampleStore) -> None:
        await store.add_sample(_sample())
        await store.add_event(_event())
        assert await store.counts() == {"samples": 1, "throughput": 0, "events": 1}


class TestOperatingDays:
    def test_same_day_range(self) -> None:
        assert operating_days(_BASE, _BASE + timedelta(hours=1)) == {date(2026, 10, 17)}

    def test_end_at_midnight_is_not_a_start_day(self) -> None:
        end = datetime(2026, 10, 18, 0, 0, tzinfo=timezone.utc)
        assert operating_days(_BASE, end) == {date(2026, 10, 17)}

    def test_dates_read_in_start_timezone(self) -> None:
        tz = ZoneInfo("America/New_York")
        start = datetime(2026, 10, 17, 17, 0, tzinfo=tz)
        # 04:00 UTC on the 18th is still the evening of the 17th in New York
        end = datetime(2026, 10, 18, 4, 0, tzinfo=timezone.utc)
        assert operating_days(start, end) == {date(2026, 10, 17)}


class TestEntityDirectory:
    def test_register_and_lookup(self) -> None:
        directory = EntityDirectory({"a": "Asylum"})
        directory.register("b", "Crypt")
        assert directory.name_for("b") == "Crypt"
        assert directory.name_for("zzz") is None
        assert directory.as_dict() == {"a": "Asylum", "b": "Crypt"}
        assert len(directory) == 2

"""Tests for the stats read path."""
from datetime import datetime, timedelta, timezone
import pytest
from telemetry_ingest.adapters.base import InsertOp
from telemetry_ingest.adapters.memory import InMemoryEventStore
from telemetry_ingest.event_models import StoredEvent
from telemetry_ingest.services.stats import StatsService

T10 = datetime(2026, 1, 1, 10, 0, 0, tzinfo=timezone.utc)


def ev(event_id, machine_id="M1", line_id="L1", event_time=T10, defect_count=0):
    return StoredEvent(
        event_id=event_id,
        machine_id=machine_id,
        line_id=line_id,
        event_time=event_time,
        received_time=T10,
        duration_ms=1000,
        defect_count=defect_count,
    )


async def seeded(*events) -> StatsService:
    store = InMemoryEventStore()
    await store.bulk_write([InsertOp(event=e) for e in events])
    return StatsService(store)


@pytest.mark.asyncio
async def test_unknown_defects_excluded_from_totals():
    stats = await seeded(ev("E-1", defect_count=5), ev("E-2", defect_count=-1))

    result = await stats.machine_stats("M1", T10 - timedelta(seconds=10), T10 + timedelta(seconds=10))

    assert result.defects_count == 5
    assert result.events_count == 2


@pytest.mark.asyncio
async def test_window_is_start_inclusive_end_exclusive():
    stats = await seeded(ev("E-1", event_time=T10))

    inside = await stats.machine_stats("M1", T10, T10 + timedelta(hours=1))
    before = await stats.machine_stats("M1", T10 - timedelta(hours=1), T10)

    assert inside.events_count == 1
    assert before.events_count == 0


@pytest.mark.asyncio
async def test_rate_and_status():
    stats = await seeded(
        ev("E-1", defect_count=3),
        ev("E-2", defect_count=2),
        ev("E-3", machine_id="M2", defect_count=50),
    )

    healthy = await stats.machine_stats("M1", T10, T10 + timedelta(hours=5))
    assert healthy.avg_defect_rate == pytest.approx(1.0)
    assert healthy.status == "Healthy"

    warning = await stats.machine_stats("M1", T10, T10 + timedelta(hours=1))
    assert warning.avg_defect_rate == pytest.approx(5.0)
    assert warning.status == "Warning"


@pytest.mark.asyncio
async def test_zero_length_window_counts_as_one_hour():
    stats = await seeded(ev("E-1", defect_count=1))
    result = await stats.machine_stats("M1", T10, T10)
    assert result.events_count == 0
    assert result.avg_defect_rate == 0.0
    assert result.status == "Healthy"


@pytest.mark.asyncio
async def test_inverted_window_rejected():
    stats = await seeded()
    with pytest.raises(ValueError):
        await stats.machine_stats("M1", T10, T10 - timedelta(hours=1))


@pytest.mark.asyncio
async def test_top_defect_lines_ranking():
    stats = await seeded(
        ev("E-1", line_id="L1", defect_count=2),
        ev("E-2", line_id="L1", defect_count=-1),
        ev("E-3", line_id="L2", defect_count=7),
        ev("E-4", line_id="L3", defect_count=1),
        ev("E-5", line_id=None, defect_count=100),
    )

    lines = await stats.top_defect_lines(T10, T10 + timedelta(hours=1), limit=2)

    assert [l.line_id for l in lines] == ["L2", "L1"]
    assert lines[0].total_defects == 7
    assert lines[0].event_count == 1
    assert lines[0].defects_percent == 700.0
    assert lines[1].total_defects == 2
    assert lines[1].event_count == 2
    assert lines[1].defects_percent == 100.0


@pytest.mark.asyncio
async def test_defects_percent_rounded_to_two_places():
    stats = await seeded(
        ev("E-1", defect_count=1),
        ev("E-2", defect_count=0),
        ev("E-3", defect_count=0),
    )

    [line] = await stats.top_defect_lines(T10, T10 + timedelta(hours=1))

    assert line.defects_percent == 33.33


@pytest.mark.asyncio
async def test_top_defect_lines_respects_window():
    stats = await seeded(
        ev("E-1", line_id="L1", defect_count=4, event_time=T10 - timedelta(minutes=1)),
        ev("E-2", line_id="L2", defect_count=1),
    )

    lines = await stats.top_defect_lines(T10, T10 + timedelta(hours=1))
    assert [l.line_id for l in lines] == ["L2"]

"""Shared fixtures for the ingestion tests."""
from datetime import datetime, timedelta, timezone
import pytest
from telemetry_ingest.adapters.memory import InMemoryEventStore
from telemetry_ingest.event_models import RawEvent

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class CountingStore(InMemoryEventStore):
    """In-memory store that counts round trips."""

    def __init__(self):
        super().__init__()
        self.lookups = 0
        self.writes = 0
        self.last_ops = []

    async def find_by_ids(self, ids):
        self.lookups += 1
        return await super().find_by_ids(ids)

    async def bulk_write(self, ops):
        self.writes += 1
        self.last_ops = list(ops)
        return await super().bulk_write(ops)


class Clock:
    """Settable clock for the per-batch ``now`` snapshot."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def make_event(
    event_id="E-1",
    machine_id="M1",
    line_id="L1",
    event_time=None,
    duration_ms=1000,
    defect_count=0,
    **extra,
) -> RawEvent:
    return RawEvent(
        event_id=event_id,
        machine_id=machine_id,
        line_id=line_id,
        event_time=event_time if event_time is not None else NOW - timedelta(seconds=60),
        duration_ms=duration_ms,
        defect_count=defect_count,
        **extra,
    )


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture(autouse=True)
def clear_global_store():
    """Keep the app-wide in-memory store empty between tests."""
    from telemetry_ingest.services.ingestion import service

    if isinstance(service.store, InMemoryEventStore):
        service.store.clear()
    yield
    if isinstance(service.store, InMemoryEventStore):
        service.store.clear()

"""In-memory event store adapter."""
from datetime import datetime
import threading
from typing import Iterable
import structlog
from .base import (
    BulkWriteResult,
    EventStore,
    InsertOp,
    WriteError,
    WriteErrorCode,
    WriteOp,
)
from ..event_models import StoredEvent, as_utc

log = structlog.get_logger()


class InMemoryEventStore(EventStore):
    """In-memory implementation of the event store, keyed by eventId."""

    def __init__(self):
        self._events: dict[str, StoredEvent] = {}
        # Makes check-then-write per op atomic for callers on other threads
        self._lock = threading.Lock()

    async def find_by_ids(self, ids: Iterable[str]) -> list[StoredEvent]:
        with self._lock:
            found = [self._events.get(event_id) for event_id in set(ids)]
        return [e.model_copy() for e in found if e is not None]

    async def bulk_write(self, ops: list[WriteOp]) -> BulkWriteResult:
        """Apply each op independently; conflicts are collected, not raised."""
        result = BulkWriteResult()
        for index, op in enumerate(ops):
            with self._lock:
                self._apply(index, op, result)

        log.debug(
            "store.bulk_write",
            ops=len(ops),
            inserted=result.inserted,
            updated=result.updated,
            errors=len(result.errors),
            adapter="memory",
        )
        return result

    def _apply(self, index: int, op: WriteOp, result: BulkWriteResult):
        event_id = op.event.event_id
        if isinstance(op, InsertOp):
            if event_id in self._events:
                result.errors.append(
                    WriteError(
                        index=index,
                        event_id=event_id,
                        code=WriteErrorCode.DUPLICATE_KEY,
                        message=f"eventId {event_id} already exists",
                    )
                )
                return
            self._events[event_id] = op.event.model_copy()
            result.inserted += 1
        elif event_id in self._events:
            # Update without upsert: a missing record is simply not matched
            self._events[event_id] = op.event.model_copy()
            result.updated += 1

    async def find_in_window(
        self, start: datetime, end: datetime, machine_id: str | None = None
    ) -> list[StoredEvent]:
        start, end = as_utc(start), as_utc(end)
        with self._lock:
            snapshot = list(self._events.values())
        return [
            e.model_copy()
            for e in sorted(snapshot, key=lambda e: e.event_time)
            if start <= e.event_time < end
            and (machine_id is None or e.machine_id == machine_id)
        ]

    async def health_check(self) -> bool:
        """In-memory store is always healthy."""
        return True

    def count(self) -> int:
        """Number of stored records."""
        with self._lock:
            return len(self._events)

    def clear(self):
        """Drop all records (useful for testing)."""
        with self._lock:
            self._events.clear()

"""Merge validated events into the event store.

One lookup and at most one bulk write per call. Classification runs in
submission order against a per-call map that starts from the stored
records and absorbs every insert/update as it is decided, so repeats of
an eventId inside the same batch resolve against each other.
"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Iterable
import structlog
from ..adapters.base import BulkWriteResult, EventStore, InsertOp, UpdateOp, WriteOp
from ..event_models import StoredEvent

log = structlog.get_logger()


class Outcome(str, Enum):
    """Fate of a single event within a batch."""
    INSERT = "insert"
    DEDUPE = "dedupe"
    UPDATE = "update"
    STALE_IGNORE = "stale_ignore"
    REJECT = "reject"


def classify(stored: StoredEvent | None, incoming: StoredEvent) -> Outcome:
    """
    Decide what to do with ``incoming`` given the current record for its id.

    Never returns REJECT; rejection happens during validation.
    """
    if stored is None:
        return Outcome.INSERT
    if stored.same_payload(incoming):
        return Outcome.DEDUPE
    if (
        stored.received_time is not None
        and incoming.received_time is not None
        and stored.received_time > incoming.received_time
    ):
        return Outcome.STALE_IGNORE
    return Outcome.UPDATE


class ReconcileResult(BaseModel):
    accepted: int = 0
    deduped: int = 0
    updated: int = 0
    stale_ignored: int = 0
    outcomes: list[Outcome] = Field(default_factory=list)
    write_result: BulkWriteResult | None = None


class Reconciler:
    """
    Classifies validated events and writes the result in one round trip.

    Holds no per-call state, so one instance can serve concurrent calls.
    """

    def __init__(self, store: EventStore):
        self._store = store

    async def reconcile(self, events: Iterable[StoredEvent]) -> ReconcileResult:
        """
        Fold ``events`` into the store.

        Args:
            events: Validated, stamped events in submission order

        Returns:
            Classification counts, per-event outcomes and the write result

        Raises:
            StoreUnavailableError: If the lookup or the bulk write fails
        """
        events = list(events)
        result = ReconcileResult()
        if not events:
            return result

        found = await self._store.find_by_ids({e.event_id for e in events})
        existing: dict[str, StoredEvent] = {}
        for record in found:
            # The first record wins if the store ever returns duplicates
            existing.setdefault(record.event_id, record)

        ops: list[WriteOp] = []
        for event in events:
            outcome = classify(existing.get(event.event_id), event)
            result.outcomes.append(outcome)

            if outcome is Outcome.INSERT:
                ops.append(InsertOp(event=event))
                existing[event.event_id] = event
                result.accepted += 1
            elif outcome is Outcome.DEDUPE:
                result.deduped += 1
            elif outcome is Outcome.UPDATE:
                ops.append(UpdateOp(event=event))
                existing[event.event_id] = event
                result.updated += 1
            else:
                result.stale_ignored += 1
                log.info(
                    "batch.stale_ignored",
                    event_id=event.event_id,
                    stored_received_time=existing[event.event_id].received_time.isoformat(),
                )

        if ops:
            result.write_result = await self._store.bulk_write(ops)
            for error in result.write_result.errors:
                log.warning(
                    "store.write_conflict",
                    event_id=error.event_id,
                    code=error.code,
                    message=error.message,
                )

        return result

"""Batch ingestion service: validate, reconcile, summarize."""
from datetime import datetime, timedelta, timezone
from pydantic import BaseModel, ConfigDict, Field
from typing import Callable, Iterable
import structlog
import time
from ..adapters.base import EventStore, WriteError
from ..adapters.memory import InMemoryEventStore
from ..adapters.redis_store import RedisEventStore
from ..config import get_settings
from ..event_models import RawEvent, StoredEvent
from ..ingest.reconciler import Outcome, Reconciler
from ..ingest.validator import Rejection, validate_event
from ..metrics import Metrics

log = structlog.get_logger()
settings = get_settings()

_metrics: Metrics | None = None


def set_metrics(metrics: Metrics | None):
    """Attach the Prometheus metrics the service reports into."""
    global _metrics
    _metrics = metrics


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BatchSummary(BaseModel):
    """Result of one process_batch call, as returned to the caller."""
    model_config = ConfigDict(populate_by_name=True)

    accepted: int = 0
    deduped: int = 0
    updated: int = 0
    rejected: int = 0
    rejections: list[Rejection] = Field(default_factory=list)
    stale_ignored: int = Field(0, alias="staleIgnored")
    write_errors: list[WriteError] = Field(default_factory=list, alias="writeErrors")


class IngestionService:
    """
    Entry point for batch ingestion.

    The event store is selected from the STORE_ADAPTER setting unless
    one is passed in.
    """

    def __init__(
        self,
        store: EventStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the service.

        Args:
            store: Event store to use (defaults to configured adapter)
            clock: Source of the per-batch ``now`` snapshot
        """
        if store is None:
            store = _create_default_store()
        self._store = store
        self._reconciler = Reconciler(store)
        self._clock = clock

    @property
    def store(self) -> EventStore:
        return self._store

    async def process_batch(self, events: Iterable[RawEvent]) -> BatchSummary:
        """
        Validate and merge a batch of events.

        Args:
            events: Raw events in submission order

        Returns:
            Summary of accepted, deduped, updated and rejected events

        Raises:
            StoreUnavailableError: If the store lookup or write fails
        """
        start_time = time.time()
        events = list(events)
        now = self._clock()

        valid: list[StoredEvent] = []
        rejections: list[Rejection] = []
        for event in events:
            stamped, reason = validate_event(
                event,
                now,
                max_duration_ms=settings.MAX_EVENT_DURATION_MS,
                future_tolerance=timedelta(minutes=settings.FUTURE_TOLERANCE_MINUTES),
            )
            if reason is not None:
                rejections.append(Rejection(event_id=event.event_id or None, reason=reason))
            else:
                valid.append(stamped)

        result = await self._reconciler.reconcile(valid)

        write_errors = result.write_result.errors if result.write_result else []
        summary = BatchSummary(
            accepted=result.accepted,
            deduped=result.deduped,
            updated=result.updated,
            rejected=len(rejections),
            rejections=rejections,
            stale_ignored=result.stale_ignored,
            write_errors=write_errors,
        )

        duration = time.time() - start_time
        self._record_metrics(summary, len(events), duration, lookup=bool(valid))

        log.info(
            "batch.processed",
            received=len(events),
            accepted=summary.accepted,
            deduped=summary.deduped,
            updated=summary.updated,
            rejected=summary.rejected,
            stale_ignored=summary.stale_ignored,
            write_errors=len(summary.write_errors),
            duration_ms=round(duration * 1000, 2),
        )
        return summary

    async def health_check(self) -> bool:
        """Check event store health."""
        return await self._store.health_check()

    @staticmethod
    def _record_metrics(summary: BatchSummary, size: int, duration: float, lookup: bool):
        if _metrics is None:
            return
        _metrics.record_batch(size, duration)
        _metrics.record_outcome(Outcome.INSERT.value, summary.accepted)
        _metrics.record_outcome(Outcome.DEDUPE.value, summary.deduped)
        _metrics.record_outcome(Outcome.UPDATE.value, summary.updated)
        _metrics.record_outcome(Outcome.STALE_IGNORE.value, summary.stale_ignored)
        _metrics.record_outcome(Outcome.REJECT.value, summary.rejected)
        if lookup:
            _metrics.record_round_trip("find_by_ids")
        if summary.accepted or summary.updated:
            _metrics.record_round_trip("bulk_write")
        for error in summary.write_errors:
            _metrics.record_write_error(error.code)


def _create_default_store() -> EventStore:
    """
    Create the default event store based on configuration.

    Returns:
        EventStore instance based on STORE_ADAPTER setting
    """
    if settings.STORE_ADAPTER == "redis":
        if not settings.REDIS_URL:
            log.warning(
                "adapter.fallback",
                requested="redis",
                actual="memory",
                reason="REDIS_URL not configured"
            )
            return InMemoryEventStore()

        log.info("adapter.selected", type="redis", url=str(settings.REDIS_URL))
        return RedisEventStore()
    else:
        log.info("adapter.selected", type="memory")
        return InMemoryEventStore()


# Global ingestion service instance
service = IngestionService()

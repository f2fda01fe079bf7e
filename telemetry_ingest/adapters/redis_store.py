"""Redis-backed event store adapter."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Iterable
import structlog
import orjson
from redis import Redis
from redis.exceptions import RedisError
from .base import (
    BulkWriteResult,
    EventStore,
    InsertOp,
    WriteError,
    WriteErrorCode,
    WriteOp,
)
from ..config import get_settings
from ..errors import StoreUnavailableError
from ..event_models import StoredEvent, as_utc

log = structlog.get_logger()
settings = get_settings()

# KEYS[1] = document key, KEYS[2] = time index
# ARGV[1] = document, ARGV[2] = eventTime score, ARGV[3] = eventId
INSERT_SCRIPT = """
if redis.call('SET', KEYS[1], ARGV[1], 'NX') then
    redis.call('ZADD', KEYS[2], ARGV[2], ARGV[3])
    return 1
end
return 0
"""

UPDATE_SCRIPT = """
if redis.call('SET', KEYS[1], ARGV[1], 'XX') then
    redis.call('ZADD', KEYS[2], ARGV[2], ARGV[3])
    return 1
end
return 0
"""


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ONE_MS = timedelta(milliseconds=1)


def _score(ts: datetime) -> int:
    """Epoch milliseconds used as the time index score, rounded down."""
    return (as_utc(ts) - EPOCH) // ONE_MS


def _score_ceil(ts: datetime) -> int:
    return -((EPOCH - as_utc(ts)) // ONE_MS)


class RedisEventStore(EventStore):
    """Redis implementation of the event store.

    Each event is a JSON document under ``{prefix}:event:{eventId}``;
    a sorted set ``{prefix}:events:by_time`` indexes ids by eventTime.
    Document and index entry are written together by a Lua script so
    uniqueness and index consistency hold per document.
    """

    def __init__(self, redis_url: str | None = None, key_prefix: str | None = None):
        """
        Initialize Redis event store.

        Args:
            redis_url: Redis connection URL (defaults to settings.REDIS_URL)
            key_prefix: Key namespace (defaults to settings.REDIS_KEY_PREFIX)
        """
        self.redis_url = redis_url or str(settings.REDIS_URL)
        self.key_prefix = key_prefix or settings.REDIS_KEY_PREFIX
        self._client: Redis | None = None
        self._insert_script = None
        self._update_script = None
        self._index_key = f"{self.key_prefix}:events:by_time"

    def _get_client(self) -> Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = Redis.from_url(
                self.redis_url,
                decode_responses=False,  # We'll handle encoding ourselves
                socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )
            self._insert_script = self._client.register_script(INSERT_SCRIPT)
            self._update_script = self._client.register_script(UPDATE_SCRIPT)
        return self._client

    def _event_key(self, event_id: str) -> str:
        return f"{self.key_prefix}:event:{event_id}"

    @staticmethod
    def _encode(event: StoredEvent) -> bytes:
        return orjson.dumps(event.model_dump(mode="json", by_alias=True))

    @staticmethod
    def _decode(raw: bytes) -> StoredEvent:
        return StoredEvent.model_validate(orjson.loads(raw))

    async def find_by_ids(self, ids: Iterable[str]) -> list[StoredEvent]:
        """
        Fetch stored events with a single MGET.

        Raises:
            StoreUnavailableError: If Redis cannot be reached
        """
        ids = list(set(ids))
        if not ids:
            return []

        try:
            client = self._get_client()
            raw_docs = await asyncio.to_thread(client.mget, [self._event_key(i) for i in ids])
        except RedisError as e:
            log.error("store.lookup_failed", error=str(e), ids=len(ids), adapter="redis")
            raise StoreUnavailableError("find_by_ids", str(e)) from e

        return [self._decode(raw) for raw in raw_docs if raw is not None]

    async def bulk_write(self, ops: list[WriteOp]) -> BulkWriteResult:
        """
        Submit all operations in one non-transactional pipeline.

        Per-op failures are read from the pipeline results; only a
        failure of the pipeline itself is raised.

        Raises:
            StoreUnavailableError: If the pipeline cannot be executed
        """
        result = BulkWriteResult()
        if not ops:
            return result

        try:
            client = self._get_client()
            pipe = client.pipeline(transaction=False)
            for op in ops:
                script = self._insert_script if isinstance(op, InsertOp) else self._update_script
                script(
                    keys=[self._event_key(op.event.event_id), self._index_key],
                    args=[self._encode(op.event), _score(op.event.event_time), op.event.event_id],
                    client=pipe,
                )
            replies = await asyncio.to_thread(pipe.execute, raise_on_error=False)
        except RedisError as e:
            log.error("store.bulk_write_failed", error=str(e), ops=len(ops), adapter="redis")
            raise StoreUnavailableError("bulk_write", str(e)) from e

        for index, (op, reply) in enumerate(zip(ops, replies)):
            event_id = op.event.event_id
            if isinstance(reply, Exception):
                result.errors.append(
                    WriteError(
                        index=index,
                        event_id=event_id,
                        code=WriteErrorCode.WRITE_FAILED,
                        message=str(reply),
                    )
                )
            elif isinstance(op, InsertOp):
                if reply:
                    result.inserted += 1
                else:
                    result.errors.append(
                        WriteError(
                            index=index,
                            event_id=event_id,
                            code=WriteErrorCode.DUPLICATE_KEY,
                            message=f"eventId {event_id} already exists",
                        )
                    )
            elif reply:
                result.updated += 1

        log.debug(
            "store.bulk_write",
            ops=len(ops),
            inserted=result.inserted,
            updated=result.updated,
            errors=len(result.errors),
            adapter="redis",
        )
        return result

    async def find_in_window(
        self, start: datetime, end: datetime, machine_id: str | None = None
    ) -> list[StoredEvent]:
        """
        Fetch events with ``start <= eventTime < end`` via the time index.

        Scores only resolve milliseconds, so the index range is widened to
        whole milliseconds and the exact bounds are applied after decoding.

        Raises:
            StoreUnavailableError: If Redis cannot be reached
        """
        start, end = as_utc(start), as_utc(end)
        try:
            client = self._get_client()
            raw_docs = await asyncio.to_thread(
                self._window_docs, client, _score(start), _score_ceil(end)
            )
        except RedisError as e:
            log.error("store.window_query_failed", error=str(e), adapter="redis")
            raise StoreUnavailableError("find_in_window", str(e)) from e

        return [
            e
            for e in (self._decode(raw) for raw in raw_docs if raw is not None)
            if start <= e.event_time < end
            and (machine_id is None or e.machine_id == machine_id)
        ]

    def _window_docs(self, client: Redis, min_score: int, max_score: int) -> list:
        ids = client.zrangebyscore(self._index_key, min_score, max_score)
        if not ids:
            return []
        keys = [self._event_key(i.decode() if isinstance(i, bytes) else i) for i in ids]
        return client.mget(keys)

    async def health_check(self) -> bool:
        """
        Check Redis connection health.

        Returns:
            True if Redis is accessible, False otherwise
        """
        try:
            client = self._get_client()
            return await asyncio.to_thread(client.ping)
        except Exception as e:
            log.warning("redis.health_check_failed", error=str(e))
            return False

    def close(self):
        """Close Redis connection."""
        if self._client:
            self._client.close()
            self._client = None

"""Base adapter interface for event store backends."""
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Iterable, Literal, Union
from ..event_models import StoredEvent


class WriteErrorCode(str, Enum):
    """Per-operation failure codes reported by a bulk write."""
    DUPLICATE_KEY = "DUPLICATE_KEY"
    WRITE_FAILED = "WRITE_FAILED"


class InsertOp(BaseModel):
    """Insert a new record; fails with DUPLICATE_KEY if the eventId exists."""
    kind: Literal["insert"] = "insert"
    event: StoredEvent


class UpdateOp(BaseModel):
    """Replace the business fields and receivedTime of an existing record."""
    kind: Literal["update"] = "update"
    event: StoredEvent


WriteOp = Union[InsertOp, UpdateOp]


class WriteError(BaseModel):
    index: int = Field(..., description="Position of the failed op in the submitted list")
    event_id: str = Field(..., alias="eventId")
    code: WriteErrorCode
    message: str = ""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)


class BulkWriteResult(BaseModel):
    """Outcome of one unordered bulk write."""
    inserted: int = 0
    updated: int = 0
    errors: list[WriteError] = Field(default_factory=list)


class EventStore(ABC):
    """
    Abstract interface for event store implementations.

    Implementations must enforce uniqueness of ``eventId`` and report
    per-operation failures from ``bulk_write`` without failing the call.
    """

    @abstractmethod
    async def find_by_ids(self, ids: Iterable[str]) -> list[StoredEvent]:
        """
        Fetch stored records for the given event ids in one round trip.

        Args:
            ids: Event ids to look up

        Returns:
            Matching records in no particular order; unknown ids are omitted

        Raises:
            StoreUnavailableError: If the lookup cannot be completed
        """
        pass

    @abstractmethod
    async def bulk_write(self, ops: list[WriteOp]) -> BulkWriteResult:
        """
        Submit inserts and updates together as one unordered write.

        Args:
            ops: Operations to apply; the store may apply them in any order

        Returns:
            Counts of applied operations and the per-operation errors

        Raises:
            StoreUnavailableError: If the submission as a whole fails
        """
        pass

    @abstractmethod
    async def find_in_window(
        self, start: datetime, end: datetime, machine_id: str | None = None
    ) -> list[StoredEvent]:
        """
        Fetch records with ``start <= eventTime < end``.

        Args:
            start: Inclusive lower bound
            end: Exclusive upper bound
            machine_id: Restrict to one machine if given
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the backend is healthy and accessible.

        Returns:
            True if backend is healthy, False otherwise
        """
        pass

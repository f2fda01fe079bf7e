"""Per-event validation applied before anything touches storage."""
from datetime import datetime, timedelta
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Tuple
from ..event_models import RawEvent, StoredEvent

SIX_HOURS_MS = 6 * 60 * 60 * 1000
FUTURE_TOLERANCE = timedelta(minutes=15)


class RejectionReason(str, Enum):
    INVALID_DURATION = "INVALID_DURATION"
    FUTURE_EVENT_TIME = "FUTURE_EVENT_TIME"
    MISSING_MANDATORY_FIELDS = "MISSING_MANDATORY_FIELDS"


class Rejection(BaseModel):
    """A rejected event, identified by its eventId when it had one."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    event_id: str | None = Field(None, alias="eventId")
    reason: RejectionReason


def validate_event(
    event: RawEvent,
    now: datetime,
    max_duration_ms: int = SIX_HOURS_MS,
    future_tolerance: timedelta = FUTURE_TOLERANCE,
) -> Tuple[StoredEvent | None, RejectionReason | None]:
    """
    Check one event against the ingestion policy.

    Rules run in a fixed order and the first failure wins: duration
    bounds, then future event time, then mandatory fields.

    Args:
        event: Event as submitted
        now: Batch snapshot; becomes the receivedTime of a passing event
        max_duration_ms: Inclusive upper bound on durationMs
        future_tolerance: How far past ``now`` eventTime may be

    Returns:
        (stamped_event, None) on success, (None, reason) on rejection
    """
    if event.duration_ms < 0 or event.duration_ms > max_duration_ms:
        return None, RejectionReason.INVALID_DURATION

    if event.event_time is not None and event.event_time > now + future_tolerance:
        return None, RejectionReason.FUTURE_EVENT_TIME

    if not event.event_id or not event.machine_id or event.event_time is None:
        return None, RejectionReason.MISSING_MANDATORY_FIELDS

    stamped = StoredEvent(
        event_id=event.event_id,
        machine_id=event.machine_id,
        line_id=event.line_id,
        event_time=event.event_time,
        received_time=now,
        duration_ms=event.duration_ms,
        defect_count=event.defect_count,
    )
    return stamped, None

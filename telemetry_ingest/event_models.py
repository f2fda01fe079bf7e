from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Tuple

UNKNOWN_DEFECTS = -1


def as_utc(value: datetime | None) -> datetime | None:
    """Naive timestamps are taken as UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RawEvent(BaseModel):
    """Telemetry event as submitted by a producer, before validation."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_id: str | None = Field(None, alias="eventId")
    machine_id: str | None = Field(None, alias="machineId")
    line_id: str | None = Field(None, alias="lineId")
    event_time: datetime | None = Field(None, alias="eventTime")
    duration_ms: int = Field(0, alias="durationMs")
    defect_count: int = Field(0, alias="defectCount", description="-1 means unknown")
    # Accepted on the wire but never trusted; the pipeline stamps its own.
    received_time: datetime | None = Field(None, alias="receivedTime")

    @field_validator("event_time", "received_time")
    @classmethod
    def _normalize_tz(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class StoredEvent(BaseModel):
    """Validated event stamped with the time the pipeline accepted it."""
    model_config = ConfigDict(populate_by_name=True)

    event_id: str = Field(..., alias="eventId")
    machine_id: str = Field(..., alias="machineId")
    line_id: str | None = Field(None, alias="lineId")
    event_time: datetime = Field(..., alias="eventTime")
    received_time: datetime | None = Field(None, alias="receivedTime")
    duration_ms: int = Field(0, alias="durationMs")
    defect_count: int = Field(0, alias="defectCount")

    @field_validator("event_time", "received_time")
    @classmethod
    def _normalize_tz(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)

    def business_fields(self) -> Tuple[Any, ...]:
        """Fields that define payload identity (receivedTime excluded)."""
        return (
            self.machine_id,
            self.line_id,
            self.event_time,
            self.duration_ms,
            self.defect_count,
        )

    def same_payload(self, other: "StoredEvent") -> bool:
        return self.business_fields() == other.business_fields()

    @property
    def has_known_defects(self) -> bool:
        return self.defect_count != UNKNOWN_DEFECTS

"""Read-side aggregations over stored events."""
from collections import defaultdict
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
import structlog
from ..adapters.base import EventStore
from ..event_models import as_utc

log = structlog.get_logger()

HEALTHY_RATE_THRESHOLD = 2.0  # defects per hour


class MachineStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    machine_id: str = Field(..., alias="machineId")
    start: datetime
    end: datetime
    events_count: int = Field(..., alias="eventsCount")
    defects_count: int = Field(..., alias="defectsCount")
    avg_defect_rate: float = Field(..., alias="avgDefectRate")
    status: str


class LineDefects(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    line_id: str = Field(..., alias="lineId")
    total_defects: int = Field(..., alias="totalDefects")
    event_count: int = Field(..., alias="eventCount")
    defects_percent: float = Field(..., alias="defectsPercent")


class StatsService:
    """Aggregations used by the stats endpoints. Windows are [start, end)."""

    def __init__(self, store: EventStore):
        self._store = store

    async def machine_stats(self, machine_id: str, start: datetime, end: datetime) -> MachineStats:
        """
        Event and defect totals for one machine.

        Unknown defect counts (-1) are left out of the defect total but the
        events still count. The rate is defects per hour of window; a
        zero-length window counts as one hour.
        """
        start, end = as_utc(start), as_utc(end)
        if end < start:
            raise ValueError("end must not be before start")

        events = await self._store.find_in_window(start, end, machine_id=machine_id)
        defects = sum(e.defect_count for e in events if e.has_known_defects)

        window_hours = (end - start).total_seconds() / 3600.0
        if window_hours == 0:
            window_hours = 1.0
        rate = defects / window_hours

        return MachineStats(
            machine_id=machine_id,
            start=start,
            end=end,
            events_count=len(events),
            defects_count=defects,
            avg_defect_rate=rate,
            status="Healthy" if rate < HEALTHY_RATE_THRESHOLD else "Warning",
        )

    async def top_defect_lines(self, start: datetime, end: datetime, limit: int = 10) -> list[LineDefects]:
        """Production lines ranked by total known defects in the window."""
        start, end = as_utc(start), as_utc(end)
        if end < start:
            raise ValueError("end must not be before start")

        totals: dict[str, int] = defaultdict(int)
        counts: dict[str, int] = defaultdict(int)
        for e in await self._store.find_in_window(start, end):
            if not e.line_id:
                continue
            counts[e.line_id] += 1
            if e.has_known_defects:
                totals[e.line_id] += e.defect_count

        lines = [
            LineDefects(
                line_id=line_id,
                total_defects=totals[line_id],
                event_count=count,
                defects_percent=round(totals[line_id] * 100 / count, 2),
            )
            for line_id, count in counts.items()
        ]
        lines.sort(key=lambda l: l.total_defects, reverse=True)
        log.debug("stats.top_defect_lines", lines=len(lines), limit=limit)
        return lines[:limit]

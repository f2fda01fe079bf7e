import asyncio
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from ..auth.api_key import verify_api_key
from ..config import get_settings
from ..event_models import RawEvent
from ..services.ingestion import BatchSummary, service
from ..services.stats import LineDefects, MachineStats, StatsService
import structlog

log = structlog.get_logger()
router = APIRouter(prefix="/v1", dependencies=[Depends(verify_api_key)])
settings = get_settings()
stats_service = StatsService(service.store)


@router.post("/events/batch", response_model=BatchSummary)
async def ingest_batch(events: list[RawEvent]):
    if len(events) > settings.MAX_BATCH_SIZE:
        raise HTTPException(
            413,
            detail=f"Batch of {len(events)} events exceeds MAX_BATCH_SIZE={settings.MAX_BATCH_SIZE}",
        )
    try:
        return await asyncio.wait_for(
            service.process_batch(events),
            timeout=settings.INGEST_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError:
        # Whatever the store already committed stays committed
        log.error("batch.timeout", events=len(events), timeout=settings.INGEST_TIMEOUT_SECONDS)
        raise HTTPException(504, detail="Batch processing timed out")


@router.get("/stats", response_model=MachineStats)
async def machine_stats(
    machine_id: str = Query(..., alias="machineId"),
    start: datetime = Query(...),
    end: datetime = Query(...),
):
    try:
        return await stats_service.machine_stats(machine_id, start, end)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))


@router.get("/stats/top-defect-lines", response_model=list[LineDefects])
async def top_defect_lines(
    start: datetime = Query(..., alias="from"),
    end: datetime = Query(..., alias="to"),
    limit: int = Query(10, ge=1, le=1000),
    factory_id: str | None = Query(None, alias="factoryId"),
):
    # Events carry no factory, so factoryId does not narrow the result
    try:
        return await stats_service.top_defect_lines(start, end, limit=limit)
    except ValueError as e:
        raise HTTPException(400, detail=str(e))

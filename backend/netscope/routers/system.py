from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
from netscope.config import settings
from netscope.database import get_db
from netscope.schemas.system import (
    SchedulerStatus, AggregationTriggerResponse, BackfillRequest, BackfillResponse,
    TierStats, CleanupResponse,
)
from netscope.services import aggregation

router = APIRouter(prefix="/api/system", tags=["System"])


@router.get("/scheduler", response_model=SchedulerStatus)
async def scheduler_status(request: Request):
    return request.app.state.poller.get_status()


# Fixed paths are declared before /aggregation/{tier} so they match first

@router.get("/aggregation/stats", response_model=Dict[str, TierStats])
async def aggregation_stats(db: AsyncSession = Depends(get_db)):
    return await aggregation.get_stats(db)


@router.post("/aggregation/backfill", response_model=BackfillResponse)
async def backfill(payload: BackfillRequest, db: AsyncSession = Depends(get_db)):
    if payload.tier == "hourly":
        result = await aggregation.backfill_hourly(db, payload.start, payload.end)
    else:
        result = await aggregation.backfill_daily(db, payload.start, payload.end)
    return BackfillResponse(tier=payload.tier, **result)


@router.post("/aggregation/{tier}", response_model=AggregationTriggerResponse)
async def trigger_aggregation(request: Request, tier: str):
    if tier not in ("hourly", "daily"):
        raise HTTPException(status_code=404, detail="Unknown aggregation tier")
    groups = await request.app.state.poller.trigger_aggregation(tier)
    return AggregationTriggerResponse(tier=tier, groups=groups)


@router.post("/cleanup", response_model=CleanupResponse)
async def run_cleanup(request: Request, db: AsyncSession = Depends(get_db)):
    deleted = await aggregation.run_all_cleanup(db)
    deleted["alarms"] = await request.app.state.alarm_engine.cleanup_old_alarms(
        db, settings.ALARM_RETENTION_DAYS,
    )
    return CleanupResponse(deleted=deleted)

from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from netscope.database import get_db
from netscope.models.device import Device
from netscope.models.interface import Interface
from netscope.schemas.metric import LatestMetricsResponse, MetricSeriesResponse, StatisticsResponse
from netscope.services import metric_query

router = APIRouter(prefix="/api/metrics", tags=["Metrics"])


async def _get_device(db: AsyncSession, device_id: int) -> Device:
    device = await db.get(Device, device_id)
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


def _window(period: str, interval: str, start: Optional[datetime], end: Optional[datetime]):
    try:
        window_start, window_end = metric_query.parse_period(period, start, end)
        tier = metric_query.select_tier(interval, window_start, window_end)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return window_start, window_end, tier


@router.get("/devices/{device_id}", response_model=MetricSeriesResponse)
async def get_device_metrics(
    device_id: int,
    period: str = "24h",
    interval: str = "auto",
    metrics: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    """Device-level history. ``period`` is 1h/6h/24h/7d/30d/90d or custom with start/end;
    ``interval`` is auto, raw, 5m, 1h or 1d."""
    device = await _get_device(db, device_id)
    window_start, window_end, tier = _window(period, interval, start, end)
    try:
        metric_types = metric_query.parse_metric_types(metrics, metric_query.DEVICE_METRICS)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    series = await metric_query.get_series(db, tier, window_start, window_end, metric_types, device_id=device_id)
    return MetricSeriesResponse(
        device_id=device.id, device_name=device.name, period=period, tier=tier,
        start=window_start, end=window_end, metrics=series,
    )


@router.get("/interfaces/{interface_id}", response_model=MetricSeriesResponse)
async def get_interface_metrics(
    interface_id: int,
    period: str = "24h",
    interval: str = "auto",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    iface = await db.get(Interface, interface_id)
    if not iface:
        raise HTTPException(status_code=404, detail="Interface not found")
    device = await _get_device(db, iface.device_id)
    window_start, window_end, tier = _window(period, interval, start, end)
    series = await metric_query.get_series(
        db, tier, window_start, window_end, list(metric_query.INTERFACE_METRICS), interface_id=interface_id,
    )
    return MetricSeriesResponse(
        device_id=device.id, device_name=device.name,
        interface_id=iface.id, interface_name=iface.if_name or iface.if_descr,
        period=period, tier=tier, start=window_start, end=window_end, metrics=series,
    )


@router.get("/devices/{device_id}/latest", response_model=LatestMetricsResponse)
async def get_latest_metrics(device_id: int, db: AsyncSession = Depends(get_db)):
    device = await _get_device(db, device_id)
    latest = await metric_query.get_latest(db, device_id)
    return LatestMetricsResponse(
        device_id=device.id, device_name=device.name, status=device.status,
        last_poll_time=device.last_poll_time, **latest,
    )


@router.get("/devices/{device_id}/statistics", response_model=StatisticsResponse)
async def get_metric_statistics(
    device_id: int,
    period: str = "7d",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    db: AsyncSession = Depends(get_db),
):
    device = await _get_device(db, device_id)
    window_start, window_end, tier = _window(period, "auto", start, end)
    stats = await metric_query.get_statistics(db, device_id, tier, window_start, window_end)
    return StatisticsResponse(
        device_id=device.id, device_name=device.name, period=period, tier=tier,
        start=window_start, end=window_end, statistics=stats,
    )

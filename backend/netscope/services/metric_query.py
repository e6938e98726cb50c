"""
Metric read path - history series served from the tier that fits the
requested range, latest values per device and per-metric statistics.

Short ranges read raw samples, ranges up to three days read hourly buckets
and anything longer reads daily buckets. Device series cover device-level
metrics only; interface metrics are read per interface.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from netscope.models.interface import Interface
from netscope.models.metric import METRIC_TYPES, Metric, MetricDaily, MetricHourly


PERIODS = {
    "1h": timedelta(hours=1),
    "6h": timedelta(hours=6),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}

# Explicit resolutions; "auto" picks by range length
INTERVAL_TIERS = {"raw": "raw", "5m": "raw", "1h": "hourly", "1d": "daily"}
RAW_MAX_RANGE = timedelta(hours=6)
HOURLY_MAX_RANGE = timedelta(hours=72)

DEVICE_METRICS = ("cpu", "memory")
INTERFACE_METRICS = ("traffic_in", "traffic_out", "bandwidth_util", "errors_in", "errors_out")
LATEST_METRICS = ("cpu", "memory", "temperature", "disk_usage", "uptime")

TIER_MODELS = {"hourly": MetricHourly, "daily": MetricDaily}


def _utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def parse_period(period: str, start: Optional[datetime] = None, end: Optional[datetime] = None,
                 now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Resolve a named period ("24h", "7d", ...) or "custom" start/end into a UTC window."""
    if period == "custom":
        if start is None or end is None:
            raise ValueError("custom period requires start and end")
        start, end = _utc(start), _utc(end)
        if end <= start:
            raise ValueError("end must be after start")
        return start, end
    if period not in PERIODS:
        raise ValueError(f"Unknown period: {period}")
    end = _utc(now) if now else datetime.now(timezone.utc)
    return end - PERIODS[period], end


def select_tier(interval: str, start: datetime, end: datetime) -> str:
    if interval in INTERVAL_TIERS:
        return INTERVAL_TIERS[interval]
    if interval != "auto":
        raise ValueError(f"Unknown interval: {interval}")
    span = end - start
    if span <= RAW_MAX_RANGE:
        return "raw"
    if span <= HOURLY_MAX_RANGE:
        return "hourly"
    return "daily"


def parse_metric_types(raw: Optional[str], default: Iterable[str]) -> List[str]:
    if not raw:
        return list(default)
    types = [m.strip() for m in raw.split(",") if m.strip()]
    unknown = [m for m in types if m not in METRIC_TYPES]
    if unknown:
        raise ValueError(f"Unknown metric type(s): {', '.join(unknown)}")
    return types


async def get_series(db: AsyncSession, tier: str, start: datetime, end: datetime, metric_types: List[str],
                     device_id: Optional[int] = None, interface_id: Optional[int] = None) -> Dict[str, List[dict]]:
    """Points per metric type, oldest first. Raw points carry ``value``;
    tier points carry avg/min/max and the sample count behind them."""
    series: Dict[str, List[dict]] = {m: [] for m in metric_types}

    if tier == "raw":
        query = select(Metric.metric_type, Metric.collected_at, Metric.value).where(
            Metric.metric_type.in_(metric_types),
            Metric.collected_at >= start,
            Metric.collected_at <= end,
        )
        if interface_id is not None:
            query = query.where(Metric.interface_id == interface_id)
        else:
            query = query.where(Metric.device_id == device_id, Metric.interface_id.is_(None))
        rows = await db.execute(query.order_by(Metric.collected_at.asc()))
        for metric_type, collected_at, value in rows.all():
            series[metric_type].append({"timestamp": collected_at, "value": value})
        return series

    model = TIER_MODELS[tier]
    query = select(
        model.metric_type, model.bucket_start, model.avg_value,
        model.min_value, model.max_value, model.sample_count,
    ).where(
        model.metric_type.in_(metric_types),
        model.bucket_start >= start,
        model.bucket_start <= end,
    )
    if interface_id is not None:
        query = query.where(model.interface_key == interface_id)
    else:
        query = query.where(model.device_id == device_id, model.interface_key == 0)
    rows = await db.execute(query.order_by(model.bucket_start.asc()))
    for r in rows.all():
        series[r.metric_type].append({
            "timestamp": r.bucket_start,
            "avg": r.avg_value,
            "min": r.min_value,
            "max": r.max_value,
            "samples": r.sample_count,
        })
    return series


async def get_latest(db: AsyncSession, device_id: int) -> dict:
    """Most recent device-level values plus current traffic on every up interface."""
    metrics = {}
    for metric_type in LATEST_METRICS:
        row = (await db.execute(
            select(Metric.value, Metric.collected_at)
            .where(Metric.device_id == device_id, Metric.interface_id.is_(None),
                   Metric.metric_type == metric_type)
            .order_by(Metric.collected_at.desc())
            .limit(1)
        )).first()
        metrics[metric_type] = {"value": row.value, "timestamp": row.collected_at} if row else None

    result = await db.execute(
        select(Interface)
        .where(Interface.device_id == device_id, Interface.if_oper_status == "up")
        .order_by(Interface.if_index)
    )
    interfaces = []
    for iface in result.scalars().all():
        entry = {"id": iface.id, "name": iface.if_name or iface.if_descr, "speed": iface.effective_speed(),
                 "traffic_in": None, "traffic_out": None, "timestamp": None}
        for metric_type in ("traffic_in", "traffic_out"):
            row = (await db.execute(
                select(Metric.value, Metric.collected_at)
                .where(Metric.interface_id == iface.id, Metric.metric_type == metric_type)
                .order_by(Metric.collected_at.desc())
                .limit(1)
            )).first()
            if row:
                entry[metric_type] = row.value
                entry["timestamp"] = entry["timestamp"] or row.collected_at
        interfaces.append(entry)

    return {"metrics": metrics, "interfaces": interfaces}


async def get_statistics(db: AsyncSession, device_id: int, tier: str,
                         start: datetime, end: datetime) -> Dict[str, dict]:
    """avg/min/max/sample count per device-level metric over the window.
    Tier averages are weighted by each bucket's sample count."""
    if tier == "raw":
        query = (
            select(
                Metric.metric_type,
                func.avg(Metric.value).label("avg"),
                func.min(Metric.value).label("min"),
                func.max(Metric.value).label("max"),
                func.count(Metric.id).label("samples"),
            )
            .where(Metric.device_id == device_id, Metric.interface_id.is_(None),
                   Metric.collected_at >= start, Metric.collected_at <= end)
            .group_by(Metric.metric_type)
        )
        rows = (await db.execute(query)).all()
        return {
            r.metric_type: {"avg": float(r.avg), "min": float(r.min), "max": float(r.max), "samples": r.samples}
            for r in rows
        }

    model = TIER_MODELS[tier]
    query = (
        select(
            model.metric_type,
            func.sum(model.avg_value * model.sample_count).label("weighted"),
            func.min(model.min_value).label("min"),
            func.max(model.max_value).label("max"),
            func.sum(model.sample_count).label("samples"),
        )
        .where(model.device_id == device_id, model.interface_key == 0,
               model.bucket_start >= start, model.bucket_start <= end)
        .group_by(model.metric_type)
    )
    stats = {}
    for r in (await db.execute(query)).all():
        if not r.samples:
            continue
        stats[r.metric_type] = {
            "avg": float(r.weighted) / r.samples,
            "min": float(r.min),
            "max": float(r.max),
            "samples": int(r.samples),
        }
    return stats

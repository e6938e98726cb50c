"""
Aggregation service - rolls raw samples into hourly buckets and hourly
buckets into daily ones, plus retention cleanup for every tier.

Upserts are a single INSERT ... ON CONFLICT DO UPDATE per call. Each tier
row keeps a watermark (last_source_at) of the newest source row merged into
it, and only source rows past the watermark are read, so re-running a bucket
is a no-op.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from netscope.config import settings
from netscope.models.metric import Metric, MetricDaily, MetricHourly

logger = logging.getLogger(__name__)

HOUR = timedelta(hours=1)
DAY = timedelta(days=1)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _dialect_insert(db: AsyncSession, model):
    name = db.bind.dialect.name
    if name not in _INSERTS:
        raise NotImplementedError(f"Aggregation upsert is not supported on {name}")
    return _INSERTS[name](model)


def truncate_hour(ts: datetime) -> datetime:
    return ts.replace(minute=0, second=0, microsecond=0)


def truncate_day(ts: datetime) -> datetime:
    return ts.replace(hour=0, minute=0, second=0, microsecond=0)


def _merge_upsert(db: AsyncSession, model, rows):
    """Upsert aggregate rows, merging into an existing bucket:
    count-weighted average, elementwise min/max, summed count, newest watermark.

    The update only applies when the incoming watermark is newer than the
    stored one, so a concurrent run that read the same source rows is dropped.
    """
    stmt = _dialect_insert(db, model).values(rows)
    new = stmt.excluded
    total = model.sample_count + new.sample_count
    return stmt.on_conflict_do_update(
        index_elements=[model.device_id, model.interface_key, model.metric_type, model.bucket_start],
        set_={
            "avg_value": (model.avg_value * model.sample_count + new.avg_value * new.sample_count) / total,
            "min_value": case((new.min_value < model.min_value, new.min_value), else_=model.min_value),
            "max_value": case((new.max_value > model.max_value, new.max_value), else_=model.max_value),
            "sample_count": total,
            "last_source_at": new.last_source_at,
        },
        where=model.last_source_at < new.last_source_at,
    )


async def aggregate_to_hourly(db: AsyncSession, hour_start: datetime, hour_end: datetime) -> int:
    """Merge raw samples in [hour_start, hour_end) into the hourly bucket at hour_start.
    Returns the number of (device, interface, metric) groups upserted."""
    interface_key = func.coalesce(Metric.interface_id, 0)
    query = (
        select(
            Metric.device_id,
            Metric.interface_id,
            Metric.metric_type,
            func.avg(Metric.value).label("avg_value"),
            func.min(Metric.value).label("min_value"),
            func.max(Metric.value).label("max_value"),
            func.count(Metric.id).label("sample_count"),
            func.max(Metric.collected_at).label("last_source_at"),
        )
        .select_from(Metric)
        .outerjoin(MetricHourly, and_(
            MetricHourly.device_id == Metric.device_id,
            MetricHourly.interface_key == interface_key,
            MetricHourly.metric_type == Metric.metric_type,
            MetricHourly.bucket_start == hour_start,
        ))
        .where(
            Metric.collected_at >= hour_start,
            Metric.collected_at < hour_end,
            or_(MetricHourly.last_source_at.is_(None), Metric.collected_at > MetricHourly.last_source_at),
        )
        .group_by(Metric.device_id, Metric.interface_id, Metric.metric_type)
    )

    try:
        groups = (await db.execute(query)).all()
        if not groups:
            return 0
        rows = [
            {
                "device_id": g.device_id,
                "interface_id": g.interface_id,
                "interface_key": g.interface_id or 0,
                "metric_type": g.metric_type,
                "bucket_start": hour_start,
                "avg_value": float(g.avg_value),
                "min_value": float(g.min_value),
                "max_value": float(g.max_value),
                "sample_count": g.sample_count,
                "last_source_at": g.last_source_at,
            }
            for g in groups
        ]
        await db.execute(_merge_upsert(db, MetricHourly, rows))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Hourly aggregation failed for {hour_start.isoformat()}: {e}")
        raise

    logger.info(f"Hourly aggregation {hour_start.isoformat()}: {len(rows)} groups")
    return len(rows)


async def aggregate_to_daily(db: AsyncSession, day_start: datetime, day_end: datetime) -> int:
    """Merge hourly buckets in [day_start, day_end) into the daily bucket at day_start."""
    weighted = func.sum(MetricHourly.avg_value * MetricHourly.sample_count)
    count = func.sum(MetricHourly.sample_count)
    query = (
        select(
            MetricHourly.device_id,
            MetricHourly.interface_id,
            MetricHourly.interface_key,
            MetricHourly.metric_type,
            weighted.label("weighted_sum"),
            func.min(MetricHourly.min_value).label("min_value"),
            func.max(MetricHourly.max_value).label("max_value"),
            count.label("sample_count"),
            func.max(MetricHourly.bucket_start).label("last_source_at"),
        )
        .select_from(MetricHourly)
        .outerjoin(MetricDaily, and_(
            MetricDaily.device_id == MetricHourly.device_id,
            MetricDaily.interface_key == MetricHourly.interface_key,
            MetricDaily.metric_type == MetricHourly.metric_type,
            MetricDaily.bucket_start == day_start,
        ))
        .where(
            MetricHourly.bucket_start >= day_start,
            MetricHourly.bucket_start < day_end,
            or_(MetricDaily.last_source_at.is_(None), MetricHourly.bucket_start > MetricDaily.last_source_at),
        )
        .group_by(MetricHourly.device_id, MetricHourly.interface_id,
                  MetricHourly.interface_key, MetricHourly.metric_type)
    )

    try:
        groups = (await db.execute(query)).all()
        rows = [
            {
                "device_id": g.device_id,
                "interface_id": g.interface_id,
                "interface_key": g.interface_key,
                "metric_type": g.metric_type,
                "bucket_start": day_start,
                "avg_value": float(g.weighted_sum) / g.sample_count,
                "min_value": float(g.min_value),
                "max_value": float(g.max_value),
                "sample_count": int(g.sample_count),
                "last_source_at": g.last_source_at,
            }
            for g in groups
            if g.sample_count
        ]
        if not rows:
            return 0
        await db.execute(_merge_upsert(db, MetricDaily, rows))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Daily aggregation failed for {day_start.date()}: {e}")
        raise

    logger.info(f"Daily aggregation {day_start.date()}: {len(rows)} groups")
    return len(rows)


async def aggregate_last_hour(db: AsyncSession, now: Optional[datetime] = None) -> int:
    end = truncate_hour(now or datetime.now(timezone.utc))
    return await aggregate_to_hourly(db, end - HOUR, end)


async def aggregate_yesterday(db: AsyncSession, now: Optional[datetime] = None) -> int:
    end = truncate_day(now or datetime.now(timezone.utc))
    return await aggregate_to_daily(db, end - DAY, end)


async def _backfill(db: AsyncSession, start: datetime, end: datetime, step: timedelta, fn, truncate) -> Dict:
    current = truncate(start)
    buckets = groups = failed = 0
    while current < end:
        try:
            groups += await fn(db, current, current + step)
        except SQLAlchemyError:
            # already rolled back and logged; move on to the next bucket
            failed += 1
        buckets += 1
        current += step
    return {"buckets": buckets, "groups": groups, "failed": failed}


async def backfill_hourly(db: AsyncSession, start: datetime, end: datetime) -> Dict:
    result = await _backfill(db, start, end, HOUR, aggregate_to_hourly, truncate_hour)
    logger.info(f"Hourly backfill {start.isoformat()} .. {end.isoformat()}: {result}")
    return result


async def backfill_daily(db: AsyncSession, start: datetime, end: datetime) -> Dict:
    result = await _backfill(db, start, end, DAY, aggregate_to_daily, truncate_day)
    logger.info(f"Daily backfill {start.date()} .. {end.date()}: {result}")
    return result


async def _cleanup(db: AsyncSession, column, days: int, label: str) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    result = await db.execute(delete(column.class_).where(column < cutoff))
    await db.commit()
    logger.info(f"Cleanup: deleted {result.rowcount} {label} rows older than {days} days")
    return result.rowcount


async def cleanup_raw(db: AsyncSession, days: int = settings.RETENTION_RAW_DAYS) -> int:
    return await _cleanup(db, Metric.collected_at, days, "raw")


async def cleanup_hourly(db: AsyncSession, days: int = settings.RETENTION_HOURLY_DAYS) -> int:
    return await _cleanup(db, MetricHourly.bucket_start, days, "hourly")


async def cleanup_daily(db: AsyncSession, days: int = settings.RETENTION_DAILY_DAYS) -> int:
    return await _cleanup(db, MetricDaily.bucket_start, days, "daily")


async def run_all_cleanup(db: AsyncSession) -> Dict[str, int]:
    return {
        "raw": await cleanup_raw(db, settings.RETENTION_RAW_DAYS),
        "hourly": await cleanup_hourly(db, settings.RETENTION_HOURLY_DAYS),
        "daily": await cleanup_daily(db, settings.RETENTION_DAILY_DAYS),
    }


async def get_stats(db: AsyncSession) -> Dict[str, Dict]:
    stats = {}
    for label, model, column in (
        ("raw", Metric, Metric.collected_at),
        ("hourly", MetricHourly, MetricHourly.bucket_start),
        ("daily", MetricDaily, MetricDaily.bucket_start),
    ):
        count, oldest = (await db.execute(select(func.count(model.id), func.min(column)))).one()
        stats[label] = {"count": count, "oldest": oldest.isoformat() if oldest else None}
    return stats

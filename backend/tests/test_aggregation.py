"""
Tests for the hourly/daily aggregation pipeline and retention cleanup,
run against SQLite's ON CONFLICT upsert.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from netscope.models.metric import Metric, MetricDaily, MetricHourly
from netscope.services import aggregation

HOUR_START = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)


def _raw(device_id, metric_type, value, minute, interface_id=None, hour_start=HOUR_START):
    return Metric(device_id=device_id, interface_id=interface_id, metric_type=metric_type,
                  value=value, unit="percent", collected_at=hour_start + timedelta(minutes=minute))


async def _rows(db, model, device_id=None):
    query = select(model.device_id, model.interface_key, model.metric_type, model.avg_value,
                   model.min_value, model.max_value, model.sample_count)
    if device_id is not None:
        query = query.where(model.device_id == device_id)
    result = await db.execute(query.order_by(model.device_id, model.interface_key, model.metric_type))
    return [tuple(r) for r in result.all()]


# ── Hourly ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_hourly_groups_by_device_interface_metric(db_session, device):
    db_session.add_all([
        _raw(device.id, "cpu", 10, 1),
        _raw(device.id, "cpu", 20, 2),
        _raw(device.id, "cpu", 30, 3),
        _raw(device.id, "traffic_in", 1000, 1, interface_id=5),
        _raw(device.id, "traffic_in", 3000, 2, interface_id=5),
        _raw(device.id, "cpu", 99, 5, hour_start=HOUR_START + HOUR),  # next bucket
    ])
    await db_session.commit()

    assert await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR) == 2
    assert await _rows(db_session, MetricHourly) == [
        (device.id, 0, "cpu", 20.0, 10.0, 30.0, 3),
        (device.id, 5, "traffic_in", 2000.0, 1000.0, 3000.0, 2),
    ]


@pytest.mark.asyncio
async def test_hourly_rerun_is_idempotent(db_session, device):
    db_session.add_all([_raw(device.id, "cpu", v, m) for v, m in ((10, 1), (20, 2), (30, 3))])
    await db_session.commit()

    await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR)
    once = await _rows(db_session, MetricHourly)
    assert await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR) == 0
    assert await _rows(db_session, MetricHourly) == once


@pytest.mark.asyncio
async def test_overlapping_hourly_runs_merge_once(session_factory, db_session, device):
    db_session.add_all([_raw(device.id, "cpu", v, m) for v, m in ((10, 1), (11, 2), (12, 3), (13, 4))])
    await db_session.commit()

    async with session_factory() as a, session_factory() as b:
        await asyncio.gather(
            aggregation.aggregate_to_hourly(a, HOUR_START, HOUR_START + HOUR),
            aggregation.aggregate_to_hourly(b, HOUR_START, HOUR_START + HOUR),
        )

    assert await _rows(db_session, MetricHourly) == [(device.id, 0, "cpu", 11.5, 10.0, 13.0, 4)]


@pytest.mark.asyncio
async def test_hourly_merges_late_samples(db_session, device):
    db_session.add_all([_raw(device.id, "cpu", v, m) for v, m in ((10, 1), (20, 2), (30, 3))])
    await db_session.commit()
    await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR)

    db_session.add(_raw(device.id, "cpu", 60, 30))
    await db_session.commit()
    assert await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR) == 1
    assert await _rows(db_session, MetricHourly) == [(device.id, 0, "cpu", 30.0, 10.0, 60.0, 4)]


@pytest.mark.asyncio
async def test_hourly_is_order_independent(db_session, device):
    values = [(12.5, 1), (40.0, 2), (7.5, 3), (20.0, 4)]
    db_session.add_all([_raw(1, "memory", v, m) for v, m in values])
    db_session.add_all([_raw(2, "memory", v, m) for v, m in reversed(values)])
    await db_session.commit()

    await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR)
    first = await _rows(db_session, MetricHourly, device_id=1)
    second = await _rows(db_session, MetricHourly, device_id=2)
    assert [r[1:] for r in first] == [r[1:] for r in second]


@pytest.mark.asyncio
async def test_empty_hour(db_session):
    assert await aggregation.aggregate_to_hourly(db_session, HOUR_START, HOUR_START + HOUR) == 0


# ── Daily ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_daily_uses_count_weighted_average(db_session, device):
    day = HOUR_START.replace(hour=0)
    db_session.add_all([
        _raw(device.id, "cpu", 10, 1),
        _raw(device.id, "cpu", 20, 2),
        _raw(device.id, "cpu", 60, 1, hour_start=HOUR_START + HOUR),
    ])
    await db_session.commit()

    result = await aggregation.backfill_hourly(db_session, day, day + timedelta(days=1))
    assert result == {"buckets": 24, "groups": 2, "failed": 0}

    assert await aggregation.aggregate_to_daily(db_session, day, day + timedelta(days=1)) == 1
    assert await _rows(db_session, MetricDaily) == [(device.id, 0, "cpu", 30.0, 10.0, 60.0, 3)]

    assert await aggregation.aggregate_to_daily(db_session, day, day + timedelta(days=1)) == 0
    assert await _rows(db_session, MetricDaily) == [(device.id, 0, "cpu", 30.0, 10.0, 60.0, 3)]


@pytest.mark.asyncio
async def test_convenience_windows(db_session, device):
    db_session.add(_raw(device.id, "cpu", 42, 15))
    await db_session.commit()

    now = HOUR_START + HOUR + timedelta(minutes=5)
    assert await aggregation.aggregate_last_hour(db_session, now=now) == 1
    assert await aggregation.aggregate_yesterday(db_session, now=now + timedelta(days=1)) == 1


def test_truncation():
    ts = datetime(2024, 3, 5, 17, 42, 13, 500, tzinfo=timezone.utc)
    assert aggregation.truncate_hour(ts) == datetime(2024, 3, 5, 17, tzinfo=timezone.utc)
    assert aggregation.truncate_day(ts) == datetime(2024, 3, 5, tzinfo=timezone.utc)


# ── Cleanup / stats ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cleanup_and_stats(db_session, device):
    now = datetime.now(timezone.utc)
    db_session.add_all([
        Metric(device_id=device.id, metric_type="cpu", value=1, collected_at=now - timedelta(days=40)),
        Metric(device_id=device.id, metric_type="cpu", value=2, collected_at=now - timedelta(days=1)),
    ])
    await db_session.commit()

    stats = await aggregation.get_stats(db_session)
    assert stats["raw"]["count"] == 2
    assert stats["hourly"] == {"count": 0, "oldest": None}

    deleted = await aggregation.run_all_cleanup(db_session)
    assert deleted == {"raw": 1, "hourly": 0, "daily": 0}
    assert (await aggregation.get_stats(db_session))["raw"]["count"] == 1

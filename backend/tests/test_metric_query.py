"""
Tests for the metric read path: period parsing, tier selection and the
series/latest/statistics queries over each tier.
"""
from datetime import datetime, timedelta, timezone

import pytest

from netscope.models.interface import Interface
from netscope.models.metric import Metric, MetricDaily, MetricHourly
from netscope.services import metric_query

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def _bucket(model, device_id, metric_type, start, avg, lo, hi, count, interface_id=None):
    return model(device_id=device_id, interface_id=interface_id, interface_key=interface_id or 0,
                 metric_type=metric_type, bucket_start=start, avg_value=avg, min_value=lo,
                 max_value=hi, sample_count=count, last_source_at=start)


# ── Windows and tiers ────────────────────────────────────────────


@pytest.mark.parametrize("span,tier", [
    (timedelta(hours=1), "raw"),
    (timedelta(hours=6), "raw"),
    (timedelta(hours=7), "hourly"),
    (timedelta(hours=72), "hourly"),
    (timedelta(days=7), "daily"),
    (timedelta(days=90), "daily"),
])
def test_auto_tier_follows_range_length(span, tier):
    assert metric_query.select_tier("auto", T0, T0 + span) == tier


@pytest.mark.parametrize("interval,tier", [("raw", "raw"), ("5m", "raw"), ("1h", "hourly"), ("1d", "daily")])
def test_explicit_interval_overrides_range(interval, tier):
    assert metric_query.select_tier(interval, T0, T0 + timedelta(days=30)) == tier


def test_unknown_interval_rejected():
    with pytest.raises(ValueError):
        metric_query.select_tier("15s", T0, T0 + timedelta(hours=1))


def test_parse_period():
    start, end = metric_query.parse_period("7d", now=T0)
    assert (start, end) == (T0 - timedelta(days=7), T0)

    naive_start = datetime(2024, 1, 1, 0, 0)
    start, end = metric_query.parse_period("custom", naive_start, naive_start + timedelta(hours=2))
    assert start.tzinfo is timezone.utc
    assert end - start == timedelta(hours=2)

    with pytest.raises(ValueError):
        metric_query.parse_period("custom", T0, None)
    with pytest.raises(ValueError):
        metric_query.parse_period("custom", T0, T0)
    with pytest.raises(ValueError):
        metric_query.parse_period("2w")


def test_parse_metric_types():
    assert metric_query.parse_metric_types(None, ("cpu",)) == ["cpu"]
    assert metric_query.parse_metric_types("cpu, temperature", ()) == ["cpu", "temperature"]
    with pytest.raises(ValueError):
        metric_query.parse_metric_types("cpu,humidity", ())


# ── Series ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_raw_series_is_device_level_and_ordered(db_session, device):
    db_session.add_all([
        Metric(device_id=device.id, metric_type="cpu", value=30, collected_at=T0 + timedelta(minutes=2)),
        Metric(device_id=device.id, metric_type="cpu", value=10, collected_at=T0 + timedelta(minutes=1)),
        Metric(device_id=device.id, metric_type="memory", value=55, collected_at=T0 + timedelta(minutes=1)),
        Metric(device_id=device.id, metric_type="cpu", value=99, collected_at=T0 + timedelta(hours=3)),
    ])
    await db_session.commit()

    series = await metric_query.get_series(db_session, "raw", T0, T0 + timedelta(hours=1),
                                           ["cpu", "memory", "temperature"], device_id=device.id)
    assert [p["value"] for p in series["cpu"]] == [10.0, 30.0]
    assert [p["value"] for p in series["memory"]] == [55.0]
    assert series["temperature"] == []


@pytest.mark.asyncio
async def test_hourly_series_for_interface(db_session, device):
    db_session.add_all([
        _bucket(MetricHourly, device.id, "traffic_in", T0, 1500, 1000, 2000, 60, interface_id=7),
        _bucket(MetricHourly, device.id, "traffic_in", T0 + timedelta(hours=1), 2500, 2000, 3000, 60,
                interface_id=7),
        _bucket(MetricHourly, device.id, "traffic_in", T0, 1, 1, 1, 1, interface_id=8),
    ])
    await db_session.commit()

    series = await metric_query.get_series(db_session, "hourly", T0, T0 + timedelta(hours=12),
                                           ["traffic_in"], interface_id=7)
    points = series["traffic_in"]
    assert [p["avg"] for p in points] == [1500.0, 2500.0]
    assert points[0]["min"] == 1000.0 and points[0]["max"] == 2000.0 and points[0]["samples"] == 60


@pytest.mark.asyncio
async def test_latest_values(db_session, device):
    iface = Interface(device_id=device.id, if_index=1, if_name="Gi0/1", if_high_speed=1000,
                      if_oper_status="up", is_monitored=True)
    db_session.add(iface)
    await db_session.commit()
    db_session.add_all([
        Metric(device_id=device.id, metric_type="cpu", value=20, collected_at=T0),
        Metric(device_id=device.id, metric_type="cpu", value=40, collected_at=T0 + timedelta(minutes=1)),
        Metric(device_id=device.id, interface_id=iface.id, metric_type="traffic_in", value=5e6,
               collected_at=T0 + timedelta(minutes=1)),
    ])
    await db_session.commit()

    latest = await metric_query.get_latest(db_session, device.id)
    assert latest["metrics"]["cpu"]["value"] == 40.0
    assert latest["metrics"]["memory"] is None
    assert latest["interfaces"] == [{
        "id": iface.id, "name": "Gi0/1", "speed": 1_000_000_000,
        "traffic_in": 5e6, "traffic_out": None, "timestamp": latest["interfaces"][0]["timestamp"],
    }]
    assert latest["interfaces"][0]["timestamp"] is not None


# ── Statistics ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_daily_statistics_are_count_weighted(db_session, device):
    day = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db_session.add_all([
        _bucket(MetricDaily, device.id, "cpu", day, 10, 5, 20, 3),
        _bucket(MetricDaily, device.id, "cpu", day + timedelta(days=1), 50, 30, 90, 1),
        _bucket(MetricDaily, device.id, "traffic_in", day, 1e6, 1e6, 1e6, 1, interface_id=3),
    ])
    await db_session.commit()

    stats = await metric_query.get_statistics(db_session, device.id, "daily", day, day + timedelta(days=7))
    assert stats == {"cpu": {"avg": 20.0, "min": 5.0, "max": 90.0, "samples": 4}}


@pytest.mark.asyncio
async def test_raw_statistics(db_session, device):
    db_session.add_all([
        Metric(device_id=device.id, metric_type="memory", value=v, collected_at=T0 + timedelta(minutes=i))
        for i, v in enumerate((40, 50, 60))
    ])
    await db_session.commit()

    stats = await metric_query.get_statistics(db_session, device.id, "raw", T0, T0 + timedelta(hours=1))
    assert stats["memory"] == {"avg": 50.0, "min": 40.0, "max": 60.0, "samples": 3}

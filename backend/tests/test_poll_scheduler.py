"""
Tests for the polling scheduler: due-device selection, the single-flight
guard, batch concurrency and connectivity alarm hand-off.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from netscope.models.device import Device
from netscope.services.collector import CollectResult
from netscope.services.poll_scheduler import PollingScheduler, batched, is_due

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _make_scheduler(session_factory, collect, batch_size=10):
    collector = MagicMock()
    collector.collect = AsyncMock(side_effect=collect)
    alarm_engine = MagicMock()
    alarm_engine.create_connectivity_alarm = AsyncMock()
    alarm_engine.resolve_connectivity_alarms = AsyncMock(return_value=0)
    return PollingScheduler(collector, alarm_engine, session_factory=session_factory, batch_size=batch_size)


@pytest_asyncio.fixture
async def devices(db_session):
    rows = [
        Device(name=f"sw{i}", ip_address=f"10.0.1.{i}", is_enabled=True, poll_interval=60)
        for i in range(1, 6)
    ]
    rows.append(Device(name="disabled", ip_address="10.0.1.99", is_enabled=False, poll_interval=60))
    db_session.add_all(rows)
    await db_session.commit()
    return rows


# ── Pure helpers ─────────────────────────────────────────────────


def test_is_due():
    never = SimpleNamespace(last_poll_time=None, poll_interval=60)
    recent = SimpleNamespace(last_poll_time=NOW - timedelta(seconds=30), poll_interval=60)
    old = SimpleNamespace(last_poll_time=NOW - timedelta(seconds=60), poll_interval=60)
    naive = SimpleNamespace(last_poll_time=(NOW - timedelta(seconds=90)).replace(tzinfo=None), poll_interval=60)
    assert is_due(never, NOW)
    assert not is_due(recent, NOW)
    assert is_due(old, NOW)
    assert is_due(naive, NOW)


def test_batched():
    assert batched([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]
    assert batched([], 10) == []


# ── poll_devices ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped(session_factory, devices):
    scheduler = _make_scheduler(session_factory, collect=None)
    scheduler.is_polling = True

    assert await scheduler.poll_devices() == 0
    scheduler.collector.collect.assert_not_awaited()
    assert scheduler.is_polling is True


@pytest.mark.asyncio
async def test_only_enabled_devices_are_polled(session_factory, devices):
    async def collect(db, device_id):
        return CollectResult(success=True, device_id=device_id, sample_count=3)

    scheduler = _make_scheduler(session_factory, collect)
    assert await scheduler.poll_devices() == 5
    polled = {c.args[1] for c in scheduler.collector.collect.await_args_list}
    assert polled == {d.id for d in devices if d.is_enabled}
    assert scheduler.is_polling is False
    assert scheduler.alarm_engine.resolve_connectivity_alarms.await_count == 5


@pytest.mark.asyncio
async def test_batches_bound_concurrency(session_factory, devices):
    in_flight = 0
    peak = 0

    async def collect(db, device_id):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return CollectResult(success=True, device_id=device_id)

    scheduler = _make_scheduler(session_factory, collect, batch_size=2)
    await scheduler.poll_devices()
    assert peak == 2


@pytest.mark.asyncio
async def test_failures_raise_connectivity_alarms(session_factory, devices):
    failing = devices[0].id
    crashing = devices[1].id

    async def collect(db, device_id):
        if device_id == failing:
            return CollectResult(success=False, device_id=device_id, error="SNMP GET timeout")
        if device_id == crashing:
            raise RuntimeError("boom")
        return CollectResult(success=True, device_id=device_id)

    scheduler = _make_scheduler(session_factory, collect)
    assert await scheduler.poll_devices() == 5

    alarmed = {c.args[1] for c in scheduler.alarm_engine.create_connectivity_alarm.await_args_list}
    assert alarmed == {failing, crashing}
    assert scheduler.last_cycle_failures == 2
    assert scheduler.is_polling is False


@pytest.mark.asyncio
async def test_recently_polled_devices_are_not_due(session_factory, db_session, devices):
    for d in devices:
        d.last_poll_time = datetime.now(timezone.utc)
    await db_session.commit()

    scheduler = _make_scheduler(session_factory, collect=None)
    assert await scheduler.poll_devices() == 0
    scheduler.collector.collect.assert_not_awaited()


# ── Manual triggers / status ─────────────────────────────────────


@pytest.mark.asyncio
async def test_trigger_polling_single_device(session_factory, devices):
    async def collect(db, device_id):
        return CollectResult(success=False, device_id=device_id, error="timeout")

    scheduler = _make_scheduler(session_factory, collect)
    result = await scheduler.trigger_polling(devices[2].id)
    assert result.success is False
    scheduler.alarm_engine.create_connectivity_alarm.assert_awaited_once()


@pytest.mark.asyncio
async def test_trigger_aggregation(session_factory, monkeypatch):
    from netscope.services import aggregation

    monkeypatch.setattr(aggregation, "aggregate_last_hour", AsyncMock(return_value=4))
    scheduler = _make_scheduler(session_factory, collect=None)
    assert await scheduler.trigger_aggregation("hourly") == 4
    with pytest.raises(ValueError):
        await scheduler.trigger_aggregation("weekly")


def test_status_without_scheduler(session_factory):
    status = _make_scheduler(session_factory, collect=None).get_status()
    assert status["is_polling"] is False
    assert status["jobs"] == []
    assert status["last_cycle_started"] is None

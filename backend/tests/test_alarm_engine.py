"""
Tests for the alarm engine: severity selection, duration debounce,
deduplication, auto-resolution and the alarm state machine.
"""
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from netscope.models.alarm import Alarm, AlarmRule, AlarmState, InvalidAlarmTransition
from netscope.models.metric import MetricSample
from netscope.services.alarm_engine import (
    AUTO_RESOLVE_NOTE, AlarmEngine, alarm_message, alarm_title, evaluate_condition, evaluate_severity,
    format_value,
)

T0 = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def _naive(ts):
    return ts.replace(tzinfo=None) if ts is not None and ts.tzinfo else ts


def _sample(device_id, value, at, metric_type="cpu", interface_id=None):
    return MetricSample(device_id=device_id, metric_type=metric_type, value=value,
                        collected_at=at, interface_id=interface_id)


async def _alarm_count(db):
    return (await db.execute(select(func.count(Alarm.id)))).scalar()


@pytest_asyncio.fixture
async def cpu_rule(db_session):
    rule = AlarmRule(name="High CPU", metric_type="cpu", condition_operator="gt",
                     threshold_warning=80, threshold_critical=90, duration_seconds=0,
                     apply_to_all=True, is_enabled=True)
    db_session.add(rule)
    await db_session.commit()
    return rule


@pytest_asyncio.fixture
async def temp_rule(db_session):
    rule = AlarmRule(name="High Temperature", metric_type="temperature", condition_operator="gt",
                     threshold_warning=60, threshold_critical=75, duration_seconds=120,
                     apply_to_all=True, is_enabled=True)
    db_session.add(rule)
    await db_session.commit()
    return rule


# ── Pure helpers ─────────────────────────────────────────────────


@pytest.mark.parametrize("op,value,threshold,expected", [
    ("gt", 91, 90, True), ("gt", 90, 90, False),
    ("gte", 90, 90, True), ("lt", 5, 10, True),
    ("lte", 10, 10, True), ("eq", 1, 1, True),
    ("neq", 1, 1, False), ("bogus", 1, 0, False),
])
def test_evaluate_condition(op, value, threshold, expected):
    assert evaluate_condition(value, op, threshold) is expected


def test_critical_checked_before_warning():
    rule = SimpleNamespace(condition_operator="gt", threshold_warning=80, threshold_critical=90)
    assert evaluate_severity(95, rule) == "critical"
    assert evaluate_severity(85, rule) == "warning"
    assert evaluate_severity(50, rule) is None

    no_warning = SimpleNamespace(condition_operator="gt", threshold_warning=None, threshold_critical=90)
    assert evaluate_severity(85, no_warning) is None


def test_title_and_message():
    assert alarm_title("cpu", "critical", "core-sw1") == "[CRITICAL] core-sw1 - CPU usage threshold exceeded"
    assert alarm_title("connectivity", "critical", "core-sw1") == "[CRITICAL] core-sw1 - Device unreachable"
    assert format_value(1_500_000_000, "traffic_in") == "1.50 G"
    message = alarm_message("cpu", 95.0, 90.0, "critical")
    assert "Current value: 95.00%" in message
    assert "Threshold: 90.00%" in message


def test_rule_scope():
    scoped = AlarmRule(apply_to_all=False, device_ids="[1, 3]")
    assert scoped.applies_to_device(3)
    assert not scoped.applies_to_device(2)
    assert AlarmRule(apply_to_all=True).applies_to_device(2)


def test_rule_scope_skips_malformed_ids():
    rule = AlarmRule(apply_to_all=False, device_ids='[1, "abc", null, "4"]')
    assert rule.scoped_device_ids() == [1, 4]
    assert rule.applies_to_device(4)
    assert AlarmRule(apply_to_all=False, device_ids="{not json").scoped_device_ids() == []


# ── State machine ────────────────────────────────────────────────


def test_allowed_transitions():
    alarm = Alarm(status="active")
    alarm.acknowledge(user="noc")
    assert alarm.state is AlarmState.ACKNOWLEDGED
    assert alarm.acknowledged_by == "noc"
    alarm.resolve(note="fixed")
    assert alarm.state is AlarmState.RESOLVED
    assert alarm.resolved_at is not None


def test_rejected_transitions():
    resolved = Alarm(status="resolved")
    with pytest.raises(InvalidAlarmTransition):
        resolved.acknowledge()
    with pytest.raises(InvalidAlarmTransition):
        resolved.resolve()

    acknowledged = Alarm(status="acknowledged")
    with pytest.raises(InvalidAlarmTransition):
        acknowledged.acknowledge()


# ── evaluate_metric ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_zero_duration_fires_immediately(db_session, device, cpu_rule):
    engine = AlarmEngine()
    fired = await engine.evaluate_metric(db_session, _sample(device.id, 95.0, T0))
    assert len(fired) == 1
    alarm = fired[0]
    assert alarm.severity == "critical"
    assert alarm.status == "active"
    assert alarm.threshold_value == 90
    assert alarm.title == "[CRITICAL] core-sw1 - CPU usage threshold exceeded"


@pytest.mark.asyncio
async def test_repeat_trigger_bumps_existing_alarm(db_session, device, cpu_rule):
    engine = AlarmEngine()
    t1 = T0 + timedelta(seconds=60)
    await engine.evaluate_metric(db_session, _sample(device.id, 95.0, T0))
    fired = await engine.evaluate_metric(db_session, _sample(device.id, 85.0, t1))

    assert await _alarm_count(db_session) == 1
    alarm = fired[0]
    assert alarm.occurrence_count == 2
    assert _naive(alarm.last_occurrence) == _naive(t1)
    assert alarm.severity == "warning"
    assert alarm.current_value == 85.0


@pytest.mark.asyncio
async def test_interfaces_get_separate_alarms(db_session, device):
    rule = AlarmRule(name="Busy link", metric_type="bandwidth_util", condition_operator="gt",
                     threshold_warning=80, threshold_critical=95, apply_to_all=True, is_enabled=True)
    db_session.add(rule)
    await db_session.commit()

    engine = AlarmEngine()
    await engine.evaluate_metric(db_session, _sample(device.id, 97.0, T0, "bandwidth_util", interface_id=1))
    await engine.evaluate_metric(db_session, _sample(device.id, 97.0, T0, "bandwidth_util", interface_id=2))
    assert await _alarm_count(db_session) == 2


@pytest.mark.asyncio
async def test_duration_debounce(db_session, device, temp_rule):
    engine = AlarmEngine()
    key = engine.pending_key(device.id, None, "temperature", temp_rule.id)

    assert await engine.evaluate_metric(db_session, _sample(device.id, 80.0, T0, "temperature")) == []
    assert engine.pending_state(key) is AlarmState.PENDING

    t60 = T0 + timedelta(seconds=60)
    assert await engine.evaluate_metric(db_session, _sample(device.id, 80.0, t60, "temperature")) == []

    t120 = T0 + timedelta(seconds=120)
    fired = await engine.evaluate_metric(db_session, _sample(device.id, 80.0, t120, "temperature"))
    assert len(fired) == 1
    assert engine.pending_state(key) is AlarmState.NO_ALARM


@pytest.mark.asyncio
async def test_forget_device_drops_pending_windows(db_session, device, temp_rule):
    engine = AlarmEngine()
    key = engine.pending_key(device.id, None, "temperature", temp_rule.id)
    await engine.evaluate_metric(db_session, _sample(device.id, 80.0, T0, "temperature"))
    assert engine.pending_state(key) is AlarmState.PENDING

    assert engine.forget_device(device.id + 1) == 0
    assert engine.forget_device(device.id) == 1
    assert engine.pending_state(key) is AlarmState.NO_ALARM


@pytest.mark.asyncio
async def test_non_triggering_sample_resets_pending_window(db_session, device, temp_rule):
    engine = AlarmEngine()
    key = engine.pending_key(device.id, None, "temperature", temp_rule.id)

    await engine.evaluate_metric(db_session, _sample(device.id, 80.0, T0, "temperature"))
    await engine.evaluate_metric(db_session, _sample(device.id, 40.0, T0 + timedelta(seconds=60), "temperature"))
    assert engine.pending_state(key) is AlarmState.NO_ALARM

    # A fresh window starts here, so 130 s after the first sample is too early
    fired = await engine.evaluate_metric(
        db_session, _sample(device.id, 80.0, T0 + timedelta(seconds=130), "temperature"),
    )
    assert fired == []
    assert await _alarm_count(db_session) == 0


@pytest.mark.asyncio
async def test_disabled_and_out_of_scope_rules_are_skipped(db_session, device):
    db_session.add_all([
        AlarmRule(name="Disabled", metric_type="memory", threshold_critical=10, is_enabled=False),
        AlarmRule(name="Other device", metric_type="memory", threshold_critical=10,
                  apply_to_all=False, device_ids="[999]", is_enabled=True),
    ])
    await db_session.commit()
    fired = await AlarmEngine().evaluate_metric(db_session, _sample(device.id, 99.0, T0, "memory"))
    assert fired == []


# ── auto_resolve_alarms ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_auto_resolve_when_back_to_normal(db_session, device, cpu_rule):
    engine = AlarmEngine()
    alarm = (await engine.evaluate_metric(db_session, _sample(device.id, 95.0, T0)))[0]

    assert await engine.auto_resolve_alarms(db_session, device.id, "cpu", 85.0) == 0
    assert alarm.status == "active"

    assert await engine.auto_resolve_alarms(db_session, device.id, "cpu", 50.0) == 1
    assert alarm.status == "resolved"
    assert alarm.resolved_at is not None
    assert alarm.resolution_note == AUTO_RESOLVE_NOTE


@pytest.mark.asyncio
async def test_recurrence_after_resolution_opens_new_alarm(db_session, device, cpu_rule):
    engine = AlarmEngine()
    await engine.evaluate_metric(db_session, _sample(device.id, 95.0, T0))
    await engine.auto_resolve_alarms(db_session, device.id, "cpu", 10.0)
    await engine.evaluate_metric(db_session, _sample(device.id, 95.0, T0 + timedelta(minutes=5)))
    assert await _alarm_count(db_session) == 2


# ── Connectivity ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_connectivity_alarm_lifecycle(db_session, device):
    engine = AlarmEngine()
    alarm = await engine.create_connectivity_alarm(db_session, device.id, occurred_at=T0)
    assert alarm.metric_type == "connectivity"
    assert alarm.severity == "critical"
    assert alarm.rule_id is None

    again = await engine.create_connectivity_alarm(db_session, device.id, occurred_at=T0 + timedelta(minutes=1))
    assert again.id == alarm.id
    assert again.occurrence_count == 2

    assert await engine.resolve_connectivity_alarms(db_session, device.id) == 1
    assert alarm.status == "resolved"
    assert await engine.create_connectivity_alarm(db_session, 999) is None


# ── Summary / cleanup ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_alarm_summary(db_session, device, cpu_rule):
    engine = AlarmEngine()
    now = datetime.now(timezone.utc)
    await engine.evaluate_metric(db_session, _sample(device.id, 95.0, now))
    await engine.create_connectivity_alarm(db_session, device.id, occurred_at=now)
    summary = await engine.get_alarm_summary(db_session)

    assert summary["active"]["critical"] == 2
    assert summary["resolved"]["warning"] == 0
    assert summary["total_24h"] == 2
    assert summary["total_active"] == 2
    assert summary["total_critical"] == 2


@pytest.mark.asyncio
async def test_cleanup_old_alarms(db_session, device):
    old = datetime.now(timezone.utc) - timedelta(days=120)
    db_session.add_all([
        Alarm(device_id=device.id, severity="warning", status="resolved", title="old", metric_type="cpu",
              first_occurrence=old, last_occurrence=old, resolved_at=old),
        Alarm(device_id=device.id, severity="warning", status="active", title="open", metric_type="cpu",
              first_occurrence=old, last_occurrence=old),
    ])
    await db_session.commit()
    assert await AlarmEngine().cleanup_old_alarms(db_session, days=90) == 1

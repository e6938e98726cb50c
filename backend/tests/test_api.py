"""
HTTP-level tests for the device, alarm, metric and system routers.
The lifespan is not run; engine objects are placed on app.state directly.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from netscope.database import get_db
from netscope.main import app
from netscope.models.alarm import Alarm
from netscope.models.metric import Metric
from netscope.services.alarm_engine import AlarmEngine
from netscope.services.collector import MetricCollector
from netscope.services.poll_scheduler import PollingScheduler


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    alarm_engine = AlarmEngine()
    collector = MetricCollector(alarm_engine=alarm_engine)
    app.state.alarm_engine = alarm_engine
    app.state.collector = collector
    app.state.poller = PollingScheduler(collector, alarm_engine, session_factory=session_factory)
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


DEVICE = {
    "name": "edge-rtr1",
    "ip_address": "192.0.2.10",
    "device_type": "router",
    "credentials": {"community_string": "s3cret"},
}

RULE = {
    "name": "CPU hot",
    "metric_type": "cpu",
    "condition_operator": "gt",
    "threshold_warning": 70,
    "threshold_critical": 90,
}


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ── Devices ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_device_crud(client):
    resp = await client.post("/api/devices/", json=DEVICE)
    assert resp.status_code == 201
    created = resp.json()
    assert created["status"] == "unknown"
    assert created["poll_interval"] == 60

    dup = await client.post("/api/devices/", json=DEVICE)
    assert dup.status_code == 400

    resp = await client.patch(f"/api/devices/{created['id']}", json={"location": "DC1"})
    assert resp.status_code == 200
    assert resp.json()["location"] == "DC1"

    resp = await client.get("/api/devices/")
    assert [d["name"] for d in resp.json()] == ["edge-rtr1"]

    engine = app.state.alarm_engine
    engine._pending[engine.pending_key(created["id"], None, "cpu", 1)] = object()

    resp = await client.delete(f"/api/devices/{created['id']}")
    assert resp.status_code == 200
    assert engine._pending == {}
    assert (await client.get(f"/api/devices/{created['id']}")).status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("patch", [
    {"ip_address": "not-an-ip"},
    {"poll_interval": 5},
    {"device_type": "toaster"},
    {"snmp_version": "3"},
])
async def test_device_validation(client, patch):
    resp = await client.post("/api/devices/", json={**DEVICE, **patch})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_poll_unknown_device_is_404(client):
    resp = await client.post("/api/devices/999/poll")
    assert resp.status_code == 404


# ── Alarm rules ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_rule_lifecycle(client):
    resp = await client.post("/api/alarms/rules", json=RULE)
    assert resp.status_code == 201
    rule = resp.json()
    assert rule["device_ids"] == []

    assert (await client.post("/api/alarms/rules", json=RULE)).status_code == 409

    # Warning above critical on a gt rule
    resp = await client.patch(f"/api/alarms/rules/{rule['id']}", json={"threshold_warning": 95})
    assert resp.status_code == 422

    resp = await client.patch(f"/api/alarms/rules/{rule['id']}",
                              json={"apply_to_all": False, "device_ids": [1, 2]})
    assert resp.status_code == 200
    assert resp.json()["device_ids"] == [1, 2]


@pytest.mark.asyncio
@pytest.mark.parametrize("patch", [
    {"metric_type": "humidity"},
    {"condition_operator": "between"},
    {"duration_seconds": -1},
    {"threshold_warning": 95},
    {"apply_to_all": False},
])
async def test_rule_validation(client, patch):
    resp = await client.post("/api/alarms/rules", json={**RULE, **patch})
    assert resp.status_code == 422


# ── Alarms ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_alarm_transitions(client, db_session, device):
    now = datetime.now(timezone.utc)
    alarm = Alarm(device_id=device.id, severity="critical", title="down", metric_type="connectivity",
                  first_occurrence=now, last_occurrence=now)
    db_session.add(alarm)
    await db_session.commit()

    resp = await client.post(f"/api/alarms/{alarm.id}/acknowledge", json={"user": "noc"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "acknowledged"
    assert resp.json()["acknowledged_by"] == "noc"

    again = await client.post(f"/api/alarms/{alarm.id}/acknowledge", json={"user": "noc"})
    assert again.status_code == 409

    resp = await client.post(f"/api/alarms/{alarm.id}/resolve", json={"note": "link restored"})
    assert resp.status_code == 200
    assert resp.json()["resolution_note"] == "link restored"

    summary = (await client.get("/api/alarms/summary")).json()
    assert summary["total_active"] == 0
    assert summary["resolved"]["critical"] == 1


@pytest.mark.asyncio
async def test_missing_alarm_is_404(client):
    assert (await client.get("/api/alarms/42")).status_code == 404


# ── System ───────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_scheduler_status(client):
    resp = await client.get("/api/system/scheduler")
    assert resp.status_code == 200
    assert resp.json()["is_polling"] is False


@pytest.mark.asyncio
async def test_unknown_aggregation_tier(client):
    assert (await client.post("/api/system/aggregation/weekly")).status_code == 404


@pytest.mark.asyncio
async def test_aggregation_stats_and_cleanup(client):
    stats = (await client.get("/api/system/aggregation/stats")).json()
    assert set(stats) == {"raw", "hourly", "daily"}
    assert stats["raw"]["count"] == 0

    resp = await client.post("/api/system/cleanup")
    assert resp.status_code == 200
    assert resp.json()["deleted"] == {"raw": 0, "hourly": 0, "daily": 0, "alarms": 0}


# ── Metrics ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_device_history_picks_tier_from_range(client, db_session, device):
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    db_session.add(Metric(device_id=device.id, metric_type="cpu", value=42,
                          collected_at=start + timedelta(minutes=5)))
    await db_session.commit()

    params = {"period": "custom", "start": start.isoformat(), "end": (start + timedelta(hours=1)).isoformat()}
    resp = await client.get(f"/api/metrics/devices/{device.id}", params=params)
    assert resp.status_code == 200
    body = resp.json()
    assert body["tier"] == "raw"
    assert [p["value"] for p in body["metrics"]["cpu"]] == [42.0]
    assert body["metrics"]["memory"] == []

    params["end"] = (start + timedelta(days=2)).isoformat()
    assert (await client.get(f"/api/metrics/devices/{device.id}", params=params)).json()["tier"] == "hourly"
    params["end"] = (start + timedelta(days=10)).isoformat()
    assert (await client.get(f"/api/metrics/devices/{device.id}", params=params)).json()["tier"] == "daily"


@pytest.mark.asyncio
async def test_metric_endpoints_validate_input(client, device):
    base = f"/api/metrics/devices/{device.id}"
    assert (await client.get(base, params={"period": "2w"})).status_code == 422
    assert (await client.get(base, params={"metrics": "humidity"})).status_code == 422
    assert (await client.get("/api/metrics/devices/999/latest")).status_code == 404
    assert (await client.get("/api/metrics/interfaces/999")).status_code == 404


@pytest.mark.asyncio
async def test_latest_and_statistics(client, device):
    latest = await client.get(f"/api/metrics/devices/{device.id}/latest")
    assert latest.status_code == 200
    assert latest.json()["metrics"]["cpu"] is None
    assert latest.json()["interfaces"] == []

    stats = await client.get(f"/api/metrics/devices/{device.id}/statistics")
    assert stats.status_code == 200
    assert stats.json()["tier"] == "daily"
    assert stats.json()["statistics"] == {}

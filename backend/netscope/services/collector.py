"""
Metric Collection Engine
One poll of one device: system info, vendor detection, device-level metrics
through the vendor strategy, interface counters turned into rates, then a
bulk insert of every sample and per-sample alarm evaluation.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from netscope.models.device import Device
from netscope.models.interface import Interface
from netscope.models.metric import Metric, MetricSample, METRIC_UNITS
from netscope.services.alarm_engine import AlarmEngine
from netscope.services.counter_state import CounterStateStore
from netscope.services.oid_registry import STANDARD_OIDS, build_interface_oid, get_interface_oids, resolve_vendor
from netscope.services.snmp_session import (
    SnmpCredentials, SnmpError, SnmpSession, SnmpTarget, SnmpTimeoutError,
    credentials_for_device, target_for_device,
)
from netscope.services.unit_convert import (
    calculate_bandwidth_util, counter_rate, format_uptime, octets_to_bps,
    parse_if_status, parse_mac_address, round_to,
)
from netscope.services.vendor_strategies import CollectContext, get_strategy, to_number

logger = logging.getLogger(__name__)

_SYS = STANDARD_OIDS["system"]
SYSTEM_OIDS = {
    "sys_descr": _SYS["sysDescr"],
    "sys_name": _SYS["sysName"],
    "sys_location": _SYS["sysLocation"],
    "sys_contact": _SYS["sysContact"],
    "sys_uptime": _SYS["sysUpTime"],
    "sys_object_id": _SYS["sysObjectID"],
}

OID_TCP_CURR_ESTAB = STANDARD_OIDS["tcp"]["tcpCurrEstab"]
OID_HR_PROCESSES = STANDARD_OIDS["hrSystem"]["hrSystemProcesses"]

IF_OIDS_64 = get_interface_oids(use_64bit=True)
IF_OIDS_32 = get_interface_oids(use_64bit=False)

SessionFactory = Callable[[SnmpTarget, SnmpCredentials], Any]


class DeviceNotFoundError(LookupError):
    pass


@dataclass
class CollectResult:
    success: bool
    device_id: int
    sample_count: int = 0
    error: Optional[str] = None
    partial: bool = False


class MetricCollector:
    """Owns the counter store; share one instance across all polls."""

    def __init__(self, alarm_engine: Optional[AlarmEngine] = None,
                 counters: Optional[CounterStateStore] = None,
                 session_factory: SessionFactory = SnmpSession,
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self.alarm_engine = alarm_engine or AlarmEngine()
        self.counters = counters or CounterStateStore()
        self._session_factory = session_factory
        self._clock = clock

    async def _load_device(self, db: AsyncSession, device_id: int) -> Device:
        result = await db.execute(
            select(Device).options(selectinload(Device.credentials)).where(Device.id == device_id)
        )
        device = result.scalar_one_or_none()
        if device is None:
            raise DeviceNotFoundError(f"Device {device_id} not found")
        return device

    async def collect(self, db: AsyncSession, device_id: int) -> CollectResult:
        device = await self._load_device(db, device_id)
        collected_at = self._clock()
        samples: List[MetricSample] = []
        failures: List[str] = []
        error: Optional[str] = None

        def add(metric_type: str, value, interface_id: Optional[int] = None):
            if value is None:
                return
            samples.append(MetricSample(
                device_id=device.id, metric_type=metric_type, value=float(value),
                collected_at=collected_at, interface_id=interface_id,
                unit=METRIC_UNITS.get(metric_type),
            ))

        async def guarded(metric: str, coro: Awaitable):
            try:
                return await coro
            except SnmpTimeoutError:
                raise
            except SnmpError as e:
                logger.warning(f"{device.name}: {metric} collection failed: {e}")
                failures.append(metric)
                return None

        session = self._session_factory(target_for_device(device), credentials_for_device(device))
        try:
            await session.open()

            system = await session.get_multiple(SYSTEM_OIDS.values())
            info = {field: system.get(oid) for field, oid in SYSTEM_OIDS.items()}
            for field, value in info.items():
                if value is not None:
                    setattr(device, field, _as_int(value) if field == "sys_uptime" else str(value))
            add("uptime", _as_int(info["sys_uptime"]))

            if info["sys_descr"]:
                vendor, device_type = resolve_vendor(str(info["sys_descr"]))
                device.vendor = vendor
                if not device.device_type or device.device_type == "other":
                    device.device_type = device_type
            strategy = get_strategy(device.vendor)
            ctx = CollectContext(device_id=device.id, collected_at=collected_at, counters=self.counters)

            add("cpu", await guarded("cpu", strategy.collect_cpu(session, ctx)))
            add("memory", await guarded("memory", strategy.collect_memory(session, ctx)))
            add("temperature", await guarded("temperature", strategy.collect_temperature(session, ctx)))
            add("disk_usage", await guarded("disk_usage", strategy.collect_disk(session, ctx)))
            loads = await guarded("load_average", strategy.collect_load_average(session, ctx)) or {}
            for metric_type, value in loads.items():
                add(metric_type, value)
            add("swap_usage", await guarded("swap_usage", strategy.collect_swap(session, ctx)))

            counts = await guarded("host_counts", session.get_multiple([OID_TCP_CURR_ESTAB, OID_HR_PROCESSES])) or {}
            add("tcp_connections", to_number(counts.get(OID_TCP_CURR_ESTAB)))
            add("process_count", to_number(counts.get(OID_HR_PROCESSES)))

            interfaces = await db.execute(
                select(Interface).where(Interface.device_id == device.id, Interface.is_monitored == True)
            )
            for iface in interfaces.scalars().all():
                await guarded(f"interface {iface.if_index}",
                              self._collect_interface(session, ctx, iface, add))
        except SnmpError as e:
            error = str(e)
            logger.warning(f"Poll of {device.name} ({device.ip_address}) failed: {error}")
        finally:
            await session.close()

        device.last_poll_time = collected_at
        device.last_poll_success = error is None
        if error is not None:
            device.status = "down"
        else:
            device.status = "warning" if failures else "up"

        if samples:
            await db.execute(insert(Metric), [s.as_row() for s in samples])
        await db.commit()

        if error is not None:
            return CollectResult(success=False, device_id=device.id, sample_count=len(samples), error=error)

        await self._evaluate_alarms(db, samples)
        logger.info(f"Polled {device.name}: {len(samples)} samples"
                    + (f", failed: {', '.join(failures)}" if failures else ""))
        return CollectResult(success=True, device_id=device.id, sample_count=len(samples), partial=bool(failures))

    async def _collect_interface(self, session, ctx: CollectContext, iface: Interface, add) -> None:
        idx = iface.if_index
        names = ("ifInOctets", "ifOutOctets", "ifInErrors", "ifOutErrors",
                 "ifInDiscards", "ifOutDiscards", "ifOperStatus")
        oids = {name: build_interface_oid(IF_OIDS_64[name], idx) for name in names}
        values = await session.get_multiple(oids.values())

        if values.get(oids["ifInOctets"]) is None or values.get(oids["ifOutOctets"]) is None:
            # Agent without ifXTable: fall back to the 32-bit octet columns
            legacy = {name: build_interface_oid(IF_OIDS_32[name], idx) for name in ("ifInOctets", "ifOutOctets")}
            fallback = await session.get_multiple(legacy.values())
            for name, oid in legacy.items():
                values[oids[name]] = fallback.get(oid)

        oper = values.get(oids["ifOperStatus"])
        if oper is not None:
            status = parse_if_status(oper)
            if status != iface.if_oper_status:
                logger.info(f"Interface {iface.if_name or iface.if_descr} on device {ctx.device_id}: "
                            f"{iface.if_oper_status} -> {status}")
                iface.if_oper_status = status

        current = {}
        for name in names[:-1]:
            n = to_number(values.get(oids[name]))
            if n is not None:
                current[name] = int(n)
        if not current:
            return

        delta = await ctx.counters.exchange((ctx.device_id, iface.id), current, ctx.collected_at)
        if delta is None:
            return
        previous, elapsed = delta.previous.values, delta.elapsed_seconds

        in_bps = out_bps = None
        if "ifInOctets" in current and "ifInOctets" in previous:
            in_bps = octets_to_bps(previous["ifInOctets"], current["ifInOctets"], elapsed)
        if "ifOutOctets" in current and "ifOutOctets" in previous:
            out_bps = octets_to_bps(previous["ifOutOctets"], current["ifOutOctets"], elapsed)
        if in_bps is not None:
            in_bps = round_to(in_bps, 2)
            add("traffic_in", in_bps, iface.id)
        if out_bps is not None:
            out_bps = round_to(out_bps, 2)
            add("traffic_out", out_bps, iface.id)

        speed = iface.effective_speed()
        if speed > 0 and (in_bps is not None or out_bps is not None):
            peak = max(v for v in (in_bps, out_bps) if v is not None)
            add("bandwidth_util", round_to(calculate_bandwidth_util(peak, speed), 2), iface.id)

        for name, metric_type in (("ifInErrors", "errors_in"), ("ifOutErrors", "errors_out"),
                                  ("ifInDiscards", "discards_in"), ("ifOutDiscards", "discards_out")):
            rate = counter_rate(previous.get(name), current.get(name), elapsed)
            if rate is not None:
                add(metric_type, round_to(rate, 4), iface.id)

    async def _evaluate_alarms(self, db: AsyncSession, samples: List[MetricSample]) -> None:
        for sample in samples:
            try:
                await self.alarm_engine.evaluate_metric(db, sample)
                await self.alarm_engine.auto_resolve_alarms(
                    db, sample.device_id, sample.metric_type, sample.value, sample.interface_id,
                )
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error(f"Alarm evaluation failed for {sample.metric_type} on device {sample.device_id}: {e}")

    async def discover_interfaces(self, db: AsyncSession, device_id: int) -> List[Interface]:
        """Walk the interface tables and upsert one row per ifIndex."""
        device = await self._load_device(db, device_id)
        oids = get_interface_oids()
        columns = ("ifDescr", "ifName", "ifAlias", "ifType", "ifSpeed", "ifHighSpeed",
                   "ifPhysAddress", "ifAdminStatus", "ifOperStatus")

        async with self._session_factory(target_for_device(device), credentials_for_device(device)) as session:
            tables: Dict[str, Dict[str, Any]] = {}
            for column in columns:
                try:
                    tables[column] = dict(await session.walk(oids[column]))
                except SnmpTimeoutError:
                    raise
                except SnmpError as e:
                    logger.warning(f"{device.name}: walk of {column} failed: {e}")
                    tables[column] = {}

        existing = await db.execute(select(Interface).where(Interface.device_id == device.id))
        by_index = {iface.if_index: iface for iface in existing.scalars().all()}

        discovered = []
        for suffix, descr in tables["ifDescr"].items():
            try:
                if_index = int(suffix)
            except ValueError:
                continue
            iface = by_index.get(if_index)
            if iface is None:
                iface = Interface(device_id=device.id, if_index=if_index, is_monitored=True)
                db.add(iface)
            iface.if_descr = str(descr)
            iface.if_name = _as_str(tables["ifName"].get(suffix))
            iface.if_alias = _as_str(tables["ifAlias"].get(suffix))
            iface.if_type = _as_int(tables["ifType"].get(suffix))
            iface.if_speed = _as_int(tables["ifSpeed"].get(suffix))
            iface.if_high_speed = _as_int(tables["ifHighSpeed"].get(suffix))
            iface.if_phys_address = parse_mac_address(tables["ifPhysAddress"].get(suffix))
            iface.if_admin_status = parse_if_status(tables["ifAdminStatus"].get(suffix))
            iface.if_oper_status = parse_if_status(tables["ifOperStatus"].get(suffix))
            discovered.append(iface)

        await db.commit()
        logger.info(f"Discovered {len(discovered)} interfaces on {device.name}")
        return discovered

    async def test_connection(self, target: SnmpTarget, credentials: SnmpCredentials) -> Dict[str, Any]:
        """Check that an agent answers, without touching the database."""
        started = time.monotonic()
        try:
            async with self._session_factory(target, credentials) as session:
                values = await session.get_multiple([_SYS["sysDescr"], _SYS["sysName"], _SYS["sysUpTime"]])
        except SnmpError as e:
            return {
                "success": False,
                "error": str(e),
                "response_time_ms": int((time.monotonic() - started) * 1000),
            }

        response_time_ms = int((time.monotonic() - started) * 1000)
        if not values:
            return {"success": False, "error": "Agent returned no system information",
                    "response_time_ms": response_time_ms}

        sys_descr = _as_str(values.get(_SYS["sysDescr"]))
        uptime = _as_int(values.get(_SYS["sysUpTime"]))
        vendor = resolve_vendor(sys_descr)
        return {
            "success": True,
            "response_time_ms": response_time_ms,
            "sys_descr": sys_descr,
            "sys_name": _as_str(values.get(_SYS["sysName"])),
            "sys_uptime": uptime,
            "uptime_formatted": format_uptime(uptime),
            "detected_vendor": vendor.vendor,
            "detected_type": vendor.device_type,
        }


def _as_str(value) -> Optional[str]:
    return None if value is None else str(value)


def _as_int(value) -> Optional[int]:
    n = to_number(value)
    return None if n is None else int(n)

"""
Vendor Strategies
One strategy object per vendor family. Each capability returns a value or
None when the device does not expose it; SnmpError propagates to the
collector, which omits that metric for this poll.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from netscope.services.counter_state import CounterStateStore
from netscope.services.oid_registry import STANDARD_OIDS, VENDOR_OIDS, Vendor, normalize_vendor
from netscope.services.unit_convert import (
    calculate_linux_memory, calculate_memory_percent, linux_cpu_percent, round_to,
)

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")

_HR_STORAGE = STANDARD_OIDS["hrStorage"]
_HR_PROCESSOR_LOAD = STANDARD_OIDS["hrProcessor"]["hrProcessorLoad"]
_UCD_CPU = VENDOR_OIDS["linux"]["cpu"]
_UCD_MEM = VENDOR_OIDS["linux"]["memory"]
_UCD_DISK = VENDOR_OIDS["linux"]["disk"]

RAW_CPU_OIDS = {
    "user": _UCD_CPU["ssCpuRawUser"],
    "nice": _UCD_CPU["ssCpuRawNice"],
    "system": _UCD_CPU["ssCpuRawSystem"],
    "idle": _UCD_CPU["ssCpuRawIdle"],
    "wait": _UCD_CPU["ssCpuRawWait"],
}

# Sensor readings outside this open range come from disconnected or bogus sensors
TEMP_MIN, TEMP_MAX = 0, 150


@dataclass
class CollectContext:
    device_id: int
    collected_at: datetime
    counters: CounterStateStore


def to_number(value) -> Optional[float]:
    """Numeric view of a decoded value. Strings like "0.52" or "45 C" are
    parsed from their leading number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.search(str(value))
    return float(match.group()) if match else None


def _numbers(rows) -> List[float]:
    values = []
    for _, v in rows:
        n = to_number(v)
        if n is not None:
            values.append(n)
    return values


def _average(values: Iterable[float]) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return round_to(sum(values) / len(values), 1)


def _valid_temperatures(values: Iterable[float]) -> List[float]:
    return [v for v in values if TEMP_MIN < v < TEMP_MAX]


class VendorStrategy:
    """Generic HOST-RESOURCES-MIB behaviour. Vendors override what differs."""

    vendor = Vendor.GENERIC.value

    async def collect_cpu(self, session, ctx: CollectContext) -> Optional[float]:
        return await self.hr_processor_load(session)

    async def collect_memory(self, session, ctx: CollectContext) -> Optional[float]:
        return await self.hr_storage_memory(session)

    async def collect_temperature(self, session, ctx: CollectContext) -> Optional[float]:
        return None

    async def collect_disk(self, session, ctx: CollectContext) -> Optional[float]:
        return await self.hr_storage_disk(session)

    async def collect_load_average(self, session, ctx: CollectContext) -> Dict[str, float]:
        return {}

    async def collect_swap(self, session, ctx: CollectContext) -> Optional[float]:
        return None

    # helpers

    async def get_number(self, session, oid: str) -> Optional[float]:
        return to_number(await session.get(oid))

    async def walk_numbers(self, session, oid: str) -> List[float]:
        return _numbers(await session.walk(oid))

    async def hr_processor_load(self, session) -> Optional[float]:
        return _average(await self.walk_numbers(session, _HR_PROCESSOR_LOAD))

    async def _hr_storage_row(self, session, matches) -> Optional[float]:
        for suffix, descr in await session.walk(_HR_STORAGE["hrStorageDescr"]):
            if not isinstance(descr, str) or not matches(descr.lower()):
                continue
            values = await session.get_multiple([
                f"{_HR_STORAGE['hrStorageSize']}.{suffix}",
                f"{_HR_STORAGE['hrStorageUsed']}.{suffix}",
            ])
            size = to_number(values.get(f"{_HR_STORAGE['hrStorageSize']}.{suffix}"))
            used = to_number(values.get(f"{_HR_STORAGE['hrStorageUsed']}.{suffix}"))
            if size and size > 0 and used is not None:
                return round_to(calculate_memory_percent(used, size), 2)
        return None

    async def hr_storage_memory(self, session) -> Optional[float]:
        return await self._hr_storage_row(
            session,
            lambda d: "ram" in d or "physical memory" in d or "real memory" in d,
        )

    async def hr_storage_disk(self, session) -> Optional[float]:
        return await self._hr_storage_row(
            session,
            lambda d: d == "/" or "c:" in d or ("fixed" in d and "disk" in d),
        )


class UcdLoadMixin:
    """Load average and swap from UCD-SNMP-MIB (net-snmp based agents)."""

    async def collect_load_average(self, session, ctx: CollectContext) -> Dict[str, float]:
        oids = {
            "load_avg_1": _UCD_CPU["laLoad1"],
            "load_avg_5": _UCD_CPU["laLoad5"],
            "load_avg_15": _UCD_CPU["laLoad15"],
        }
        values = await session.get_multiple(oids.values())
        result = {}
        for metric, oid in oids.items():
            n = to_number(values.get(oid))
            if n is not None:
                result[metric] = round_to(n, 2)
        return result

    async def collect_swap(self, session, ctx: CollectContext) -> Optional[float]:
        values = await session.get_multiple([_UCD_MEM["memTotalSwap"], _UCD_MEM["memAvailSwap"]])
        total = to_number(values.get(_UCD_MEM["memTotalSwap"]))
        avail = to_number(values.get(_UCD_MEM["memAvailSwap"]))
        if not total or total <= 0 or avail is None:
            return None
        return round_to(calculate_memory_percent(total - avail, total), 2)


class CiscoStrategy(VendorStrategy):
    vendor = Vendor.CISCO.value
    _CPU_PREFERENCE = ("cpmCPUTotal5minRev", "cpmCPUTotal5min", "cpmCPUTotal1minRev", "cpmCPUTotal1min")

    async def collect_cpu(self, session, ctx):
        oids = VENDOR_OIDS["cisco"]["cpu"]
        for name in self._CPU_PREFERENCE:
            value = await self.get_number(session, f"{oids[name]}.1")
            if value is not None:
                return round_to(value, 1)
            average = _average(await self.walk_numbers(session, oids[name]))
            if average is not None:
                return average
        return await self.get_number(session, oids["avgBusy5"])

    async def _pool_percent(self, session, used_oid: str, free_oid: str) -> Optional[float]:
        used_rows = dict(await session.walk(used_oid))
        if not used_rows:
            return None
        free_rows = dict(await session.walk(free_oid))
        for suffix, used in used_rows.items():
            used, free = to_number(used), to_number(free_rows.get(suffix))
            if used is not None and free is not None and used + free > 0:
                return round_to(calculate_memory_percent(used, used + free), 2)
        return None

    async def collect_memory(self, session, ctx):
        oids = VENDOR_OIDS["cisco"]["memory"]
        percent = await self._pool_percent(session, oids["cempMemPoolUsed"], oids["cempMemPoolFree"])
        if percent is None:
            percent = await self._pool_percent(session, oids["ciscoMemoryPoolUsed"], oids["ciscoMemoryPoolFree"])
        return percent

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["cisco"]["environment"]["ciscoEnvMonTemperatureStatusValue"]
        temps = _valid_temperatures(await self.walk_numbers(session, oid))
        return max(temps) if temps else None


class JuniperStrategy(VendorStrategy):
    vendor = Vendor.JUNIPER.value

    async def collect_cpu(self, session, ctx):
        values = [v for v in await self.walk_numbers(session, VENDOR_OIDS["juniper"]["cpu"]["jnxOperatingCPU"]) if v >= 0]
        return max(values) if values else None

    async def collect_memory(self, session, ctx):
        oids = VENDOR_OIDS["juniper"]["memory"]
        for name in ("jnxOperatingBuffer", "jnxOperatingHeapUsage"):
            values = [v for v in await self.walk_numbers(session, oids[name]) if v >= 0]
            if values:
                return min(100.0, max(values))
        return None

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["juniper"]["environment"]["jnxOperatingTemp"]
        temps = _valid_temperatures(await self.walk_numbers(session, oid))
        return max(temps) if temps else None


class HpStrategy(VendorStrategy):
    vendor = Vendor.HP.value

    async def collect_cpu(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["hp"]["cpu"]["hpSwitchCpuStat"])

    async def collect_memory(self, session, ctx):
        oids = VENDOR_OIDS["hp"]["memory"]
        total_oid = f"{oids['hpGlobalMemTotalBytes']}.1"
        free_oid = f"{oids['hpGlobalMemFreeBytes']}.1"
        values = await session.get_multiple([total_oid, free_oid])
        total, free = to_number(values.get(total_oid)), to_number(values.get(free_oid))
        if not total or free is None:
            return await self.hr_storage_memory(session)
        return round_to(calculate_memory_percent(total - free, total), 2)


class ArubaStrategy(VendorStrategy):
    vendor = Vendor.ARUBA.value

    async def collect_cpu(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["aruba"]["cpu"]["wlsxSysExtCpuUsedPercent"])

    async def collect_memory(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["aruba"]["memory"]["wlsxSysExtMemoryUsedPercent"])

    async def collect_temperature(self, session, ctx):
        value = await self.get_number(session, VENDOR_OIDS["aruba"]["environment"]["sysExtTemperature"])
        return value if value is not None and TEMP_MIN < value < TEMP_MAX else None


class FortinetStrategy(VendorStrategy):
    vendor = Vendor.FORTINET.value

    async def collect_cpu(self, session, ctx):
        oids = VENDOR_OIDS["fortinet"]["cpu"]
        value = await self.get_number(session, oids["fgSysCpuUsage"])
        if value is not None:
            return value
        return _average(await self.walk_numbers(session, oids["fgProcessorUsage"]))

    async def collect_memory(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["fortinet"]["memory"]["fgSysMemUsage"])

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["fortinet"]["environment"]["fgHwSensorEntValue"]
        temps = _valid_temperatures(await self.walk_numbers(session, oid))
        return max(temps) if temps else None


class PaloAltoStrategy(VendorStrategy):
    vendor = Vendor.PALOALTO.value

    async def collect_cpu(self, session, ctx):
        oids = VENDOR_OIDS["paloalto"]["cpu"]
        values = await session.get_multiple([oids["panSysCpuMgmt"], oids["panSysCpuData"]])
        present = [n for n in (to_number(values.get(oids["panSysCpuMgmt"])),
                               to_number(values.get(oids["panSysCpuData"]))) if n is not None]
        return _average(present)

    async def collect_memory(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["paloalto"]["memory"]["panSysSwMemoryUsed"])


class MikroTikStrategy(VendorStrategy):
    vendor = Vendor.MIKROTIK.value

    async def collect_cpu(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["mikrotik"]["cpu"]["mtxrProcessorLoad"])

    async def collect_memory(self, session, ctx):
        oids = VENDOR_OIDS["mikrotik"]["memory"]
        values = await session.get_multiple([oids["mtxrMemoryTotal"], oids["mtxrMemoryUsed"]])
        total, used = to_number(values.get(oids["mtxrMemoryTotal"])), to_number(values.get(oids["mtxrMemoryUsed"]))
        if not total or used is None:
            return await self.hr_storage_memory(session)
        return round_to(calculate_memory_percent(used, total), 2)

    async def collect_temperature(self, session, ctx):
        oids = VENDOR_OIDS["mikrotik"]["environment"]
        for name in ("mtxrCpuTemperature", "mtxrBoardTemperature"):
            value = await self.get_number(session, oids[name])
            if value is not None:
                # RouterOS reports tenths of a degree
                value = value / 10
                if TEMP_MIN < value < TEMP_MAX:
                    return value
        return None

    async def collect_disk(self, session, ctx):
        oids = VENDOR_OIDS["mikrotik"]["storage"]
        values = await session.get_multiple([oids["mtxrDiskTotal"], oids["mtxrDiskUsed"]])
        total, used = to_number(values.get(oids["mtxrDiskTotal"])), to_number(values.get(oids["mtxrDiskUsed"]))
        if not total or used is None:
            return await self.hr_storage_disk(session)
        return round_to(calculate_memory_percent(used, total), 2)


class UbiquitiStrategy(VendorStrategy):
    vendor = Vendor.UBIQUITI.value

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["ubiquiti"]["environment"]["unifiTemperature"]
        temps = _valid_temperatures(await self.walk_numbers(session, oid))
        return max(temps) if temps else None


class LinuxStrategy(UcdLoadMixin, VendorStrategy):
    vendor = Vendor.LINUX.value

    async def collect_cpu(self, session, ctx):
        raw = await session.get_multiple(RAW_CPU_OIDS.values())
        ticks = {name: to_number(raw.get(oid)) for name, oid in RAW_CPU_OIDS.items()}
        if all(v is not None for v in ticks.values()):
            ticks = {name: int(v) for name, v in ticks.items()}
            delta = await ctx.counters.exchange((ctx.device_id, "cpu"), ticks, ctx.collected_at)
            if delta is None:
                # First reading (or stale): nothing to diff against yet
                return None
            return linux_cpu_percent(delta.previous.values, ticks)

        values = await session.get_multiple([_UCD_CPU["ssCpuUser"], _UCD_CPU["ssCpuSystem"], _UCD_CPU["ssCpuIdle"]])
        user = to_number(values.get(_UCD_CPU["ssCpuUser"]))
        system = to_number(values.get(_UCD_CPU["ssCpuSystem"]))
        if user is not None and system is not None:
            return round_to(user + system, 1)
        idle = to_number(values.get(_UCD_CPU["ssCpuIdle"]))
        if idle is not None:
            return round_to(100 - idle, 1)
        return await self.hr_processor_load(session)

    async def collect_memory(self, session, ctx):
        oids = [_UCD_MEM["memTotalReal"], _UCD_MEM["memAvailReal"], _UCD_MEM["memBuffer"], _UCD_MEM["memCached"]]
        values = await session.get_multiple(oids)
        total = to_number(values.get(_UCD_MEM["memTotalReal"]))
        avail = to_number(values.get(_UCD_MEM["memAvailReal"]))
        if not total or avail is None:
            return await self.hr_storage_memory(session)
        return round_to(calculate_linux_memory(
            total, avail,
            to_number(values.get(_UCD_MEM["memBuffer"])),
            to_number(values.get(_UCD_MEM["memCached"])),
        ), 2)

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["linux"]["environment"]["lmTempSensorsValue"]
        # lm-sensors reports millidegrees
        temps = _valid_temperatures(v / 1000 for v in await self.walk_numbers(session, oid))
        return max(temps) if temps else None

    async def collect_disk(self, session, ctx):
        for suffix, path in await session.walk(_UCD_DISK["dskPath"]):
            if path == "/":
                value = await self.get_number(session, f"{_UCD_DISK['dskPercent']}.{suffix}")
                if value is not None:
                    return value
        percents = [v for v in await self.walk_numbers(session, _UCD_DISK["dskPercent"]) if v > 0]
        if percents:
            return max(percents)
        return await self.hr_storage_disk(session)


class WindowsStrategy(VendorStrategy):
    vendor = Vendor.WINDOWS.value


class SynologyStrategy(UcdLoadMixin, VendorStrategy):
    vendor = Vendor.SYNOLOGY.value

    async def collect_temperature(self, session, ctx):
        value = await self.get_number(session, VENDOR_OIDS["synology"]["system"]["temperature"])
        return value if value is not None and TEMP_MIN < value < TEMP_MAX else None

    async def collect_disk(self, session, ctx):
        oids = VENDOR_OIDS["synology"]["storage"]
        total_oid, used_oid = f"{oids['spaceTotal']}.0", f"{oids['spaceUsed']}.0"
        values = await session.get_multiple([total_oid, used_oid])
        total, used = to_number(values.get(total_oid)), to_number(values.get(used_oid))
        if total and total > 0 and used is not None:
            return round_to(calculate_memory_percent(used, total), 2)
        return await self.hr_storage_disk(session)


class QnapStrategy(UcdLoadMixin, VendorStrategy):
    vendor = Vendor.QNAP.value

    async def collect_cpu(self, session, ctx):
        return await self.get_number(session, VENDOR_OIDS["qnap"]["cpu"]["cpuUsage"])

    async def collect_memory(self, session, ctx):
        oids = VENDOR_OIDS["qnap"]["memory"]
        values = await session.get_multiple([oids["systemTotalMem"], oids["systemFreeMem"]])
        total, free = to_number(values.get(oids["systemTotalMem"])), to_number(values.get(oids["systemFreeMem"]))
        if not total or free is None:
            return await self.hr_storage_memory(session)
        return round_to(calculate_memory_percent(total - free, total), 2)

    async def collect_temperature(self, session, ctx):
        oids = VENDOR_OIDS["qnap"]["system"]
        for name in ("systemCPUTemp", "systemTemp"):
            value = await self.get_number(session, oids[name])
            if value is not None and TEMP_MIN < value < TEMP_MAX:
                return value
        return None

    async def collect_disk(self, session, ctx):
        oids = VENDOR_OIDS["qnap"]["storage"]
        totals = dict(await session.walk(oids["sysVolumeTotalSize"]))
        frees = dict(await session.walk(oids["sysVolumeFreeSize"]))
        for suffix, total in totals.items():
            total, free = to_number(total), to_number(frees.get(suffix))
            if total and total > 0 and free is not None:
                return round_to(calculate_memory_percent(total - free, total), 2)
        return await self.hr_storage_disk(session)


class DellStrategy(VendorStrategy):
    vendor = Vendor.DELL.value

    async def collect_temperature(self, session, ctx):
        oid = VENDOR_OIDS["dell"]["environment"]["temperatureReading"]
        # iDRAC reports tenths of a degree
        temps = _valid_temperatures(v / 10 for v in await self.walk_numbers(session, oid))
        return max(temps) if temps else None


class GenericStrategy(VendorStrategy):
    """Any agent that only speaks HOST-RESOURCES-MIB."""


STRATEGIES: Dict[str, VendorStrategy] = {
    strategy.vendor: strategy
    for strategy in (
        GenericStrategy(), CiscoStrategy(), JuniperStrategy(), HpStrategy(), ArubaStrategy(),
        FortinetStrategy(), PaloAltoStrategy(), MikroTikStrategy(), UbiquitiStrategy(),
        LinuxStrategy(), WindowsStrategy(), SynologyStrategy(), QnapStrategy(), DellStrategy(),
    )
}


def get_strategy(vendor: Optional[str]) -> VendorStrategy:
    return STRATEGIES[normalize_vendor(vendor)]

"""
Unit and rate helpers shared by the collector and the alarm formatter.
"""
import math
from typing import Mapping, Optional, Union

MAX_COUNTER32 = 4294967295
MAX_COUNTER64 = 18446744073709551615
# Largest integer a float64 (and any JSON consumer) represents exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1

IF_STATUS = {
    1: "up",
    2: "down",
    3: "testing",
    4: "unknown",
    5: "dormant",
    6: "notPresent",
    7: "lowerLayerDown",
}

CPU_TICK_FIELDS = ("user", "nice", "system", "idle", "wait")


def counter_delta(previous: int, current: int) -> Optional[int]:
    """Octet delta between two counter readings, tolerating one wrap.

    A 64-bit wrap is assumed first; if that yields an implausible delta the
    pair is treated as a wrapped 32-bit counter instead. Returns None when
    neither width explains the drop (counter reset on agent restart).
    """
    diff = current - previous
    if diff >= 0:
        return diff
    diff = MAX_COUNTER64 - previous + current
    if diff < 0 or diff > MAX_SAFE_INTEGER:
        diff = MAX_COUNTER32 - previous + current
    return diff if diff >= 0 else None


def octets_to_bps(previous: int, current: int, interval_seconds: float) -> Optional[float]:
    if interval_seconds <= 0:
        return 0.0
    delta = counter_delta(previous, current)
    if delta is None:
        return None
    return delta * 8 / interval_seconds


def counter_rate(previous: Optional[int], current: Optional[int], interval_seconds: float) -> Optional[float]:
    """Per-second rate for error/discard counters. None when not computable."""
    if previous is None or current is None or interval_seconds <= 0:
        return None
    delta = current - previous
    if delta < 0:
        return None
    return delta / interval_seconds


def calculate_bandwidth_util(bps: float, max_bps: float) -> float:
    if not max_bps or max_bps <= 0:
        return 0.0
    return min(100.0, max(0.0, bps / max_bps * 100))


def calculate_memory_percent(used: float, total: float) -> float:
    if not total or total <= 0:
        return 0.0
    return min(100.0, max(0.0, used / total * 100))


def calculate_linux_memory(total: float, available: float,
                           buffers: Optional[float] = None, cached: Optional[float] = None) -> float:
    """UCD-SNMP memAvailReal excludes buffers and page cache, so both are
    subtracted as reclaimable."""
    if not total or total <= 0:
        return 0.0
    used = total - available - (buffers or 0) - (cached or 0)
    return calculate_memory_percent(used, total)


def linux_cpu_percent(previous: Mapping[str, int], current: Mapping[str, int]) -> Optional[float]:
    """Busy percentage from two ssCpuRaw* snapshots, or None when the
    total tick delta is not positive."""
    deltas = {field: current[field] - previous[field] for field in CPU_TICK_FIELDS}
    total = sum(deltas.values())
    if total <= 0:
        return None
    busy = deltas["user"] + deltas["nice"] + deltas["system"] + deltas["wait"]
    return round_to(busy / total * 100, 1)


def timeticks_to_seconds(timeticks: int) -> int:
    return int(timeticks) // 100


def format_uptime(timeticks: Optional[int]) -> str:
    if not timeticks:
        return "Unknown"
    total_seconds = timeticks_to_seconds(timeticks)
    days, rem = divmod(total_seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes, seconds = divmod(rem, 60)

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if not parts:
        parts.append(f"{seconds}s")
    return " ".join(parts)


def _scaled(value: float, base: int, units, decimals: int) -> str:
    i = min(int(math.floor(math.log(value, base))), len(units) - 1) if value >= 1 else 0
    scaled = round(value / base ** i, decimals)
    return f"{scaled:g} {units[i]}"


def format_bytes(num_bytes: Optional[float], decimals: int = 2) -> str:
    if num_bytes == 0:
        return "0 Bytes"
    if num_bytes is None or num_bytes < 0:
        return "N/A"
    return _scaled(num_bytes, 1024, ("Bytes", "KB", "MB", "GB", "TB", "PB"), decimals)


def format_bps(bps: Optional[float], decimals: int = 2) -> str:
    if bps == 0:
        return "0 bps"
    if bps is None or bps < 0:
        return "N/A"
    return _scaled(bps, 1000, ("bps", "Kbps", "Mbps", "Gbps", "Tbps"), decimals)


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}%"


def parse_mac_address(value: Union[bytes, str, None]) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, str):
        cleaned = value.lower().removeprefix("0x")
        for sep in (":", "-", " ", "."):
            cleaned = cleaned.replace(sep, "")
        try:
            value = bytes.fromhex(cleaned)
        except ValueError:
            return None
    if len(value) != 6:
        return None
    return ":".join(f"{b:02X}" for b in value)


def parse_if_status(status) -> str:
    try:
        return IF_STATUS.get(int(status), "unknown")
    except (TypeError, ValueError):
        return "unknown"


def round_to(value: Optional[float], decimals: int = 2) -> float:
    if value is None:
        return 0.0
    return round(float(value), decimals)

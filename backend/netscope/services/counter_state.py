"""
In-memory store of the previous raw counter readings per (device, interface)
or (device, "cpu"). Lost on restart, so the first poll after start yields no
rates.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Hashable, Mapping, Optional

from netscope.config import settings

logger = logging.getLogger(__name__)


@dataclass
class CounterEntry:
    timestamp: datetime
    values: Dict[str, int] = field(default_factory=dict)


@dataclass
class CounterDelta:
    previous: CounterEntry
    elapsed_seconds: float


class CounterStateStore:
    def __init__(self, max_age_seconds: int = settings.COUNTER_MAX_AGE_SECONDS):
        self.max_age_seconds = max_age_seconds
        self._entries: Dict[Hashable, CounterEntry] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: Hashable) -> Optional[CounterEntry]:
        return self._entries.get(key)

    async def exchange(self, key: Hashable, values: Mapping[str, int], at: datetime) -> Optional[CounterDelta]:
        """Store the new reading and return the previous one if it is usable.

        The previous entry is usable when 0 < elapsed <= max_age_seconds.
        The new reading is stored in every case.
        """
        async with self._lock:
            previous = self._entries.get(key)
            self._entries[key] = CounterEntry(timestamp=at, values=dict(values))

        if previous is None:
            return None
        elapsed = (at - previous.timestamp).total_seconds()
        if elapsed <= 0 or elapsed > self.max_age_seconds:
            logger.debug(f"Counter state for {key} is stale ({elapsed:.0f}s), skipping rate")
            return None
        return CounterDelta(previous=previous, elapsed_seconds=elapsed)

    async def forget_device(self, device_id: int) -> int:
        async with self._lock:
            keys = [k for k in self._entries if isinstance(k, tuple) and k and k[0] == device_id]
            for k in keys:
                del self._entries[k]
        return len(keys)

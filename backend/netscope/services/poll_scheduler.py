"""
Polling Scheduler - drives periodic collection for every enabled device.
Devices are polled in fixed-size batches: concurrent inside a batch,
sequential across batches, so open SNMP engines never exceed the batch size.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select

from netscope.config import settings
from netscope.database import AsyncSessionLocal
from netscope.models.device import Device
from netscope.services import aggregation
from netscope.services.alarm_engine import AlarmEngine
from netscope.services.collector import CollectResult, MetricCollector

logger = logging.getLogger(__name__)


def is_due(device: Device, now: datetime) -> bool:
    if device.last_poll_time is None:
        return True
    last = device.last_poll_time
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    interval = device.poll_interval or settings.SNMP_POLL_INTERVAL_SECONDS
    return (now - last).total_seconds() >= interval


def batched(items: List, size: int) -> List[List]:
    size = max(1, size)
    return [items[i:i + size] for i in range(0, len(items), size)]


class PollingScheduler:
    def __init__(self, collector: MetricCollector, alarm_engine: Optional[AlarmEngine] = None,
                 session_factory=AsyncSessionLocal, batch_size: int = settings.POLL_BATCH_SIZE):
        self.collector = collector
        self.alarm_engine = alarm_engine or collector.alarm_engine
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.is_polling = False
        self.scheduler = None  # APScheduler instance, attached in the app lifespan
        self.last_cycle_started: Optional[datetime] = None
        self.last_cycle_duration: Optional[float] = None
        self.last_cycle_devices = 0
        self.last_cycle_failures = 0

    async def due_devices(self, now: Optional[datetime] = None) -> List[int]:
        now = now or datetime.now(timezone.utc)
        async with self.session_factory() as db:
            result = await db.execute(select(Device).where(Device.is_enabled == True))
            return [d.id for d in result.scalars().all() if is_due(d, now)]

    async def poll_devices(self) -> int:
        """Run one polling cycle. Returns the number of devices polled."""
        # No await between the check and the set
        if self.is_polling:
            logger.debug("Polling cycle still running, skipping")
            return 0
        self.is_polling = True

        started = time.monotonic()
        self.last_cycle_started = datetime.now(timezone.utc)
        failures = 0
        device_ids: List[int] = []
        try:
            device_ids = await self.due_devices(self.last_cycle_started)
            if not device_ids:
                return 0

            for batch in batched(device_ids, self.batch_size):
                results = await asyncio.gather(*(self._poll_one(device_id) for device_id in batch))
                failures += sum(1 for ok in results if not ok)

            logger.info(f"Polling cycle complete: {len(device_ids)} devices, {failures} failed "
                        f"in {time.monotonic() - started:.1f}s")
            return len(device_ids)
        finally:
            self.last_cycle_duration = round(time.monotonic() - started, 3)
            self.last_cycle_devices = len(device_ids)
            self.last_cycle_failures = failures
            self.is_polling = False

    async def _poll_one(self, device_id: int) -> bool:
        try:
            async with self.session_factory() as db:
                result = await self.collector.collect(db, device_id)
        except Exception as e:
            logger.error(f"Error polling device {device_id}: {e}")
            result = CollectResult(success=False, device_id=device_id, error=str(e))

        try:
            async with self.session_factory() as db:
                if result.success:
                    await self.alarm_engine.resolve_connectivity_alarms(db, device_id)
                else:
                    logger.warning(f"Device {device_id} unreachable: {result.error}")
                    await self.alarm_engine.create_connectivity_alarm(db, device_id)
        except Exception as e:
            logger.error(f"Connectivity alarm update failed for device {device_id}: {e}")
        return result.success

    async def trigger_polling(self, device_id: Optional[int] = None):
        """Poll one device now, or run a full cycle when no id is given."""
        if device_id is None:
            return await self.poll_devices()
        async with self.session_factory() as db:
            result = await self.collector.collect(db, device_id)
        async with self.session_factory() as db:
            if result.success:
                await self.alarm_engine.resolve_connectivity_alarms(db, device_id)
            else:
                await self.alarm_engine.create_connectivity_alarm(db, device_id)
        return result

    async def trigger_aggregation(self, tier: str) -> int:
        async with self.session_factory() as db:
            if tier == "hourly":
                return await aggregation.aggregate_last_hour(db)
            if tier == "daily":
                return await aggregation.aggregate_yesterday(db)
        raise ValueError(f"Unknown aggregation tier: {tier}")

    def get_status(self) -> dict:
        jobs = []
        if self.scheduler is not None:
            for job in self.scheduler.get_jobs():
                jobs.append({
                    "id": job.id,
                    "trigger": str(job.trigger),
                    "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                })
        return {
            "is_polling": self.is_polling,
            "batch_size": self.batch_size,
            "poll_interval_seconds": settings.SNMP_POLL_INTERVAL_SECONDS,
            "last_cycle_started": self.last_cycle_started.isoformat() if self.last_cycle_started else None,
            "last_cycle_duration": self.last_cycle_duration,
            "last_cycle_devices": self.last_cycle_devices,
            "last_cycle_failures": self.last_cycle_failures,
            "jobs": jobs,
        }

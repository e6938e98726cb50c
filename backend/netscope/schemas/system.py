from pydantic import BaseModel, model_validator
from typing import Dict, List, Optional
from datetime import datetime


class SchedulerJob(BaseModel):
    id: str
    trigger: str
    next_run_time: Optional[str] = None


class SchedulerStatus(BaseModel):
    is_polling: bool
    batch_size: int
    poll_interval_seconds: int
    last_cycle_started: Optional[str] = None
    last_cycle_duration: Optional[float] = None
    last_cycle_devices: int
    last_cycle_failures: int
    jobs: List[SchedulerJob] = []


class AggregationTriggerResponse(BaseModel):
    tier: str
    groups: int


class BackfillRequest(BaseModel):
    tier: str = "hourly"
    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_range(self):
        if self.tier not in ("hourly", "daily"):
            raise ValueError("tier must be hourly or daily")
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self


class BackfillResponse(BaseModel):
    tier: str
    buckets: int
    groups: int
    failed: int


class TierStats(BaseModel):
    count: int
    oldest: Optional[str] = None


class CleanupResponse(BaseModel):
    deleted: Dict[str, int]

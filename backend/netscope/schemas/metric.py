from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime


class MetricPoint(BaseModel):
    timestamp: datetime
    value: Optional[float] = None
    avg: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None
    samples: Optional[int] = None


class MetricSeriesResponse(BaseModel):
    device_id: int
    device_name: str
    interface_id: Optional[int] = None
    interface_name: Optional[str] = None
    period: str
    tier: str
    start: datetime
    end: datetime
    metrics: Dict[str, List[MetricPoint]]


class LatestValue(BaseModel):
    value: float
    timestamp: datetime


class InterfaceTraffic(BaseModel):
    id: int
    name: Optional[str] = None
    speed: int
    traffic_in: Optional[float] = None
    traffic_out: Optional[float] = None
    timestamp: Optional[datetime] = None


class LatestMetricsResponse(BaseModel):
    device_id: int
    device_name: str
    status: str
    last_poll_time: Optional[datetime] = None
    metrics: Dict[str, Optional[LatestValue]]
    interfaces: List[InterfaceTraffic]


class MetricStats(BaseModel):
    avg: float
    min: float
    max: float
    samples: int


class StatisticsResponse(BaseModel):
    device_id: int
    device_name: str
    period: str
    tier: str
    start: datetime
    end: datetime
    statistics: Dict[str, MetricStats]

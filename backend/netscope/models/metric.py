from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, Index, UniqueConstraint
from sqlalchemy.sql import func
from netscope.database import Base

METRIC_TYPES = (
    "cpu", "memory", "traffic_in", "traffic_out", "uptime",
    "errors_in", "errors_out", "discards_in", "discards_out", "bandwidth_util",
    "temperature", "disk_usage", "load_avg_1", "load_avg_5", "load_avg_15",
    "swap_usage", "process_count", "tcp_connections",
)

# Synthetic metric raised when a device stops answering
CONNECTIVITY = "connectivity"

METRIC_UNITS = {
    "cpu": "percent",
    "memory": "percent",
    "traffic_in": "bps",
    "traffic_out": "bps",
    "uptime": "timeticks",
    "errors_in": "errors/s",
    "errors_out": "errors/s",
    "discards_in": "discards/s",
    "discards_out": "discards/s",
    "bandwidth_util": "percent",
    "temperature": "celsius",
    "disk_usage": "percent",
    "load_avg_1": "load",
    "load_avg_5": "load",
    "load_avg_15": "load",
    "swap_usage": "percent",
    "process_count": "processes",
    "tcp_connections": "connections",
}


class Metric(Base):
    """Raw sample. Append-only, pruned by retention."""
    __tablename__ = "metrics"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    interface_id = Column(Integer, ForeignKey("interfaces.id", ondelete="CASCADE"), nullable=True)
    metric_type = Column(String(30), nullable=False)
    value = Column(Float, nullable=False)
    unit = Column(String(20))
    collected_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_metrics_device_type_time", "device_id", "metric_type", "collected_at"),
        Index("ix_metrics_collected_at", "collected_at"),
    )


class MetricHourly(Base):
    __tablename__ = "metrics_hourly"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    interface_id = Column(Integer, ForeignKey("interfaces.id", ondelete="CASCADE"), nullable=True)
    interface_key = Column(Integer, nullable=False, default=0)  # interface_id, or 0 for device-level
    metric_type = Column(String(30), nullable=False)
    bucket_start = Column(DateTime(timezone=True), nullable=False)
    avg_value = Column(Float, nullable=False)
    min_value = Column(Float, nullable=False)
    max_value = Column(Float, nullable=False)
    sample_count = Column(Integer, nullable=False, default=0)
    last_source_at = Column(DateTime(timezone=True), nullable=False)  # newest raw sample merged

    __table_args__ = (
        UniqueConstraint("device_id", "interface_key", "metric_type", "bucket_start",
                         name="uq_metrics_hourly_bucket"),
        Index("ix_metrics_hourly_bucket_start", "bucket_start"),
    )


class MetricDaily(Base):
    __tablename__ = "metrics_daily"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    interface_id = Column(Integer, ForeignKey("interfaces.id", ondelete="CASCADE"), nullable=True)
    interface_key = Column(Integer, nullable=False, default=0)
    metric_type = Column(String(30), nullable=False)
    bucket_start = Column(DateTime(timezone=True), nullable=False)
    avg_value = Column(Float, nullable=False)
    min_value = Column(Float, nullable=False)
    max_value = Column(Float, nullable=False)
    sample_count = Column(Integer, nullable=False, default=0)
    last_source_at = Column(DateTime(timezone=True), nullable=False)  # newest hourly bucket merged

    __table_args__ = (
        UniqueConstraint("device_id", "interface_key", "metric_type", "bucket_start",
                         name="uq_metrics_daily_bucket"),
        Index("ix_metrics_daily_bucket_start", "bucket_start"),
    )


@dataclass
class MetricSample:
    """One normalized reading produced by a poll, before persistence."""
    device_id: int
    metric_type: str
    value: float
    collected_at: datetime
    interface_id: Optional[int] = None
    unit: Optional[str] = None

    def as_row(self) -> dict:
        return {
            "device_id": self.device_id,
            "interface_id": self.interface_id,
            "metric_type": self.metric_type,
            "value": float(self.value),
            "unit": self.unit or METRIC_UNITS.get(self.metric_type),
            "collected_at": self.collected_at,
        }

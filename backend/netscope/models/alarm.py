import enum
import json
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Float, Text, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from netscope.database import Base

CONDITION_OPERATORS = ("gt", "gte", "lt", "lte", "eq", "neq")
SEVERITIES = ("info", "warning", "critical")


class AlarmState(str, enum.Enum):
    """Lifecycle of one (device, interface, metric, rule) tuple.

    NO_ALARM and PENDING exist only in the alarm engine's memory; the other
    three are the values persisted in ``alarms.status``.
    """
    NO_ALARM = "no_alarm"
    PENDING = "pending"
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


ALLOWED_TRANSITIONS = {
    AlarmState.NO_ALARM: {AlarmState.PENDING, AlarmState.ACTIVE},
    AlarmState.PENDING: {AlarmState.NO_ALARM, AlarmState.ACTIVE},
    AlarmState.ACTIVE: {AlarmState.ACKNOWLEDGED, AlarmState.RESOLVED},
    AlarmState.ACKNOWLEDGED: {AlarmState.RESOLVED},
    AlarmState.RESOLVED: set(),  # recurrence opens a new alarm row
}

OPEN_STATES = (AlarmState.ACTIVE.value, AlarmState.ACKNOWLEDGED.value)


class InvalidAlarmTransition(ValueError):
    def __init__(self, current: AlarmState, target: AlarmState):
        super().__init__(f"Cannot move alarm from {current.value} to {target.value}")
        self.current = current
        self.target = target


def check_transition(current: AlarmState, target: AlarmState) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidAlarmTransition(current, target)


class AlarmRule(Base):
    __tablename__ = "alarm_rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text)
    metric_type = Column(String(30), nullable=False, index=True)
    condition_operator = Column(String(5), nullable=False, default="gt")  # gt, gte, lt, lte, eq, neq
    threshold_warning = Column(Float, nullable=True)
    threshold_critical = Column(Float, nullable=False)
    duration_seconds = Column(Integer, default=0)  # condition must hold this long before firing
    apply_to_all = Column(Boolean, default=True)
    device_ids = Column(Text)  # JSON array of device ids, used when apply_to_all is false
    is_enabled = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    alarms = relationship("Alarm", back_populates="rule")

    def scoped_device_ids(self) -> list:
        if not self.device_ids:
            return []
        try:
            ids = json.loads(self.device_ids)
        except (TypeError, ValueError):
            return []
        if not isinstance(ids, list):
            return []
        scoped = []
        for i in ids:
            try:
                scoped.append(int(i))
            except (TypeError, ValueError):
                continue
        return scoped

    def applies_to_device(self, device_id: int) -> bool:
        if self.apply_to_all:
            return True
        return device_id in self.scoped_device_ids()


class Alarm(Base):
    __tablename__ = "alarms"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False)
    interface_id = Column(Integer, ForeignKey("interfaces.id", ondelete="CASCADE"), nullable=True)
    rule_id = Column(Integer, ForeignKey("alarm_rules.id", ondelete="SET NULL"), nullable=True)
    severity = Column(String(20), nullable=False)  # info, warning, critical
    status = Column(String(20), nullable=False, default=AlarmState.ACTIVE.value)
    title = Column(String(255), nullable=False)
    message = Column(Text)
    metric_type = Column(String(30))
    current_value = Column(Float)
    threshold_value = Column(Float)
    first_occurrence = Column(DateTime(timezone=True), nullable=False)
    last_occurrence = Column(DateTime(timezone=True), nullable=False)
    occurrence_count = Column(Integer, nullable=False, default=1)
    acknowledged_by = Column(String(100))
    acknowledged_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(100))
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolution_note = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    rule = relationship("AlarmRule", back_populates="alarms")

    __table_args__ = (
        Index("ix_alarms_dedup", "device_id", "interface_id", "metric_type", "rule_id", "status"),
        Index("ix_alarms_status_severity", "status", "severity"),
    )

    @property
    def state(self) -> AlarmState:
        return AlarmState(self.status)

    def transition_to(self, target: AlarmState) -> None:
        check_transition(self.state, target)
        self.status = target.value

    def acknowledge(self, user: Optional[str] = None, at: Optional[datetime] = None) -> None:
        self.transition_to(AlarmState.ACKNOWLEDGED)
        self.acknowledged_by = user
        self.acknowledged_at = at or datetime.now(timezone.utc)

    def resolve(self, user: Optional[str] = None, note: Optional[str] = None,
                at: Optional[datetime] = None) -> None:
        self.transition_to(AlarmState.RESOLVED)
        self.resolved_by = user
        self.resolved_at = at or datetime.now(timezone.utc)
        if note:
            self.resolution_note = note

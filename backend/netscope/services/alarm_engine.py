"""
Alarm Engine - evaluates threshold rules against each fresh sample.
Warning + critical thresholds per rule, duration hysteresis, one open alarm
per (device, interface, metric, rule) and auto-resolution.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from netscope.models.alarm import Alarm, AlarmRule, AlarmState, OPEN_STATES
from netscope.models.device import Device
from netscope.models.metric import CONNECTIVITY, MetricSample

logger = logging.getLogger(__name__)

AUTO_RESOLVE_NOTE = "Auto-resolved: metric returned to normal range"
RECONNECT_NOTE = "Auto-resolved: device is reachable again"

METRIC_NAMES = {
    "cpu": "CPU usage",
    "memory": "Memory usage",
    "traffic_in": "Inbound traffic",
    "traffic_out": "Outbound traffic",
    "bandwidth_util": "Bandwidth utilization",
    "errors_in": "Inbound errors",
    "errors_out": "Outbound errors",
    "discards_in": "Inbound discards",
    "discards_out": "Outbound discards",
    "temperature": "Temperature",
    "disk_usage": "Disk usage",
    "swap_usage": "Swap usage",
    CONNECTIVITY: "Connectivity",
}

DISPLAY_UNITS = {
    "cpu": "%",
    "memory": "%",
    "bandwidth_util": "%",
    "disk_usage": "%",
    "swap_usage": "%",
    "traffic_in": "bps",
    "traffic_out": "bps",
    "errors_in": " errors/s",
    "errors_out": " errors/s",
    "discards_in": " discards/s",
    "discards_out": " discards/s",
    "temperature": " C",
}

PendingKey = Tuple[int, Optional[int], str, Optional[int]]


def evaluate_condition(value: float, operator: str, threshold: float) -> bool:
    ops = {
        "gt": lambda v, t: v > t,
        "gte": lambda v, t: v >= t,
        "lt": lambda v, t: v < t,
        "lte": lambda v, t: v <= t,
        "eq": lambda v, t: v == t,
        "neq": lambda v, t: v != t,
    }
    fn = ops.get(operator)
    return fn(value, threshold) if fn else False


def evaluate_severity(value: float, rule: AlarmRule) -> Optional[str]:
    """Highest breached severity, or None. Critical is checked first."""
    operator = rule.condition_operator or "gt"
    if rule.threshold_critical is not None and evaluate_condition(value, operator, rule.threshold_critical):
        return "critical"
    if rule.threshold_warning is not None and evaluate_condition(value, operator, rule.threshold_warning):
        return "warning"
    return None


def threshold_for(rule: AlarmRule, severity: str) -> Optional[float]:
    return rule.threshold_critical if severity == "critical" else rule.threshold_warning


def format_value(value: Optional[float], metric_type: str) -> str:
    if value is None:
        return "N/A"
    if metric_type in ("traffic_in", "traffic_out"):
        for divisor, suffix in ((1e9, " G"), (1e6, " M"), (1e3, " K")):
            if value >= divisor:
                return f"{value / divisor:.2f}{suffix}"
    return f"{value:.2f}"


def alarm_title(metric_type: str, severity: str, device_name: str) -> str:
    if metric_type == CONNECTIVITY:
        return f"[{severity.upper()}] {device_name} - Device unreachable"
    metric_name = METRIC_NAMES.get(metric_type, metric_type)
    return f"[{severity.upper()}] {device_name} - {metric_name} threshold exceeded"


def alarm_message(metric_type: str, current_value: Optional[float],
                  threshold_value: Optional[float], severity: str) -> str:
    unit = DISPLAY_UNITS.get(metric_type, "")
    return (
        f"Current value: {format_value(current_value, metric_type)}{unit}\n"
        f"Threshold: {format_value(threshold_value, metric_type)}{unit}\n"
        f"Severity: {severity}"
    )


async def get_active_rules_for_metric(db: AsyncSession, metric_type: str) -> List[AlarmRule]:
    result = await db.execute(
        select(AlarmRule)
        .where(AlarmRule.metric_type == metric_type, AlarmRule.is_enabled == True)
        .order_by(AlarmRule.id)
    )
    return list(result.scalars().all())


def _match_nullable(column, value):
    return column.is_(None) if value is None else column == value


@dataclass
class PendingAlarm:
    since: datetime
    severity: str
    value: float


class AlarmEngine:
    """Holds the in-memory pending map; one instance per process."""

    def __init__(self):
        self._pending: Dict[PendingKey, PendingAlarm] = {}

    @staticmethod
    def pending_key(device_id: int, interface_id: Optional[int], metric_type: str,
                    rule_id: Optional[int]) -> PendingKey:
        return (device_id, interface_id, metric_type, rule_id)

    def pending_state(self, key: PendingKey) -> AlarmState:
        return AlarmState.PENDING if key in self._pending else AlarmState.NO_ALARM

    def forget_device(self, device_id: int) -> int:
        """Drop pending debounce windows for a removed device."""
        keys = [k for k in self._pending if k[0] == device_id]
        for k in keys:
            del self._pending[k]
        return len(keys)

    async def evaluate_metric(self, db: AsyncSession, sample: MetricSample) -> List[Alarm]:
        """Run every matching rule against one sample. Returns alarms raised or bumped."""
        fired = []
        for rule in await get_active_rules_for_metric(db, sample.metric_type):
            if not rule.applies_to_device(sample.device_id):
                continue

            key = self.pending_key(sample.device_id, sample.interface_id, sample.metric_type, rule.id)
            severity = evaluate_severity(sample.value, rule)
            if severity is None:
                if self._pending.pop(key, None) is not None:
                    logger.debug(f"Pending alarm cleared for {key}")
                continue

            if rule.duration_seconds and rule.duration_seconds > 0:
                pending = self._pending.get(key)
                if pending is None:
                    self._pending[key] = PendingAlarm(sample.collected_at, severity, sample.value)
                    logger.debug(f"Alarm pending for {key}, waiting {rule.duration_seconds}s")
                    continue
                elapsed = (sample.collected_at - pending.since).total_seconds()
                if elapsed < rule.duration_seconds:
                    continue

            alarm = await self.create_or_update_alarm(
                db,
                device_id=sample.device_id,
                interface_id=sample.interface_id,
                rule_id=rule.id,
                severity=severity,
                metric_type=sample.metric_type,
                current_value=sample.value,
                threshold_value=threshold_for(rule, severity),
                occurred_at=sample.collected_at,
            )
            fired.append(alarm)
            self._pending.pop(key, None)
        return fired

    async def create_or_update_alarm(self, db: AsyncSession, *, device_id: int, interface_id: Optional[int],
                                     rule_id: Optional[int], severity: str, metric_type: str,
                                     current_value: float, threshold_value: Optional[float],
                                     occurred_at: Optional[datetime] = None) -> Alarm:
        occurred_at = occurred_at or datetime.now(timezone.utc)
        result = await db.execute(
            select(Alarm)
            .where(
                Alarm.device_id == device_id,
                _match_nullable(Alarm.interface_id, interface_id),
                _match_nullable(Alarm.rule_id, rule_id),
                Alarm.metric_type == metric_type,
                Alarm.status.in_(OPEN_STATES),
            )
            .order_by(Alarm.id.desc())
            .limit(1)
        )
        existing = result.scalar_one_or_none()

        device_name = (await db.execute(select(Device.name).where(Device.id == device_id))).scalar_one_or_none()
        device_name = device_name or f"Device {device_id}"
        title = alarm_title(metric_type, severity, device_name)
        message = alarm_message(metric_type, current_value, threshold_value, severity)

        if existing:
            existing.occurrence_count = (existing.occurrence_count or 1) + 1
            existing.last_occurrence = occurred_at
            existing.current_value = current_value
            existing.threshold_value = threshold_value
            existing.severity = severity
            existing.title = title
            existing.message = message
            await db.commit()
            logger.debug(f"Alarm {existing.id} updated, occurrence {existing.occurrence_count}: {title}")
            return existing

        alarm = Alarm(
            device_id=device_id,
            interface_id=interface_id,
            rule_id=rule_id,
            severity=severity,
            status=AlarmState.ACTIVE.value,
            title=title,
            message=message,
            metric_type=metric_type,
            current_value=current_value,
            threshold_value=threshold_value,
            first_occurrence=occurred_at,
            last_occurrence=occurred_at,
            occurrence_count=1,
        )
        db.add(alarm)
        await db.commit()
        logger.warning(f"ALARM RAISED [{severity.upper()}]: {title}")
        return alarm

    async def create_connectivity_alarm(self, db: AsyncSession, device_id: int,
                                        occurred_at: Optional[datetime] = None) -> Optional[Alarm]:
        device = await db.get(Device, device_id)
        if not device:
            return None
        return await self.create_or_update_alarm(
            db,
            device_id=device_id,
            interface_id=None,
            rule_id=None,
            severity="critical",
            metric_type=CONNECTIVITY,
            current_value=0,
            threshold_value=1,
            occurred_at=occurred_at,
        )

    async def resolve_connectivity_alarms(self, db: AsyncSession, device_id: int) -> int:
        result = await db.execute(
            select(Alarm).where(
                Alarm.device_id == device_id,
                Alarm.metric_type == CONNECTIVITY,
                Alarm.status.in_(OPEN_STATES),
            )
        )
        alarms = result.scalars().all()
        for alarm in alarms:
            alarm.resolve(note=RECONNECT_NOTE)
        if alarms:
            await db.commit()
            logger.info(f"Device {device_id} reachable again, resolved {len(alarms)} connectivity alarm(s)")
        return len(alarms)

    async def auto_resolve_alarms(self, db: AsyncSession, device_id: int, metric_type: str,
                                  value: float, interface_id: Optional[int] = None) -> int:
        """Resolve open rule-backed alarms whose rule no longer triggers on value."""
        result = await db.execute(
            select(Alarm)
            .options(selectinload(Alarm.rule))
            .where(
                Alarm.device_id == device_id,
                _match_nullable(Alarm.interface_id, interface_id),
                Alarm.metric_type == metric_type,
                Alarm.rule_id.isnot(None),
                Alarm.status.in_(OPEN_STATES),
            )
        )
        resolved = 0
        for alarm in result.scalars().all():
            if alarm.rule is None or evaluate_severity(value, alarm.rule) is not None:
                continue
            alarm.resolve(note=AUTO_RESOLVE_NOTE)
            resolved += 1
            logger.info(f"Auto-resolved alarm {alarm.id} ({metric_type}={value}) on device {device_id}")
        if resolved:
            await db.commit()
        return resolved

    async def get_alarm_summary(self, db: AsyncSession, now: Optional[datetime] = None) -> dict:
        since = (now or datetime.now(timezone.utc)) - timedelta(hours=24)
        summary = {
            state: {"info": 0, "warning": 0, "critical": 0}
            for state in (AlarmState.ACTIVE.value, AlarmState.ACKNOWLEDGED.value, AlarmState.RESOLVED.value)
        }
        summary["total_24h"] = 0

        rows = await db.execute(
            select(Alarm.status, Alarm.severity, func.count(Alarm.id))
            .where(Alarm.first_occurrence >= since)
            .group_by(Alarm.status, Alarm.severity)
        )
        for status, severity, count in rows.all():
            if status in summary and severity in summary[status]:
                summary[status][severity] = count
            summary["total_24h"] += count

        open_rows = await db.execute(
            select(Alarm.severity, func.count(Alarm.id))
            .where(Alarm.status.in_(OPEN_STATES))
            .group_by(Alarm.severity)
        )
        open_counts = dict(open_rows.all())
        summary["total_active"] = sum(open_counts.values())
        summary["total_critical"] = open_counts.get("critical", 0)
        return summary

    async def cleanup_old_alarms(self, db: AsyncSession, days: int = 90) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await db.execute(
            delete(Alarm).where(Alarm.status == AlarmState.RESOLVED.value, Alarm.resolved_at < cutoff)
        )
        await db.commit()
        logger.info(f"Alarm cleanup: deleted {result.rowcount} resolved alarms older than {days} days")
        return result.rowcount

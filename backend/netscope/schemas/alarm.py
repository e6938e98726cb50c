from pydantic import BaseModel, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import json

from netscope.models.alarm import CONDITION_OPERATORS, SEVERITIES
from netscope.models.metric import METRIC_TYPES


class AlarmRuleBase(BaseModel):
    description: Optional[str] = None
    condition_operator: str = "gt"
    threshold_warning: Optional[float] = None
    duration_seconds: int = 0
    apply_to_all: bool = True
    device_ids: List[int] = []
    is_enabled: bool = True


class AlarmRuleCreate(AlarmRuleBase):
    name: str
    metric_type: str
    threshold_critical: float

    @field_validator("metric_type")
    @classmethod
    def validate_metric(cls, v: str) -> str:
        if v not in METRIC_TYPES:
            raise ValueError(f"Unknown metric type: {v}")
        return v

    @field_validator("condition_operator")
    @classmethod
    def validate_operator(cls, v: str) -> str:
        if v not in CONDITION_OPERATORS:
            raise ValueError(f"condition_operator must be one of {', '.join(CONDITION_OPERATORS)}")
        return v

    @field_validator("duration_seconds")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        if v < 0:
            raise ValueError("duration_seconds cannot be negative")
        return v

    @model_validator(mode="after")
    def thresholds_ordered(self):
        validate_threshold_order(self.condition_operator, self.threshold_warning, self.threshold_critical)
        if not self.apply_to_all and not self.device_ids:
            raise ValueError("device_ids is required when apply_to_all is false")
        return self


def validate_threshold_order(operator: str, warning: Optional[float], critical: Optional[float]) -> None:
    """The warning threshold must trip before the critical one."""
    if warning is None or critical is None:
        return
    if operator in ("gt", "gte") and warning > critical:
        raise ValueError("threshold_warning must not exceed threshold_critical for gt/gte rules")
    if operator in ("lt", "lte") and warning < critical:
        raise ValueError("threshold_warning must not be below threshold_critical for lt/lte rules")


class AlarmRuleUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    condition_operator: Optional[str] = None
    threshold_warning: Optional[float] = None
    threshold_critical: Optional[float] = None
    duration_seconds: Optional[int] = None
    apply_to_all: Optional[bool] = None
    device_ids: Optional[List[int]] = None
    is_enabled: Optional[bool] = None

    @field_validator("condition_operator")
    @classmethod
    def validate_operator(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in CONDITION_OPERATORS:
            raise ValueError(f"condition_operator must be one of {', '.join(CONDITION_OPERATORS)}")
        return v


class AlarmRuleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    metric_type: str
    condition_operator: str
    threshold_warning: Optional[float] = None
    threshold_critical: float
    duration_seconds: int
    apply_to_all: bool
    device_ids: List[int] = []
    is_enabled: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @field_validator("device_ids", mode="before")
    @classmethod
    def parse_device_ids(cls, v):
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class AlarmResponse(BaseModel):
    id: int
    device_id: int
    interface_id: Optional[int] = None
    rule_id: Optional[int] = None
    severity: str
    status: str
    title: str
    message: Optional[str] = None
    metric_type: Optional[str] = None
    current_value: Optional[float] = None
    threshold_value: Optional[float] = None
    first_occurrence: datetime
    last_occurrence: datetime
    occurrence_count: int
    acknowledged_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None

    model_config = {"from_attributes": True}


class AlarmAcknowledgeRequest(BaseModel):
    user: Optional[str] = None


class AlarmResolveRequest(BaseModel):
    user: Optional[str] = None
    note: Optional[str] = None


class SeverityCounts(BaseModel):
    info: int = 0
    warning: int = 0
    critical: int = 0


class AlarmSummary(BaseModel):
    active: SeverityCounts
    acknowledged: SeverityCounts
    resolved: SeverityCounts
    total_24h: int
    total_active: int
    total_critical: int

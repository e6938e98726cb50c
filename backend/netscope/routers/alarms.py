from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional
import json
from netscope.database import get_db
from netscope.models.alarm import Alarm, AlarmRule, InvalidAlarmTransition
from netscope.schemas.alarm import (
    AlarmRuleCreate, AlarmRuleUpdate, AlarmRuleResponse,
    AlarmResponse, AlarmAcknowledgeRequest, AlarmResolveRequest, AlarmSummary,
    validate_threshold_order,
)

router = APIRouter(prefix="/api/alarms", tags=["Alarms"])


async def _get_rule(db: AsyncSession, rule_id: int) -> AlarmRule:
    rule = await db.get(AlarmRule, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> bool:
    query = select(AlarmRule.id).where(AlarmRule.name == name)
    if exclude_id is not None:
        query = query.where(AlarmRule.id != exclude_id)
    return (await db.execute(query)).first() is not None


# ── Rules ────────────────────────────────────────────────────────────────────

@router.get("/rules", response_model=List[AlarmRuleResponse])
async def list_rules(metric_type: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    query = select(AlarmRule).order_by(AlarmRule.name)
    if metric_type:
        query = query.where(AlarmRule.metric_type == metric_type)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/rules", response_model=AlarmRuleResponse, status_code=201)
async def create_rule(payload: AlarmRuleCreate, db: AsyncSession = Depends(get_db)):
    if await _name_taken(db, payload.name):
        raise HTTPException(status_code=409, detail="A rule with this name already exists")
    data = payload.model_dump()
    data["device_ids"] = json.dumps(data["device_ids"]) if data["device_ids"] else None
    rule = AlarmRule(**data)
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    return rule


@router.get("/rules/{rule_id}", response_model=AlarmRuleResponse)
async def get_rule(rule_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_rule(db, rule_id)


@router.patch("/rules/{rule_id}", response_model=AlarmRuleResponse)
async def update_rule(rule_id: int, payload: AlarmRuleUpdate, db: AsyncSession = Depends(get_db)):
    rule = await _get_rule(db, rule_id)
    update_data = payload.model_dump(exclude_unset=True)
    if "name" in update_data and await _name_taken(db, update_data["name"], exclude_id=rule_id):
        raise HTTPException(status_code=409, detail="A rule with this name already exists")
    if "device_ids" in update_data:
        ids = update_data["device_ids"]
        update_data["device_ids"] = json.dumps(ids) if ids else None

    try:
        validate_threshold_order(
            update_data.get("condition_operator", rule.condition_operator),
            update_data.get("threshold_warning", rule.threshold_warning),
            update_data.get("threshold_critical", rule.threshold_critical),
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    for key, value in update_data.items():
        setattr(rule, key, value)
    await db.commit()
    await db.refresh(rule)
    return rule


@router.delete("/rules/{rule_id}")
async def delete_rule(rule_id: int, db: AsyncSession = Depends(get_db)):
    rule = await _get_rule(db, rule_id)
    await db.delete(rule)
    await db.commit()
    return {"message": "Rule deleted"}


# ── Alarms ───────────────────────────────────────────────────────────────────

@router.get("/", response_model=List[AlarmResponse])
async def list_alarms(
    status: Optional[str] = None,
    severity: Optional[str] = None,
    device_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
    db: AsyncSession = Depends(get_db),
):
    query = select(Alarm).order_by(Alarm.last_occurrence.desc())
    if status:
        query = query.where(Alarm.status == status)
    if severity:
        query = query.where(Alarm.severity == severity)
    if device_id:
        query = query.where(Alarm.device_id == device_id)
    result = await db.execute(query.offset(offset).limit(min(limit, 1000)))
    return result.scalars().all()


@router.get("/summary", response_model=AlarmSummary)
async def alarm_summary(request: Request, db: AsyncSession = Depends(get_db)):
    return await request.app.state.alarm_engine.get_alarm_summary(db)


@router.get("/{alarm_id}", response_model=AlarmResponse)
async def get_alarm(alarm_id: int, db: AsyncSession = Depends(get_db)):
    alarm = await db.get(Alarm, alarm_id)
    if not alarm:
        raise HTTPException(status_code=404, detail="Alarm not found")
    return alarm


@router.post("/{alarm_id}/acknowledge", response_model=AlarmResponse)
async def acknowledge_alarm(alarm_id: int, payload: AlarmAcknowledgeRequest,
                            db: AsyncSession = Depends(get_db)):
    alarm = await get_alarm(alarm_id, db)
    try:
        alarm.acknowledge(user=payload.user, at=datetime.now(timezone.utc))
    except InvalidAlarmTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    await db.commit()
    await db.refresh(alarm)
    return alarm


@router.post("/{alarm_id}/resolve", response_model=AlarmResponse)
async def resolve_alarm(alarm_id: int, payload: AlarmResolveRequest,
                        db: AsyncSession = Depends(get_db)):
    alarm = await get_alarm(alarm_id, db)
    try:
        alarm.resolve(user=payload.user, note=payload.note, at=datetime.now(timezone.utc))
    except InvalidAlarmTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    await db.commit()
    await db.refresh(alarm)
    return alarm

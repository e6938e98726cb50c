from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import List, Optional
from netscope.config import settings
from netscope.crypto import encrypt_secret
from netscope.database import get_db
from netscope.models.device import Device, SnmpCredential
from netscope.models.interface import Interface
from netscope.schemas.device import (
    DeviceCreate, DeviceUpdate, DeviceResponse, InterfaceResponse,
    ConnectionTestRequest, ConnectionTestResponse, PollResponse, DiscoveryResponse,
    SnmpCredentialsIn,
)
from netscope.services.collector import DeviceNotFoundError
from netscope.services.snmp_session import SnmpCredentials, SnmpError, SnmpTarget

router = APIRouter(prefix="/api/devices", tags=["Devices"])


def _apply_credentials(device: Device, payload: SnmpCredentialsIn) -> None:
    cred = device.credentials
    if cred is None:
        cred = SnmpCredential()
        device.credentials = cred
    cred.community_string = encrypt_secret(payload.community_string)
    cred.security_level = payload.security_level
    cred.username = payload.username
    cred.auth_protocol = payload.auth_protocol
    cred.auth_password = encrypt_secret(payload.auth_password)
    cred.priv_protocol = payload.priv_protocol
    cred.priv_password = encrypt_secret(payload.priv_password)


async def _get_device(db: AsyncSession, device_id: int) -> Device:
    result = await db.execute(
        select(Device).options(selectinload(Device.credentials)).where(Device.id == device_id)
    )
    device = result.scalar_one_or_none()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


@router.get("/", response_model=List[DeviceResponse])
async def list_devices(
    status: Optional[str] = None,
    device_type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    query = select(Device).order_by(Device.name)
    if status:
        query = query.where(Device.status == status)
    if device_type:
        query = query.where(Device.device_type == device_type)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/", response_model=DeviceResponse, status_code=201)
async def create_device(payload: DeviceCreate, db: AsyncSession = Depends(get_db)):
    existing = await db.execute(select(Device).where(Device.ip_address == payload.ip_address))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="Device with this IP already exists")

    device = Device(**payload.model_dump(exclude={"credentials"}), status="unknown")
    if payload.credentials:
        _apply_credentials(device, payload.credentials)
    db.add(device)
    await db.commit()
    await db.refresh(device)
    return device


@router.post("/test-connection", response_model=ConnectionTestResponse)
async def test_connection(request: Request, payload: ConnectionTestRequest):
    creds = payload.credentials or SnmpCredentialsIn(community_string=settings.SNMP_COMMUNITY)
    target = SnmpTarget(host=payload.ip_address, port=payload.snmp_port, version=payload.snmp_version)
    credentials = SnmpCredentials(
        community=creds.community_string or settings.SNMP_COMMUNITY,
        security_level=creds.security_level,
        username=creds.username,
        auth_protocol=creds.auth_protocol,
        auth_password=creds.auth_password,
        priv_protocol=creds.priv_protocol,
        priv_password=creds.priv_password,
    )
    return await request.app.state.collector.test_connection(target, credentials)


@router.get("/summary")
async def get_summary(db: AsyncSession = Depends(get_db)):
    """Device counts by status."""
    rows = await db.execute(select(Device.status, func.count(Device.id)).group_by(Device.status))
    by_status = dict(rows.all())
    return {
        "total_devices": sum(by_status.values()),
        "devices_up": by_status.get("up", 0),
        "devices_down": by_status.get("down", 0),
        "devices_warning": by_status.get("warning", 0),
    }


@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(device_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_device(db, device_id)


@router.patch("/{device_id}", response_model=DeviceResponse)
async def update_device(device_id: int, payload: DeviceUpdate, db: AsyncSession = Depends(get_db)):
    device = await _get_device(db, device_id)
    update_data = payload.model_dump(exclude_unset=True, exclude={"credentials"})
    for key, value in update_data.items():
        setattr(device, key, value)
    if payload.credentials:
        _apply_credentials(device, payload.credentials)
    await db.commit()
    await db.refresh(device)
    return device


@router.delete("/{device_id}")
async def delete_device(request: Request, device_id: int, db: AsyncSession = Depends(get_db)):
    device = await _get_device(db, device_id)
    await db.delete(device)
    await db.commit()
    await request.app.state.collector.counters.forget_device(device_id)
    request.app.state.alarm_engine.forget_device(device_id)
    return {"message": "Device deleted"}


@router.get("/{device_id}/interfaces", response_model=List[InterfaceResponse])
async def list_interfaces(device_id: int, db: AsyncSession = Depends(get_db)):
    await _get_device(db, device_id)
    result = await db.execute(
        select(Interface).where(Interface.device_id == device_id).order_by(Interface.if_index)
    )
    return result.scalars().all()


@router.post("/{device_id}/poll", response_model=PollResponse)
async def poll_device(request: Request, device_id: int):
    try:
        result = await request.app.state.poller.trigger_polling(device_id)
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    return PollResponse(
        success=result.success,
        device_id=result.device_id,
        sample_count=result.sample_count,
        partial=result.partial,
        error=result.error,
    )


@router.post("/{device_id}/discover", response_model=DiscoveryResponse)
async def discover_interfaces(request: Request, device_id: int, db: AsyncSession = Depends(get_db)):
    try:
        interfaces = await request.app.state.collector.discover_interfaces(db, device_id)
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    except SnmpError as e:
        raise HTTPException(status_code=502, detail=f"Discovery failed: {e}")
    return DiscoveryResponse(
        device_id=device_id,
        interface_count=len(interfaces),
        interfaces=[InterfaceResponse.model_validate(i) for i in interfaces],
    )

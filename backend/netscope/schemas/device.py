from pydantic import BaseModel, field_validator, model_validator
from typing import Optional, List
from datetime import datetime
import ipaddress

from netscope.models.device import DEVICE_TYPES
from netscope.services.snmp_session import AUTH_PROTOCOLS, PRIV_PROTOCOLS, SECURITY_LEVELS

SNMP_VERSIONS = ("1", "2c", "3")


def _validate_ip(v: Optional[str]) -> Optional[str]:
    if v is not None:
        try:
            ipaddress.ip_address(v)
        except ValueError:
            raise ValueError(f"Invalid IP address: {v}")
    return v


class SnmpCredentialsIn(BaseModel):
    """Plaintext on the way in; encrypted before it reaches the database."""
    community_string: Optional[str] = None
    security_level: str = "noAuthNoPriv"
    username: Optional[str] = None
    auth_protocol: Optional[str] = None
    auth_password: Optional[str] = None
    priv_protocol: Optional[str] = None
    priv_password: Optional[str] = None

    @field_validator("security_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        if v not in SECURITY_LEVELS:
            raise ValueError(f"security_level must be one of {', '.join(SECURITY_LEVELS)}")
        return v

    @field_validator("auth_protocol")
    @classmethod
    def validate_auth_protocol(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.upper() not in AUTH_PROTOCOLS:
            raise ValueError(f"Unsupported auth protocol: {v}")
        return v.upper() if v else v

    @field_validator("priv_protocol")
    @classmethod
    def validate_priv_protocol(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v.upper() not in PRIV_PROTOCOLS:
            raise ValueError(f"Unsupported privacy protocol: {v}")
        return v.upper() if v else v


class DeviceCreate(BaseModel):
    name: str
    ip_address: str
    device_type: str = "other"
    vendor: Optional[str] = None
    model: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    snmp_version: str = "2c"
    snmp_port: int = 161
    poll_interval: int = 60
    is_enabled: bool = True
    credentials: Optional[SnmpCredentialsIn] = None

    @field_validator("ip_address")
    @classmethod
    def validate_ip(cls, v: str) -> str:
        return _validate_ip(v)

    @field_validator("device_type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in DEVICE_TYPES:
            raise ValueError(f"device_type must be one of {', '.join(DEVICE_TYPES)}")
        return v

    @field_validator("snmp_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if v not in SNMP_VERSIONS:
            raise ValueError("snmp_version must be 1, 2c or 3")
        return v

    @field_validator("poll_interval")
    @classmethod
    def validate_interval(cls, v: int) -> int:
        if v < 10:
            raise ValueError("poll_interval must be at least 10 seconds")
        return v

    @model_validator(mode="after")
    def v3_needs_username(self):
        if self.snmp_version == "3" and not (self.credentials and self.credentials.username):
            raise ValueError("SNMPv3 devices require credentials.username")
        return self


class DeviceUpdate(BaseModel):
    name: Optional[str] = None
    ip_address: Optional[str] = None
    device_type: Optional[str] = None
    vendor: Optional[str] = None
    model: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    snmp_version: Optional[str] = None
    snmp_port: Optional[int] = None
    poll_interval: Optional[int] = None
    is_enabled: Optional[bool] = None
    credentials: Optional[SnmpCredentialsIn] = None

    @field_validator("ip_address")
    @classmethod
    def validate_ip(cls, v: Optional[str]) -> Optional[str]:
        return _validate_ip(v)

    @field_validator("snmp_version")
    @classmethod
    def validate_version(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in SNMP_VERSIONS:
            raise ValueError("snmp_version must be 1, 2c or 3")
        return v


class InterfaceResponse(BaseModel):
    id: int
    if_index: int
    if_descr: Optional[str] = None
    if_name: Optional[str] = None
    if_alias: Optional[str] = None
    if_type: Optional[int] = None
    if_speed: Optional[int] = None
    if_high_speed: Optional[int] = None
    if_phys_address: Optional[str] = None
    if_admin_status: Optional[str] = None
    if_oper_status: Optional[str] = None
    is_monitored: bool

    model_config = {"from_attributes": True}


class DeviceResponse(BaseModel):
    id: int
    name: str
    ip_address: str
    device_type: Optional[str] = None
    vendor: Optional[str] = None
    model: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None
    snmp_version: str
    snmp_port: int
    poll_interval: int
    is_enabled: bool
    status: str
    last_poll_time: Optional[datetime] = None
    last_poll_success: Optional[bool] = None
    sys_descr: Optional[str] = None
    sys_name: Optional[str] = None
    sys_location: Optional[str] = None
    sys_contact: Optional[str] = None
    sys_object_id: Optional[str] = None
    sys_uptime: Optional[int] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ConnectionTestRequest(BaseModel):
    ip_address: str
    snmp_version: str = "2c"
    snmp_port: int = 161
    credentials: Optional[SnmpCredentialsIn] = None

    @field_validator("ip_address")
    @classmethod
    def validate_ip(cls, v: str) -> str:
        return _validate_ip(v)


class ConnectionTestResponse(BaseModel):
    success: bool
    response_time_ms: int
    error: Optional[str] = None
    sys_descr: Optional[str] = None
    sys_name: Optional[str] = None
    sys_uptime: Optional[int] = None
    uptime_formatted: Optional[str] = None
    detected_vendor: Optional[str] = None
    detected_type: Optional[str] = None


class PollResponse(BaseModel):
    success: bool
    device_id: int
    sample_count: int
    partial: bool = False
    error: Optional[str] = None


class DiscoveryResponse(BaseModel):
    device_id: int
    interface_count: int
    interfaces: List[InterfaceResponse]

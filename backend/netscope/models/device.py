from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from netscope.database import Base

DEVICE_TYPES = ("router", "switch", "server", "firewall", "access_point", "other")
DEVICE_STATUSES = ("up", "down", "warning", "unknown")


class Device(Base):
    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    ip_address = Column(String(50), nullable=False, unique=True, index=True)
    device_type = Column(String(30), default="other")  # router, switch, server, firewall, access_point, other
    vendor = Column(String(50))
    model = Column(String(100))
    location = Column(String(255))
    description = Column(Text)
    snmp_version = Column(String(5), default="2c")  # 1, 2c, 3
    snmp_port = Column(Integer, default=161)
    poll_interval = Column(Integer, default=60)  # seconds
    is_enabled = Column(Boolean, default=True)
    status = Column(String(20), default="unknown")  # up, down, warning, unknown
    last_poll_time = Column(DateTime(timezone=True), nullable=True)
    last_poll_success = Column(Boolean, nullable=True)
    sys_descr = Column(Text)
    sys_name = Column(String(255))
    sys_location = Column(String(255))
    sys_contact = Column(String(255))
    sys_object_id = Column(String(255))
    sys_uptime = Column(BigInteger, nullable=True)  # timeticks
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    credentials = relationship("SnmpCredential", back_populates="device", uselist=False,
                               cascade="all, delete-orphan")
    interfaces = relationship("Interface", back_populates="device", cascade="all, delete-orphan")


class SnmpCredential(Base):
    __tablename__ = "snmp_credentials"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, unique=True)
    community_string = Column(String(512))  # Fernet token
    security_level = Column(String(20), default="noAuthNoPriv")  # noAuthNoPriv, authNoPriv, authPriv
    username = Column(String(100))
    auth_protocol = Column(String(10))  # MD5, SHA, SHA-224, SHA-256, SHA-384, SHA-512
    auth_password = Column(String(512))  # Fernet token
    priv_protocol = Column(String(10))  # DES, AES, AES-128, AES-192, AES-256
    priv_password = Column(String(512))  # Fernet token
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    device = relationship("Device", back_populates="credentials")

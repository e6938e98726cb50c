from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from netscope.database import Base


class Interface(Base):
    __tablename__ = "interfaces"

    id = Column(Integer, primary_key=True, index=True)
    device_id = Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True)
    if_index = Column(Integer, nullable=False)
    if_descr = Column(String(255))
    if_name = Column(String(255))
    if_alias = Column(String(255))
    if_type = Column(Integer)
    if_speed = Column(BigInteger)  # bps, saturates at 4294967295
    if_high_speed = Column(BigInteger)  # Mbps
    if_phys_address = Column(String(20))
    if_admin_status = Column(String(20))  # up, down, testing
    if_oper_status = Column(String(20))  # up, down, testing, unknown, dormant, notPresent, lowerLayerDown
    is_monitored = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    device = relationship("Device", back_populates="interfaces")

    __table_args__ = (
        UniqueConstraint("device_id", "if_index", name="uq_interface_device_ifindex"),
    )

    def effective_speed(self) -> int:
        """Link speed in bps, preferring ifHighSpeed for links above 4.29 Gbps."""
        if self.if_high_speed and self.if_high_speed > 0:
            return self.if_high_speed * 1_000_000
        return self.if_speed or 0

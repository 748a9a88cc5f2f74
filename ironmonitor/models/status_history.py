"""
Run/stop period history for devices
"""

from sqlalchemy import Column, BigInteger, DateTime, Float, Integer, String
from sqlalchemy.sql import func
from ironmonitor.database.connection import Base


class DeviceStatusHistory(Base):
    """One row per continuous running or stopped period of a device"""

    __tablename__ = "device_status_history"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    device_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False)  # running, stopped
    cause = Column(String(100))
    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True))
    duration_seconds = Column(Float)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<DeviceStatusHistory(device_id={self.device_id}, status={self.status}, duration={self.duration_seconds})>"

"""
History and status-history Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class HistoryLogEntry(BaseModel):
    """One logged tick for one device"""
    timestamp: datetime = Field(..., description="Tick time")
    temperature: float = Field(..., description="Temperature rounded to one decimal")
    rpm: int
    vibration: float
    oee: float
    status_label: str = Field(..., description="RUNNING or STOPPED")
    downtime_cause: str
    operator: Optional[str] = None


class ChartPoint(BaseModel):
    """Schema for a single chart sample"""
    timestamp: datetime
    value: float
    pre_alarm: float
    threshold: float


class ChartSeriesResponse(BaseModel):
    """Schema for a device chart series"""
    device_id: str
    points: List[ChartPoint]


class StatusPeriodResponse(BaseModel):
    """Schema for a recorded run/stop period"""
    device_id: str
    status: str
    cause: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None

    class Config:
        from_attributes = True

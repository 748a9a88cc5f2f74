"""
Device Pydantic schemas
"""

from pydantic import BaseModel, Field, computed_field, field_validator
from typing import Optional, Any, List
from datetime import datetime

from ironmonitor.core.config import settings

DEFAULT_MESSAGE = "Normal operation"
NO_DOWNTIME = "-"


def zone_for(device_id: str) -> str:
    """Line A holds the low-numbered mixers, everything else is packaging"""
    try:
        return "Line A - Mixing" if int(device_id) <= 3 else "Line B - Packaging"
    except (TypeError, ValueError):
        return "Line B - Packaging"


def _to_float(value: Any, default: float) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    if parsed != parsed:  # NaN
        return default
    return parsed


class DeviceRecord(BaseModel):
    """Canonical in-memory state of one machine"""
    id: str = Field(..., description="Stable device identifier")
    name: str = Field(..., description="Display label")
    sensor_value: float = Field(20.0, description="Current temperature reading in °C")
    status: bool = Field(False, description="True while the machine is running")
    threshold: float = Field(90.0, gt=0, description="Safety limit in °C")
    message: str = Field(DEFAULT_MESSAGE, description="Last operational message")
    last_update: Optional[datetime] = Field(None, description="Last successful reconciliation")
    watchdog_error: bool = Field(False, description="No fresh remote update within the watchdog window")

    # Extended telemetry, produced by the simulation
    operator: Optional[str] = None
    rpm: int = 0
    vibration: float = 0.0
    oee: float = 0.0
    downtime_cause: str = NO_DOWNTIME

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value):
        return str(value)

    @computed_field
    @property
    def zone(self) -> str:
        return zone_for(self.id)

    @computed_field
    @property
    def pre_alarm(self) -> float:
        return self.threshold * settings.pre_alarm_ratio

    @property
    def is_critical(self) -> bool:
        return self.sensor_value >= self.threshold

    @property
    def is_warning(self) -> bool:
        return not self.is_critical and self.sensor_value >= self.pre_alarm

    @property
    def in_alarm(self) -> bool:
        return self.is_critical and self.status


class RemoteDeviceRecord(BaseModel):
    """Record shape served by the remote store: {id, deviceId, value, status, threshold, message}"""
    id: str
    device_id: Optional[str] = Field(None, alias="deviceId")
    value: float = 20.0
    status: bool = False
    threshold: float = 90.0
    message: str = DEFAULT_MESSAGE

    # Optional extended keys, honoured when a store carries them
    operator: Optional[str] = None
    rpm: Optional[int] = None
    vibration: Optional[float] = None
    oee: Optional[float] = None
    downtime_cause: Optional[str] = Field(None, alias="downtimeCause")

    class Config:
        populate_by_name = True

    @field_validator("id", mode="before")
    @classmethod
    def _normalise_id(cls, value):
        if value is None or value == "":
            raise ValueError("remote record has no id")
        return str(value)

    @field_validator("device_id", mode="before")
    @classmethod
    def _parse_device_id(cls, value):
        return str(value) if value not in (None, "") else None

    @field_validator("value", mode="before")
    @classmethod
    def _parse_value(cls, value):
        parsed = _to_float(value, settings.min_temperature)
        # A zero or unparseable reading falls back to ambient
        return parsed or settings.min_temperature

    @field_validator("threshold", mode="before")
    @classmethod
    def _parse_threshold(cls, value):
        parsed = _to_float(value, settings.default_threshold)
        return parsed if parsed > 0 else settings.default_threshold

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)

    @field_validator("message", mode="before")
    @classmethod
    def _parse_message(cls, value):
        return value or DEFAULT_MESSAGE

    @property
    def extended_fields(self) -> dict:
        """Extended telemetry actually present in the payload"""
        present = {
            "operator": self.operator,
            "rpm": self.rpm,
            "vibration": self.vibration,
            "oee": self.oee,
            "downtime_cause": self.downtime_cause,
        }
        return {key: value for key, value in present.items() if value is not None}


class DeviceCreate(BaseModel):
    """Schema for registering a device"""
    name: str = Field(..., min_length=1, description="Device name")
    threshold: float = Field(..., gt=0, description="Safety limit in °C")


class DeviceUpdate(BaseModel):
    """Schema for editing a device"""
    name: Optional[str] = Field(None, min_length=1)
    threshold: Optional[float] = Field(None, gt=0)


class ToggleRequest(BaseModel):
    """Schema for a manual start/stop"""
    confirm: bool = Field(False, description="Operator confirmed the line is clear")


class TrendResponse(BaseModel):
    """Schema for per-device trend output"""
    direction: str
    rate: float
    seconds_to_limit: Optional[int] = None


class DeviceView(BaseModel):
    """Schema for device response"""
    device: DeviceRecord
    state: str
    trend: TrendResponse


class DeviceListResponse(BaseModel):
    """Schema for device list response"""
    devices: List[DeviceView]
    total: int

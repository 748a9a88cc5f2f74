"""
Dashboard snapshot endpoint consumed by the renderer every tick
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime

from ironmonitor.api.views import device_views
from ironmonitor.core.state import device_sort_key
from ironmonitor.monitoring.kpis import fleet_kpis
from ironmonitor.runtime import MonitorRuntime, get_runtime
from ironmonitor.schemas.device import DeviceView

router = APIRouter()


class ConnectivityResponse(BaseModel):
    """Schema for the connectivity indicator"""
    text: str
    severity: str


class DashboardResponse(BaseModel):
    """Schema for the per-tick dashboard snapshot"""
    mode: str
    connectivity: ConnectivityResponse
    alarm_active: bool
    tick: int
    last_tick_at: Optional[datetime] = None
    kpis: Dict[str, Any]
    devices: List[DeviceView]


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(runtime: MonitorRuntime = Depends(get_runtime)):
    """Full current device list, alarm flag, trends and KPIs"""
    state = runtime.state
    devices = sorted(state.cache.values(), key=lambda device: device_sort_key(device.id))
    return DashboardResponse(
        mode=state.mode.value,
        connectivity=ConnectivityResponse(text=state.connectivity.text, severity=state.connectivity.severity),
        alarm_active=state.alarm_active,
        tick=state.tick_count,
        last_tick_at=state.last_tick_at,
        kpis=fleet_kpis(devices),
        devices=device_views(devices, runtime.scheduler.trends),
    )

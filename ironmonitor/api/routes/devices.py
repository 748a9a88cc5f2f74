"""
Device endpoints: listing, manual control and supervisor management
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from typing import List, Optional
import structlog

from ironmonitor.api.security import require_supervisor
from ironmonitor.api.views import device_view, device_views
from ironmonitor.core.exceptions import ConfirmationRequired, DeviceNotFoundError, NothingToExportError
from ironmonitor.core.state import device_sort_key
from ironmonitor.reporting.csv_export import device_log_csv, device_log_filename
from ironmonitor.runtime import MonitorRuntime, get_runtime
from ironmonitor.schemas.device import (
    DeviceCreate, DeviceListResponse, DeviceRecord, DeviceUpdate, DeviceView, ToggleRequest
)
from ironmonitor.schemas.history import ChartPoint, ChartSeriesResponse, StatusPeriodResponse

logger = structlog.get_logger(__name__)
router = APIRouter()


def _get_device(runtime: MonitorRuntime, device_id: str) -> DeviceRecord:
    device = runtime.state.cache.get(device_id)
    if device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return device


@router.get("/devices", response_model=DeviceListResponse)
async def get_devices(
    search: Optional[str] = Query(None),
    state: str = Query("all", pattern="^(all|active|alert)$"),
    sort: str = Query("id", pattern="^(id|temp_desc)$"),
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Get devices with the dashboard's search, filter and sort options"""

    devices = runtime.state.cache.values()

    # Apply filters
    if search:
        devices = [device for device in devices if search.lower() in device.name.lower()]
    if state == "active":
        devices = [device for device in devices if device.status]
    elif state == "alert":
        devices = [device for device in devices if device.sensor_value >= device.pre_alarm]

    if sort == "temp_desc":
        devices.sort(key=lambda device: device.sensor_value, reverse=True)
    else:
        devices.sort(key=lambda device: device_sort_key(device.id))

    return DeviceListResponse(
        devices=device_views(devices, runtime.scheduler.trends),
        total=len(devices)
    )


@router.get("/devices/{device_id}", response_model=DeviceView)
async def get_device(device_id: str, runtime: MonitorRuntime = Depends(get_runtime)):
    """Get a specific device"""
    device = _get_device(runtime, device_id)
    return device_view(device, runtime.scheduler.trends)


@router.get("/devices/{device_id}/chart", response_model=ChartSeriesResponse)
async def get_device_chart(
    device_id: str,
    points: Optional[int] = Query(None, ge=1, le=500),
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Latest temperature samples with the pre-alarm and limit lines"""
    device = _get_device(runtime, device_id)
    entries = runtime.data_logger.latest(device.id, points or runtime.config.chart_max_points)
    return ChartSeriesResponse(
        device_id=device.id,
        points=[
            ChartPoint(timestamp=entry.timestamp, value=entry.temperature,
                       pre_alarm=device.pre_alarm, threshold=device.threshold)
            for entry in entries
        ]
    )


@router.get("/devices/{device_id}/status-history", response_model=List[StatusPeriodResponse])
async def get_device_status_history(
    device_id: str,
    limit: int = Query(100, ge=1, le=1000),
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Recorded run/stop periods, newest first"""
    device = _get_device(runtime, device_id)
    if runtime.recorder is None:
        return []
    return [StatusPeriodResponse.model_validate(period) for period in runtime.recorder.periods(device.id, limit)]


@router.post("/devices/emergency-stop", response_model=List[DeviceRecord])
async def emergency_stop(runtime: MonitorRuntime = Depends(get_runtime)):
    """Stop every machine in the plant"""
    return await runtime.control.emergency_stop_all()


@router.post("/devices/{device_id}/toggle", response_model=DeviceRecord)
async def toggle_device(
    device_id: str,
    toggle: Optional[ToggleRequest] = None,
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Start or stop a machine; starting needs confirm=true"""
    try:
        return await runtime.control.toggle(device_id, confirm=bool(toggle and toggle.confirm))
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    except ConfirmationRequired as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/devices", response_model=DeviceRecord, status_code=201,
             dependencies=[Depends(require_supervisor)])
async def create_device(device_data: DeviceCreate, runtime: MonitorRuntime = Depends(get_runtime)):
    """Register a new device"""
    device = await runtime.control.create_device(device_data.name, device_data.threshold)
    logger.info("Device created", device_id=device.id, name=device.name)
    return device


@router.put("/devices/{device_id}", response_model=DeviceRecord,
            dependencies=[Depends(require_supervisor)])
async def update_device(
    device_id: str,
    device_data: DeviceUpdate,
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Edit a device's name or safety limit"""
    try:
        return await runtime.control.update_device(device_id, device_data.name, device_data.threshold)
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")


@router.delete("/devices/{device_id}", dependencies=[Depends(require_supervisor)])
async def delete_device(device_id: str, runtime: MonitorRuntime = Depends(get_runtime)):
    """Delete a device"""
    try:
        await runtime.control.delete_device(device_id)
    except DeviceNotFoundError:
        raise HTTPException(status_code=404, detail="Device not found")
    return {"message": "Device deleted successfully"}


@router.get("/devices/{device_id}/log.csv", dependencies=[Depends(require_supervisor)])
async def export_device_log(device_id: str, runtime: MonitorRuntime = Depends(get_runtime)):
    """Download the full data log of a device"""
    device = _get_device(runtime, device_id)
    try:
        content = device_log_csv(device.name, runtime.data_logger.export_all(device.id))
    except NothingToExportError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{device_log_filename(device.name)}"'}
    )

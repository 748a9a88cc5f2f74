"""
Fleet CSV report endpoint
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from ironmonitor.core.exceptions import NothingToExportError
from ironmonitor.reporting.csv_export import fleet_filename, fleet_summary_csv
from ironmonitor.runtime import MonitorRuntime, get_runtime
from ironmonitor.services.device_control import DeviceControlService

router = APIRouter()


@router.get("/reports/fleet.csv")
async def export_fleet(
    kind: str = Query("full", pattern="^(full|shift)$"),
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Download the fleet summary or the end-of-shift report"""
    control: DeviceControlService = runtime.control
    shift_report = kind == "shift"
    try:
        content = fleet_summary_csv(control.sorted_devices(), shift_report=shift_report)
    except NothingToExportError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{fleet_filename(shift_report)}"'}
    )

"""
CSV exports: fleet summary / shift report and per-device data log
"""

import csv
import io
import re
from datetime import datetime, timezone
from typing import Iterable, Sequence

from ironmonitor.core.exceptions import NothingToExportError
from ironmonitor.schemas.device import DeviceRecord
from ironmonitor.schemas.history import HistoryLogEntry

FLEET_HEADER = ["ID", "Zone", "Device", "Status", "Current_Temperature", "Safety_Limit", "Alert"]
LOG_HEADER = ["Time", "Temp", "RPM", "Vibration", "OEE", "Status", "Downtime_Cause", "Operator"]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _format_number(value: float) -> str:
    return f"{value:g}"


def fleet_summary_csv(devices: Sequence[DeviceRecord], shift_report: bool = False,
                      generated_at: datetime = None) -> str:
    """
    Render the fleet summary.

    Args:
        devices: Devices in the order they should appear
        shift_report: Prefix the table with the end-of-shift title line
        generated_at: Report time, defaults to now

    Raises:
        NothingToExportError: If there are no devices
    """
    if not devices:
        raise NothingToExportError("No devices to export")

    generated_at = generated_at or datetime.now(timezone.utc)
    buffer = io.StringIO()
    if shift_report:
        buffer.write(f"SHIFT REPORT - GENERATED: {generated_at.strftime(TIMESTAMP_FORMAT)}\n\n")

    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(FLEET_HEADER)
    for device in devices:
        writer.writerow([
            device.id,
            device.zone,
            device.name.replace(",", ""),
            "RUNNING" if device.status else "STOPPED",
            f"{device.sensor_value:.2f}",
            _format_number(device.threshold),
            "YES" if device.sensor_value >= device.pre_alarm else "NO",
        ])
    return buffer.getvalue()


def device_log_csv(device_name: str, entries: Iterable[HistoryLogEntry],
                   generated_at: datetime = None) -> str:
    """Render the full data log of one device, oldest entry first"""
    entries = list(entries)
    if not entries:
        raise NothingToExportError(f"No logged data for {device_name} yet")

    generated_at = generated_at or datetime.now(timezone.utc)
    buffer = io.StringIO()
    buffer.write(f"DATA LOGGING REPORT - {device_name.upper()}\n")
    buffer.write(f"Generated: {generated_at.strftime(TIMESTAMP_FORMAT)}\n\n")

    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(LOG_HEADER)
    for entry in entries:
        writer.writerow([
            entry.timestamp.strftime("%H:%M:%S"),
            f"{entry.temperature:.1f}",
            entry.rpm,
            f"{entry.vibration:.2f}",
            f"{entry.oee:.1f}",
            entry.status_label,
            entry.downtime_cause,
            entry.operator or "",
        ])
    return buffer.getvalue()


def fleet_filename(shift_report: bool) -> str:
    return "Shift_Report.csv" if shift_report else "IronMonitor_Full_Data.csv"


def device_log_filename(device_name: str, generated_at: datetime = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    safe_name = re.sub(r"\s+", "_", device_name)
    return f"Log_{safe_name}_{int(generated_at.timestamp() * 1000)}.csv"

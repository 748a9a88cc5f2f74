"""
Fleet KPIs and per-device display state
"""

from typing import Dict, Iterable, Optional

from ironmonitor.schemas.device import DeviceRecord


def display_state(device: DeviceRecord) -> str:
    """Card state, most severe first: watchdog, critical, warning, then running/stopped"""
    if device.watchdog_error:
        return "sensor_error"
    if device.is_critical:
        return "critical"
    if device.is_warning:
        return "warning"
    return "running" if device.status else "stopped"


def _average(values) -> Optional[float]:
    values = list(values)
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def fleet_kpis(devices: Iterable[DeviceRecord]) -> Dict[str, object]:
    """Counters and averages shown in the dashboard header"""
    devices = list(devices)
    running = [device for device in devices if device.status]
    return {
        "total": len(devices),
        "running": len(running),
        "stopped": len(devices) - len(running),
        "warning": sum(1 for device in devices if device.is_warning),
        "critical": sum(1 for device in devices if device.is_critical),
        "watchdog_errors": sum(1 for device in devices if device.watchdog_error),
        "average_temperature": _average(device.sensor_value for device in devices),
        "average_oee": _average(device.oee for device in running),
    }

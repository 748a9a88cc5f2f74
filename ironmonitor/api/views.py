"""
Helpers turning core state into response schemas
"""

from typing import Dict, List, Optional

from ironmonitor.monitoring.health import Trend, TrendDirection
from ironmonitor.monitoring.kpis import display_state
from ironmonitor.schemas.device import DeviceRecord, DeviceView, TrendResponse


def trend_response(trend: Optional[Trend]) -> TrendResponse:
    if trend is None:
        return TrendResponse(direction=TrendDirection.STABLE.value, rate=0.0)
    return TrendResponse(
        direction=trend.direction.value,
        rate=round(trend.rate, 3),
        seconds_to_limit=trend.seconds_to_limit,
    )


def device_view(device: DeviceRecord, trends: Dict[str, Trend]) -> DeviceView:
    return DeviceView(device=device, state=display_state(device), trend=trend_response(trends.get(device.id)))


def device_views(devices: List[DeviceRecord], trends: Dict[str, Trend]) -> List[DeviceView]:
    return [device_view(device, trends) for device in devices]

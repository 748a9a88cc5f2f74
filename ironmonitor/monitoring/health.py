"""
Health and alerting monitor
Watchdog staleness detection, alarm evaluation and trend classification
"""

import structlog
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Mapping, Optional

from ironmonitor.collectors.sync_gateway import is_stale
from ironmonitor.core.config import settings
from ironmonitor.core.state import ConnectionMode, DeviceCache
from ironmonitor.schemas.device import DeviceRecord

logger = structlog.get_logger(__name__)


class TrendDirection(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class Trend:
    """Direction of travel since the start of the tick"""

    direction: TrendDirection
    rate: float
    seconds_to_limit: Optional[int] = None


@dataclass
class HealthReport:
    """Result of one health evaluation"""

    cache: DeviceCache
    alarm_active: bool
    trends: Dict[str, Trend] = field(default_factory=dict)


def log_alarm(devices) -> None:
    """Default alarm sink"""
    logger.warning("Alarm active", device_ids=[device.id for device in devices])


def classify_trend(device: DeviceRecord, previous_value: Optional[float],
                   tick_interval_seconds: float = None) -> Trend:
    """
    Compare the current reading against the tick-start snapshot.

    The time-to-limit estimate is a linear extrapolation of a single
    sample, only produced for a running machine heading for its limit.
    """
    interval = tick_interval_seconds if tick_interval_seconds is not None else settings.tick_interval_seconds
    previous = device.sensor_value if previous_value is None else previous_value
    rate = device.sensor_value - previous

    if rate > 0:
        seconds_to_limit = None
        if device.status and not device.is_critical:
            ticks_left = (device.threshold - device.sensor_value) / rate
            seconds_to_limit = round(ticks_left * interval)
        return Trend(TrendDirection.RISING, rate, seconds_to_limit)
    if rate < 0:
        return Trend(TrendDirection.FALLING, rate)
    return Trend(TrendDirection.STABLE, 0.0)


class HealthMonitor:
    """Runs once per tick after simulation and reconciliation"""

    def __init__(self, alarm_sink: Callable = None, watchdog_timeout_ms: int = None,
                 tick_interval_seconds: float = None):
        self.alarm_sink = alarm_sink or log_alarm
        self.watchdog_timeout_ms = watchdog_timeout_ms or settings.watchdog_timeout_ms
        self.tick_interval_seconds = tick_interval_seconds or settings.tick_interval_seconds

    def apply_watchdog(self, cache: DeviceCache, mode: ConnectionMode, now: datetime) -> DeviceCache:
        """Raise stale flags while online; there is no heartbeat to miss in local mode"""
        checked = DeviceCache()
        for device in cache:
            if mode.is_remote:
                watchdog_error = device.watchdog_error or is_stale(
                    device.last_update, now, self.watchdog_timeout_ms)
            else:
                watchdog_error = False
            if watchdog_error != device.watchdog_error:
                device = device.model_copy(update={"watchdog_error": watchdog_error})
            checked.put(device)
        return checked

    def evaluate(self, cache: DeviceCache, mode: ConnectionMode, now: datetime,
                 last_values: Mapping[str, float] = None) -> HealthReport:
        """Recompute watchdog flags, the alarm signal and per-device trends"""
        checked = self.apply_watchdog(cache, mode, now)

        alarming = [device for device in checked if device.in_alarm]
        alarm_active = bool(alarming)
        if alarm_active:
            self.alarm_sink(alarming)

        last_values = last_values or {}
        trends = {
            device.id: classify_trend(device, last_values.get(device.id), self.tick_interval_seconds)
            for device in checked
        }
        return HealthReport(cache=checked, alarm_active=alarm_active, trends=trends)

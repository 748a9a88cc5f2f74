"""
Physics simulation for the mixing/packaging fleet
Advances each device by one tick and enforces the over-temperature interlock
"""

import random
import zlib
import structlog
from typing import Optional

from ironmonitor.collectors.remote_store import RemoteStoreClient
from ironmonitor.core.config import settings
from ironmonitor.core.exceptions import TransportFailure
from ironmonitor.core.state import DeviceCache
from ironmonitor.schemas.device import DEFAULT_MESSAGE, NO_DOWNTIME, DeviceRecord

logger = structlog.get_logger(__name__)

SHIFT_OPERATORS = ["G. Martinez", "L. Sanchez", "A. Gomez", "R. Lopez"]
DOWNTIME_CAUSES = [
    "Electrical fault",
    "Mechanical jam",
    "Preventive maintenance",
    "Cleaning",
    "Motor overheating",
]
OVER_TEMPERATURE = "Over-temperature"
SAFE_STOP_MESSAGE = "SAFE-STOP: limit exceeded"

HEATING_RANGE = (0.5, 2.0)
COOLING_STEP = 1.5


def operator_for(device_id: str) -> str:
    """Shift operator assigned to a machine"""
    try:
        index = int(device_id)
    except (TypeError, ValueError):
        index = zlib.crc32(str(device_id).encode("utf-8"))
    return SHIFT_OPERATORS[index % len(SHIFT_OPERATORS)]


def status_message(device: DeviceRecord) -> str:
    """Message pushed to the remote store for the current state"""
    if device.status:
        return DEFAULT_MESSAGE
    if device.is_critical:
        return SAFE_STOP_MESSAGE
    return f"Stopped: {device.downtime_cause}"


class PhysicsEngine:
    """Advances device state one tick at a time"""

    def __init__(self, rng: Optional[random.Random] = None, client: Optional[RemoteStoreClient] = None):
        self.rng = rng or random.Random(settings.simulation_seed)
        self.client = client

    def advance(self, device: DeviceRecord) -> DeviceRecord:
        """Return the device state one tick later"""
        changes = {}
        if not device.operator:
            changes["operator"] = operator_for(device.id)

        if device.status:
            sensor_value = device.sensor_value + self.rng.uniform(*HEATING_RANGE)
            changes.update(
                rpm=int(1450 + self.rng.random() * 100),
                vibration=round(2.0 + self.rng.random() * 1.5, 2),
                oee=round(85 + self.rng.random() * 10, 1),
                downtime_cause=NO_DOWNTIME,
            )
        else:
            sensor_value = device.sensor_value - COOLING_STEP
            changes.update(rpm=0, vibration=0.0, oee=0.0)
            if not device.downtime_cause or device.downtime_cause == NO_DOWNTIME:
                if sensor_value >= device.threshold:
                    changes["downtime_cause"] = OVER_TEMPERATURE
                else:
                    changes["downtime_cause"] = self.rng.choice(DOWNTIME_CAUSES)

        changes["sensor_value"] = max(sensor_value, settings.min_temperature)
        advanced = device.model_copy(update=changes)

        # Interlock runs after the increment, every tick, with no automatic restart
        if advanced.status and advanced.is_critical:
            logger.warning("Safety interlock tripped",
                           device_id=advanced.id,
                           sensor_value=advanced.sensor_value,
                           threshold=advanced.threshold)
            advanced = advanced.model_copy(update={
                "status": False,
                "rpm": 0,
                "vibration": 0.0,
                "oee": 0.0,
                "downtime_cause": OVER_TEMPERATURE,
            })

        return advanced.model_copy(update={"message": status_message(advanced)})

    def advance_all(self, cache: DeviceCache) -> DeviceCache:
        """Advance every cached device by one tick"""
        return DeviceCache(self.advance(device) for device in cache)

    async def push(self, device: DeviceRecord) -> bool:
        """Best-effort mirror of one device to the remote store"""
        if self.client is None:
            return False
        payload = {
            "value": device.sensor_value,
            "deviceId": device.name,
            "status": device.status,
            "message": device.message,
        }
        try:
            await self.client.update_device(device.id, payload)
            return True
        except TransportFailure as e:
            logger.debug("Telemetry push failed", device_id=device.id, error=str(e))
            return False


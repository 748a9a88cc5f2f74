"""
Shared monitor state passed through the tick pipeline
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from ironmonitor.schemas.device import DeviceRecord


class ConnectionMode(str, Enum):
    """Outcome of the last remote sync"""

    ONLINE = "online"
    OFFLINE = "offline"
    EMPTY = "empty"

    @property
    def is_remote(self) -> bool:
        return self is ConnectionMode.ONLINE


@dataclass(frozen=True)
class ConnectivityStatus:
    """Connectivity indicator shown to the operator"""

    text: str
    severity: str

    @classmethod
    def for_mode(cls, mode: ConnectionMode) -> "ConnectivityStatus":
        return _CONNECTIVITY[mode]


_CONNECTIVITY = {
    ConnectionMode.ONLINE: ConnectivityStatus("ONLINE", "success"),
    ConnectionMode.EMPTY: ConnectivityStatus("REMOTE EMPTY - LOCAL MODE", "warning"),
    ConnectionMode.OFFLINE: ConnectivityStatus("OFFLINE (DEMO)", "danger"),
}


def device_sort_key(device_id: str):
    """Numeric ids first in numeric order, anything else after in text order"""
    try:
        return (0, int(device_id), "")
    except (TypeError, ValueError):
        return (1, 0, str(device_id))


class DeviceCache:
    """Keyed device store preserving the order devices were listed in"""

    def __init__(self, devices: Iterable[DeviceRecord] = ()):
        self._devices: Dict[str, DeviceRecord] = {}
        for device in devices:
            self._devices[device.id] = device

    def get(self, device_id) -> Optional[DeviceRecord]:
        return self._devices.get(str(device_id))

    def put(self, device: DeviceRecord) -> None:
        self._devices[device.id] = device

    def remove(self, device_id) -> Optional[DeviceRecord]:
        return self._devices.pop(str(device_id), None)

    def ids(self) -> List[str]:
        return list(self._devices)

    def values(self) -> List[DeviceRecord]:
        return list(self._devices.values())

    def copy(self) -> "DeviceCache":
        return DeviceCache(self.values())

    def __contains__(self, device_id) -> bool:
        return str(device_id) in self._devices

    def __iter__(self) -> Iterator[DeviceRecord]:
        return iter(self.values())

    def __len__(self) -> int:
        return len(self._devices)

    def __eq__(self, other) -> bool:
        if not isinstance(other, DeviceCache):
            return NotImplemented
        return self._devices == other._devices

    def __repr__(self):
        return f"<DeviceCache(ids={self.ids()})>"


@dataclass
class MonitorState:
    """Everything the tick pipeline reads and writes between ticks"""

    cache: DeviceCache = field(default_factory=DeviceCache)
    mode: ConnectionMode = ConnectionMode.OFFLINE
    connectivity: ConnectivityStatus = field(
        default_factory=lambda: ConnectivityStatus.for_mode(ConnectionMode.OFFLINE)
    )
    last_values: Dict[str, float] = field(default_factory=dict)
    alarm_active: bool = False
    tick_count: int = 0
    last_tick_at: Optional[datetime] = None

    def snapshot_last_values(self) -> Dict[str, float]:
        self.last_values = {device.id: device.sensor_value for device in self.cache}
        return self.last_values

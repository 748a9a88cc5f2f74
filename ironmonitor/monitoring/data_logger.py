"""
Bounded per-device history buffer for reporting and export
"""

from collections import defaultdict, deque
from datetime import datetime
from typing import Deque, Dict, List

from ironmonitor.core.config import settings
from ironmonitor.schemas.device import DeviceRecord
from ironmonitor.schemas.history import HistoryLogEntry


def entry_for(device: DeviceRecord, timestamp: datetime) -> HistoryLogEntry:
    """Build the log entry for one device at one tick"""
    return HistoryLogEntry(
        timestamp=timestamp,
        temperature=round(device.sensor_value, 1),
        rpm=device.rpm,
        vibration=device.vibration,
        oee=device.oee,
        status_label="RUNNING" if device.status else "STOPPED",
        downtime_cause=device.downtime_cause,
        operator=device.operator,
    )


class DataLogger:
    """Append-only history per device, oldest entries evicted past capacity"""

    def __init__(self, capacity: int = None):
        self.capacity = capacity or settings.history_capacity
        self._entries: Dict[str, Deque[HistoryLogEntry]] = defaultdict(
            lambda: deque(maxlen=self.capacity))

    def append(self, device_id, entry: HistoryLogEntry) -> None:
        self._entries[str(device_id)].append(entry)

    def record(self, devices, timestamp: datetime) -> None:
        """Append one entry for each device"""
        for device in devices:
            self.append(device.id, entry_for(device, timestamp))

    def export_all(self, device_id) -> List[HistoryLogEntry]:
        """Entries for a device, oldest first"""
        return list(self._entries.get(str(device_id), ()))

    def latest(self, device_id, count: int = None) -> List[HistoryLogEntry]:
        count = count or settings.chart_max_points
        return self.export_all(device_id)[-count:]

    def discard(self, device_id) -> None:
        self._entries.pop(str(device_id), None)

    def __len__(self):
        return len(self._entries)

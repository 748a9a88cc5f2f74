"""
Remote sync gateway
Fetches the remote device list and reconciles it with the local cache,
switching between online and local operation
"""

import structlog
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ironmonitor.collectors.remote_store import RemoteStoreClient
from ironmonitor.core.config import settings
from ironmonitor.core.exceptions import TransportFailure
from ironmonitor.core.state import ConnectionMode, ConnectivityStatus, DeviceCache
from ironmonitor.schemas.device import DeviceRecord, RemoteDeviceRecord

logger = structlog.get_logger(__name__)

EXTENDED_FIELDS = ("operator", "rpm", "vibration", "oee", "downtime_cause")


def fallback_devices() -> List[DeviceRecord]:
    """Demo fleet used when the remote store is unreachable or empty"""
    return [
        DeviceRecord(id="1", name="Demo Mixer A1", status=False, sensor_value=20.0, threshold=80.0),
        DeviceRecord(id="4", name="Packer B1", status=False, sensor_value=20.0, threshold=90.0),
    ]


def is_stale(last_update: Optional[datetime], now: datetime, timeout_ms: int) -> bool:
    """True when more than timeout_ms elapsed since last_update"""
    if last_update is None:
        return False
    return (now - last_update).total_seconds() * 1000 > timeout_ms


def to_device_record(remote: RemoteDeviceRecord, previous: Optional[DeviceRecord],
                     now: datetime, watchdog_timeout_ms: int) -> DeviceRecord:
    """Map one remote record onto a DeviceRecord, carrying extended fields forward by id"""
    carried: Dict[str, Any] = {}
    if previous is not None:
        carried = {name: getattr(previous, name) for name in EXTENDED_FIELDS}
    carried.update(remote.extended_fields)

    return DeviceRecord(
        id=remote.id,
        name=remote.device_id or f"Device {remote.id}",
        sensor_value=max(remote.value, settings.min_temperature),
        status=remote.status,
        threshold=remote.threshold,
        message=remote.message,
        last_update=now,
        watchdog_error=previous is not None and is_stale(previous.last_update, now, watchdog_timeout_ms),
        **carried,
    )


def parse_remote_records(raw_records: List[Any]) -> List[RemoteDeviceRecord]:
    """Validate raw payload records, skipping the ones that cannot be identified"""
    parsed = []
    for raw in raw_records:
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed remote record", record=repr(raw)[:100])
            continue
        try:
            parsed.append(RemoteDeviceRecord.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping invalid remote record", record_id=raw.get("id"), error=str(e))
    return parsed


def reconcile(previous: DeviceCache, remote_records: Optional[List[Any]], now: datetime,
              watchdog_timeout_ms: int = None) -> Tuple[DeviceCache, ConnectionMode]:
    """
    Merge a fetch outcome into the cache.

    Args:
        previous: Cache before this reconciliation
        remote_records: Raw records from the store, or None when the fetch failed
        now: Reconciliation time
        watchdog_timeout_ms: Staleness window, defaults to settings

    Returns:
        The new cache and the resulting connection mode. On failure or an
        empty list the previous cache is returned unchanged, or the fallback
        fleet if there was nothing cached yet.
    """
    timeout_ms = watchdog_timeout_ms if watchdog_timeout_ms is not None else settings.watchdog_timeout_ms

    if remote_records is None:
        mode = ConnectionMode.OFFLINE
    else:
        records = parse_remote_records(remote_records)
        mode = ConnectionMode.ONLINE if records else ConnectionMode.EMPTY

    if mode is not ConnectionMode.ONLINE:
        if len(previous) == 0:
            return DeviceCache(fallback_devices()), mode
        return previous, mode

    merged = DeviceCache(
        to_device_record(record, previous.get(record.id), now, timeout_ms)
        for record in records
    )
    return merged, mode


class RemoteSyncGateway:
    """Owns the remote fetch and the connectivity indicator"""

    def __init__(self, client: RemoteStoreClient, clock: Callable[[], datetime] = None,
                 watchdog_timeout_ms: int = None):
        self.client = client
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.watchdog_timeout_ms = watchdog_timeout_ms or settings.watchdog_timeout_ms
        self.mode = ConnectionMode.OFFLINE
        self.connectivity = ConnectivityStatus.for_mode(self.mode)
        self.last_error: Optional[str] = None

    async def fetch(self) -> Optional[List[Any]]:
        """Fetch raw records, returning None on any transport failure"""
        try:
            records = await self.client.list_devices()
            self.last_error = None
            return records
        except TransportFailure as e:
            self.last_error = str(e)
            logger.warning("Remote fetch failed, degrading to local mode", error=str(e))
            return None

    async def sync(self, previous: DeviceCache) -> Tuple[DeviceCache, ConnectionMode]:
        """Fetch and reconcile; never raises"""
        remote_records = await self.fetch()
        cache, mode = reconcile(previous, remote_records, self.clock(), self.watchdog_timeout_ms)
        self._set_mode(mode)
        return cache, mode

    def _set_mode(self, mode: ConnectionMode):
        status = ConnectivityStatus.for_mode(mode)
        if mode != self.mode:
            logger.info("Connectivity changed",
                        old_mode=self.mode.value,
                        new_mode=mode.value,
                        indicator=status.text,
                        severity=status.severity)
        self.mode = mode
        self.connectivity = status

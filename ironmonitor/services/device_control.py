"""
Manual device actions: start/stop, emergency stop and supervisor CRUD
Every action writes whole records into the shared cache
"""

import structlog
from typing import List, Optional

from ironmonitor.collectors.remote_store import RemoteStoreClient
from ironmonitor.collectors.sync_gateway import RemoteSyncGateway
from ironmonitor.core.exceptions import ConfirmationRequired, DeviceNotFoundError, TransportFailure
from ironmonitor.core.state import MonitorState, device_sort_key
from ironmonitor.schemas.device import DeviceRecord

logger = structlog.get_logger(__name__)

MANUAL_START = "Manual start"
MANUAL_STOP = "Manual stop"
EMERGENCY_STOP = "EMERGENCY STOP EXECUTED"
REGISTERED = "Device registered"


class DeviceControlService:
    """Applies operator and supervisor actions to the cache and mirrors them remotely"""

    def __init__(self, state: MonitorState, client: RemoteStoreClient, gateway: RemoteSyncGateway):
        self.state = state
        self.client = client
        self.gateway = gateway

    def _require(self, device_id) -> DeviceRecord:
        device = self.state.cache.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    async def _push(self, device_id, payload) -> bool:
        """Best-effort remote update while online"""
        if not self.state.mode.is_remote:
            return False
        try:
            await self.client.update_device(device_id, payload)
            return True
        except TransportFailure as e:
            logger.warning("Remote update failed", device_id=device_id, error=str(e))
            return False

    async def _resync(self):
        cache, mode = await self.gateway.sync(self.state.cache)
        self.state.cache = cache
        self.state.mode = mode
        self.state.connectivity = self.gateway.connectivity

    async def toggle(self, device_id, confirm: bool = False) -> DeviceRecord:
        """Start a stopped machine (confirmation required) or stop a running one"""
        device = self._require(device_id)
        start = not device.status
        if start and not confirm:
            raise ConfirmationRequired(f"Starting device {device.id} requires confirmation")

        updated = device.model_copy(update={
            "status": start,
            "message": MANUAL_START if start else MANUAL_STOP,
        })
        self.state.cache.put(updated)
        logger.info("Manual toggle", device_id=updated.id, status=updated.status)
        await self._push(updated.id, {"status": updated.status, "message": updated.message})
        return updated

    async def emergency_stop_all(self) -> List[DeviceRecord]:
        """Stop every machine in the plant"""
        stopped = []
        for device in self.state.cache.values():
            updated = device.model_copy(update={"status": False, "message": EMERGENCY_STOP})
            self.state.cache.put(updated)
            stopped.append(updated)
        logger.warning("Emergency stop executed", devices=len(stopped))

        for device in stopped:
            await self._push(device.id, {"status": False, "message": EMERGENCY_STOP})
        return stopped

    def _next_local_id(self) -> str:
        numeric = [int(device_id) for device_id in self.state.cache.ids() if device_id.isdigit()]
        return str(max(numeric, default=0) + 1)

    async def create_device(self, name: str, threshold: float) -> DeviceRecord:
        """Register a new machine, remotely when online and locally otherwise"""
        if self.state.mode.is_remote:
            payload = {"deviceId": name, "threshold": threshold, "value": 20, "status": False,
                       "message": REGISTERED}
            try:
                created = await self.client.create_device(payload)
            except TransportFailure as e:
                logger.warning("Remote create failed, registering locally", error=str(e))
            else:
                new_id = created.get("id") if isinstance(created, dict) else None
                if new_id not in (None, ""):
                    return await self._adopt_created(str(new_id), name, threshold)
                logger.warning("Remote create returned no id, registering locally", name=name)

        device = DeviceRecord(id=self._next_local_id(), name=name, threshold=threshold,
                              message=REGISTERED)
        self.state.cache.put(device)
        logger.info("Device created locally", device_id=device.id, name=name)
        return device

    async def _adopt_created(self, device_id: str, name: str, threshold: float) -> DeviceRecord:
        """Cache a device the store accepted, even if the follow-up fetch does not list it yet"""
        await self._resync()
        device = self.state.cache.get(device_id)
        if device is None:
            device = DeviceRecord(id=device_id, name=name, threshold=threshold, message=REGISTERED)
            self.state.cache.put(device)
        logger.info("Device created", device_id=device_id, name=name)
        return device

    async def update_device(self, device_id, name: Optional[str] = None,
                            threshold: Optional[float] = None) -> DeviceRecord:
        """Edit a machine's name and/or safety limit"""
        device = self._require(device_id)
        changes = {}
        if name is not None:
            changes["name"] = name
        if threshold is not None:
            changes["threshold"] = threshold
        if not changes:
            return device

        updated = device.model_copy(update=changes)
        self.state.cache.put(updated)
        remote_payload = {}
        if "name" in changes:
            remote_payload["deviceId"] = changes["name"]
        if "threshold" in changes:
            remote_payload["threshold"] = changes["threshold"]
        if await self._push(updated.id, remote_payload):
            await self._resync()
        logger.info("Device updated", device_id=updated.id)
        return self.state.cache.get(updated.id) or updated

    async def delete_device(self, device_id) -> DeviceRecord:
        """Remove a machine from the fleet"""
        device = self._require(device_id)
        if self.state.mode.is_remote:
            try:
                await self.client.delete_device(device.id)
            except TransportFailure as e:
                logger.warning("Remote delete failed", device_id=device.id, error=str(e))
        self.state.cache.remove(device.id)
        logger.info("Device deleted", device_id=device.id)
        return device

    def sorted_devices(self) -> List[DeviceRecord]:
        return sorted(self.state.cache.values(), key=lambda device: device_sort_key(device.id))

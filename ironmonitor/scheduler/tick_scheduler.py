"""
Tick scheduler
Drives sync, simulation, health, logging and presentation on a fixed cadence
"""

import asyncio
import inspect
import structlog
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from ironmonitor.collectors.sync_gateway import RemoteSyncGateway
from ironmonitor.core.config import settings
from ironmonitor.core.state import ConnectionMode, DeviceCache, MonitorState
from ironmonitor.monitoring.data_logger import DataLogger
from ironmonitor.monitoring.health import HealthMonitor, Trend
from ironmonitor.monitoring.status_history import StatusHistoryRecorder
from ironmonitor.schemas.device import DeviceRecord
from ironmonitor.simulation.physics import PhysicsEngine

logger = structlog.get_logger(__name__)

# Fields set by operator and supervisor actions
MANUAL_FIELDS = ("name", "threshold", "status", "message")


@dataclass
class TickResult:
    """What the presentation layer receives after each tick"""

    tick: int
    mode: ConnectionMode
    devices: List[DeviceRecord]
    alarm_active: bool
    trends: Dict[str, Trend]
    added_ids: List[str] = field(default_factory=list)
    removed_ids: List[str] = field(default_factory=list)
    timestamp: Optional[datetime] = None


class TickScheduler:
    """Runs one tick at a time; a tick requested while another is pending is skipped"""

    def __init__(self, state: MonitorState, gateway: RemoteSyncGateway, engine: PhysicsEngine,
                 monitor: HealthMonitor, data_logger: DataLogger,
                 recorder: Optional[StatusHistoryRecorder] = None,
                 interval_seconds: float = None, reconnect_probe: bool = None,
                 clock: Callable[[], datetime] = None):
        self.state = state
        self.gateway = gateway
        self.engine = engine
        self.monitor = monitor
        self.data_logger = data_logger
        self.recorder = recorder
        self.interval_seconds = interval_seconds or settings.tick_interval_seconds
        self.reconnect_probe = settings.reconnect_probe if reconnect_probe is None else reconnect_probe
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.running = False
        self.last_result: Optional[TickResult] = None
        self.trends: Dict[str, Trend] = {}
        self._listeners: List[Callable] = []
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._published_ids: Optional[List[str]] = None

    def subscribe(self, listener: Callable) -> None:
        """Register a callable (sync or async) receiving every TickResult"""
        self._listeners.append(listener)

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    async def initialize(self) -> ConnectionMode:
        """Initial fetch before the first tick"""
        async with self._lock:
            cache, mode = await self.gateway.sync(self.state.cache)
            self._apply_sync(cache, mode)
            logger.info("Initial sync complete", mode=mode.value, devices=len(cache))
            return mode

    async def start(self):
        """Start the tick loop as a background task"""
        if self._task and not self._task.done():
            return
        self.running = True
        await self.initialize()
        self._task = asyncio.create_task(self._tick_loop())
        logger.info("Tick scheduler started", interval_seconds=self.interval_seconds)

    async def stop(self):
        """Stop the tick loop"""
        self.running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Tick scheduler stopped")

    def _next_delay(self, elapsed: float) -> float:
        """Sleep for what is left of the interval so ticks keep a fixed cadence"""
        return max(0.0, self.interval_seconds - elapsed)

    async def _tick_loop(self):
        """Main tick loop"""
        loop = asyncio.get_running_loop()
        while self.running:
            started = loop.time()
            try:
                await self.tick()
            except Exception as e:
                logger.error("Error in tick loop", error=str(e), exc_info=True)
            await asyncio.sleep(self._next_delay(loop.time() - started))

    async def tick(self) -> Optional[TickResult]:
        """Run one tick, or return None if the previous one is still pending"""
        if self._lock.locked():
            logger.warning("Previous tick still in flight, skipping", tick=self.state.tick_count)
            return None

        async with self._lock:
            previous_ids = self._published_ids if self._published_ids is not None else self.state.cache.ids()
            self.state.snapshot_last_values()

            if self.state.mode.is_remote:
                await self._remote_step()
            else:
                await self._local_step()

            now = self.clock()
            report = self.monitor.evaluate(self.state.cache, self.state.mode, now, self.state.last_values)
            self.state.cache = report.cache
            self.state.alarm_active = report.alarm_active
            self.trends = report.trends

            devices = self.state.cache.values()
            self.data_logger.record(devices, now)
            if self.recorder is not None:
                self.recorder.record(devices, now)

            current_ids = self.state.cache.ids()
            removed_ids = [device_id for device_id in previous_ids if device_id not in self.state.cache]
            added_ids = [device_id for device_id in current_ids if device_id not in previous_ids]
            for device_id in removed_ids:
                self.data_logger.discard(device_id)
                if self.recorder is not None:
                    self.recorder.forget(device_id)

            self._published_ids = current_ids
            self.state.tick_count += 1
            self.state.last_tick_at = now
            result = TickResult(
                tick=self.state.tick_count,
                mode=self.state.mode,
                devices=devices,
                alarm_active=report.alarm_active,
                trends=report.trends,
                added_ids=added_ids,
                removed_ids=removed_ids,
                timestamp=now,
            )
            self.last_result = result

        await self._notify(result)
        return result

    async def _local_step(self):
        """Simulate locally; optionally probe the remote store to come back online"""
        self.state.cache = self.engine.advance_all(self.state.cache)
        if self.reconnect_probe:
            written = self.state.cache.copy()
            cache, mode = await self.gateway.sync(self.state.cache)
            self._apply_sync(self._keep_manual_writes(written, cache), mode)

    async def _remote_step(self):
        """Simulate, mirror to the store, then let the fetch decide the cache"""
        # Provisional until reconciled; written first so manual actions merge against it
        self.state.cache = self.engine.advance_all(self.state.cache)
        written = self.state.cache.copy()

        for device in written:
            if self._manually_changed(written, device.id):
                continue
            await self.engine.push(device)
        # Manual writes made while the pushes were in flight land last
        for device_id in written.ids():
            current = self.state.cache.get(device_id)
            if current is not None and self._manually_changed(written, device_id):
                await self.engine.push(current)

        cache, mode = await self.gateway.sync(self.state.cache)
        self._apply_sync(self._keep_manual_writes(written, cache), mode)

    def _manually_changed(self, written: DeviceCache, device_id: str) -> bool:
        return self.state.cache.get(device_id) is not written.get(device_id)

    def _keep_manual_writes(self, written: DeviceCache, reconciled: DeviceCache) -> DeviceCache:
        """
        Re-apply manual actions taken while the tick was awaiting the store.

        Records the tick wrote are the baseline: a cached record that is no
        longer the same object was replaced by a manual action, and its
        operator-controlled fields win over the fetched copy. Devices deleted
        meanwhile stay deleted and devices created meanwhile are kept.
        """
        if reconciled is self.state.cache:
            return reconciled

        merged = DeviceCache()
        for device in reconciled:
            if device.id in written and device.id not in self.state.cache:
                continue
            if device.id in written and self._manually_changed(written, device.id):
                manual = self.state.cache.get(device.id)
                device = device.model_copy(update={name: getattr(manual, name) for name in MANUAL_FIELDS})
            merged.put(device)
        for device in self.state.cache:
            if device.id not in written and device.id not in merged:
                merged.put(device)
        return merged

    def _apply_sync(self, cache: DeviceCache, mode: ConnectionMode):
        self.state.cache = cache
        self.state.mode = mode
        self.state.connectivity = self.gateway.connectivity

    async def _notify(self, result: TickResult):
        for listener in self._listeners:
            try:
                outcome = listener(result)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error("Tick listener failed", error=str(e))

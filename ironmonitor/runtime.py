"""
Wires the monitoring core together for the API process
"""

import asyncio
import random
import structlog
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import sessionmaker

from ironmonitor.collectors.remote_store import RemoteStoreClient
from ironmonitor.collectors.sync_gateway import RemoteSyncGateway
from ironmonitor.core.config import Settings, settings as default_settings
from ironmonitor.core.state import MonitorState
from ironmonitor.monitoring.data_logger import DataLogger
from ironmonitor.monitoring.health import HealthMonitor
from ironmonitor.monitoring.status_history import StatusHistoryRecorder
from ironmonitor.scheduler.tick_scheduler import TickScheduler
from ironmonitor.services.device_control import DeviceControlService
from ironmonitor.simulation.physics import PhysicsEngine

logger = structlog.get_logger(__name__)


class MonitorRuntime:
    """Owns one instance of every pipeline component"""

    def __init__(self, config: Settings = None, client: RemoteStoreClient = None,
                 session_factory: Optional[sessionmaker] = None, rng: random.Random = None):
        self.config = config or default_settings
        self.state = MonitorState()
        self.client = client or RemoteStoreClient(self.config.devices_url, self.config.request_timeout_seconds)
        self.gateway = RemoteSyncGateway(self.client, watchdog_timeout_ms=self.config.watchdog_timeout_ms)
        self.engine = PhysicsEngine(rng=rng or random.Random(self.config.simulation_seed), client=self.client)
        self.monitor = HealthMonitor(watchdog_timeout_ms=self.config.watchdog_timeout_ms,
                                     tick_interval_seconds=self.config.tick_interval_seconds)
        self.data_logger = DataLogger(self.config.history_capacity)
        self.recorder = StatusHistoryRecorder(session_factory) if session_factory is not None else None
        self.scheduler = TickScheduler(
            self.state, self.gateway, self.engine, self.monitor, self.data_logger,
            recorder=self.recorder,
            interval_seconds=self.config.tick_interval_seconds,
            reconnect_probe=self.config.reconnect_probe,
        )
        self.control = DeviceControlService(self.state, self.client, self.gateway)

    async def start(self):
        await self.client.start()
        await self.scheduler.start()

    async def stop(self):
        await self.scheduler.stop()
        await self.client.close()


def get_runtime(request: Request) -> MonitorRuntime:
    """FastAPI dependency returning the runtime attached to the app"""
    return request.app.state.runtime


async def main():
    """Run the tick pipeline without the HTTP surface"""
    from ironmonitor.core.logging_config import configure_logging

    configure_logging()
    runtime = MonitorRuntime()
    try:
        await runtime.start()
        while runtime.scheduler.running:
            await asyncio.sleep(runtime.scheduler.interval_seconds)
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal")
    finally:
        await runtime.stop()


def run():
    """Console entry point for headless mode"""
    asyncio.run(main())


if __name__ == "__main__":
    run()

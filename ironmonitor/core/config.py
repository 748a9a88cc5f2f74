"""
Configuration settings for the IronMonitor dashboard core
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Remote data store
    remote_api_url: str = "https://698a1871c04d974bc6a1579f.mockapi.io/api/v1"
    remote_collection: str = "logs"
    request_timeout_seconds: float = 10.0
    devices_url: str = ""

    # Tick pipeline
    tick_interval_ms: int = 2000
    watchdog_timeout_ms: int = 6000
    reconnect_probe: bool = True
    simulation_seed: Optional[int] = None

    # Physics
    min_temperature: float = 20.0
    default_threshold: float = 90.0
    pre_alarm_ratio: float = 0.8

    # Data logging
    history_capacity: int = 500
    chart_max_points: int = 15

    # Status history database
    database_url: str = "sqlite:///./ironmonitor.db"
    status_history_enabled: bool = True

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False
    supervisor_pin: str = "1234"

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "IRONMONITOR_"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # Build devices_url from components
        if not self.devices_url:
            self.devices_url = f"{self.remote_api_url.rstrip('/')}/{self.remote_collection}"

    @property
    def tick_interval_seconds(self) -> float:
        return self.tick_interval_ms / 1000.0


# Global settings instance
settings = Settings()

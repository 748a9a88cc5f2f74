import os
import sys

import pytest

# Add project root and the tests directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from ironmonitor.schemas.device import DeviceRecord  # noqa: E402

from factories import NOW  # noqa: E402


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sample_devices():
    return [
        DeviceRecord(id="1", name="Mixer A1", sensor_value=45.0, status=True, threshold=80.0,
                     operator="L. Sanchez", rpm=1500, vibration=2.75, oee=90.0),
        DeviceRecord(id="4", name="Packer, B1", sensor_value=75.0, status=False, threshold=90.0,
                     operator="G. Martinez", downtime_cause="Cleaning"),
    ]


@pytest.fixture
def mock_env_vars(monkeypatch):
    monkeypatch.setenv("IRONMONITOR_REMOTE_API_URL", "http://store.test/api/v1")
    monkeypatch.setenv("IRONMONITOR_TICK_INTERVAL_MS", "500")
    monkeypatch.setenv("IRONMONITOR_SUPERVISOR_PIN", "9999")

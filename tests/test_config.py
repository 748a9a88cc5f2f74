from ironmonitor.core.config import Settings


def test_defaults():
    config = Settings(_env_file=None)

    assert config.tick_interval_seconds == 2.0
    assert config.watchdog_timeout_ms == 6000
    assert config.history_capacity == 500
    assert config.supervisor_pin == "1234"
    assert config.devices_url.endswith("/api/v1/logs")


def test_environment_overrides(mock_env_vars):
    config = Settings(_env_file=None)

    assert config.devices_url == "http://store.test/api/v1/logs"
    assert config.tick_interval_seconds == 0.5
    assert config.supervisor_pin == "9999"


def test_explicit_devices_url_kept():
    config = Settings(_env_file=None, devices_url="http://other.test/machines")

    assert config.devices_url == "http://other.test/machines"

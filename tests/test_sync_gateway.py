import unittest
import sys
import os
from datetime import timedelta

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from ironmonitor.collectors.sync_gateway import RemoteSyncGateway, fallback_devices, reconcile
from ironmonitor.core.exceptions import TransportFailure
from ironmonitor.core.state import ConnectionMode, DeviceCache
from ironmonitor.schemas.device import DeviceRecord

from factories import NOW, mock_store_client, remote_record


class TestReconcile(unittest.TestCase):
    """Test cases for merging fetch outcomes into the cache"""

    def setUp(self):
        """Set up test fixtures"""
        self.previous = DeviceCache([
            DeviceRecord(id="1", name="Mixer 1", sensor_value=40.0, status=True, threshold=80.0,
                         last_update=NOW - timedelta(seconds=2),
                         operator="L. Sanchez", rpm=1500, vibration=2.5, oee=91.2),
        ])

    def test_empty_list_on_first_fetch_seeds_fallback(self):
        """An empty store with nothing cached yields the demo fleet"""
        cache, mode = reconcile(DeviceCache(), [], NOW)

        self.assertEqual(mode, ConnectionMode.EMPTY)
        self.assertEqual(cache.values(), fallback_devices())
        self.assertEqual(cache.ids(), ["1", "4"])

    def test_empty_list_keeps_existing_cache(self):
        cache, mode = reconcile(self.previous, [], NOW)

        self.assertEqual(mode, ConnectionMode.EMPTY)
        self.assertIs(cache, self.previous)

    def test_failure_with_prior_cache_keeps_it_unchanged(self):
        """Transient failure never clears data"""
        before = self.previous.copy()
        cache, mode = reconcile(self.previous, None, NOW)

        self.assertEqual(mode, ConnectionMode.OFFLINE)
        self.assertEqual(cache, before)

    def test_failure_with_empty_cache_seeds_fallback(self):
        cache, mode = reconcile(DeviceCache(), None, NOW)

        self.assertEqual(mode, ConnectionMode.OFFLINE)
        self.assertEqual(len(cache), 2)

    def test_merge_preserves_extended_fields(self):
        """Extended telemetry absent from the payload is carried forward by id"""
        cache, mode = reconcile(self.previous, [remote_record(1, value="55.5", status=True, threshold="80")], NOW)

        self.assertEqual(mode, ConnectionMode.ONLINE)
        device = cache.get("1")
        self.assertEqual(device.rpm, 1500)
        self.assertEqual(device.operator, "L. Sanchez")
        self.assertEqual(device.vibration, 2.5)
        self.assertEqual(device.oee, 91.2)
        self.assertEqual(device.sensor_value, 55.5)
        self.assertEqual(device.threshold, 80.0)
        self.assertEqual(device.last_update, NOW)
        self.assertFalse(device.watchdog_error)

    def test_payload_extended_fields_win_when_present(self):
        record = remote_record(1)
        record["rpm"] = 1200
        cache, _ = reconcile(self.previous, [record], NOW)

        self.assertEqual(cache.get("1").rpm, 1200)
        self.assertEqual(cache.get("1").operator, "L. Sanchez")

    def test_new_device_gets_default_extended_fields(self):
        cache, _ = reconcile(self.previous, [remote_record(1), remote_record(7)], NOW)

        device = cache.get("7")
        self.assertEqual(device.rpm, 0)
        self.assertIsNone(device.operator)
        self.assertEqual(device.downtime_cause, "-")
        self.assertFalse(device.watchdog_error)

    def test_watchdog_raised_for_stale_previous_record(self):
        """Previous update 7 s ago exceeds the 6 s window"""
        stale = DeviceCache([
            DeviceRecord(id="1", name="Mixer 1", last_update=NOW - timedelta(milliseconds=7000)),
        ])
        cache, _ = reconcile(stale, [remote_record(1)], NOW)

        self.assertTrue(cache.get("1").watchdog_error)

    def test_watchdog_not_raised_inside_window(self):
        fresh = DeviceCache([
            DeviceRecord(id="1", name="Mixer 1", last_update=NOW - timedelta(milliseconds=5999)),
        ])
        cache, _ = reconcile(fresh, [remote_record(1)], NOW)

        self.assertFalse(cache.get("1").watchdog_error)

    def test_removed_devices_drop_out(self):
        cache, _ = reconcile(self.previous, [remote_record(2)], NOW)

        self.assertEqual(cache.ids(), ["2"])

    def test_lenient_parsing(self):
        """Bad numbers fall back to defaults and integer ids are normalised"""
        records = [
            {"id": 2, "value": "abc", "threshold": -5},
            {"id": "9", "deviceId": "Packer 9", "value": 3, "status": "true"},
        ]
        cache, _ = reconcile(DeviceCache(), records, NOW)

        first = cache.get("2")
        self.assertEqual(first.name, "Device 2")
        self.assertEqual(first.sensor_value, 20.0)
        self.assertEqual(first.threshold, 90.0)
        self.assertFalse(first.status)
        self.assertEqual(first.message, "Normal operation")
        self.assertEqual(first.zone, "Line A - Mixing")

        second = cache.get("9")
        self.assertEqual(second.sensor_value, 20.0)
        self.assertTrue(second.status)
        self.assertEqual(second.zone, "Line B - Packaging")

    def test_unidentifiable_records_skipped(self):
        records = [{"deviceId": "no id"}, "garbage", remote_record(3)]
        cache, mode = reconcile(DeviceCache(), records, NOW)

        self.assertEqual(mode, ConnectionMode.ONLINE)
        self.assertEqual(cache.ids(), ["3"])

    def test_only_invalid_records_counts_as_empty(self):
        cache, mode = reconcile(self.previous, [{"deviceId": "no id"}], NOW)

        self.assertEqual(mode, ConnectionMode.EMPTY)
        self.assertIs(cache, self.previous)


class TestRemoteSyncGateway(unittest.IsolatedAsyncioTestCase):
    """Test cases for the fetch side of the gateway"""

    async def test_failure_degrades_to_offline(self):
        client = mock_store_client(list_error=TransportFailure("connection refused"))
        gateway = RemoteSyncGateway(client, clock=lambda: NOW)

        cache, mode = await gateway.sync(DeviceCache())

        self.assertEqual(mode, ConnectionMode.OFFLINE)
        self.assertEqual(gateway.connectivity.text, "OFFLINE (DEMO)")
        self.assertEqual(gateway.connectivity.severity, "danger")
        self.assertIn("connection refused", gateway.last_error)
        self.assertEqual(len(cache), 2)

    async def test_success_goes_online(self):
        client = mock_store_client(records=[remote_record(1, value=30)])
        gateway = RemoteSyncGateway(client, clock=lambda: NOW)

        cache, mode = await gateway.sync(DeviceCache())

        self.assertEqual(mode, ConnectionMode.ONLINE)
        self.assertEqual(gateway.connectivity.text, "ONLINE")
        self.assertIsNone(gateway.last_error)
        self.assertEqual(cache.get("1").sensor_value, 30.0)

    async def test_empty_store_shows_warning(self):
        gateway = RemoteSyncGateway(mock_store_client(records=[]), clock=lambda: NOW)

        _, mode = await gateway.sync(DeviceCache())

        self.assertEqual(mode, ConnectionMode.EMPTY)
        self.assertEqual(gateway.connectivity.severity, "warning")

    async def test_mode_flips_without_hysteresis(self):
        client = mock_store_client(records=[remote_record(1)])
        gateway = RemoteSyncGateway(client, clock=lambda: NOW)

        cache, mode = await gateway.sync(DeviceCache())
        self.assertEqual(mode, ConnectionMode.ONLINE)

        client.list_devices.side_effect = TransportFailure("timeout")
        cache, mode = await gateway.sync(cache)
        self.assertEqual(mode, ConnectionMode.OFFLINE)

        client.list_devices.side_effect = None
        cache, mode = await gateway.sync(cache)
        self.assertEqual(mode, ConnectionMode.ONLINE)


if __name__ == '__main__':
    unittest.main()

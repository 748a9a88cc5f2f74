import unittest
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from ironmonitor.collectors.sync_gateway import RemoteSyncGateway
from ironmonitor.core.exceptions import ConfirmationRequired, DeviceNotFoundError, TransportFailure
from ironmonitor.core.state import ConnectionMode, DeviceCache, MonitorState
from ironmonitor.schemas.device import DeviceRecord
from ironmonitor.services.device_control import EMERGENCY_STOP, MANUAL_START, MANUAL_STOP, DeviceControlService

from factories import NOW, mock_store_client, remote_record


class ControlTestCase(unittest.IsolatedAsyncioTestCase):

    def build(self, mode=ConnectionMode.OFFLINE, records=None):
        self.client = mock_store_client(records=records)
        self.state = MonitorState(
            cache=DeviceCache([
                DeviceRecord(id="1", name="Mixer 1", sensor_value=40.0, status=True, threshold=80.0, rpm=1500),
                DeviceRecord(id="10", name="Packer 10", sensor_value=30.0, status=False, threshold=90.0),
                DeviceRecord(id="4", name="Packer 4", sensor_value=25.0, status=False, threshold=90.0),
            ]),
            mode=mode,
        )
        gateway = RemoteSyncGateway(self.client, clock=lambda: NOW, watchdog_timeout_ms=6000)
        self.control = DeviceControlService(self.state, self.client, gateway)
        return self.control


class TestToggle(ControlTestCase):
    """Test cases for manual start/stop"""

    async def test_stop_running_device(self):
        control = self.build()

        updated = await control.toggle("1")

        self.assertFalse(updated.status)
        self.assertEqual(updated.message, MANUAL_STOP)
        self.assertIs(self.state.cache.get("1"), updated)
        self.assertEqual(updated.rpm, 1500)
        self.client.update_device.assert_not_awaited()

    async def test_start_requires_confirmation(self):
        control = self.build()

        with self.assertRaises(ConfirmationRequired):
            await control.toggle("4")
        self.assertFalse(self.state.cache.get("4").status)

        updated = await control.toggle("4", confirm=True)
        self.assertTrue(updated.status)
        self.assertEqual(updated.message, MANUAL_START)

    async def test_toggle_mirrors_remotely_when_online(self):
        control = self.build(mode=ConnectionMode.ONLINE)

        await control.toggle("1")

        self.client.update_device.assert_awaited_once_with("1", {"status": False, "message": MANUAL_STOP})

    async def test_remote_failure_keeps_local_change(self):
        control = self.build(mode=ConnectionMode.ONLINE)
        self.client.update_device.side_effect = TransportFailure("timeout")

        updated = await control.toggle("1")

        self.assertFalse(updated.status)
        self.assertFalse(self.state.cache.get("1").status)

    async def test_unknown_device(self):
        control = self.build()

        with self.assertRaises(DeviceNotFoundError):
            await control.toggle("99")


class TestEmergencyStop(ControlTestCase):

    async def test_every_device_stopped(self):
        control = self.build(mode=ConnectionMode.ONLINE)

        stopped = await control.emergency_stop_all()

        self.assertEqual(len(stopped), 3)
        for device in self.state.cache:
            self.assertFalse(device.status)
            self.assertEqual(device.message, EMERGENCY_STOP)
        self.assertEqual(self.client.update_device.await_count, 3)


class TestSupervisorActions(ControlTestCase):
    """Test cases for create, update and delete"""

    async def test_create_locally_when_offline(self):
        control = self.build()

        device = await control.create_device("Oven 11", 120.0)

        self.assertEqual(device.id, "11")
        self.assertFalse(device.status)
        self.assertEqual(device.sensor_value, 20.0)
        self.assertIn("11", self.state.cache)
        self.client.create_device.assert_not_awaited()

    async def test_create_remotely_when_online(self):
        control = self.build(mode=ConnectionMode.ONLINE,
                             records=[remote_record(1), remote_record(12, name="Oven 12", threshold=120)])
        self.client.create_device.return_value = {"id": "12"}

        device = await control.create_device("Oven 12", 120.0)

        self.client.create_device.assert_awaited_once()
        payload = self.client.create_device.call_args[0][0]
        self.assertEqual(payload["deviceId"], "Oven 12")
        self.assertEqual(payload["threshold"], 120.0)
        self.assertEqual(device.id, "12")
        self.assertEqual(self.state.cache.ids(), ["1", "12"])

    async def test_create_falls_back_to_local_on_failure(self):
        control = self.build(mode=ConnectionMode.ONLINE)
        self.client.create_device.side_effect = TransportFailure("500")

        device = await control.create_device("Oven", 100.0)

        self.assertEqual(device.id, "11")

    async def test_create_accepted_remotely_survives_failed_resync(self):
        control = self.build(mode=ConnectionMode.ONLINE)
        self.client.create_device.return_value = {"id": "7"}
        self.client.list_devices.side_effect = TransportFailure("timeout")

        device = await control.create_device("Oven 7", 120.0)

        self.assertEqual(device.id, "7")
        self.assertEqual(device.threshold, 120.0)
        self.assertEqual(self.state.cache.ids(), ["1", "10", "4", "7"])
        self.assertEqual(self.state.mode, ConnectionMode.OFFLINE)

    async def test_create_accepted_remotely_but_not_listed_yet(self):
        control = self.build(mode=ConnectionMode.ONLINE, records=[remote_record(1)])
        self.client.create_device.return_value = {"id": 7}

        device = await control.create_device("Oven 7", 120.0)

        self.assertEqual(device.id, "7")
        self.assertEqual(self.state.cache.ids(), ["1", "7"])

    async def test_create_without_returned_id_registers_locally(self):
        control = self.build(mode=ConnectionMode.ONLINE)
        self.client.create_device.return_value = None

        device = await control.create_device("Oven", 100.0)

        self.assertEqual(device.id, "11")
        self.client.list_devices.assert_not_awaited()

    async def test_update_name_and_threshold(self):
        control = self.build()

        updated = await control.update_device("4", name="Packer Four", threshold=70.0)

        self.assertEqual(updated.name, "Packer Four")
        self.assertEqual(updated.threshold, 70.0)
        self.assertEqual(updated.sensor_value, 25.0)

    async def test_update_pushes_and_resyncs_when_online(self):
        control = self.build(mode=ConnectionMode.ONLINE,
                             records=[remote_record(4, name="Packer 4", threshold=70)])

        updated = await control.update_device("4", threshold=70.0)

        self.client.update_device.assert_awaited_once_with("4", {"threshold": 70.0})
        self.client.list_devices.assert_awaited_once()
        self.assertEqual(updated.threshold, 70.0)

    async def test_delete_removes_device(self):
        control = self.build(mode=ConnectionMode.ONLINE)
        self.client.delete_device.side_effect = TransportFailure("404")

        deleted = await control.delete_device("4")

        self.assertEqual(deleted.id, "4")
        self.assertNotIn("4", self.state.cache)
        self.client.delete_device.assert_awaited_once_with("4")

    async def test_sorted_devices_numeric_order(self):
        control = self.build()

        self.assertEqual([device.id for device in control.sorted_devices()], ["1", "4", "10"])


if __name__ == '__main__':
    unittest.main()

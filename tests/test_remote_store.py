import unittest
import sys
import os

from aiohttp import web
from aiohttp import test_utils

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ironmonitor.collectors.remote_store import RemoteStoreClient
from ironmonitor.core.exceptions import TransportFailure


def build_store_app():
    """In-memory stand-in for the remote collection endpoint"""
    store = {"1": {"id": "1", "deviceId": "Mixer 1", "value": 42, "status": True, "threshold": 80}}
    counter = {"next": 2}

    async def list_records(request):
        return web.json_response(list(store.values()))

    async def get_record(request):
        record = store.get(request.match_info["id"])
        if record is None:
            return web.json_response("Not found", status=404)
        return web.json_response(record)

    async def create_record(request):
        payload = await request.json()
        record = dict(payload, id=str(counter["next"]))
        counter["next"] += 1
        store[record["id"]] = record
        return web.json_response(record, status=201)

    async def update_record(request):
        record = store.get(request.match_info["id"])
        if record is None:
            return web.json_response("Not found", status=404)
        record.update(await request.json())
        return web.json_response(record)

    async def delete_record(request):
        record = store.pop(request.match_info["id"], None)
        if record is None:
            return web.json_response("Not found", status=404)
        return web.json_response(record)

    async def broken(request):
        return web.Response(text="upstream exploded", status=500)

    async def not_json(request):
        return web.Response(text="<html>maintenance</html>")

    async def not_a_list(request):
        return web.json_response({"error": "rate limited"})

    app = web.Application()
    app.router.add_get("/logs", list_records)
    app.router.add_post("/logs", create_record)
    app.router.add_get("/logs/{id}", get_record)
    app.router.add_put("/logs/{id}", update_record)
    app.router.add_delete("/logs/{id}", delete_record)
    app.router.add_get("/broken", broken)
    app.router.add_get("/html", not_json)
    app.router.add_get("/object", not_a_list)
    return app


class TestRemoteStoreClient(unittest.IsolatedAsyncioTestCase):
    """Test cases for the remote store HTTP client"""

    async def asyncSetUp(self):
        self.server = test_utils.TestServer(build_store_app())
        await self.server.start_server()
        self.client = RemoteStoreClient(str(self.server.make_url("/logs")), timeout=5)
        await self.client.start()

    async def asyncTearDown(self):
        await self.client.close()
        await self.server.close()

    async def test_crud_round(self):
        devices = await self.client.list_devices()
        self.assertEqual([device["id"] for device in devices], ["1"])

        created = await self.client.create_device({"deviceId": "Oven", "threshold": 120})
        self.assertEqual(created["id"], "2")

        updated = await self.client.update_device("2", {"value": 55.5, "status": True})
        self.assertEqual(updated["value"], 55.5)
        self.assertEqual(updated["deviceId"], "Oven")

        self.assertEqual((await self.client.get_device("2"))["status"], True)

        await self.client.delete_device("2")
        self.assertEqual(len(await self.client.list_devices()), 1)

    async def test_http_error_status(self):
        with self.assertRaises(TransportFailure) as context:
            await self.client.get_device("99")
        self.assertEqual(context.exception.status, 404)

    async def test_server_error(self):
        client = RemoteStoreClient(str(self.server.make_url("/broken")), timeout=5)
        async with client:
            with self.assertRaises(TransportFailure) as context:
                await client.list_devices()
        self.assertEqual(context.exception.status, 500)
        self.assertIn("upstream exploded", str(context.exception))

    async def test_invalid_json(self):
        client = RemoteStoreClient(str(self.server.make_url("/html")), timeout=5)
        async with client:
            with self.assertRaises(TransportFailure):
                await client.list_devices()

    async def test_list_must_be_a_list(self):
        client = RemoteStoreClient(str(self.server.make_url("/object")), timeout=5)
        async with client:
            with self.assertRaises(TransportFailure):
                await client.list_devices()

    async def test_connection_refused(self):
        client = RemoteStoreClient("http://127.0.0.1:1/logs", timeout=2)
        async with client:
            with self.assertRaises(TransportFailure) as context:
                await client.list_devices()
        self.assertIsNone(context.exception.status)

    async def test_session_opened_on_demand(self):
        client = RemoteStoreClient(str(self.server.make_url("/logs")), timeout=5)
        try:
            self.assertEqual(len(await client.list_devices()), 1)
        finally:
            await client.close()
        self.assertIsNone(client.session)


if __name__ == '__main__':
    unittest.main()

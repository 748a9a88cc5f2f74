"""
HTTP client for the remote device store
Thin CRUD wrapper over the collection endpoint; every failure surfaces as TransportFailure
"""

import asyncio
import json
import aiohttp
import structlog
from typing import Any, Dict, List, Optional

from ironmonitor.core.config import settings
from ironmonitor.core.exceptions import TransportFailure

logger = structlog.get_logger(__name__)


class RemoteStoreClient:
    """list/get/create/update/delete over the remote device collection"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or settings.devices_url).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.request_timeout_seconds)
        self.session = session
        self._owns_session = session is None

    async def start(self):
        """Open the HTTP session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True

    async def close(self):
        """Close the HTTP session if this client opened it"""
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def list_devices(self) -> List[Dict[str, Any]]:
        """GET the full collection"""
        data = await self._request("GET", self.base_url)
        if not isinstance(data, list):
            raise TransportFailure(f"Expected a list of devices, got {type(data).__name__}")
        return data

    async def get_device(self, device_id) -> Dict[str, Any]:
        return await self._request("GET", f"{self.base_url}/{device_id}")

    async def create_device(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", self.base_url, payload)

    async def update_device(self, device_id, payload: Dict[str, Any]) -> Dict[str, Any]:
        """PUT by id; repeated calls with the same payload leave the same record"""
        return await self._request("PUT", f"{self.base_url}/{device_id}", payload)

    async def delete_device(self, device_id) -> Any:
        return await self._request("DELETE", f"{self.base_url}/{device_id}")

    async def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        if self.session is None or self.session.closed:
            await self.start()

        try:
            async with self.session.request(method, url, json=payload) as response:
                body = await response.text()
                if response.status < 200 or response.status >= 300:
                    raise TransportFailure(
                        f"{method} {url} returned {response.status}: {body[:200]}",
                        status=response.status,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Remote store request failed", method=method, url=url, error=str(e))
            raise TransportFailure(f"{method} {url} failed: {e}") from e

        if not body.strip():
            return None
        try:
            return json.loads(body)
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON from {method} {url}: {e}") from e

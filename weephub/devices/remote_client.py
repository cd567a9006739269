"""
Device-Control API Client

Bearer-token authenticated REST client for the remote device-control API
(SmartThings-style capability/command semantics) using httpx.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import RemoteCommandError

logger = logging.getLogger(__name__)

MAX_ERROR_BODY = 500


class DeviceControlClient:
    """
    Async client for the device-control REST API.

    Features:
    - One shared connection pool for every credential source
    - Per-request timeout so a hung call cannot stall a routine forever
    - Non-2xx responses and transport failures raised as RemoteCommandError
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.smartthings_api_url).rstrip("/")
        self.timeout = timeout or settings.remote_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying connection pool"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        token: str,
        json: Optional[Dict[str, Any]] = None
    ) -> Any:
        client = self._get_client()
        headers = {"Authorization": f"Bearer {token}"}

        try:
            response = await client.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e!r}")
            raise RemoteCommandError(None, str(e) or type(e).__name__) from e

        if not response.is_success:
            body = response.text[:MAX_ERROR_BODY]
            logger.warning(f"{method} {path} returned {response.status_code}: {body}")
            raise RemoteCommandError(response.status_code, body)

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError:
            return {"raw": response.text[:MAX_ERROR_BODY]}

    # =========================================================================
    # Device Operations
    # =========================================================================

    async def list_devices(self, token: str) -> List[Dict[str, Any]]:
        """Device inventory visible to a token"""
        data = await self._request("GET", "/devices", token)
        return data.get("items", []) if isinstance(data, dict) else []

    async def get_status(self, device_id: str, token: str) -> Dict[str, Any]:
        """Full attribute map of a device"""
        return await self._request("GET", f"/devices/{device_id}/status", token)

    async def get_health(self, device_id: str, token: str) -> Dict[str, Any]:
        """Connectivity state of a device"""
        return await self._request("GET", f"/devices/{device_id}/health", token)

    async def send_commands(
        self,
        device_id: str,
        token: str,
        commands: List[Dict[str, Any]]
    ) -> Any:
        """
        Execute commands on a device.

        Args:
            commands: [{component, capability, command, arguments}]

        Raises:
            RemoteCommandError: the API answered with a non-2xx status or was unreachable
        """
        return await self._request(
            "POST",
            f"/devices/{device_id}/commands",
            token,
            json={"commands": commands}
        )


def switch_value(status: Dict[str, Any]) -> bool:
    """Read the on/off signal from a device status map"""
    main = ((status or {}).get("components") or {}).get("main") or {}
    switch = (main.get("switch") or {}).get("switch") or {}
    return switch.get("value") == "on"


def is_online(health: Dict[str, Any]) -> bool:
    return (health or {}).get("state") == "ONLINE"

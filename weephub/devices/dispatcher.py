"""
Command Dispatcher

Resolves which credential source to use, issues device commands against the
remote API and reads back device state. Aggregates device inventories across
every enabled source.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .remote_client import DeviceControlClient, is_online, switch_value
from ..core.credentials import CredentialStore
from ..core.errors import NoCredentialAvailable
from ..core.models import DeviceState, Source

logger = logging.getLogger(__name__)

SWITCH_CAPABILITY = "switch"
MAIN_COMPONENT = "main"


@dataclass
class DispatchOutcome:
    """Raw command result plus the device state read afterwards"""
    result: Any
    state: Optional[DeviceState] = None


def _capabilities(device: Dict[str, Any]) -> List[str]:
    caps = []
    for component in device.get("components") or []:
        for cap in component.get("capabilities") or []:
            caps.append(cap if isinstance(cap, str) else cap.get("id", ""))
    return caps


def map_device(device: Dict[str, Any], state: DeviceState, source_id: str) -> Dict[str, Any]:
    """Flatten a remote inventory record for the dashboard"""
    caps = _capabilities(device)
    has_dim = "switchLevel" in caps or "colorControl" in caps
    has_color = "colorControl" in caps or "colorTemperature" in caps
    has_power = "powerMeter" in caps or "energyMeter" in caps
    has_switch = "switch" in caps

    if has_dim or has_color:
        device_type = "light"
    elif has_power or has_switch:
        device_type = "plug"
    else:
        device_type = "device"

    return {
        "id": device.get("deviceId"),
        "name": device.get("label") or device.get("name") or "Unnamed",
        "online": state.online,
        "on": state.on,
        "type": device_type,
        "room": device.get("roomId") or "Unknown",
        "brand": device.get("manufacturerName") or "SmartThings",
        "sourceId": source_id,
    }


class CommandDispatcher:
    """
    Issues device commands on behalf of the API and the scheduler.

    Features:
    - Source resolution (explicit id, else first enabled, else env fallback)
    - One command request per dispatch, followed by a state read
    - Inventory aggregation across independent accounts
    """

    def __init__(self, credentials: CredentialStore, client: DeviceControlClient):
        self.credentials = credentials
        self.client = client

    def resolve_source(self, source_id: Optional[str] = None) -> Source:
        return self.credentials.resolve(source_id)

    async def get_device_state(self, device_id: str, source: Source) -> DeviceState:
        """Read on/off and online/offline for a device"""
        status = await self.client.get_status(device_id, source.token)
        health = await self.client.get_health(device_id, source.token)
        return DeviceState(on=switch_value(status), online=is_online(health))

    async def dispatch(
        self,
        device_id: str,
        source: Source,
        capability: str,
        command: str,
        arguments: Optional[List[Any]] = None,
        component: str = MAIN_COMPONENT
    ) -> DispatchOutcome:
        """
        Send one command and fetch the resulting device state.

        Raises:
            RemoteCommandError: the command request failed
        """
        payload: Dict[str, Any] = {
            "component": component,
            "capability": capability,
            "command": command,
        }
        if arguments:
            payload["arguments"] = list(arguments)

        logger.info(
            f"Dispatching {capability}:{command} to {device_id} via source {source.id}"
        )
        result = await self.client.send_commands(device_id, source.token, [payload])

        try:
            state = await self.get_device_state(device_id, source)
        except Exception as e:
            # The command went through; only the read-back failed
            logger.warning(f"Could not read state of {device_id} after {command}: {e}")
            state = None

        return DispatchOutcome(result=result, state=state)

    async def toggle(
        self,
        device_id: str,
        desired_on: bool,
        source_id: Optional[str] = None
    ) -> DispatchOutcome:
        """Switch a device on or off"""
        source = self.resolve_source(source_id)
        return await self.dispatch(
            device_id,
            source,
            SWITCH_CAPABILITY,
            "on" if desired_on else "off"
        )

    async def run_command(
        self,
        device_id: str,
        capability: str,
        command: str,
        arguments: Optional[List[Any]] = None,
        source_id: Optional[str] = None,
        component: str = MAIN_COMPONENT
    ) -> DispatchOutcome:
        """Resolve a source and send a raw capability command"""
        source = self.resolve_source(source_id)
        return await self.dispatch(device_id, source, capability, command, arguments, component)

    async def list_devices(self) -> List[Dict[str, Any]]:
        """
        Inventory of every enabled source with live state.

        A source whose inventory cannot be read is skipped.
        """
        sources = self.credentials.list_enabled_sources()
        if not sources:
            try:
                sources = [self.credentials.resolve()]
            except NoCredentialAvailable:
                logger.warning("No credential source available for device inventory")
                return []

        devices: List[Dict[str, Any]] = []
        for source in sources:
            try:
                inventory = await self.client.list_devices(source.token)
            except Exception as e:
                logger.error(f"Failed to list devices for source {source.id}: {e}")
                continue

            states = await asyncio.gather(
                *(self.get_device_state(d.get("deviceId"), source) for d in inventory),
                return_exceptions=True
            )
            for device, state in zip(inventory, states):
                if isinstance(state, Exception):
                    logger.warning(f"State read failed for {device.get('deviceId')}: {state}")
                    state = DeviceState()
                devices.append(map_device(device, state, source.id))

        return devices

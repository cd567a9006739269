"""
Device API Endpoints

Device inventory across all sources and direct on/off switching.
"""

from typing import Any, Dict, List

from fastapi import APIRouter

from .deps import ActivityDep, APIKeyDep, DispatcherDep
from ..core.models import DeviceToggleRequest

router = APIRouter()


@router.get("", response_model=List[Dict[str, Any]])
async def list_devices(dispatcher: DispatcherDep, api_key: APIKeyDep) -> List[Dict[str, Any]]:
    """All devices of every enabled source with live on/online state"""
    return await dispatcher.list_devices()


@router.post("/{device_id}/state", response_model=Dict[str, Any])
async def set_device_state(
    device_id: str,
    request: DeviceToggleRequest,
    dispatcher: DispatcherDep,
    activity: ActivityDep,
    api_key: APIKeyDep
) -> Dict[str, Any]:
    """Switch a device on or off"""
    outcome = await dispatcher.toggle(device_id, request.on, request.source_id)
    await activity.record(request.device_name or device_id, "on" if request.on else "off")

    return {
        "success": True,
        "result": outcome.result,
        "state": outcome.state.model_dump(by_alias=True) if outcome.state else None
    }

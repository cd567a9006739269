"""
Activity Log API Endpoints

Read, append and clear the device activity log.
"""

import math
from typing import List

from fastapi import APIRouter, Query

from .deps import APIKeyDep, DatabaseDep
from ..core.errors import ValidationError
from ..core.models import APIResponse, ActivityCreate, ActivityEntry

router = APIRouter()


@router.get("", response_model=List[ActivityEntry])
async def get_logs(
    db: DatabaseDep,
    api_key: APIKeyDep,
    limit: int = Query(default=120, ge=1, le=1000)
) -> List[ActivityEntry]:
    """Most recent activity, newest first"""
    return await db.get_recent_activity(limit)


@router.post("", response_model=APIResponse)
async def add_log(entry: ActivityCreate, db: DatabaseDep, api_key: APIKeyDep) -> APIResponse:
    """Append an activity entry"""
    if not entry.device or not entry.action:
        raise ValidationError("device and action are required")

    timestamp = entry.timestamp
    if timestamp is not None and not math.isfinite(timestamp):
        timestamp = None

    saved = await db.add_activity(entry.device, entry.action, timestamp)
    return APIResponse(data=saved.model_dump(by_alias=True))


@router.delete("", response_model=APIResponse)
async def clear_logs(db: DatabaseDep, api_key: APIKeyDep) -> APIResponse:
    """Delete all activity entries"""
    deleted = await db.clear_activity()
    return APIResponse(message=f"Deleted {deleted} entries")

"""
Runtime Settings API Endpoints

Get and set the routine evaluation interval.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body

from .deps import APIKeyDep, SchedulerDep, SettingsStoreDep
from ..core.errors import ValidationError
from ..core.models import RoutineIntervalSetting

router = APIRouter()


@router.get("/routine-interval", response_model=RoutineIntervalSetting)
async def get_routine_interval(
    store: SettingsStoreDep,
    api_key: APIKeyDep
) -> RoutineIntervalSetting:
    """Current routine evaluation interval in milliseconds"""
    return RoutineIntervalSetting(routine_check_interval_ms=store.routine_check_interval_ms)


@router.put("/routine-interval", response_model=RoutineIntervalSetting)
async def set_routine_interval(
    store: SettingsStoreDep,
    scheduler: SchedulerDep,
    api_key: APIKeyDep,
    payload: Dict[str, Any] = Body(...)
) -> RoutineIntervalSetting:
    """Persist a new interval and restart the scheduler timer with it"""
    if "routineCheckIntervalMs" not in payload:
        raise ValidationError("routineCheckIntervalMs is required")

    interval = store.set_routine_check_interval_ms(payload["routineCheckIntervalMs"])
    await scheduler.set_interval(interval)
    return RoutineIntervalSetting(routine_check_interval_ms=interval)

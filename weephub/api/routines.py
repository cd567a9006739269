"""
Routine API Endpoints

CRUD operations for routines and on-demand runs.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Body, status

from .deps import APIKeyDep, RoutineStoreDep, SchedulerDep
from ..core.models import APIResponse, Routine, RoutineRunResponse

router = APIRouter()


@router.get("", response_model=List[Routine])
async def list_routines(store: RoutineStoreDep, api_key: APIKeyDep) -> List[Routine]:
    """List all routines"""
    return store.list()


@router.get("/{routine_id}", response_model=Routine)
async def get_routine(routine_id: str, store: RoutineStoreDep, api_key: APIKeyDep) -> Routine:
    """Get a specific routine by ID"""
    return store.get(routine_id)


@router.post("", response_model=Routine, status_code=status.HTTP_201_CREATED)
async def create_routine(
    store: RoutineStoreDep,
    api_key: APIKeyDep,
    payload: Dict[str, Any] = Body(...)
) -> Routine:
    """Create a new routine"""
    return store.create(payload)


@router.put("/{routine_id}", response_model=Routine)
async def update_routine(
    routine_id: str,
    store: RoutineStoreDep,
    api_key: APIKeyDep,
    payload: Dict[str, Any] = Body(...)
) -> Routine:
    """Update the supplied fields of a routine"""
    return store.update(routine_id, payload)


@router.delete("/{routine_id}", response_model=APIResponse)
async def delete_routine(
    routine_id: str,
    store: RoutineStoreDep,
    api_key: APIKeyDep
) -> APIResponse:
    """Delete a routine"""
    store.delete(routine_id)
    return APIResponse(message=f"Routine {routine_id} deleted")


@router.post("/{routine_id}/run", response_model=RoutineRunResponse)
async def run_routine(
    routine_id: str,
    scheduler: SchedulerDep,
    api_key: APIKeyDep
) -> RoutineRunResponse:
    """Run a routine now and return one result per action"""
    results = await scheduler.run_now(routine_id)
    return RoutineRunResponse(results=results)

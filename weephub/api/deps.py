"""
API Dependencies

Common dependencies for API endpoints including authentication and access to
the stores, dispatcher and scheduler created during application startup.
"""

from typing import Annotated
from fastapi import Depends, HTTPException, Header, Request, status

from ..config import settings
from ..core.credentials import CredentialStore
from ..core.database import ActivityLogger, Database
from ..core.routines import RoutineStore
from ..core.settings_store import RuntimeSettingsStore
from ..devices.dispatcher import CommandDispatcher
from ..scheduler import RoutineScheduler


def get_database(request: Request) -> Database:
    """Dependency to get database instance"""
    return request.app.state.db


def get_activity_logger(request: Request) -> ActivityLogger:
    return request.app.state.activity


def get_routine_store(request: Request) -> RoutineStore:
    return request.app.state.routines


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_settings_store(request: Request) -> RuntimeSettingsStore:
    return request.app.state.runtime_settings


def get_dispatcher(request: Request) -> CommandDispatcher:
    return request.app.state.dispatcher


def get_scheduler(request: Request) -> RoutineScheduler:
    return request.app.state.scheduler


DatabaseDep = Annotated[Database, Depends(get_database)]
ActivityDep = Annotated[ActivityLogger, Depends(get_activity_logger)]
RoutineStoreDep = Annotated[RoutineStore, Depends(get_routine_store)]
CredentialStoreDep = Annotated[CredentialStore, Depends(get_credential_store)]
SettingsStoreDep = Annotated[RuntimeSettingsStore, Depends(get_settings_store)]
DispatcherDep = Annotated[CommandDispatcher, Depends(get_dispatcher)]
SchedulerDep = Annotated[RoutineScheduler, Depends(get_scheduler)]


async def verify_api_key(x_api_key: str = Header(None)) -> str:
    """Verify API key for protected endpoints"""
    if not settings.api_key:
        # No API key configured, allow all requests
        return ""

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Provide X-API-Key header."
        )

    if x_api_key != settings.api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key"
        )

    return x_api_key


APIKeyDep = Annotated[str, Depends(verify_api_key)]

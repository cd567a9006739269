"""API Router Module"""

from fastapi import APIRouter

from .routines import router as routines_router
from .sources import router as sources_router
from .settings import router as settings_router
from .devices import router as devices_router
from .logs import router as logs_router
from .health import router as health_router

# Create main API router
api_router = APIRouter(prefix="/api")

# Include all sub-routers
api_router.include_router(health_router, tags=["Health"])
api_router.include_router(routines_router, prefix="/routines", tags=["Routines"])
api_router.include_router(sources_router, prefix="/sources", tags=["Sources"])
api_router.include_router(settings_router, prefix="/settings", tags=["Settings"])
api_router.include_router(devices_router, prefix="/smartlife/devices", tags=["Devices"])
api_router.include_router(logs_router, prefix="/logs", tags=["Activity Log"])

__all__ = ["api_router"]

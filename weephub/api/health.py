"""
Health Check Endpoints

System health monitoring and status endpoints.
"""

import time
from datetime import datetime
from typing import Any, Dict

import psutil
from fastapi import APIRouter, Request

from ..config import settings
from .. import __version__

router = APIRouter()

# Track startup time
_start_time = time.time()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Comprehensive health check endpoint.

    Returns system status including:
    - Activity database connectivity
    - Scheduler state
    - Memory and disk usage
    - Uptime
    """
    health = {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "checks": {}
    }

    # Database check
    try:
        is_ok = await request.app.state.db.check_integrity()
        health["checks"]["database"] = {
            "status": "ok" if is_ok else "error",
            "path": str(settings.activity_db_path)
        }
        if not is_ok:
            health["status"] = "degraded"
    except Exception as e:
        health["checks"]["database"] = {"status": "error", "message": str(e)}
        health["status"] = "unhealthy"

    # Scheduler check
    scheduler = getattr(request.app.state, "scheduler", None)
    running = bool(scheduler and scheduler.running)
    health["checks"]["scheduler"] = {"status": "ok" if running else "stopped"}
    if not running:
        health["status"] = "degraded"

    # Memory check
    try:
        memory = psutil.virtual_memory()
        health["checks"]["memory"] = {
            "status": "ok" if memory.percent < 80 else "warning",
            "percent": round(memory.percent, 1),
            "available_mb": round(memory.available / (1024 * 1024), 1)
        }
        if memory.percent >= 90:
            health["status"] = "degraded"
    except Exception as e:
        health["checks"]["memory"] = {"status": "error", "message": str(e)}

    # Disk check
    try:
        disk = psutil.disk_usage(str(settings.data_path))
        health["checks"]["disk"] = {
            "status": "ok" if disk.percent < 80 else "warning",
            "percent": round(disk.percent, 1),
            "free_gb": round(disk.free / (1024 * 1024 * 1024), 2)
        }
        if disk.percent >= 95:
            health["status"] = "degraded"
    except Exception as e:
        health["checks"]["disk"] = {"status": "error", "message": str(e)}

    return health


@router.get("/status")
async def status(request: Request) -> Dict[str, Any]:
    """Quick status endpoint"""
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "running",
        "timestamp": datetime.now().isoformat(),
        "version": __version__,
        "uptime_seconds": round(time.time() - _start_time, 2),
        "scheduler": scheduler.get_status() if scheduler else None
    }

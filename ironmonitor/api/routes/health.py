"""
Health check endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from ironmonitor.runtime import MonitorRuntime, get_runtime
import structlog

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check"""
    return {
        "status": "healthy",
        "service": "IronMonitor API",
        "version": "1.0.0"
    }


@router.get("/health/detailed")
async def detailed_health_check(runtime: MonitorRuntime = Depends(get_runtime)):
    """Detailed health check with remote connectivity and database reachability"""
    db_status = "disabled"
    if runtime.recorder is not None:
        db = runtime.recorder.session_factory()
        try:
            # Test database connection
            db.execute(text("SELECT 1"))
            db_status = "connected"
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            db_status = "disconnected"
        finally:
            db.close()

    state = runtime.state
    return {
        "status": "unhealthy" if db_status == "disconnected" else "healthy",
        "mode": state.mode.value,
        "connectivity": state.connectivity.text,
        "last_remote_error": runtime.gateway.last_error,
        "scheduler_running": runtime.scheduler.running,
        "tick": state.tick_count,
        "last_tick_at": state.last_tick_at.isoformat() if state.last_tick_at else None,
        "devices": len(state.cache),
        "database": db_status,
        "service": "IronMonitor API",
        "version": "1.0.0"
    }

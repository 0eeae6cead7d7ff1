"""Health check utilities for daemon monitoring.

Provides uptime tracking and health status for the /health endpoint.
"""
import time
from typing import Dict, Any, Optional, TYPE_CHECKING

import psutil
from sqlalchemy import text

if TYPE_CHECKING:
    from core.database import Database
    from services.scheduler import WorkflowScheduler
    from services.workflow import WorkflowService

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


def get_memory_mb() -> float:
    """Get current process memory usage in MB."""
    try:
        return psutil.Process().memory_info().rss / (1024 * 1024)
    except psutil.Error:
        return 0.0


async def check_database(database: "Database") -> bool:
    """Check database connectivity."""
    try:
        async with database.get_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        return False


async def get_health_status(
    database: "Database",
    workflow_service: "WorkflowService",
    scheduler: Optional["WorkflowScheduler"] = None,
) -> Dict[str, Any]:
    """Get health status for /health endpoint.

    Returns:
        Dict containing status, uptime, memory and queue statistics.
    """
    db_healthy = await check_database(database)
    queue = workflow_service.stats()

    return {
        "status": "healthy" if db_healthy else "degraded",
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "uptime_seconds": round(get_uptime(), 1),
        "memory_mb": round(get_memory_mb(), 1),
        "checks": {
            "database": db_healthy,
        },
        "queue": {
            "queue_length": queue["queue_length"],
            "executing_jobs": queue["executing_jobs"],
            "active_results": queue["active_results"],
            "consumer_running": queue["running"],
        },
        "scheduler": {
            "running": bool(scheduler and scheduler.running),
            "next_sweep_at": scheduler.next_sweep_at() if scheduler else None,
        },
    }

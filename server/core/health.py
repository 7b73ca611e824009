"""Health check utilities for service monitoring.

Provides uptime tracking and the availability payload for the /health/ endpoint.
"""
import time
from typing import Any, Dict, TYPE_CHECKING

if TYPE_CHECKING:
    from core.config import Settings
    from core.store import StoreService

# Module-level startup time tracking
_startup_time: float = 0.0


def set_startup_time() -> None:
    """Record the application startup time. Call once during lifespan startup."""
    global _startup_time
    _startup_time = time.time()


def get_uptime() -> float:
    """Get uptime in seconds since startup."""
    return time.time() - _startup_time if _startup_time else 0.0


async def check_store(store: "StoreService", settings: "Settings") -> bool:
    """Check store connectivity. The in-memory backend is always available."""
    if not settings.redis_enabled:
        return True
    return await store.ping()


async def get_health_status(store: "StoreService", settings: "Settings") -> Dict[str, Any]:
    """Get health status for /health/ endpoint.

    Returns:
        Dict with version, availability flag, message and uptime.
    """
    available = await check_store(store, settings)
    return {
        "version": settings.version,
        "availability": available,
        "msg": "ok" if available else "database unavailable",
        "uptime_seconds": round(get_uptime(), 1),
    }

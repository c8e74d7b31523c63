"""Health check endpoints."""

from fastapi import APIRouter

from src.config import get_settings
from src.core.database import AsyncCassandraConnection
from src.core.redis import get_redis


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness check - confirms if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness() -> dict[str, str | bool]:
    """Readiness check - reports the backing stores.

    Cassandra holds every record of progress; Redis only backs the
    leaderboard, so its absence degrades rather than blocks readiness.
    """
    settings = get_settings()
    cassandra_ok = AsyncCassandraConnection.is_connected()
    return {
        "status": "ready" if cassandra_ok else "degraded",
        "environment": settings.environment,
        "debug": settings.debug,
        "cassandra": cassandra_ok,
        "redis": get_redis() is not None,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

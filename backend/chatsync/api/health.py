"""Health check endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
import redis

from chatsync.api.deps import get_registry
from chatsync.database import get_db
from chatsync.config import get_settings
from chatsync.services.provider_registry import ProviderRegistry

router = APIRouter()
settings = get_settings()


@router.get("/health")
@router.head("/health")
async def health_check():
    """Basic health check."""
    return {"status": "healthy", "service": "chatsync-backend"}


@router.get("/health/detailed")
async def detailed_health_check(
    db: Session = Depends(get_db),
    registry: ProviderRegistry = Depends(get_registry)
):
    """
    Detailed health check including database, Redis and AI providers.

    Redis is only checked when the dispatch guard is enabled.
    """
    checks = {
        "api": "healthy",
        "database": "unknown",
    }

    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {str(e)}"

    if settings.dispatch_guard_enabled:
        try:
            redis.from_url(settings.redis_url).ping()
            checks["redis"] = "healthy"
        except Exception as e:
            checks["redis"] = f"unhealthy: {str(e)}"

    providers = {
        name: "healthy" if await registry.is_healthy(name) else "unhealthy"
        for name in registry.list_names()
    }

    overall_status = "healthy" if all(
        v == "healthy" for v in checks.values()
    ) else "degraded"

    return {
        "status": overall_status,
        "checks": checks,
        "providers": providers
    }

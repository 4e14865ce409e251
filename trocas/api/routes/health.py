"""Health check endpoints."""

import json

import structlog
from fastapi import APIRouter, Response

from trocas.config import settings
from trocas.database import check_db_connection
from trocas.services.cache import get_cache

logger = structlog.get_logger()
router = APIRouter()


async def check_cache_connection() -> bool:
    """Ping Redis; always healthy when the cache is disabled."""
    cache = get_cache()
    if not cache.enabled:
        return True
    try:
        r = await cache.get_redis()
        return bool(await r.ping())
    except Exception as e:
        logger.warning("cache_ping_failed", error=str(e))
        return False


@router.get("/health")
async def health():
    """Basic health check."""
    return {"success": True, "status": "healthy", "env": settings.app_env}


@router.get("/health/ready")
async def readiness():
    """Readiness check for load balancers. Only the database gates readiness."""
    checks = {
        "database": await check_db_connection(),
        "cache": await check_cache_connection(),
    }
    ready = checks["database"]

    return Response(
        content=json.dumps(
            {
                "success": ready,
                "status": "ready" if ready else "not_ready",
                "checks": checks,
            }
        ),
        status_code=200 if ready else 503,
        media_type="application/json",
    )


@router.get("/health/live")
async def liveness():
    """Liveness check for container orchestration."""
    return {"success": True, "status": "alive"}

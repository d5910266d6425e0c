"""
Health check endpoints.

``/health`` is a liveness probe with no dependencies. ``/ready`` probes the
database and the cache; the cache is reported but only the database decides
readiness, since every read falls back to it.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ...core.database import DatabaseManager
from ...services.cache import CacheService
from ..dependencies import get_cache_service, get_database

router = APIRouter(tags=["health"])

PROCESS_START_TIME = time.time()


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "environment": settings.ENVIRONMENT,
        "uptime_seconds": round(time.time() - PROCESS_START_TIME, 1),
    }


@router.get("/ready")
async def readiness_check(
    database: DatabaseManager = Depends(get_database),
    cache: CacheService = Depends(get_cache_service),
):
    database_health = await database.health_check()
    cache_health = await cache.health_check()

    ready = database_health["status"] == "healthy"
    body = {
        "status": "ready" if ready else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {"database": database_health, "cache": cache_health},
    }
    return JSONResponse(status_code=200 if ready else 503, content=body)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

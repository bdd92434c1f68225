"""Health check endpoint, public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from misocycle.config import get_settings
from misocycle.services.database import get_pool

router = APIRouter(tags=["system"])
logger = logging.getLogger("misocycle.health")


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Liveness probe. Returns 200 if the API process is up.

    With the postgres backend it also performs a lightweight DB check.
    """
    settings = get_settings()
    service = getattr(request.app.state, "cycle_service", None)
    backend = service.store.BACKEND if service else "uninitialized"

    storage = "memory" if backend == "memory" else "unreachable"
    if backend == "postgres":
        try:
            pool = get_pool()
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            storage = "connected"
        except Exception as exc:
            logger.warning("Health check DB probe failed: %s", exc)

    healthy = storage in ("memory", "connected")
    return {
        "status": "healthy" if healthy else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "storage_backend": backend,
        "storage": storage,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

"""Health and readiness endpoints.

  /health  liveness plus per-dependency status.  Always 200; the body's
           ``status`` says whether the instance is degraded.
  /ready   503 while a configured PostgreSQL is unreachable, since every
           navigation call needs it.  Redis has in-memory fallbacks only
           when it is not configured at all, so an unreachable configured
           Redis also fails readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from redis.exceptions import RedisError

from lessonpath.db.engine import engine
from lessonpath.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


async def _checks() -> dict[str, str]:
    return {"database": await _check_database(), "redis": await _check_redis()}


@router.get("/health")
async def health() -> dict:
    checks = await _checks()
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    checks = await _checks()
    if "degraded" in checks.values():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)

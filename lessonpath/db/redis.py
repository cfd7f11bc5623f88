"""Redis connection management.

Mirrors engine.py: when REDIS_URL is configured a shared connection pool is
created at import time; otherwise ``redis_pool`` is None and the live
channel and entitlement checker fall back to in-memory implementations.

Redis carries two things here: the pub/sub fan-out of new interaction
events to live dashboards, and the ``premium_students`` set the
subscription subsystem maintains.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import asynccontextmanager, contextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from lessonpath.core.config import SETTINGS
from lessonpath.services.errors import StoreUnavailable

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        # Each live subscription holds its own pub/sub connection.
        max_connections=50,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis():
    """Startup/shutdown hook for Redis, mirroring lifespan_db()."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured; Redis features use in-memory fallbacks")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]  # redis stubs mistype async ping as bool
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        # Start anyway; callers surface StoreUnavailable per request.
        logger.exception("Redis connection failed on startup")
        yield
        return

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")


@contextmanager
def redis_errors(what: str) -> Iterator[None]:
    """Re-raise Redis client failures as StoreUnavailable."""
    try:
        yield
    except RedisError as e:
        logger.error("Redis failure on %s: %s", what, e)
        raise StoreUnavailable(f"{what} unavailable") from e

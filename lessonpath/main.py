from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lessonpath.api.analytics import router as analytics_router
from lessonpath.api.health import router as health_router
from lessonpath.api.metrics_endpoint import router as metrics_router
from lessonpath.api.navigation import router as navigation_router
from lessonpath.api.scenes import router as scenes_router
from lessonpath.core.config import SETTINGS
from lessonpath.core.logging import setup_logging
from lessonpath.db.engine import lifespan_db
from lessonpath.db.redis import lifespan_redis
from lessonpath.middleware.metrics import MetricsMiddleware
from lessonpath.middleware.request_context import (
    RequestContextMiddleware,
    install_request_id_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
for _handler in logging.getLogger().handlers:
    install_request_id_filter(_handler)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Torn down in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="lesson-path-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(scenes_router)
app.include_router(navigation_router)
app.include_router(analytics_router)

logger.info(
    "lesson-path-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)

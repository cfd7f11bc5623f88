"""FastAPI dependencies: repo wiring, service construction, error mapping.

With DATABASE_URL set, every request gets PostgreSQL repos bound to one
session.  Write handlers commit through ``commit_request`` before they
build the response; errors that escape the handler roll back.  Without a
database, all requests share the module-level in-memory repos below.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Annotated, NoReturn

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lessonpath.core.config import SETTINGS
from lessonpath.db.engine import async_session_factory
from lessonpath.db.unit_of_work import UnitOfWork
from lessonpath.models.lesson import Decision, Lesson, Scene
from lessonpath.repos.interaction_repo import (
    InMemoryInteractionEventRepo,
    InteractionEventRepo,
)
from lessonpath.repos.lesson_repo import (
    InMemoryLessonRepo,
    InMemorySceneRepo,
    LessonRepo,
    SceneRepo,
)
from lessonpath.repos.pg_interaction_repo import PgInteractionEventRepo
from lessonpath.repos.pg_lesson_repo import PgLessonRepo, PgSceneRepo
from lessonpath.repos.pg_progress_repo import PgProgressRepo
from lessonpath.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from lessonpath.services.analytics import AnalyticsService
from lessonpath.services.entitlements import entitlements
from lessonpath.services.errors import (
    AccessDenied,
    InvalidDecision,
    InvalidReference,
    LessonPathError,
    NotFound,
    StoreUnavailable,
)
from lessonpath.services.event_log import EventLog
from lessonpath.services.live_channel import live_channel
from lessonpath.services.navigation import NavigationEngine
from lessonpath.services.progress_tracker import ProgressTracker
from lessonpath.services.scene_graph import SceneGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Repos:
    lessons: LessonRepo
    scenes: SceneRepo
    progress: ProgressRepo
    events: InteractionEventRepo
    uow: UnitOfWork


# --- In-memory store (used when DATABASE_URL is not configured) ---

lesson_repo = InMemoryLessonRepo()
scene_repo = InMemorySceneRepo()
progress_repo = InMemoryProgressRepo()
event_repo = InMemoryInteractionEventRepo()

MEMORY_REPOS = Repos(
    lessons=lesson_repo,
    scenes=scene_repo,
    progress=progress_repo,
    events=event_repo,
    uow=UnitOfWork(),
)

SAMPLE_LESSON_ID = "00000000-0000-0000-0000-00000000a001"


def seed_sample_lesson() -> None:
    """Seed a small branching physics lesson for development."""
    if SAMPLE_LESSON_ID in lesson_repo._by_id:
        return

    ids = {
        name: f"00000000-0000-0000-0000-00000000b00{n}"
        for n, name in enumerate(("launch", "angle", "drag", "summary"), start=1)
    }
    scenes = [
        Scene(
            id=ids["launch"],
            lesson_id=SAMPLE_LESSON_ID,
            title="Launch",
            content={"body": "A ball leaves the cliff at 12 m/s. What matters next?"},
            decisions=(
                Decision("Launch angle", ids["angle"]),
                Decision("Air resistance", ids["drag"]),
            ),
        ),
        Scene(
            id=ids["angle"],
            lesson_id=SAMPLE_LESSON_ID,
            title="Launch angle",
            content={"body": "Range peaks at 45 degrees on level ground."},
            decisions=(Decision("Wrap up", ids["summary"]),),
        ),
        Scene(
            id=ids["drag"],
            lesson_id=SAMPLE_LESSON_ID,
            title="Air resistance",
            content={"body": "Drag grows with v squared."},
            decisions=(Decision("Wrap up", ids["summary"]),),
            is_premium=True,
        ),
        Scene(
            id=ids["summary"],
            lesson_id=SAMPLE_LESSON_ID,
            title="Summary",
            content={"body": "Horizontal and vertical motion are independent."},
        ),
    ]
    lesson_repo._by_id[SAMPLE_LESSON_ID] = Lesson(
        id=SAMPLE_LESSON_ID,
        title="Projectile motion",
        root_scene_id=ids["launch"],
    )
    for scene in scenes:
        scene_repo._by_id[scene.id] = scene  # type: ignore[index]


if SETTINGS.is_dev and async_session_factory is None:
    seed_sample_lesson()


async def get_repos() -> AsyncGenerator[Repos, None]:
    """Request-scoped repos.

    PostgreSQL: handlers that write call ``commit_request`` before building
    the response.  Anything that escapes the handler rolls the session back.
    """
    if async_session_factory is None:
        yield MEMORY_REPOS
        return
    async with async_session_factory() as session:
        repos = _session_repos(session)
        try:
            yield repos
        except Exception:
            await repos.uow.rollback()
            raise


def _session_repos(session: AsyncSession) -> Repos:
    return Repos(
        lessons=PgLessonRepo(session),
        scenes=PgSceneRepo(session),
        progress=PgProgressRepo(session),
        events=PgInteractionEventRepo(session),
        uow=UnitOfWork(session),
    )


RepoDep = Annotated[Repos, Depends(get_repos)]


def get_unit_of_work(repos: RepoDep) -> UnitOfWork:
    return repos.uow


async def commit_request(uow: UnitOfWork) -> None:
    """Commit this request's writes; a failed commit becomes a 503."""
    try:
        await uow.commit()
    except LessonPathError as e:
        raise_http(e)


def get_scene_graph(repos: RepoDep) -> SceneGraph:
    return SceneGraph(repos.lessons, repos.scenes, repos.progress)


def get_progress_tracker(repos: RepoDep) -> ProgressTracker:
    return ProgressTracker(repos.progress, repos.scenes)


def get_event_log(repos: RepoDep) -> EventLog:
    return EventLog(repos.events, live_channel, repos.uow)


def get_navigation_engine(repos: RepoDep) -> NavigationEngine:
    return NavigationEngine(
        repos.lessons,
        SceneGraph(repos.lessons, repos.scenes, repos.progress),
        ProgressTracker(repos.progress, repos.scenes),
        EventLog(repos.events, live_channel, repos.uow),
        entitlements,
    )


def get_analytics_service(repos: RepoDep) -> AnalyticsService:
    return AnalyticsService(
        repos.events,
        repos.scenes,
        live_channel,
        live_limit=SETTINGS.live_events_limit,
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

_STATUS_BY_ERROR: tuple[tuple[type[LessonPathError], int], ...] = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InvalidDecision, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidReference, status.HTTP_409_CONFLICT),
    (AccessDenied, status.HTTP_403_FORBIDDEN),
    (StoreUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def raise_http(exc: LessonPathError) -> NoReturn:
    """Translate a service error into the matching HTTPException."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            raise HTTPException(status_code=status_code, detail=str(exc)) from exc
    logger.error("Unmapped lesson-path error: %r", exc)
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error"
    ) from exc

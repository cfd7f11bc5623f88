from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lessonpath.api.dependencies import (
    event_repo,
    lesson_repo,
    progress_repo,
    scene_repo,
)
from lessonpath.main import app
from lessonpath.models.lesson import Decision, Lesson, Scene
from lessonpath.repos.interaction_repo import InMemoryInteractionEventRepo
from lessonpath.repos.lesson_repo import InMemoryLessonRepo, InMemorySceneRepo
from lessonpath.repos.progress_repo import InMemoryProgressRepo
from lessonpath.services.entitlements import InMemoryEntitlements, entitlements
from lessonpath.services.event_log import EventLog
from lessonpath.services.live_channel import InMemoryEventChannel, live_channel
from lessonpath.services.navigation import NavigationEngine
from lessonpath.services.progress_tracker import ProgressTracker
from lessonpath.services.scene_graph import SceneGraph

# Ensure repo root is on sys.path so `import lessonpath` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# ---------------------------------------------------------------------------
# The A/B lesson used throughout:
#
#   A --"next"--> B          A --"go deeper"--> P (premium, terminal)
#   B --"retry"--> A         B --"finish"--> (nothing)
# ---------------------------------------------------------------------------

LESSON_ID = "11111111-1111-1111-1111-111111111111"
OTHER_LESSON_ID = "22222222-2222-2222-2222-222222222222"
SCENE_A = "aaaaaaaa-0000-0000-0000-000000000001"
SCENE_B = "bbbbbbbb-0000-0000-0000-000000000002"
SCENE_P = "cccccccc-0000-0000-0000-000000000003"
SCENE_X = "dddddddd-0000-0000-0000-000000000004"  # lives in OTHER_LESSON_ID

STUDENT = "student-1"
PREMIUM_STUDENT = "student-premium"


def ab_lesson() -> tuple[Lesson, list[Scene]]:
    lesson = Lesson(id=LESSON_ID, title="Forces", root_scene_id=SCENE_A)
    scenes = [
        Scene(
            id=SCENE_A,
            lesson_id=LESSON_ID,
            title="Push",
            content={"body": "A crate on ice."},
            decisions=(Decision("next", SCENE_B), Decision("go deeper", SCENE_P)),
        ),
        Scene(
            id=SCENE_B,
            lesson_id=LESSON_ID,
            title="Friction",
            decisions=(Decision("retry", SCENE_A), Decision("finish", None)),
        ),
        Scene(id=SCENE_P, lesson_id=LESSON_ID, title="Tensors", is_premium=True),
    ]
    return lesson, scenes


def other_lesson() -> tuple[Lesson, list[Scene]]:
    lesson = Lesson(id=OTHER_LESSON_ID, title="Waves", root_scene_id=SCENE_X)
    return lesson, [Scene(id=SCENE_X, lesson_id=OTHER_LESSON_ID, title="Ripple")]


def install(
    lessons: InMemoryLessonRepo,
    scenes: InMemorySceneRepo,
    lesson: Lesson,
    lesson_scenes: list[Scene],
) -> None:
    """Write a lesson and its scenes straight into in-memory repos."""
    lessons._by_id[lesson.id] = lesson
    for scene in lesson_scenes:
        scenes._by_id[scene.id] = scene  # type: ignore[index]


class FakeClock:
    """Deterministic clock: returns ``now`` and advances by ``step``."""

    def __init__(self, start: int = 1_700_000_000, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value


@dataclass
class Stack:
    """A fully wired in-memory engine, independent of the app singletons."""

    lessons: InMemoryLessonRepo
    scenes: InMemorySceneRepo
    progress: InMemoryProgressRepo
    events: InMemoryInteractionEventRepo
    channel: InMemoryEventChannel
    entitlements: InMemoryEntitlements
    clock: FakeClock
    graph: SceneGraph
    tracker: ProgressTracker
    event_log: EventLog
    engine: NavigationEngine


def build_stack() -> Stack:
    lessons = InMemoryLessonRepo()
    scenes = InMemorySceneRepo()
    progress = InMemoryProgressRepo()
    events = InMemoryInteractionEventRepo()
    channel = InMemoryEventChannel()
    premium = InMemoryEntitlements([PREMIUM_STUDENT])
    clock = FakeClock()

    graph = SceneGraph(lessons, scenes, progress)
    tracker = ProgressTracker(progress, scenes, clock=clock)
    event_log = EventLog(events, channel)
    engine = NavigationEngine(lessons, graph, tracker, event_log, premium, clock=clock)

    for lesson, lesson_scenes in (ab_lesson(), other_lesson()):
        install(lessons, scenes, lesson, lesson_scenes)

    return Stack(
        lessons=lessons,
        scenes=scenes,
        progress=progress,
        events=events,
        channel=channel,
        entitlements=premium,
        clock=clock,
        graph=graph,
        tracker=tracker,
        event_log=event_log,
        engine=engine,
    )


@pytest.fixture
def stack() -> Stack:
    return build_stack()


# ---------------------------------------------------------------------------
# App-level singletons
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Start every test from the A/B lesson only (no dev sample lesson)."""
    lesson_repo._by_id.clear()
    scene_repo._by_id.clear()
    progress_repo._store.clear()
    event_repo.clear()
    for lesson, lesson_scenes in (ab_lesson(), other_lesson()):
        install(lesson_repo, scene_repo, lesson, lesson_scenes)


@pytest.fixture(autouse=True)
def reset_live_channel() -> None:
    if hasattr(live_channel, "_subscribers"):
        live_channel._subscribers.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_entitlements() -> None:
    if hasattr(entitlements, "_premium"):
        entitlements._premium.clear()  # type: ignore[union-attr]
        entitlements._premium.add(PREMIUM_STUDENT)  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)

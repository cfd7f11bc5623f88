"""Navigation engine: the lesson state machine.

A student is always ``AtScene(scene_id)``; there is no separate "done"
state.  A lesson is complete when the student sits on a scene with no
decisions, or has chosen a decision whose target does not resolve.

Transitions:

  enter_lesson   (none) --root--> root scene, creates the progress row
  advance        scene --decision--> target scene
  log_ai_help_request  records a help request, position unchanged

Every transition is written to the event log.  The log write is not
allowed to break navigation: if the event store is down the student still
gets the scene, and the failure goes to logs and metrics instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from lessonpath.core.clock import Clock, utc_now
from lessonpath.core.metrics import EVENT_LOG_FAILURES, NAVIGATION_OUTCOMES
from lessonpath.models.interaction import EventType, InteractionEvent
from lessonpath.models.lesson import Scene
from lessonpath.models.progress import LessonProgress, ProgressUpdate
from lessonpath.repos.lesson_repo import LessonRepo
from lessonpath.services.entitlements import EntitlementChecker
from lessonpath.services.errors import (
    AccessDenied,
    InvalidDecision,
    InvalidReference,
    LessonNotFound,
    SceneNotFound,
    StoreUnavailable,
)
from lessonpath.services.event_log import EventLog
from lessonpath.services.progress_tracker import ProgressTracker
from lessonpath.services.scene_graph import SceneGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NavigationResult:
    scene: Scene
    progress: LessonProgress
    event: InteractionEvent | None  # None when nothing was logged
    advanced: bool
    dead_end: bool = False  # chosen decision had no resolvable target

    @property
    def is_complete(self) -> bool:
        return self.dead_end or self.scene.is_terminal


class NavigationEngine:
    def __init__(
        self,
        lessons: LessonRepo,
        graph: SceneGraph,
        tracker: ProgressTracker,
        event_log: EventLog,
        entitlements: EntitlementChecker,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._lessons = lessons
        self._graph = graph
        self._tracker = tracker
        self._log = event_log
        self._entitlements = entitlements
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    async def enter_lesson(self, student_id: str, lesson_id: str) -> NavigationResult:
        lesson = await self._lessons.get(lesson_id)
        if lesson is None:
            NAVIGATION_OUTCOMES.labels(outcome="not_found").inc()
            raise LessonNotFound(lesson_id)

        existing = await self._tracker.get_progress(student_id, lesson_id)
        if existing is not None:
            scene = await self._graph.get_scene(existing.current_scene_id)
            await self._check_access(student_id, lesson_id, None, None, scene)
            NAVIGATION_OUTCOMES.labels(outcome="resumed").inc()
            return NavigationResult(
                scene=scene, progress=existing, event=None, advanced=False
            )

        root = await self._graph.find_scene(lesson.root_scene_id)
        if root is None:
            NAVIGATION_OUTCOMES.labels(outcome="not_found").inc()
            logger.warning(
                "Lesson has no resolvable root scene",
                extra={"lesson_id": lesson_id, "scene_id": lesson.root_scene_id},
            )
            raise SceneNotFound(lesson.root_scene_id)
        if root.lesson_id != lesson_id:
            NAVIGATION_OUTCOMES.labels(outcome="invalid_reference").inc()
            raise InvalidReference(
                f"root scene {root.id} belongs to lesson {root.lesson_id}"
            )

        await self._check_access(student_id, lesson_id, None, None, root)

        progress = await self._tracker.save_progress(
            ProgressUpdate(
                student_id=student_id, lesson_id=lesson_id, current_scene_id=root.id
            )
        )
        event = await self._record(
            student_id,
            lesson_id,
            EventType.LESSON_ENTERED,
            from_scene_id=None,
            to_scene_id=root.id,
        )
        NAVIGATION_OUTCOMES.labels(outcome="entered").inc()
        logger.info(
            "Student entered lesson at root=%s",
            root.id,
            extra={"student_id": student_id, "lesson_id": lesson_id},
        )
        return NavigationResult(scene=root, progress=progress, event=event, advanced=True)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def advance(
        self,
        student_id: str,
        lesson_id: str,
        from_scene_id: str,
        decision_text: str,
    ) -> NavigationResult:
        source = await self._graph.find_scene(from_scene_id)
        if source is None:
            NAVIGATION_OUTCOMES.labels(outcome="not_found").inc()
            raise SceneNotFound(from_scene_id)
        if source.lesson_id != lesson_id:
            NAVIGATION_OUTCOMES.labels(outcome="invalid_reference").inc()
            raise InvalidReference(
                f"scene {from_scene_id} does not belong to lesson {lesson_id}"
            )

        decision = source.decision_for(decision_text)
        if decision is None:
            NAVIGATION_OUTCOMES.labels(outcome="invalid_decision").inc()
            logger.warning(
                "Rejected decision %r",
                decision_text,
                extra={
                    "student_id": student_id,
                    "lesson_id": lesson_id,
                    "scene_id": from_scene_id,
                },
            )
            raise InvalidDecision(from_scene_id, decision_text)

        target = await self._graph.find_scene(decision.target_scene_id)
        if target is None or target.lesson_id != lesson_id:
            return await self._dead_end(student_id, lesson_id, source, decision_text)

        await self._check_access(student_id, lesson_id, source.id, decision_text, target)

        progress = await self._tracker.save_progress(
            ProgressUpdate(
                student_id=student_id, lesson_id=lesson_id, current_scene_id=target.id
            )
        )
        event = await self._record(
            student_id,
            lesson_id,
            EventType.NAVIGATION,
            from_scene_id=source.id,
            to_scene_id=target.id,
            decision_text=decision_text,
        )
        NAVIGATION_OUTCOMES.labels(outcome="advanced").inc()
        return NavigationResult(
            scene=target, progress=progress, event=event, advanced=True
        )

    async def _dead_end(
        self, student_id: str, lesson_id: str, source: Scene, decision_text: str
    ) -> NavigationResult:
        # Broken edge: stay on the source scene rather than move to a scene
        # that does not exist.  The attempt is still logged.
        progress = await self._tracker.get_progress(student_id, lesson_id)
        if progress is None:
            progress = await self._tracker.save_progress(
                ProgressUpdate(
                    student_id=student_id,
                    lesson_id=lesson_id,
                    current_scene_id=source.id,
                )
            )
        event = await self._record(
            student_id,
            lesson_id,
            EventType.NAVIGATION,
            from_scene_id=source.id,
            to_scene_id=None,
            decision_text=decision_text,
        )
        NAVIGATION_OUTCOMES.labels(outcome="terminal").inc()
        logger.info(
            "Decision %r has no target; student stays put",
            decision_text,
            extra={
                "student_id": student_id,
                "lesson_id": lesson_id,
                "scene_id": source.id,
            },
        )
        return NavigationResult(
            scene=source, progress=progress, event=event, advanced=False, dead_end=True
        )

    # ------------------------------------------------------------------
    # AI help
    # ------------------------------------------------------------------

    async def log_ai_help_request(
        self, student_id: str, lesson_id: str, at_scene_id: str
    ) -> InteractionEvent:
        scene = await self._graph.get_scene(at_scene_id)
        if scene.lesson_id != lesson_id:
            raise InvalidReference(
                f"scene {at_scene_id} does not belong to lesson {lesson_id}"
            )
        # The help request is the whole effect here, so a store failure
        # propagates instead of being absorbed.
        return await self._log.log_event(
            InteractionEvent.new(
                student_id=student_id,
                lesson_id=lesson_id,
                event_type=EventType.AI_HELP_REQUESTED,
                created_at=self._clock(),
                from_scene_id=at_scene_id,
                to_scene_id=at_scene_id,
            )
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_access(
        self,
        student_id: str,
        lesson_id: str,
        from_scene_id: str | None,
        decision_text: str | None,
        scene: Scene,
    ) -> None:
        if not scene.is_premium:
            return
        if await self._entitlements.is_premium_student(student_id):
            return

        NAVIGATION_OUTCOMES.labels(outcome="access_denied").inc()
        logger.warning(
            "Premium scene denied to non-premium student",
            extra={
                "student_id": student_id,
                "lesson_id": lesson_id,
                "scene_id": scene.id,
            },
        )
        # Logged without a destination: the student never got there.
        await self._record(
            student_id,
            lesson_id,
            EventType.ACCESS_DENIED,
            from_scene_id=from_scene_id,
            to_scene_id=None,
            decision_text=decision_text,
        )
        raise AccessDenied(student_id, scene.id or "")

    async def _record(
        self,
        student_id: str,
        lesson_id: str,
        event_type: EventType,
        *,
        from_scene_id: str | None,
        to_scene_id: str | None,
        decision_text: str | None = None,
    ) -> InteractionEvent | None:
        event = InteractionEvent.new(
            student_id=student_id,
            lesson_id=lesson_id,
            event_type=event_type,
            created_at=self._clock(),
            from_scene_id=from_scene_id,
            to_scene_id=to_scene_id,
            decision_text=decision_text,
        )
        try:
            return await self._log.log_event(event)
        except StoreUnavailable:
            EVENT_LOG_FAILURES.labels(event_type=event.event_type).inc()
            logger.exception(
                "Interaction event lost; navigation continues",
                extra={
                    "student_id": student_id,
                    "lesson_id": lesson_id,
                    "event_type": event.event_type,
                },
            )
            return None

"""Lesson analytics derived from the interaction event log.

Nothing is maintained incrementally: ``aggregate_events`` is a pure
function over a list of events and is simply re-run, either over a
lesson's full history (``AnalyticsService.summarize``) or over the small
window a live dashboard keeps (``AnalyticsService.live_snapshots``).
"""

from __future__ import annotations

import logging
import time
from collections import Counter, deque
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass

from lessonpath.core.metrics import ANALYTICS_RECOMPUTE
from lessonpath.models.interaction import EventType, InteractionEvent
from lessonpath.models.lesson import Scene
from lessonpath.repos.interaction_repo import InteractionEventRepo
from lessonpath.repos.lesson_repo import SceneRepo
from lessonpath.services.live_channel import EventChannel

logger = logging.getLogger(__name__)

DEFAULT_LIVE_LIMIT = 50


@dataclass(frozen=True, slots=True)
class SceneVisitCount:
    scene_id: str
    title: str
    visit_count: int


@dataclass(frozen=True, slots=True)
class DecisionCount:
    from_scene_id: str
    decision_text: str
    to_scene_id: str
    choice_count: int


@dataclass(frozen=True, slots=True)
class LessonAnalytics:
    lesson_id: str
    scene_visits: list[SceneVisitCount]
    decision_counts: list[DecisionCount]
    ai_help_requests: int
    access_denied_attempts: int
    live_events: list[InteractionEvent]  # most recent first

    def visits_by_scene(self) -> dict[str, int]:
        return {v.scene_id: v.visit_count for v in self.scene_visits}

    def choices_by_edge(self) -> dict[tuple[str, str, str], int]:
        return {
            (d.from_scene_id, d.decision_text, d.to_scene_id): d.choice_count
            for d in self.decision_counts
        }


def aggregate_events(
    lesson_id: str,
    events: Iterable[InteractionEvent],
    scenes: Iterable[Scene] | None = None,
    *,
    live_limit: int = DEFAULT_LIVE_LIMIT,
) -> LessonAnalytics:
    """Summarize a lesson's events.

    Args:
        lesson_id: Lesson the events belong to.
        events: Any order; sorted by (created_at, seq) here.
        scenes: The lesson's current scenes.  When given, visits to scenes
            that no longer exist are dropped and titles are filled in.
        live_limit: How many recent events to return in ``live_events``.
    """
    ordered = sorted(events, key=lambda e: e.sort_key)
    known = {s.id: s for s in scenes} if scenes is not None else None

    visits: Counter[str] = Counter()
    choices: Counter[tuple[str, str, str]] = Counter()
    ai_help = 0
    denied = 0

    for e in ordered:
        if e.to_scene_id and (known is None or e.to_scene_id in known):
            visits[e.to_scene_id] += 1
        # Only completed transitions form the funnel; dead ends and denied
        # attempts have no destination.
        if e.from_scene_id and e.decision_text and e.to_scene_id:
            choices[(e.from_scene_id, e.decision_text, e.to_scene_id)] += 1
        if e.event_type == EventType.AI_HELP_REQUESTED.value:
            ai_help += 1
        elif e.event_type == EventType.ACCESS_DENIED.value:
            denied += 1

    scene_visits = [
        SceneVisitCount(
            scene_id=scene_id,
            title=_scene_title(scene_id, known),
            visit_count=count,
        )
        for scene_id, count in visits.most_common()
    ]
    decision_counts = [
        DecisionCount(
            from_scene_id=src,
            decision_text=text,
            to_scene_id=dst,
            choice_count=count,
        )
        for (src, text, dst), count in choices.most_common()
    ]
    live_events = list(reversed(ordered[-live_limit:])) if live_limit > 0 else []

    return LessonAnalytics(
        lesson_id=lesson_id,
        scene_visits=scene_visits,
        decision_counts=decision_counts,
        ai_help_requests=ai_help,
        access_denied_attempts=denied,
        live_events=live_events,
    )


def _scene_title(scene_id: str, known: dict[str | None, Scene] | None) -> str:
    if known is not None:
        scene = known.get(scene_id)
        if scene is not None and scene.title:
            return scene.title
    return scene_id[:8]


class AnalyticsService:
    def __init__(
        self,
        events: InteractionEventRepo,
        scenes: SceneRepo,
        channel: EventChannel,
        *,
        live_limit: int = DEFAULT_LIVE_LIMIT,
    ) -> None:
        self._events = events
        self._scenes = scenes
        self._channel = channel
        self._live_limit = live_limit

    async def summarize(self, lesson_id: str) -> LessonAnalytics:
        start = time.monotonic()
        events = await self._events.list_by_lesson(lesson_id)
        scenes = await self._scenes.list_by_lesson(lesson_id)
        result = aggregate_events(
            lesson_id, events, scenes, live_limit=self._live_limit
        )
        ANALYTICS_RECOMPUTE.observe(time.monotonic() - start)
        logger.debug(
            "Aggregated %d events over %d scenes",
            len(events),
            len(scenes),
            extra={"lesson_id": lesson_id},
        )
        return result

    async def live_snapshots(self, lesson_id: str) -> AsyncIterator[LessonAnalytics]:
        """Yield a fresh aggregate over the recent-events window per push.

        Subscribes before reading history so nothing logged in between is
        missed; events seen twice (history + feed, or a redelivery) are
        skipped by ``seq``.  The first snapshot is the seeded window.
        Closing the generator closes the subscription.
        """
        subscription = await self._channel.subscribe(lesson_id)
        try:
            history = await self._events.list_by_lesson(lesson_id)
            window: deque[InteractionEvent] = deque(
                history[-self._live_limit :], maxlen=self._live_limit
            )
            seen = {e.seq for e in window}
            yield aggregate_events(lesson_id, window, live_limit=self._live_limit)

            async for event in subscription:
                if event.seq is not None and event.seq in seen:
                    continue
                if len(window) == window.maxlen:
                    seen.discard(window[0].seq)
                window.append(event)
                seen.add(event.seq)
                yield aggregate_events(lesson_id, window, live_limit=self._live_limit)
        finally:
            await subscription.close()

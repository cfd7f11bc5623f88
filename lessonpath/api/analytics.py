"""Instructor-facing event history and analytics.

The summary is recomputed from the full event log on every call; there is
no cache to invalidate.  Live dashboards use AnalyticsService.live_snapshots
through whatever push transport fronts this service.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from lessonpath.api.dependencies import get_analytics_service, get_event_log, raise_http
from lessonpath.api.navigation import EventOut, event_out
from lessonpath.services.analytics import AnalyticsService, LessonAnalytics
from lessonpath.services.errors import LessonPathError
from lessonpath.services.event_log import EventLog

router = APIRouter(prefix="/v1/lessons/{lesson_id}", tags=["analytics"])


class SceneVisitOut(BaseModel):
    scene_id: str
    title: str
    visit_count: int


class DecisionCountOut(BaseModel):
    from_scene_id: str
    decision_text: str
    to_scene_id: str
    choice_count: int


class AnalyticsOut(BaseModel):
    lesson_id: str
    scene_visits: list[SceneVisitOut]
    decision_counts: list[DecisionCountOut]
    ai_help_requests: int
    access_denied_attempts: int
    live_events: list[EventOut]


def analytics_out(summary: LessonAnalytics) -> AnalyticsOut:
    return AnalyticsOut(
        lesson_id=summary.lesson_id,
        scene_visits=[
            SceneVisitOut(scene_id=v.scene_id, title=v.title, visit_count=v.visit_count)
            for v in summary.scene_visits
        ],
        decision_counts=[
            DecisionCountOut(
                from_scene_id=d.from_scene_id,
                decision_text=d.decision_text,
                to_scene_id=d.to_scene_id,
                choice_count=d.choice_count,
            )
            for d in summary.decision_counts
        ],
        ai_help_requests=summary.ai_help_requests,
        access_denied_attempts=summary.access_denied_attempts,
        live_events=[event_out(e) for e in summary.live_events],
    )


@router.get("/events", response_model=list[EventOut])
async def list_events(
    lesson_id: str, event_log: Annotated[EventLog, Depends(get_event_log)]
) -> list[EventOut]:
    try:
        events = await event_log.list_events(lesson_id)
    except LessonPathError as e:
        raise_http(e)
    return [event_out(e) for e in events]


@router.get("/analytics", response_model=AnalyticsOut)
async def lesson_analytics(
    lesson_id: str,
    service: Annotated[AnalyticsService, Depends(get_analytics_service)],
) -> AnalyticsOut:
    try:
        summary = await service.summarize(lesson_id)
    except LessonPathError as e:
        raise_http(e)
    return analytics_out(summary)

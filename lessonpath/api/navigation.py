"""Student-facing lesson navigation.

Student identity comes from the path: the auth layer in front of this
service has already checked that the caller may act for ``student_id``.

  POST /v1/lessons/{lesson_id}/students/{student_id}/enter     start or resume
  POST /v1/lessons/{lesson_id}/students/{student_id}/advance   pick a decision
  POST /v1/lessons/{lesson_id}/students/{student_id}/ai-help   202, position unchanged
  GET  /v1/lessons/{lesson_id}/students/{student_id}/progress
  POST /v1/lessons/{lesson_id}/students/{student_id}/answers   merge answers/uploads
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from lessonpath.api.dependencies import (
    commit_request,
    get_navigation_engine,
    get_progress_tracker,
    get_unit_of_work,
    raise_http,
)
from lessonpath.api.scenes import SceneOut, scene_out
from lessonpath.db.unit_of_work import UnitOfWork
from lessonpath.models.interaction import InteractionEvent
from lessonpath.models.progress import LessonProgress
from lessonpath.services.errors import AccessDenied, LessonPathError
from lessonpath.services.navigation import NavigationEngine, NavigationResult
from lessonpath.services.progress_tracker import ProgressTracker

router = APIRouter(
    prefix="/v1/lessons/{lesson_id}/students/{student_id}", tags=["navigation"]
)

EngineDep = Annotated[NavigationEngine, Depends(get_navigation_engine)]
TrackerDep = Annotated[ProgressTracker, Depends(get_progress_tracker)]
UowDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]


class AdvanceIn(BaseModel):
    from_scene_id: str
    decision_text: str


class AiHelpIn(BaseModel):
    scene_id: str


class AnswersIn(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    uploaded_files: dict[str, str] = Field(default_factory=dict)


class ProgressOut(BaseModel):
    student_id: str
    lesson_id: str
    current_scene_id: str
    answers: dict[str, Any]
    uploaded_files: dict[str, str]
    updated_at: int


class EventOut(BaseModel):
    seq: int | None
    student_id: str
    lesson_id: str
    event_type: str
    from_scene_id: str | None
    to_scene_id: str | None
    decision_text: str | None
    created_at: int


class NavigationOut(BaseModel):
    scene: SceneOut
    progress: ProgressOut
    event: EventOut | None
    advanced: bool
    complete: bool


def progress_out(progress: LessonProgress) -> ProgressOut:
    return ProgressOut(
        student_id=progress.student_id,
        lesson_id=progress.lesson_id,
        current_scene_id=progress.current_scene_id,
        answers=dict(progress.answers),
        uploaded_files=dict(progress.uploaded_files),
        updated_at=progress.updated_at,
    )


def event_out(event: InteractionEvent) -> EventOut:
    return EventOut(
        seq=event.seq,
        student_id=event.student_id,
        lesson_id=event.lesson_id,
        event_type=event.event_type,
        from_scene_id=event.from_scene_id,
        to_scene_id=event.to_scene_id,
        decision_text=event.decision_text,
        created_at=event.created_at,
    )


def _navigation_out(result: NavigationResult) -> NavigationOut:
    return NavigationOut(
        scene=scene_out(result.scene),
        progress=progress_out(result.progress),
        event=event_out(result.event) if result.event is not None else None,
        advanced=result.advanced,
        complete=result.is_complete,
    )


@router.post("/enter", response_model=NavigationOut)
async def enter_lesson(
    lesson_id: str, student_id: str, engine: EngineDep, uow: UowDep
) -> NavigationOut:
    try:
        result = await engine.enter_lesson(student_id, lesson_id)
    except AccessDenied as e:
        await _commit_denial(uow)
        raise_http(e)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)
    return _navigation_out(result)


@router.post("/advance", response_model=NavigationOut)
async def advance(
    lesson_id: str, student_id: str, body: AdvanceIn, engine: EngineDep, uow: UowDep
) -> NavigationOut:
    try:
        result = await engine.advance(
            student_id, lesson_id, body.from_scene_id, body.decision_text
        )
    except AccessDenied as e:
        await _commit_denial(uow)
        raise_http(e)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)
    return _navigation_out(result)


@router.post(
    "/ai-help", response_model=EventOut, status_code=status.HTTP_202_ACCEPTED
)
async def request_ai_help(
    lesson_id: str, student_id: str, body: AiHelpIn, engine: EngineDep, uow: UowDep
) -> EventOut:
    try:
        event = await engine.log_ai_help_request(student_id, lesson_id, body.scene_id)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)
    return event_out(event)


@router.get("/progress", response_model=ProgressOut)
async def get_progress(
    lesson_id: str, student_id: str, tracker: TrackerDep
) -> ProgressOut:
    try:
        progress = await tracker.get_progress(student_id, lesson_id)
    except LessonPathError as e:
        raise_http(e)
    if progress is None:
        raise HTTPException(status_code=404, detail="no progress for this lesson")
    return progress_out(progress)


@router.post("/answers", response_model=ProgressOut)
async def submit_answers(
    lesson_id: str, student_id: str, body: AnswersIn, tracker: TrackerDep, uow: UowDep
) -> ProgressOut:
    if not body.answers and not body.uploaded_files:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="nothing to save: send answers and/or uploaded_files",
        )
    try:
        if body.uploaded_files:
            progress = await tracker.record_uploads(
                student_id, lesson_id, body.uploaded_files
            )
        if body.answers:
            progress = await tracker.submit_answers(student_id, lesson_id, body.answers)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)
    return progress_out(progress)


async def _commit_denial(uow: UnitOfWork) -> None:
    # A refused move still commits: the access_denied event is the audit trail.
    # If that commit fails the client gets a 503 instead of the 403.
    await commit_request(uow)

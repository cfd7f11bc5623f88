"""Scene graph endpoints used by the lesson path builder.

  GET    /v1/lessons/{lesson_id}/scenes   all scenes, insertion order
  PUT    /v1/lessons/{lesson_id}/scenes   create a draft or update a saved scene
  GET    /v1/scenes/{scene_id}
  DELETE /v1/scenes/{scene_id}            dangling decision targets are left as-is
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from lessonpath.api.dependencies import (
    commit_request,
    get_scene_graph,
    get_unit_of_work,
    raise_http,
)
from lessonpath.db.unit_of_work import UnitOfWork
from lessonpath.models.lesson import Decision, Scene
from lessonpath.services.errors import LessonPathError
from lessonpath.services.scene_graph import SceneGraph

router = APIRouter(tags=["scenes"])

SceneGraphDep = Annotated[SceneGraph, Depends(get_scene_graph)]
UowDep = Annotated[UnitOfWork, Depends(get_unit_of_work)]


class DecisionIO(BaseModel):
    text: str = Field(min_length=1)
    target_scene_id: str | None = None


class SceneIn(BaseModel):
    # Omit, or send the builder's "scene_..." id, to create.
    id: str | None = None
    title: str = ""
    content: dict[str, Any] = Field(default_factory=dict)
    decisions: list[DecisionIO] = Field(default_factory=list)
    is_premium: bool = False


class SceneOut(BaseModel):
    id: str
    lesson_id: str
    title: str
    content: dict[str, Any]
    decisions: list[DecisionIO]
    is_premium: bool


def scene_out(scene: Scene) -> SceneOut:
    return SceneOut(
        id=scene.id or "",
        lesson_id=scene.lesson_id,
        title=scene.title,
        content=dict(scene.content),
        decisions=[
            DecisionIO(text=d.text, target_scene_id=d.target_scene_id)
            for d in scene.decisions
        ],
        is_premium=scene.is_premium,
    )


@router.get("/v1/lessons/{lesson_id}/scenes", response_model=list[SceneOut])
async def list_scenes(lesson_id: str, graph: SceneGraphDep) -> list[SceneOut]:
    try:
        scenes = await graph.list_scenes(lesson_id)
    except LessonPathError as e:
        raise_http(e)
    return [scene_out(s) for s in scenes]


@router.put("/v1/lessons/{lesson_id}/scenes", response_model=SceneOut)
async def upsert_scene(
    lesson_id: str, body: SceneIn, graph: SceneGraphDep, uow: UowDep
) -> SceneOut:
    scene = Scene(
        id=body.id,
        lesson_id=lesson_id,
        title=body.title,
        content=body.content,
        decisions=tuple(
            Decision(text=d.text, target_scene_id=d.target_scene_id)
            for d in body.decisions
        ),
        is_premium=body.is_premium,
    )
    try:
        saved = await graph.upsert_scene(scene)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)
    return scene_out(saved)


@router.get("/v1/scenes/{scene_id}", response_model=SceneOut)
async def get_scene(scene_id: str, graph: SceneGraphDep) -> SceneOut:
    try:
        scene = await graph.get_scene(scene_id)
    except LessonPathError as e:
        raise_http(e)
    return scene_out(scene)


@router.delete("/v1/scenes/{scene_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scene(scene_id: str, graph: SceneGraphDep, uow: UowDep) -> None:
    try:
        await graph.delete_scene(scene_id)
    except LessonPathError as e:
        raise_http(e)
    await commit_request(uow)

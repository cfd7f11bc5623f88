"""PostgreSQL implementations of LessonRepo and SceneRepo."""

from __future__ import annotations

import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lessonpath.db.engine import as_uuid, store_errors
from lessonpath.db.tables import LessonRow, SceneRow
from lessonpath.models.lesson import Decision, Lesson, Scene


class PgLessonRepo:
    """Satisfies the LessonRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, lesson_id: str) -> Lesson | None:
        key = as_uuid(lesson_id)
        if key is None:
            return None
        with store_errors("lessons"):
            row = (
                await self._session.execute(select(LessonRow).where(LessonRow.id == key))
            ).scalar_one_or_none()
        if row is None:
            return None
        return Lesson(
            id=str(row.id),
            title=row.title,
            root_scene_id=str(row.root_scene_id) if row.root_scene_id else None,
        )

    async def add(self, lesson: Lesson) -> None:
        row = LessonRow(
            id=as_uuid(lesson.id),
            title=lesson.title,
            root_scene_id=as_uuid(lesson.root_scene_id),
        )
        with store_errors("lessons"):
            self._session.add(row)
            await self._session.flush()


class PgSceneRepo:
    """Satisfies the SceneRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, scene_id: str) -> Scene | None:
        key = as_uuid(scene_id)
        if key is None:
            return None
        with store_errors("scenes"):
            row = (
                await self._session.execute(select(SceneRow).where(SceneRow.id == key))
            ).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_scene(row)

    async def list_by_lesson(self, lesson_id: str) -> list[Scene]:
        key = as_uuid(lesson_id)
        if key is None:
            return []
        stmt = (
            select(SceneRow)
            .where(SceneRow.lesson_id == key)
            .order_by(SceneRow.created_at, SceneRow.id)
        )
        with store_errors("scenes"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_scene(r) for r in rows]

    async def add(self, scene: Scene) -> Scene:
        row = SceneRow(
            id=as_uuid(scene.id),
            lesson_id=as_uuid(scene.lesson_id),
            title=scene.title,
            content=dict(scene.content),
            decisions=_decisions_to_json(scene.decisions),
            is_premium=scene.is_premium,
            created_at=int(datetime.datetime.now(datetime.UTC).timestamp()),
        )
        with store_errors("scenes"):
            self._session.add(row)
            await self._session.flush()
        return scene

    async def update(self, scene: Scene) -> Scene | None:
        key = as_uuid(scene.id)
        if key is None:
            return None
        stmt = (
            update(SceneRow)
            .where(SceneRow.id == key)
            .values(
                lesson_id=as_uuid(scene.lesson_id),
                title=scene.title,
                content=dict(scene.content),
                decisions=_decisions_to_json(scene.decisions),
                is_premium=scene.is_premium,
            )
        )
        with store_errors("scenes"):
            result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return scene

    async def delete(self, scene_id: str) -> bool:
        key = as_uuid(scene_id)
        if key is None:
            return False
        with store_errors("scenes"):
            result = await self._session.execute(
                delete(SceneRow).where(SceneRow.id == key)
            )
        return result.rowcount > 0


def _decisions_to_json(decisions: tuple[Decision, ...]) -> list[dict[str, Any]]:
    return [{"text": d.text, "target_scene_id": d.target_scene_id} for d in decisions]


def _decisions_from_json(raw: list[dict[str, Any]] | None) -> tuple[Decision, ...]:
    # Builder-authored rows may omit the target key.
    return tuple(
        Decision(text=d.get("text", ""), target_scene_id=d.get("target_scene_id"))
        for d in raw or ()
    )


def _row_to_scene(row: SceneRow) -> Scene:
    return Scene(
        id=str(row.id),
        lesson_id=str(row.lesson_id),
        title=row.title or "",
        content=dict(row.content or {}),
        decisions=_decisions_from_json(row.decisions),
        is_premium=row.is_premium,
    )

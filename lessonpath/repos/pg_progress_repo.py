"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from lessonpath.db.engine import as_uuid, store_errors
from lessonpath.db.tables import LessonProgressRow
from lessonpath.models.progress import LessonProgress, ProgressUpdate


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL.

    Upserts with INSERT ... ON CONFLICT (student_id, lesson_id) DO UPDATE,
    so concurrent writers for the same pair never create a second row; the
    last write wins column by column.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, student_id: str, lesson_id: str) -> LessonProgress | None:
        key = as_uuid(lesson_id)
        if key is None:
            return None
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.student_id == student_id,
            LessonProgressRow.lesson_id == key,
        )
        with store_errors("progress"):
            row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_progress(row)

    async def upsert(self, update: ProgressUpdate, *, now: int) -> LessonProgress:
        values: dict[str, Any] = {
            "student_id": update.student_id,
            "lesson_id": as_uuid(update.lesson_id),
            "updated_at": now,
        }
        # Only supplied columns go into the UPDATE half; the rest keep
        # whatever is stored.
        if update.current_scene_id is not None:
            values["current_scene_id"] = as_uuid(update.current_scene_id)
        if update.answers is not None:
            values["answers"] = dict(update.answers)
        if update.uploaded_files is not None:
            values["uploaded_files"] = dict(update.uploaded_files)

        stmt = pg_insert(LessonProgressRow).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LessonProgressRow.student_id, LessonProgressRow.lesson_id],
            set_={
                name: stmt.excluded[name]
                for name in values
                if name not in ("student_id", "lesson_id")
            },
        ).returning(LessonProgressRow)

        with store_errors("progress"):
            row = (
                await self._session.scalars(
                    stmt, execution_options={"populate_existing": True}
                )
            ).one()
        return _row_to_progress(row)

    async def delete_by_scene(self, scene_id: str) -> int:
        key = as_uuid(scene_id)
        if key is None:
            return 0
        # The FK cascade would do this when the scene row goes; running it
        # first keeps the count observable to the caller.
        stmt = delete(LessonProgressRow).where(
            LessonProgressRow.current_scene_id == key
        )
        with store_errors("progress"):
            result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        student_id=row.student_id,
        lesson_id=str(row.lesson_id),
        current_scene_id=str(row.current_scene_id),
        answers=dict(row.answers or {}),
        uploaded_files=dict(row.uploaded_files or {}),
        updated_at=row.updated_at,
    )

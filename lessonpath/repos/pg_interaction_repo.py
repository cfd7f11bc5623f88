"""PostgreSQL implementation of InteractionEventRepo."""

from __future__ import annotations

from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lessonpath.db.engine import as_uuid, store_errors
from lessonpath.db.tables import InteractionEventRow
from lessonpath.models.interaction import InteractionEvent


class PgInteractionEventRepo:
    """Satisfies the InteractionEventRepo Protocol using PostgreSQL."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, event: InteractionEvent) -> InteractionEvent:
        row = InteractionEventRow(
            student_id=event.student_id,
            lesson_id=as_uuid(event.lesson_id),
            from_scene_id=as_uuid(event.from_scene_id),
            to_scene_id=as_uuid(event.to_scene_id),
            decision_text=event.decision_text,
            event_type=event.event_type,
            created_at=event.created_at,
        )
        # SAVEPOINT: a failed audit insert must not abort the progress write
        # that shares this transaction.
        with store_errors("interaction_events"):
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        return replace(event, seq=row.id)

    async def list_by_lesson(self, lesson_id: str) -> list[InteractionEvent]:
        key = as_uuid(lesson_id)
        if key is None:
            return []
        stmt = (
            select(InteractionEventRow)
            .where(InteractionEventRow.lesson_id == key)
            .order_by(InteractionEventRow.created_at, InteractionEventRow.id)
        )
        with store_errors("interaction_events"):
            rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_event(r) for r in rows]


def _row_to_event(row: InteractionEventRow) -> InteractionEvent:
    return InteractionEvent(
        seq=row.id,
        student_id=row.student_id,
        lesson_id=str(row.lesson_id),
        from_scene_id=str(row.from_scene_id) if row.from_scene_id else None,
        to_scene_id=str(row.to_scene_id) if row.to_scene_id else None,
        decision_text=row.decision_text,
        event_type=row.event_type,
        created_at=row.created_at,
    )

"""SQLAlchemy table definitions.

These map to the frozen dataclass domain models in lessonpath/models/.
Repos convert between rows and dataclasses.  Students live in the external
profiles service, so student ids are stored without a foreign key.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from lessonpath.db.engine import Base


class LessonRow(Base):
    __tablename__ = "lessons"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # No FK: the root is set after the scenes exist, and may dangle.
    root_scene_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )


class SceneRow(Base):
    __tablename__ = "lesson_scenes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default={})
    # [{"text": "...", "target_scene_id": "..."|null}, ...]
    decisions: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=[]
    )
    is_premium: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class LessonProgressRow(Base):
    __tablename__ = "student_lesson_progress"

    student_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        primary_key=True,
    )
    current_scene_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lesson_scenes.id", ondelete="CASCADE"),
        nullable=False,
    )
    answers: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, default={})
    uploaded_files: Mapped[dict[str, str]] = mapped_column(
        JSONB, nullable=False, default={}
    )
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)


class InteractionEventRow(Base):
    __tablename__ = "student_interaction_events"

    # BIGSERIAL: the insertion sequence number
    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=False,
    )
    from_scene_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lesson_scenes.id", ondelete="SET NULL"),
        nullable=True,
    )
    to_scene_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("lesson_scenes.id", ondelete="SET NULL"),
        nullable=True,
    )
    decision_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # lesson_entered|navigation|ai_help_requested|access_denied
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_interaction_events_lesson_order", "lesson_id", "created_at", "id"),
    )

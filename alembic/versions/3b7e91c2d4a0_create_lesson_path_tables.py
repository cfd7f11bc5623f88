"""create lesson path tables

Revision ID: 3b7e91c2d4a0
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e91c2d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "lessons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column("root_scene_id", postgresql.UUID(as_uuid=True), nullable=True),
    )
    op.create_table(
        "lesson_scenes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "content",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "decisions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "is_premium", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index("ix_lesson_scenes_lesson_id", "lesson_scenes", ["lesson_id"])

    op.create_table(
        "student_lesson_progress",
        sa.Column("student_id", sa.String(length=64), primary_key=True),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "current_scene_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lesson_scenes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "answers",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "uploaded_files",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("updated_at", sa.BigInteger(), nullable=False),
    )

    op.create_table(
        "student_interaction_events",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.String(length=64), nullable=False),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lessons.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "from_scene_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lesson_scenes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "to_scene_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("lesson_scenes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("decision_text", sa.Text(), nullable=True),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.BigInteger(), nullable=False),
    )
    op.create_index(
        "ix_interaction_events_lesson_order",
        "student_interaction_events",
        ["lesson_id", "created_at", "id"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_interaction_events_lesson_order", table_name="student_interaction_events"
    )
    op.drop_table("student_interaction_events")
    op.drop_table("student_lesson_progress")
    op.drop_index("ix_lesson_scenes_lesson_id", table_name="lesson_scenes")
    op.drop_table("lesson_scenes")
    op.drop_table("lessons")

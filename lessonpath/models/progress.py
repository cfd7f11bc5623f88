from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """A student's position in one lesson's scene graph.

    Exactly one per (student_id, lesson_id).  Stores upsert on that pair.
    """

    student_id: str
    lesson_id: str
    current_scene_id: str
    answers: Mapping[str, Any] = field(default_factory=dict)
    uploaded_files: Mapping[str, str] = field(default_factory=dict)
    updated_at: int = 0


@dataclass(frozen=True, slots=True)
class ProgressUpdate:
    """Partial write for a progress row.

    None means "leave the stored value alone".  Maps replace the stored map
    wholesale; callers merge before saving.
    """

    student_id: str
    lesson_id: str
    current_scene_id: str | None = None
    answers: Mapping[str, Any] | None = None
    uploaded_files: Mapping[str, str] | None = None

    def apply_to(self, existing: LessonProgress | None, *, now: int) -> LessonProgress:
        if existing is None:
            if self.current_scene_id is None:
                raise ValueError("a new progress row needs a current scene")
            return LessonProgress(
                student_id=self.student_id,
                lesson_id=self.lesson_id,
                current_scene_id=self.current_scene_id,
                answers=dict(self.answers or {}),
                uploaded_files=dict(self.uploaded_files or {}),
                updated_at=now,
            )
        return LessonProgress(
            student_id=existing.student_id,
            lesson_id=existing.lesson_id,
            current_scene_id=self.current_scene_id or existing.current_scene_id,
            answers=(
                dict(self.answers) if self.answers is not None else existing.answers
            ),
            uploaded_files=(
                dict(self.uploaded_files)
                if self.uploaded_files is not None
                else existing.uploaded_files
            ),
            updated_at=now,
        )

"""Progress tracker: one current-position row per (student, lesson)."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from lessonpath.core.clock import Clock, utc_now
from lessonpath.models.progress import LessonProgress, ProgressUpdate
from lessonpath.repos.lesson_repo import SceneRepo
from lessonpath.repos.progress_repo import ProgressRepo
from lessonpath.services.errors import InvalidReference

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(
        self, progress: ProgressRepo, scenes: SceneRepo, *, clock: Clock = utc_now
    ) -> None:
        self._progress = progress
        self._scenes = scenes
        self._clock = clock

    async def get_progress(self, student_id: str, lesson_id: str) -> LessonProgress | None:
        return await self._progress.get(student_id, lesson_id)

    async def save_progress(self, update: ProgressUpdate) -> LessonProgress:
        """Upsert on (student, lesson) without clobbering omitted fields.

        Answer and upload maps are written as given: pass the merged map,
        not a delta (see submit_answers / record_uploads).
        """
        if update.current_scene_id is not None:
            scene = await self._scenes.get(update.current_scene_id)
            if scene is None or scene.lesson_id != update.lesson_id:
                logger.warning(
                    "Rejected progress for student=%s: scene=%s is not in lesson=%s",
                    update.student_id,
                    update.current_scene_id,
                    update.lesson_id,
                )
                raise InvalidReference(
                    f"scene {update.current_scene_id} does not belong to "
                    f"lesson {update.lesson_id}"
                )
        elif await self._progress.get(update.student_id, update.lesson_id) is None:
            raise InvalidReference(
                f"student {update.student_id} has no position in "
                f"lesson {update.lesson_id}"
            )

        return await self._progress.upsert(update, now=self._clock())

    async def submit_answers(
        self, student_id: str, lesson_id: str, answers: Mapping[str, Any]
    ) -> LessonProgress:
        existing = await self._require(student_id, lesson_id)
        merged = {**existing.answers, **answers}
        return await self.save_progress(
            ProgressUpdate(student_id=student_id, lesson_id=lesson_id, answers=merged)
        )

    async def record_uploads(
        self, student_id: str, lesson_id: str, uploads: Mapping[str, str]
    ) -> LessonProgress:
        existing = await self._require(student_id, lesson_id)
        merged = {**existing.uploaded_files, **uploads}
        return await self.save_progress(
            ProgressUpdate(
                student_id=student_id, lesson_id=lesson_id, uploaded_files=merged
            )
        )

    async def _require(self, student_id: str, lesson_id: str) -> LessonProgress:
        existing = await self._progress.get(student_id, lesson_id)
        if existing is None:
            raise InvalidReference(
                f"student {student_id} has not entered lesson {lesson_id}"
            )
        return existing

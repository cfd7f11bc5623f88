"""Scene graph store: the scenes of a lesson with their decisions embedded."""

from __future__ import annotations

import logging
from dataclasses import replace

from lessonpath.models.lesson import Scene, is_temporary_scene_id, new_id
from lessonpath.repos.lesson_repo import LessonRepo, SceneRepo
from lessonpath.repos.progress_repo import ProgressRepo
from lessonpath.services.errors import InvalidReference, LessonNotFound, SceneNotFound

logger = logging.getLogger(__name__)


class SceneGraph:
    def __init__(
        self, lessons: LessonRepo, scenes: SceneRepo, progress: ProgressRepo
    ) -> None:
        self._lessons = lessons
        self._scenes = scenes
        self._progress = progress

    async def list_scenes(self, lesson_id: str) -> list[Scene]:
        return await self._scenes.list_by_lesson(lesson_id)

    async def find_scene(self, scene_id: str | None) -> Scene | None:
        if not scene_id:
            return None
        return await self._scenes.get(scene_id)

    async def get_scene(self, scene_id: str) -> Scene:
        scene = await self.find_scene(scene_id)
        if scene is None:
            raise SceneNotFound(scene_id)
        return scene

    async def upsert_scene(self, scene: Scene) -> Scene:
        """Insert a draft scene or update a saved one.

        Drafts (no id, or a builder-side ``scene_`` id) get a durable id.
        Decision targets are stored as authored; dangling ones are resolved
        lazily at traversal time.
        """
        if await self._lessons.get(scene.lesson_id) is None:
            raise LessonNotFound(scene.lesson_id)

        if is_temporary_scene_id(scene.id):
            saved = await self._scenes.add(replace(scene, id=new_id()))
            logger.info(
                "Created scene id=%s lesson=%s decisions=%d",
                saved.id,
                saved.lesson_id,
                len(saved.decisions),
            )
            return saved

        existing = await self._scenes.get(scene.id)  # type: ignore[arg-type]
        if existing is not None and existing.lesson_id != scene.lesson_id:
            raise InvalidReference(
                f"scene {scene.id} belongs to lesson {existing.lesson_id}"
            )
        updated = await self._scenes.update(scene)
        if updated is None:
            raise SceneNotFound(scene.id)
        logger.info("Updated scene id=%s lesson=%s", updated.id, updated.lesson_id)
        return updated

    async def delete_scene(self, scene_id: str) -> None:
        if await self._scenes.get(scene_id) is None:
            raise SceneNotFound(scene_id)
        # Students parked on this scene lose their row, as with the FK cascade.
        dropped = await self._progress.delete_by_scene(scene_id)
        await self._scenes.delete(scene_id)
        logger.info("Deleted scene id=%s progress_rows_dropped=%d", scene_id, dropped)

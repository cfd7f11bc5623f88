from __future__ import annotations

from typing import Protocol

from lessonpath.models.lesson import Lesson, Scene


class LessonRepo(Protocol):
    async def get(self, lesson_id: str) -> Lesson | None: ...
    async def add(self, lesson: Lesson) -> None: ...


class SceneRepo(Protocol):
    async def get(self, scene_id: str) -> Scene | None: ...
    async def list_by_lesson(self, lesson_id: str) -> list[Scene]: ...
    async def add(self, scene: Scene) -> Scene: ...
    async def update(self, scene: Scene) -> Scene | None: ...
    async def delete(self, scene_id: str) -> bool: ...


class InMemoryLessonRepo:
    def __init__(self) -> None:
        self._by_id: dict[str, Lesson] = {}

    async def get(self, lesson_id: str) -> Lesson | None:
        return self._by_id.get(lesson_id)

    async def add(self, lesson: Lesson) -> None:
        if lesson.id in self._by_id:
            raise ValueError("lesson already exists")
        self._by_id[lesson.id] = lesson


class InMemorySceneRepo:
    def __init__(self) -> None:
        # dicts keep insertion order, so list_by_lesson is stable
        self._by_id: dict[str, Scene] = {}

    async def get(self, scene_id: str) -> Scene | None:
        return self._by_id.get(scene_id)

    async def list_by_lesson(self, lesson_id: str) -> list[Scene]:
        return [s for s in self._by_id.values() if s.lesson_id == lesson_id]

    async def add(self, scene: Scene) -> Scene:
        if scene.id is None:
            raise ValueError("scene id must be assigned before insert")
        if scene.id in self._by_id:
            raise ValueError("scene already exists")
        self._by_id[scene.id] = scene
        return scene

    async def update(self, scene: Scene) -> Scene | None:
        if scene.id not in self._by_id:
            return None
        self._by_id[scene.id] = scene
        return scene

    async def delete(self, scene_id: str) -> bool:
        return self._by_id.pop(scene_id, None) is not None

from __future__ import annotations

from typing import Protocol

from lessonpath.models.progress import LessonProgress, ProgressUpdate


class ProgressRepo(Protocol):
    async def get(self, student_id: str, lesson_id: str) -> LessonProgress | None: ...
    async def upsert(self, update: ProgressUpdate, *, now: int) -> LessonProgress: ...
    async def delete_by_scene(self, scene_id: str) -> int: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._store: dict[tuple[str, str], LessonProgress] = {}

    async def get(self, student_id: str, lesson_id: str) -> LessonProgress | None:
        return self._store.get((student_id, lesson_id))

    async def upsert(self, update: ProgressUpdate, *, now: int) -> LessonProgress:
        key = (update.student_id, update.lesson_id)
        saved = update.apply_to(self._store.get(key), now=now)
        self._store[key] = saved
        return saved

    async def delete_by_scene(self, scene_id: str) -> int:
        doomed = [k for k, p in self._store.items() if p.current_scene_id == scene_id]
        for key in doomed:
            del self._store[key]
        return len(doomed)

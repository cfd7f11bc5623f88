"""Exceptions raised by the lesson-path services.

Routers translate these into HTTP responses; nothing here knows about HTTP.
"""

from __future__ import annotations


class LessonPathError(Exception):
    pass


class NotFound(LessonPathError):
    pass


class SceneNotFound(NotFound):
    def __init__(self, scene_id: str | None) -> None:
        super().__init__(f"scene not found: {scene_id}")
        self.scene_id = scene_id


class LessonNotFound(NotFound):
    def __init__(self, lesson_id: str) -> None:
        super().__init__(f"lesson not found: {lesson_id}")
        self.lesson_id = lesson_id


class InvalidDecision(LessonPathError):
    def __init__(self, scene_id: str, decision_text: str) -> None:
        super().__init__(f"scene {scene_id} has no decision {decision_text!r}")
        self.scene_id = scene_id
        self.decision_text = decision_text


class InvalidReference(LessonPathError):
    """A scene reference points outside the lesson it is used in."""


class AccessDenied(LessonPathError):
    def __init__(self, student_id: str, scene_id: str) -> None:
        super().__init__(f"scene {scene_id} requires a premium subscription")
        self.student_id = student_id
        self.scene_id = scene_id


class StoreUnavailable(LessonPathError):
    """The backing store (PostgreSQL or Redis) failed the operation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EventType(str, Enum):
    LESSON_ENTERED = "lesson_entered"
    NAVIGATION = "navigation"
    AI_HELP_REQUESTED = "ai_help_requested"
    ACCESS_DENIED = "access_denied"


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    """Append-only audit record of one student action in a lesson.

    ``seq`` is assigned by the store on insert and breaks ties between
    events created in the same second.
    """

    student_id: str
    lesson_id: str
    event_type: str
    created_at: int
    from_scene_id: str | None = None  # None for lesson entry
    to_scene_id: str | None = None  # None for terminal or denied attempts
    decision_text: str | None = None
    seq: int | None = None

    @staticmethod
    def new(
        *,
        student_id: str,
        lesson_id: str,
        event_type: EventType | str,
        created_at: int,
        from_scene_id: str | None = None,
        to_scene_id: str | None = None,
        decision_text: str | None = None,
    ) -> InteractionEvent:
        return InteractionEvent(
            student_id=student_id,
            lesson_id=lesson_id,
            event_type=EventType(event_type).value,
            created_at=created_at,
            from_scene_id=from_scene_id,
            to_scene_id=to_scene_id,
            decision_text=decision_text,
        )

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.created_at, self.seq or 0)

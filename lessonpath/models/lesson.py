from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

# Scene builders hand out ids like "scene_1718..." before the first save.
TEMP_SCENE_PREFIX = "scene_"


def is_temporary_scene_id(scene_id: str | None) -> bool:
    return not scene_id or scene_id.startswith(TEMP_SCENE_PREFIX)


def new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True, slots=True)
class Lesson:
    id: str
    title: str
    root_scene_id: str | None = None  # None until the path builder sets a root

    @staticmethod
    def new(*, title: str, root_scene_id: str | None = None) -> Lesson:
        return Lesson(id=new_id(), title=title, root_scene_id=root_scene_id)


@dataclass(frozen=True, slots=True)
class Decision:
    """A labeled edge.  A target that does not resolve ends the branch."""

    text: str
    target_scene_id: str | None = None


@dataclass(frozen=True, slots=True)
class Scene:
    id: str | None
    lesson_id: str
    title: str = ""
    # Rendered by the front-end; the engine never looks inside.
    content: Mapping[str, Any] = field(default_factory=dict)
    decisions: tuple[Decision, ...] = ()
    is_premium: bool = False

    @staticmethod
    def new(
        *,
        lesson_id: str,
        title: str = "",
        content: Mapping[str, Any] | None = None,
        decisions: tuple[Decision, ...] = (),
        is_premium: bool = False,
    ) -> Scene:
        return Scene(
            id=new_id(),
            lesson_id=lesson_id,
            title=title,
            content=dict(content or {}),
            decisions=decisions,
            is_premium=is_premium,
        )

    @property
    def is_terminal(self) -> bool:
        return not self.decisions

    def decision_for(self, text: str) -> Decision | None:
        # Labels are authored content: exact, case-sensitive match.
        for decision in self.decisions:
            if decision.text == text:
                return decision
        return None

from __future__ import annotations

import itertools
from dataclasses import replace
from typing import Protocol

from lessonpath.models.interaction import InteractionEvent


class InteractionEventRepo(Protocol):
    async def add(self, event: InteractionEvent) -> InteractionEvent: ...
    async def list_by_lesson(self, lesson_id: str) -> list[InteractionEvent]: ...


class InMemoryInteractionEventRepo:
    def __init__(self) -> None:
        self._events: list[InteractionEvent] = []
        self._seq = itertools.count(1)

    async def add(self, event: InteractionEvent) -> InteractionEvent:
        stored = replace(event, seq=next(self._seq))
        self._events.append(stored)
        return stored

    async def list_by_lesson(self, lesson_id: str) -> list[InteractionEvent]:
        events = [e for e in self._events if e.lesson_id == lesson_id]
        return sorted(events, key=lambda e: e.sort_key)

    def clear(self) -> None:
        self._events.clear()
        self._seq = itertools.count(1)

"""Append-only interaction event log with a live feed per lesson."""

from __future__ import annotations

import logging

from lessonpath.core.metrics import EVENTS_LOGGED, LIVE_PUBLISH_FAILURES
from lessonpath.db.unit_of_work import UnitOfWork
from lessonpath.models.interaction import InteractionEvent
from lessonpath.repos.interaction_repo import InteractionEventRepo
from lessonpath.services.errors import StoreUnavailable
from lessonpath.services.live_channel import EventChannel, EventSubscription

logger = logging.getLogger(__name__)


class EventLog:
    def __init__(
        self,
        events: InteractionEventRepo,
        channel: EventChannel,
        uow: UnitOfWork | None = None,
    ) -> None:
        self._events = events
        self._channel = channel
        self._uow = uow if uow is not None else UnitOfWork()

    async def log_event(self, event: InteractionEvent) -> InteractionEvent:
        """Append one event.  No dedup: revisits are real, recordable facts.

        Raises StoreUnavailable if the insert fails.  The live push waits
        for the surrounding commit; a failed push is only logged, since
        dashboards recover through list_events.
        """
        stored = await self._events.add(event)
        EVENTS_LOGGED.labels(event_type=stored.event_type).inc()

        async def publish() -> None:
            await self._publish(stored)

        await self._uow.after_commit(publish)
        return stored

    async def _publish(self, stored: InteractionEvent) -> None:
        try:
            await self._channel.publish(stored)
        except StoreUnavailable:
            LIVE_PUBLISH_FAILURES.inc()
            logger.warning(
                "Stored event seq=%s but live push failed",
                stored.seq,
                extra={"lesson_id": stored.lesson_id, "event_type": stored.event_type},
            )

    async def list_events(self, lesson_id: str) -> list[InteractionEvent]:
        return await self._events.list_by_lesson(lesson_id)

    async def stream_events(self, lesson_id: str) -> EventSubscription:
        """Open a live feed of events logged from now on.  Caller closes it."""
        return await self._channel.subscribe(lesson_id)

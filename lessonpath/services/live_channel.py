"""Live push channel for new interaction events, keyed by lesson.

Instructor dashboards subscribe to a lesson and receive every event logged
after the subscription opened, in publish order.  Delivery is at-least-once
with no back-pressure: each subscriber gets its own unbounded queue, so a
slow dashboard never blocks a student's navigation.  A dashboard that
reconnects after a gap re-reads history with EventLog.list_events.

Lifecycle is explicit::

    sub = await live_channel.subscribe(lesson_id)
    async with sub:
        async for event in sub:
            ...

Two implementations, picked at import time like the other Redis-backed
services: an in-process fan-out (tests, single-process dev) and Redis
pub/sub on ``interactions:{lesson_id}`` (shared across API instances).
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from lessonpath.core.metrics import LIVE_SUBSCRIBERS
from lessonpath.db.redis import redis_errors, redis_pool
from lessonpath.models.interaction import InteractionEvent

logger = logging.getLogger(__name__)


class EventSubscription:
    """Async-iterable, closable handle shared by both channel kinds."""

    lesson_id: str

    async def get(self) -> InteractionEvent | None:
        """Wait for the next event.  Returns None once closed."""
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError

    def __aiter__(self) -> EventSubscription:
        return self

    async def __anext__(self) -> InteractionEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> EventSubscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


@runtime_checkable
class EventChannel(Protocol):
    async def publish(self, event: InteractionEvent) -> None: ...
    async def subscribe(self, lesson_id: str) -> EventSubscription: ...


# ---------------------------------------------------------------------------
# In-process fan-out
# ---------------------------------------------------------------------------

_CLOSED = object()


class InMemorySubscription(EventSubscription):
    def __init__(
        self,
        lesson_id: str,
        queue: asyncio.Queue,
        on_close: Callable[[str, asyncio.Queue], None],
    ) -> None:
        self.lesson_id = lesson_id
        self._queue = queue
        self._on_close = on_close
        self._closed = False

    async def get(self) -> InteractionEvent | None:
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._on_close(self.lesson_id, self._queue)
        # Wake a consumer blocked in get()
        self._queue.put_nowait(_CLOSED)


class InMemoryEventChannel:
    """Per-process channel for tests and local dev."""

    def __init__(self) -> None:
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    async def publish(self, event: InteractionEvent) -> None:
        for queue in list(self._subscribers.get(event.lesson_id, ())):
            queue.put_nowait(event)

    async def subscribe(self, lesson_id: str) -> InMemorySubscription:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(lesson_id, set()).add(queue)
        LIVE_SUBSCRIBERS.inc()
        return InMemorySubscription(lesson_id, queue, self._unsubscribe)

    def subscriber_count(self, lesson_id: str) -> int:
        return len(self._subscribers.get(lesson_id, ()))

    def _unsubscribe(self, lesson_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(lesson_id)
        if queues is None or queue not in queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[lesson_id]
        LIVE_SUBSCRIBERS.dec()


# ---------------------------------------------------------------------------
# Redis pub/sub
# ---------------------------------------------------------------------------


def _event_to_json(event: InteractionEvent) -> str:
    return json.dumps(dataclasses.asdict(event))


def _event_from_json(raw: str) -> InteractionEvent:
    return InteractionEvent(**json.loads(raw))


class RedisSubscription(EventSubscription):
    # get() polls so that close() from another task is noticed promptly.
    _POLL_SECONDS = 1.0

    def __init__(self, lesson_id: str, channel: str, pubsub) -> None:
        self.lesson_id = lesson_id
        self._channel = channel
        self._pubsub = pubsub
        self._closed = False

    async def get(self) -> InteractionEvent | None:
        while not self._closed:
            with redis_errors("live channel"):
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True, timeout=self._POLL_SECONDS
                )
            if message is None or message.get("type") != "message":
                continue
            return _event_from_json(message["data"])
        return None

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        LIVE_SUBSCRIBERS.dec()
        with redis_errors("live channel"):
            try:
                await self._pubsub.unsubscribe(self._channel)
            finally:
                await self._pubsub.aclose()


class RedisEventChannel:
    """Redis-backed channel: every API instance sees every event."""

    _PREFIX = "interactions:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def publish(self, event: InteractionEvent) -> None:
        with redis_errors("live channel"):
            await self._redis.publish(
                f"{self._PREFIX}{event.lesson_id}", _event_to_json(event)
            )

    async def subscribe(self, lesson_id: str) -> RedisSubscription:
        channel = f"{self._PREFIX}{lesson_id}"
        pubsub = self._redis.pubsub()
        with redis_errors("live channel"):
            await pubsub.subscribe(channel)
        LIVE_SUBSCRIBERS.inc()
        logger.debug("Live subscription opened for lesson=%s", lesson_id)
        return RedisSubscription(lesson_id, channel, pubsub)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    live_channel: EventChannel = RedisEventChannel(redis_pool)
else:
    live_channel = InMemoryEventChannel()

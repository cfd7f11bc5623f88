from __future__ import annotations

import asyncio
from collections import deque

import pytest
from prometheus_client import REGISTRY
from redis.exceptions import ConnectionError as RedisConnectionError

from lessonpath.models.interaction import EventType, InteractionEvent
from lessonpath.services.errors import StoreUnavailable
from lessonpath.services.live_channel import EventChannel, RedisEventChannel
from tests.conftest import LESSON_ID, OTHER_LESSON_ID, SCENE_A, SCENE_B, STUDENT


def _subscribers() -> float:
    value = REGISTRY.get_sample_value("live_subscribers")
    return value if value is not None else 0.0


class _FakePubSub:
    def __init__(self, fail_unsubscribe: bool = False) -> None:
        self.channels: set[str] = set()
        self.inbox: deque[dict] = deque()
        self.fail_unsubscribe = fail_unsubscribe
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        self.channels.add(channel)

    async def unsubscribe(self, channel: str) -> None:
        if self.fail_unsubscribe:
            raise RedisConnectionError("connection reset")
        self.channels.discard(channel)

    async def aclose(self) -> None:
        self.closed = True

    async def get_message(
        self, ignore_subscribe_messages: bool = False, timeout: float = 0.0
    ) -> dict | None:
        if self.inbox:
            return self.inbox.popleft()
        await asyncio.sleep(0)
        return None


class _FakeRedis:
    """Just enough of redis.asyncio.Redis for pub/sub with decode_responses."""

    def __init__(
        self, fail_unsubscribe: bool = False, fail_publish: bool = False
    ) -> None:
        self.pubsubs: list[_FakePubSub] = []
        self.fail_unsubscribe = fail_unsubscribe
        self.fail_publish = fail_publish

    def pubsub(self) -> _FakePubSub:
        pubsub = _FakePubSub(self.fail_unsubscribe)
        self.pubsubs.append(pubsub)
        return pubsub

    async def publish(self, channel: str, payload: str) -> int:
        if self.fail_publish:
            raise RedisConnectionError("connection refused")
        receivers = [p for p in self.pubsubs if channel in p.channels]
        for pubsub in receivers:
            pubsub.inbox.append(
                {"type": "message", "channel": channel, "data": payload}
            )
        return len(receivers)


def _event(lesson_id: str = LESSON_ID, seq: int = 7) -> InteractionEvent:
    return InteractionEvent(
        student_id=STUDENT,
        lesson_id=lesson_id,
        event_type=EventType.NAVIGATION.value,
        created_at=1_700_000_000,
        from_scene_id=SCENE_A,
        to_scene_id=SCENE_B,
        decision_text="next",
        seq=seq,
    )


def test_redis_channel_round_trips_events_per_lesson() -> None:
    redis = _FakeRedis()
    channel = RedisEventChannel(redis)
    assert isinstance(channel, EventChannel)
    baseline = _subscribers()

    async def scenario() -> InteractionEvent | None:
        sub = await channel.subscribe(LESSON_ID)
        assert _subscribers() - baseline == 1
        await channel.publish(_event(lesson_id=OTHER_LESSON_ID, seq=6))
        await channel.publish(_event())
        received = await sub.get()
        await sub.close()
        return received

    received = asyncio.run(scenario())

    assert received == _event()
    assert redis.pubsubs[0].channels == set()
    assert redis.pubsubs[0].closed is True
    assert _subscribers() == baseline


def test_redis_subscription_close_is_idempotent_and_ends_iteration() -> None:
    channel = RedisEventChannel(_FakeRedis())
    baseline = _subscribers()

    async def scenario() -> list[InteractionEvent]:
        sub = await channel.subscribe(LESSON_ID)
        await sub.close()
        await sub.close()
        return [e async for e in sub]

    assert asyncio.run(scenario()) == []
    assert _subscribers() == baseline


def test_redis_unsubscribe_failure_is_store_unavailable() -> None:
    redis = _FakeRedis(fail_unsubscribe=True)
    channel = RedisEventChannel(redis)
    baseline = _subscribers()

    async def scenario() -> None:
        sub = await channel.subscribe(LESSON_ID)
        with pytest.raises(StoreUnavailable):
            await sub.close()

    asyncio.run(scenario())
    assert redis.pubsubs[0].closed is True
    assert _subscribers() == baseline


def test_redis_publish_failure_is_store_unavailable() -> None:
    channel = RedisEventChannel(_FakeRedis(fail_publish=True))

    with pytest.raises(StoreUnavailable):
        asyncio.run(channel.publish(_event()))

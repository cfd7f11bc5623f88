"""Premium entitlement lookup.

The subscription subsystem owns who is premium; this module only asks.
With Redis configured it reads the ``premium_students`` set that the
billing side maintains; otherwise it uses a static set seeded from
PREMIUM_STUDENT_IDS.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from lessonpath.core.config import SETTINGS
from lessonpath.db.redis import redis_errors, redis_pool


@runtime_checkable
class EntitlementChecker(Protocol):
    async def is_premium_student(self, student_id: str) -> bool: ...


class InMemoryEntitlements:
    def __init__(self, premium_ids: Iterable[str] = ()) -> None:
        self._premium: set[str] = set(premium_ids)

    async def is_premium_student(self, student_id: str) -> bool:
        return student_id in self._premium

    def grant(self, student_id: str) -> None:
        self._premium.add(student_id)

    def revoke(self, student_id: str) -> None:
        self._premium.discard(student_id)


class RedisEntitlements:
    _KEY = "premium_students"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def is_premium_student(self, student_id: str) -> bool:
        with redis_errors("entitlements"):
            return bool(await self._redis.sismember(self._KEY, student_id))


if redis_pool is not None:
    entitlements: EntitlementChecker = RedisEntitlements(redis_pool)
else:
    entitlements = InMemoryEntitlements(SETTINGS.premium_student_ids)

"""One request's transaction and the side effects that wait for it.

Routers commit explicitly before building the response, so a failed commit
reaches the client as a 503 instead of after a 200 was sent.  Live pushes
are queued with ``after_commit`` and only go out once the rows they
describe are durable; a rollback drops them.

Without a session (in-memory repos) every write is already durable, so
``after_commit`` runs its callback straight away and ``commit`` is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from lessonpath.db.engine import store_errors

logger = logging.getLogger(__name__)

AfterCommit = Callable[[], Awaitable[None]]


class UnitOfWork:
    def __init__(self, session: AsyncSession | None = None) -> None:
        self._session = session
        self._pending: list[AfterCommit] = []

    async def after_commit(self, callback: AfterCommit) -> None:
        if self._session is None:
            await callback()
            return
        self._pending.append(callback)

    async def commit(self) -> None:
        """Commit, then run queued callbacks.  Raises StoreUnavailable."""
        if self._session is not None:
            with store_errors("session"):
                await self._session.commit()
        pending, self._pending = self._pending, []
        for callback in pending:
            await callback()

    async def rollback(self) -> None:
        if self._pending:
            logger.debug("Dropping %d post-commit callbacks", len(self._pending))
        self._pending = []
        if self._session is not None:
            await self._session.rollback()

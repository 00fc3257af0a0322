"""Exclusive ownership of reconciliation windows.

Two reconciliations whose windows overlap for the same user and account must
not interleave: each would delete the other's freshly inserted rows or
snapshot them as "existing". Non-overlapping windows run concurrently.

The registry is per process. Deployments running several worker processes
against one database need a database-level lock on top of this.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from budget_app.reconciliation.window import ReconciliationWindow

logger = logging.getLogger(__name__)

# Window covering every account and date; used by the duplicate sweeper.
USER_WIDE = ReconciliationWindow(account_id=None, start=datetime.min, end=datetime.max)


class WindowLockRegistry:
    """Waits until no overlapping window of the same user is held."""

    def __init__(self) -> None:
        self._held: dict[UUID, list[ReconciliationWindow]] = {}
        self._condition: asyncio.Condition | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _get_condition(self) -> asyncio.Condition:
        # asyncio primitives bind to one loop; rebuild when the loop changes.
        loop = asyncio.get_running_loop()
        if self._condition is None or self._loop is not loop:
            self._condition = asyncio.Condition()
            self._loop = loop
        return self._condition

    def _is_free(self, user_id: UUID, window: ReconciliationWindow) -> bool:
        return not any(window.overlaps(held) for held in self._held.get(user_id, ()))

    def is_held(self, user_id: UUID, window: ReconciliationWindow) -> bool:
        """True when some held window overlaps ``window``."""
        return not self._is_free(user_id, window)

    def active_count(self) -> int:
        """Number of windows currently held across all users."""
        return sum(len(held) for held in self._held.values())

    @asynccontextmanager
    async def hold(self, user_id: UUID, window: ReconciliationWindow) -> AsyncIterator[None]:
        """Hold ``window`` for ``user_id`` for the duration of the block."""
        condition = self._get_condition()
        async with condition:
            if self.is_held(user_id, window):
                logger.info(
                    "Waiting for overlapping reconciliation",
                    extra={"account_id": window.account_id},
                )
            await condition.wait_for(lambda: self._is_free(user_id, window))
            self._held.setdefault(user_id, []).append(window)
        try:
            yield
        finally:
            async with condition:
                held = self._held[user_id]
                held.remove(window)
                if not held:
                    del self._held[user_id]
                condition.notify_all()


window_locks = WindowLockRegistry()

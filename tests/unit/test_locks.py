"""Unit tests for window exclusivity."""

import asyncio
from datetime import datetime
from uuid import uuid4

from budget_app.reconciliation.locks import USER_WIDE, WindowLockRegistry
from budget_app.reconciliation.window import ReconciliationWindow

JANUARY = ReconciliationWindow("acc-a", datetime(2025, 1, 1), datetime(2025, 1, 31, 23, 59, 59))
MID_JANUARY = ReconciliationWindow("acc-a", datetime(2025, 1, 15), datetime(2025, 2, 15))
FEBRUARY_END = ReconciliationWindow("acc-a", datetime(2025, 2, 20), datetime(2025, 2, 28))
OTHER_ACCOUNT = ReconciliationWindow("acc-b", datetime(2025, 1, 1), datetime(2025, 1, 31))


async def test_overlapping_windows_are_serialized():
    registry = WindowLockRegistry()
    user_id = uuid4()
    events: list[str] = []
    first_entered = asyncio.Event()

    async def first():
        async with registry.hold(user_id, JANUARY):
            events.append("first-start")
            first_entered.set()
            await asyncio.sleep(0.05)
            events.append("first-end")

    async def second():
        await first_entered.wait()
        async with registry.hold(user_id, MID_JANUARY):
            events.append("second-start")

    await asyncio.gather(first(), second())

    assert events == ["first-start", "first-end", "second-start"]
    assert registry.active_count() == 0


async def test_disjoint_windows_run_concurrently():
    registry = WindowLockRegistry()
    user_id = uuid4()

    async with registry.hold(user_id, JANUARY):
        async with registry.hold(user_id, FEBRUARY_END):
            async with registry.hold(user_id, OTHER_ACCOUNT):
                assert registry.active_count() == 3


async def test_other_users_are_independent():
    registry = WindowLockRegistry()

    async with registry.hold(uuid4(), JANUARY):
        async with registry.hold(uuid4(), JANUARY):
            assert registry.active_count() == 2


async def test_user_wide_window_blocks_everything_for_user():
    registry = WindowLockRegistry()
    user_id = uuid4()

    async with registry.hold(user_id, USER_WIDE):
        assert registry.is_held(user_id, OTHER_ACCOUNT)
        assert registry.is_held(user_id, FEBRUARY_END)


async def test_lock_released_when_block_raises():
    registry = WindowLockRegistry()
    user_id = uuid4()

    try:
        async with registry.hold(user_id, JANUARY):
            raise RuntimeError("boom")
    except RuntimeError:
        pass

    assert not registry.is_held(user_id, JANUARY)

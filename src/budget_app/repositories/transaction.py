"""Transaction repository with window-scoped queries for reconciliation.

Write methods here flush but never commit: the reconciliation service owns
the database transaction so that delete + insert + restore land atomically.
"""
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from budget_app.models.transaction import Transaction
from budget_app.reconciliation.window import ReconciliationWindow
from budget_app.repositories.base import BaseRepository

# Keep IN (...) lists well below driver parameter limits.
DELETE_CHUNK_SIZE = 500


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Transaction)

    async def get_in_window(
        self, user_id: UUID, window: ReconciliationWindow
    ) -> list[Transaction]:
        """Get the user's transactions inside a window, oldest first.

        An unscoped window (``account_id is None``) covers every account.
        """
        query = select(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.date >= window.start,
            Transaction.date <= window.end,
        )
        if window.account_id is not None:
            query = query.where(Transaction.account_id == window.account_id)
        result = await self.db.execute(query.order_by(Transaction.date, Transaction.created_at))
        return list(result.scalars().all())

    async def get_all_for_user(self, user_id: UUID) -> list[Transaction]:
        """Get every transaction the user owns, across all accounts."""
        result = await self.db.execute(
            select(Transaction)
            .where(Transaction.user_id == user_id)
            .order_by(Transaction.date, Transaction.created_at)
        )
        return list(result.scalars().all())

    async def count_for_user(self, user_id: UUID) -> int:
        """Count the user's transactions."""
        result = await self.db.execute(
            select(func.count()).select_from(Transaction).where(Transaction.user_id == user_id)
        )
        return int(result.scalar_one())

    async def delete_many(self, user_id: UUID, ids: Sequence[UUID]) -> int:
        """Delete the given rows (restricted to the user); returns rows removed."""
        deleted = 0
        for offset in range(0, len(ids), DELETE_CHUNK_SIZE):
            chunk = list(ids[offset : offset + DELETE_CHUNK_SIZE])
            result = await self.db.execute(
                delete(Transaction)
                .where(Transaction.user_id == user_id, Transaction.id.in_(chunk))
                .execution_options(synchronize_session=False)
            )
            deleted += result.rowcount or 0
        return deleted

    async def add_many(self, rows: Iterable[Transaction]) -> list[Transaction]:
        """Stage new rows and flush them so they get storage keys."""
        rows = list(rows)
        self.db.add_all(rows)
        await self.db.flush()
        return rows

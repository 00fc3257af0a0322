"""Transaction reconciliation service.

This module runs the three reconciliation operations end to end:
1. Validate the request and resolve the window (no writes yet)
2. Take exclusive ownership of the window
3. Run the engine or the sweeper inside one database transaction
4. Commit, or roll back everything on failure
"""

import logging
import time
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from budget_app.config import settings
from budget_app.core.exceptions import InvalidBatchError, StorageError
from budget_app.reconciliation.engine import ReconciliationEngine, ReconcileStats
from budget_app.reconciliation.locks import USER_WIDE, WindowLockRegistry, window_locks
from budget_app.reconciliation.sweeper import DuplicateSweeper
from budget_app.reconciliation.window import ReconciliationWindow, resolve_window
from budget_app.repositories.transaction import TransactionRepository
from budget_app.schemas.transaction import (
    BulletproofSyncRequest,
    BulletproofSyncResponse,
    BulletproofSyncStats,
    CleanupDuplicatesResponse,
    SynchronizeRequest,
    SynchronizeResponse,
    SynchronizeStats,
    TransactionCandidate,
)

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Service for merging imported statements into a user's transactions.

    Every mutating operation is atomic: the window's delete and insert (or a
    sweep's deletions) commit together or not at all.
    """

    def __init__(self, db: AsyncSession, locks: WindowLockRegistry | None = None):
        """Initialize the service.

        Args:
            db: Database session; the service commits or rolls it back
            locks: Window lock registry (defaults to the process-wide one)
        """
        self.db = db
        self.locks = locks or window_locks
        self.transaction_repo = TransactionRepository(db)
        self.engine = ReconciliationEngine(self.transaction_repo)
        self.sweeper = DuplicateSweeper(
            self.transaction_repo, merge=settings.sweep_merge_annotations
        )

    async def synchronize(
        self, user_id: UUID, request: SynchronizeRequest
    ) -> SynchronizeResponse:
        """Reconcile a batch over the window spanned by its own rows.

        The account is taken from the first row; every row must belong to it.

        Raises:
            InvalidBatchError: If the batch cannot be reconciled safely
            StorageError: If the database fails (nothing is changed)
        """
        candidates = request.transactions
        if not candidates:
            return SynchronizeResponse(
                success=True,
                stats=SynchronizeStats(),
                message="No transactions to synchronize",
            )
        self._check_batch_size(candidates)

        window = resolve_window(candidates, single_account=True)
        stats = await self._reconcile(user_id, window, candidates)

        return SynchronizeResponse(
            success=True,
            stats=SynchronizeStats(
                created=stats.created, deleted=stats.deleted, skipped=stats.skipped
            ),
            message=(
                f"Synchronization complete: {stats.created} created, "
                f"{stats.deleted} deleted, {stats.skipped} skipped"
            ),
        )

    async def bulletproof_sync(
        self, user_id: UUID, request: BulletproofSyncRequest
    ) -> BulletproofSyncResponse:
        """Reconcile a batch over an explicit account and date range.

        The range is widened to whole days. An empty batch leaves the window
        untouched.

        Raises:
            InvalidBatchError: If the window is invalid or rows fall outside it
            StorageError: If the database fails (nothing is changed)
        """
        candidates = request.transactions
        if not candidates:
            return BulletproofSyncResponse(
                success=True,
                stats=BulletproofSyncStats(),
                message="No transactions in batch; nothing was changed",
            )
        self._check_batch_size(candidates)

        window = resolve_window(
            candidates,
            account_id=request.account_id,
            start=request.start_date,
            end=request.end_date,
        )
        stats = await self._reconcile(user_id, window, candidates)

        return BulletproofSyncResponse(
            success=True,
            stats=BulletproofSyncStats(
                deleted=stats.deleted,
                created=stats.created,
                restored=stats.restored,
                duplicates_removed=stats.skipped,
            ),
            message=(
                f"Bulletproof sync complete: {stats.deleted} deleted, "
                f"{stats.created} created, {stats.restored} restored, "
                f"{stats.skipped} duplicates removed"
            ),
        )

    async def cleanup_duplicates(self, user_id: UUID) -> CleanupDuplicatesResponse:
        """Collapse fingerprint collisions across all of the user's transactions.

        Raises:
            StorageError: If the database fails (nothing is changed)
        """
        start_time = time.time()
        async with self.locks.hold(user_id, USER_WIDE):
            try:
                stats = await self.sweeper.sweep(user_id)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    "Duplicate cleanup failed, rolled back",
                    extra={"error_type": type(e).__name__},
                )
                raise StorageError("DB_002") from e
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            "Duplicate cleanup committed",
            extra={
                "deleted_count": stats.deleted,
                "kept_count": stats.kept,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return CleanupDuplicatesResponse(
            success=True,
            deleted=stats.deleted,
            kept=stats.kept,
            message=(
                f"Removed {stats.deleted} duplicate transactions, kept {stats.kept}"
                if stats.deleted
                else "No duplicate transactions found"
            ),
        )

    def _check_batch_size(self, candidates: list[TransactionCandidate]) -> None:
        if len(candidates) > settings.max_batch_size:
            raise InvalidBatchError(
                "SYNC_006",
                {"size": len(candidates), "max": settings.max_batch_size},
            )

    async def _reconcile(
        self,
        user_id: UUID,
        window: ReconciliationWindow,
        candidates: list[TransactionCandidate],
    ) -> ReconcileStats:
        """Run the engine for one window as a single committed unit."""
        start_time = time.time()
        async with self.locks.hold(user_id, window):
            try:
                stats = await self.engine.reconcile(user_id, window, candidates)
                await self.db.commit()
            except SQLAlchemyError as e:
                await self.db.rollback()
                logger.error(
                    "Reconciliation failed, rolled back",
                    extra={
                        "account_id": window.account_id,
                        "error_type": type(e).__name__,
                    },
                )
                raise StorageError("DB_001", {"account_id": window.account_id}) from e
            except Exception:
                await self.db.rollback()
                raise

        logger.info(
            "Reconciliation committed",
            extra={
                "account_id": window.account_id,
                "deleted_count": stats.deleted,
                "created_count": stats.created,
                "restored_count": stats.restored,
                "skipped_count": stats.skipped,
                "duration_ms": int((time.time() - start_time) * 1000),
            },
        )
        return stats

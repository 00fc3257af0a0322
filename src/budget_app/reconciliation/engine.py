"""Replace-window merge of an imported batch into persisted transactions.

For one window the engine:

1. loads every persisted row of the user inside the window,
2. snapshots the annotations of those rows by fingerprint,
3. deletes all of them,
4. inserts the batch in input order, dropping rows whose fingerprint was
   already inserted in this pass and reattaching snapshot annotations to rows
   whose fingerprint matches a deleted one.

The engine never commits. Callers run it inside a single database transaction
(see ``budget_app.services.reconciliation``) so a failure between delete and
insert rolls back to the previous window contents.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from budget_app.models.transaction import (
    DEFAULT_TRANSACTION_TYPE,
    Transaction,
    TransactionStatus,
)
from budget_app.reconciliation.annotations import Annotation, extract_annotations
from budget_app.reconciliation.fingerprint import FINGERPRINT_VERSION, fingerprint
from budget_app.reconciliation.window import ReconciliationWindow
from budget_app.repositories.transaction import TransactionRepository
from budget_app.schemas.transaction import TransactionCandidate

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileStats:
    """Counts reported by one reconciliation pass."""

    deleted: int = 0
    created: int = 0
    restored: int = 0
    skipped: int = 0


def build_row(
    user_id: UUID,
    window: ReconciliationWindow,
    candidate: TransactionCandidate,
    annotation: Annotation | None = None,
) -> Transaction:
    """Create the ORM row for a candidate, applying a restored annotation."""
    row = Transaction(
        user_id=user_id,
        account_id=window.account_id or candidate.account_id,
        date=candidate.date,
        description=candidate.description,
        amount=candidate.amount,
        balance_after=candidate.balance_after,
        bank_category=candidate.bank_category,
        bank_sub_category=candidate.bank_sub_category,
        file_source=candidate.file_source,
        type=candidate.type or DEFAULT_TRANSACTION_TYPE,
        status=(candidate.status or TransactionStatus.UNREVIEWED).value,
        category_id=None,
        subcategory_id=None,
        user_description=None,
        linked_transaction_id=None,
        savings_target_id=None,
        corrected_amount=None,
        is_manually_changed=False,
    )
    if annotation is not None:
        for name, value in annotation.as_dict().items():
            setattr(row, name, value)
        row.is_manually_changed = True
    return row


class ReconciliationEngine:
    """Merges a candidate batch into one window of persisted transactions."""

    def __init__(self, transaction_repo: TransactionRepository):
        self.transaction_repo = transaction_repo

    async def reconcile(
        self,
        user_id: UUID,
        window: ReconciliationWindow,
        candidates: Sequence[TransactionCandidate],
    ) -> ReconcileStats:
        """Rebuild ``window`` from ``candidates``.

        An empty batch is a no-op: the window is left untouched rather than
        wiped.

        Args:
            user_id: Owner of the window.
            window: Window returned by ``resolve_window``.
            candidates: Imported rows in statement order.

        Returns:
            ReconcileStats with deleted/created/restored/skipped counts.
        """
        stats = ReconcileStats()
        if not candidates:
            logger.info("Empty batch, window left untouched", extra={"account_id": window.account_id})
            return stats

        existing = await self.transaction_repo.get_in_window(user_id, window)
        snapshot = extract_annotations(existing)
        logger.info(
            "Reconciling window",
            extra={
                "account_id": window.account_id,
                "window_start": window.start.isoformat(),
                "window_end": window.end.isoformat(),
                "fingerprint_version": FINGERPRINT_VERSION,
                "existing_count": len(existing),
                "annotated_count": len(snapshot),
                "candidate_count": len(candidates),
            },
        )

        stats.deleted = await self.transaction_repo.delete_many(
            user_id, [row.id for row in existing]
        )

        seen: set[str] = set()
        rows: list[Transaction] = []
        for candidate in candidates:
            key = fingerprint(_scoped(candidate, window))
            if key in seen:
                stats.skipped += 1
                continue
            seen.add(key)

            row = build_row(user_id, window, candidate)
            annotation = snapshot.get(key)
            # Rule-assigned type/status reproduced by the import itself is not user state.
            if annotation is not None and annotation != Annotation.from_row(row):
                row = build_row(user_id, window, candidate, annotation)
                stats.restored += 1
            rows.append(row)

        await self.transaction_repo.add_many(rows)
        stats.created = len(rows)

        logger.info(
            "Window reconciled",
            extra={
                "account_id": window.account_id,
                "deleted_count": stats.deleted,
                "created_count": stats.created,
                "restored_count": stats.restored,
                "skipped_count": stats.skipped,
            },
        )
        return stats


def _scoped(candidate: TransactionCandidate, window: ReconciliationWindow) -> dict:
    """Fingerprint input for a candidate as it will be stored.

    The stored row takes the window's account, so the candidate must be
    fingerprinted under that account too or restores would never match.
    """
    return {
        "account_id": window.account_id or candidate.account_id,
        "date": candidate.date,
        "description": candidate.description,
        "amount": candidate.amount,
    }

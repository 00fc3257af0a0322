"""Snapshot of user-owned transaction state, keyed by fingerprint."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import Any
from uuid import UUID

from budget_app.models.transaction import (
    DEFAULT_TRANSACTION_TYPE,
    Transaction,
    TransactionStatus,
)
from budget_app.reconciliation.fingerprint import fingerprint


@dataclass(frozen=True, slots=True)
class Annotation:
    """Annotation fields captured from a persisted row."""

    category_id: UUID | None = None
    subcategory_id: UUID | None = None
    user_description: str | None = None
    status: str = TransactionStatus.UNREVIEWED.value
    type: str = DEFAULT_TRANSACTION_TYPE
    linked_transaction_id: UUID | None = None
    savings_target_id: str | None = None
    corrected_amount: int | None = None
    is_manually_changed: bool = False

    @classmethod
    def from_row(cls, row: Transaction) -> "Annotation":
        return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})

    def is_default(self) -> bool:
        """True when the row carries nothing the user added."""
        return (
            self.category_id is None
            and self.subcategory_id is None
            and not (self.user_description or "").strip()
            and (self.status or TransactionStatus.UNREVIEWED.value) == TransactionStatus.UNREVIEWED.value
            and (self.type or DEFAULT_TRANSACTION_TYPE) == DEFAULT_TRANSACTION_TYPE
            and self.linked_transaction_id is None
            and self.savings_target_id is None
            and self.corrected_amount is None
            and not self.is_manually_changed
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def survivor_rank(row: Transaction) -> tuple[bool, datetime, str]:
    """Sort key for choosing between rows sharing a fingerprint (highest wins).

    Manually changed rows beat untouched ones, then the most recently created
    row wins; the storage key breaks exact ties so the choice is deterministic.
    """
    created = row.created_at or datetime.min
    if created.tzinfo is not None:
        created = created.replace(tzinfo=None)
    return (bool(row.is_manually_changed), created, str(row.id))


def extract_annotations(rows: Iterable[Transaction]) -> dict[str, Annotation]:
    """Capture annotations of every annotated row, keyed by fingerprint.

    Rows still at their defaults are left out, so the restore step scales with
    the number of annotated rows rather than the window size. If several
    annotated rows share a fingerprint, the one ranked highest by
    :func:`survivor_rank` is kept.
    """
    best: dict[str, tuple[tuple[bool, datetime, str], Annotation]] = {}
    for row in rows:
        annotation = Annotation.from_row(row)
        if annotation.is_default():
            continue
        key = fingerprint(row)
        rank = survivor_rank(row)
        current = best.get(key)
        if current is None or rank > current[0]:
            best[key] = (rank, annotation)
    return {key: annotation for key, (_, annotation) in best.items()}

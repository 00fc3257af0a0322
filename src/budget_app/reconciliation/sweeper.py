"""Out-of-band cleanup of fingerprint collisions.

Reconciliation never inserts two rows with one fingerprint, but manual entry,
legacy imports and interrupted writes can. The sweeper groups all of a user's
transactions by fingerprint and keeps one row per group.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, fields
from uuid import UUID

from budget_app.models.transaction import Transaction
from budget_app.reconciliation.annotations import Annotation, survivor_rank
from budget_app.reconciliation.fingerprint import FINGERPRINT_VERSION, fingerprint
from budget_app.repositories.transaction import TransactionRepository

logger = logging.getLogger(__name__)

_MERGEABLE_FIELDS = tuple(
    f.name for f in fields(Annotation) if f.name not in ("status", "type", "is_manually_changed")
)


@dataclass(slots=True)
class SweepStats:
    """Counts reported by one sweep."""

    deleted: int = 0
    kept: int = 0
    groups: int = 0


def merge_annotations(survivor: Transaction, losers: list[Transaction]) -> bool:
    """Fill the survivor's empty annotation fields from the losers.

    ``losers`` must be ordered best first; the first non-empty value wins.
    Returns True when anything was copied.
    """
    changed = False
    for name in _MERGEABLE_FIELDS:
        if getattr(survivor, name) not in (None, ""):
            continue
        for loser in losers:
            value = getattr(loser, name)
            if value not in (None, ""):
                setattr(survivor, name, value)
                changed = True
                break
    if changed:
        survivor.is_manually_changed = True
    return changed


class DuplicateSweeper:
    """Collapses rows sharing a fingerprint into the best-ranked one."""

    def __init__(self, transaction_repo: TransactionRepository, merge: bool = False):
        self.transaction_repo = transaction_repo
        self.merge = merge

    async def sweep(self, user_id: UUID) -> SweepStats:
        """Delete every row that collides with a better-ranked row.

        The survivor of a group is the manually changed row if any, else the
        most recently created one. Unless ``merge`` is set, annotations on the
        deleted rows are discarded.

        Returns:
            SweepStats; ``kept`` counts survivors of colliding groups only.
        """
        rows = await self.transaction_repo.get_all_for_user(user_id)

        groups: dict[str, list[Transaction]] = defaultdict(list)
        for row in rows:
            groups[fingerprint(row)].append(row)

        stats = SweepStats()
        doomed: list[UUID] = []
        for members in groups.values():
            if len(members) < 2:
                continue
            members.sort(key=survivor_rank, reverse=True)
            survivor, losers = members[0], members[1:]
            if self.merge:
                merge_annotations(survivor, losers)
            doomed.extend(loser.id for loser in losers)
            stats.groups += 1
            stats.kept += 1
            logger.debug(
                "Duplicate group resolved",
                extra={"kept_id": str(survivor.id), "dropped": len(losers)},
            )

        if doomed:
            stats.deleted = await self.transaction_repo.delete_many(user_id, doomed)

        logger.info(
            "Duplicate sweep finished",
            extra={
                "scanned": len(rows),
                "fingerprint_version": FINGERPRINT_VERSION,
                "groups": stats.groups,
                "deleted_count": stats.deleted,
                "kept_count": stats.kept,
            },
        )
        return stats

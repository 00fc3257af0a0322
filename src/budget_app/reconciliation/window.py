"""Resolution of the (account, start, end) window a reconciliation owns."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any

from budget_app.core.exceptions import InvalidBatchError

END_OF_DAY = time(23, 59, 59, 999999)


@dataclass(frozen=True, slots=True)
class ReconciliationWindow:
    """Closed interval of wall-clock time, optionally scoped to one account.

    ``account_id=None`` means the window spans every account of the user.
    """

    account_id: str | None
    start: datetime
    end: datetime

    def overlaps(self, other: "ReconciliationWindow") -> bool:
        if (
            self.account_id is not None
            and other.account_id is not None
            and self.account_id != other.account_id
        ):
            return False
        return self.start <= other.end and other.start <= self.end

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def _day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _naive(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def widen_to_days(start: date | datetime, end: date | datetime) -> tuple[datetime, datetime]:
    """Stretch bounds to 00:00:00 of the first day and 23:59:59.999999 of the last."""
    return (
        datetime.combine(_day(start), time.min),
        datetime.combine(_day(end), END_OF_DAY),
    )


def _candidate_account(candidate: Any) -> str | None:
    account_id = getattr(candidate, "account_id", None)
    if account_id is None:
        return None
    account_id = str(account_id).strip()
    return account_id or None


def resolve_window(
    candidates: Sequence[Any],
    account_id: str | None = None,
    start: date | datetime | None = None,
    end: date | datetime | None = None,
    require_account: bool = True,
    single_account: bool = False,
) -> ReconciliationWindow:
    """Compute the window a reconciliation request must own.

    Args:
        candidates: Non-empty candidate batch (objects with ``date`` and
            optionally ``account_id``).
        account_id: Explicit account; defaults to the first candidate's.
        start: Explicit start; defaults to the earliest candidate date.
        end: Explicit end; defaults to the latest candidate date.
        require_account: Reject the batch when no account id can be found.
        single_account: Reject batches whose rows name different accounts.

    Returns:
        Window widened to whole calendar days.

    Raises:
        InvalidBatchError: If the account is missing or mixed, the bounds are
            inverted, or a candidate falls outside explicit bounds.
    """
    if account_id is not None:
        account_id = str(account_id).strip() or None
    if account_id is None and candidates:
        account_id = _candidate_account(candidates[0])
    if account_id is None and require_account:
        raise InvalidBatchError("SYNC_001", {"reason": "account_id missing"})

    if single_account and account_id is not None:
        for position, candidate in enumerate(candidates):
            other = _candidate_account(candidate)
            if other is not None and other != account_id:
                raise InvalidBatchError(
                    "SYNC_004", {"position": position, "account_id": other}
                )

    if start is None or end is None:
        dates = [candidate.date for candidate in candidates]
        if not dates:
            raise InvalidBatchError("SYNC_002", {"reason": "no bounds and empty batch"})
        start = start if start is not None else min(dates)
        end = end if end is not None else max(dates)

    window_start, window_end = widen_to_days(start, end)
    if window_start > window_end:
        raise InvalidBatchError(
            "SYNC_002", {"start": window_start.isoformat(), "end": window_end.isoformat()}
        )
    window = ReconciliationWindow(account_id=account_id, start=window_start, end=window_end)
    for position, candidate in enumerate(candidates):
        if not window.contains(_naive(candidate.date)):
            raise InvalidBatchError(
                "SYNC_005", {"position": position, "date": str(candidate.date)}
            )
    return window

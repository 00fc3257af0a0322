"""Content-derived transaction identity.

Imported bank rows carry no stable identifier, so two rows describe the same
bank event when their fingerprints are equal:

    <account_id>_<YYYY-MM-DD>_<normalized description>_<amount to 2 decimals>

This is the only fingerprint scheme in the codebase. Annotation extraction,
annotation restore, in-batch deduplication and the duplicate sweeper must all
go through :func:`fingerprint`; a second formula anywhere would silently break
annotation restore.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

FINGERPRINT_VERSION = 1

_WHITESPACE = re.compile(r"\s+")
_HUNDREDTH = Decimal("0.01")


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def normalize_date(value: str | date | datetime) -> str:
    """Return the ``YYYY-MM-DD`` part of a date value, dropping any time of day.

    Strings are cut at the first ``"T"`` or space; anything else falls back to
    the first 10 characters, so callers must supply ``YYYY-MM-DD``-prefixed
    strings.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = str(value).strip()
    for sep in ("T", " "):
        if sep in text:
            return text.split(sep, 1)[0]
    return text[:10]


def normalize_description(description: str | None) -> str:
    """Lower-case, trim and collapse internal whitespace."""
    return _WHITESPACE.sub(" ", (description or "").strip().lower())


def normalize_amount(amount: int | float | Decimal | str | None) -> str:
    """Round to the nearest hundredth so float noise cannot split identities."""
    if amount is None:
        amount = 0
    value = Decimal(str(amount)).quantize(_HUNDREDTH, rounding=ROUND_HALF_UP)
    # -0.00 and 0.00 are the same amount
    if value == 0:
        value = abs(value)
    return f"{value:.2f}"


def fingerprint(record: Any) -> str:
    """Compute the fingerprint of a transaction-like record.

    Args:
        record: ORM row, pydantic model or mapping exposing ``date``,
            ``description``, ``amount`` and optionally ``account_id``.

    Returns:
        Deterministic identity string.
    """
    account_id = _field(record, "account_id") or ""
    return "_".join(
        (
            str(account_id),
            normalize_date(_field(record, "date")),
            normalize_description(_field(record, "description")),
            normalize_amount(_field(record, "amount")),
        )
    )

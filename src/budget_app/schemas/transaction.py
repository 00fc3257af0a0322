"""Request/response schemas for transaction reconciliation.

JSON bodies use camelCase keys (``accountId``, ``startDate``...); Python code
uses the snake_case attribute names.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from budget_app.models.transaction import TransactionStatus


def parse_statement_datetime(value: Any) -> Any:
    """Parse a statement date into naive wall-clock time.

    Accepts ``YYYY-MM-DD``, ``YYYY-MM-DD HH:MM[:SS]`` and ISO-8601 with ``T``
    and optional offset or ``Z``. The offset is dropped rather than applied so
    the calendar day the bank reported is kept.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text).replace(tzinfo=None)
        except ValueError as e:
            raise ValueError(f"Unrecognized date: {value!r}") from e
    return value


class CamelModel(BaseModel):
    """Base for API models exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransactionCandidate(CamelModel):
    """One row of an imported bank statement.

    Amounts are in minor currency units (öre/cents); fractional values are
    rounded to the nearest unit on the way in.
    """

    account_id: str | None = Field(None, description="Account the row belongs to")
    date: datetime = Field(description="Booking date, optionally with time of day")
    description: str = Field(min_length=1, description="Bank description text")
    amount: int = Field(description="Signed amount in minor units")
    balance_after: int | None = Field(None, description="Running balance after the row")
    bank_category: str | None = None
    bank_sub_category: str | None = None
    type: str | None = Field(None, description="Transaction type assigned by category rules")
    status: TransactionStatus | None = None
    file_source: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v: Any) -> Any:
        return parse_statement_datetime(v)

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Description cannot be empty")
        return v

    @field_validator("amount", "balance_after", mode="before")
    @classmethod
    def round_minor_units(cls, v: Any) -> Any:
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, (int, float, str, Decimal)):
            try:
                return int(Decimal(str(v)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
            except InvalidOperation as e:
                raise ValueError(f"Invalid amount: {v!r}") from e
        return v


# Request schemas


class SynchronizeRequest(CamelModel):
    """Batch whose window is derived from its own rows."""

    transactions: list[TransactionCandidate]


class BulletproofSyncRequest(CamelModel):
    """Batch for an explicit account and window."""

    account_id: str = Field(min_length=1)
    start_date: datetime
    end_date: datetime
    transactions: list[TransactionCandidate]

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_bounds(cls, v: Any) -> Any:
        return parse_statement_datetime(v)


# Response schemas


class SynchronizeStats(CamelModel):
    created: int = 0
    deleted: int = 0
    skipped: int = 0


class SynchronizeResponse(CamelModel):
    success: bool
    stats: SynchronizeStats
    message: str


class BulletproofSyncStats(CamelModel):
    deleted: int = 0
    created: int = 0
    restored: int = 0
    duplicates_removed: int = 0


class BulletproofSyncResponse(CamelModel):
    success: bool
    stats: BulletproofSyncStats
    message: str


class CleanupDuplicatesResponse(CamelModel):
    success: bool
    deleted: int = Field(description="Rows removed as duplicates")
    kept: int = Field(description="Rows kept as the survivor of a duplicate group")
    message: str

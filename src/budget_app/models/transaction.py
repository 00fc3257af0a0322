"""Transaction model representing bank statement rows and their user annotations."""
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_app.models.base import BaseModel

DEFAULT_TRANSACTION_TYPE = "Transaction"


class TransactionStatus(str, Enum):
    """Review lifecycle of an imported transaction."""

    UNREVIEWED = "unreviewed"
    REVIEWED = "reviewed"
    FLAGGED = "flagged"


class Transaction(BaseModel):
    """A single bank event on one account.

    Rows are rebuilt on every reconciliation pass, so ``id`` is not a stable
    identity; see ``budget_app.reconciliation.fingerprint``.
    """

    __tablename__ = "transactions"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id: Mapped[str] = mapped_column(String(100), nullable=False)
    # Wall-clock time as reported by the bank; only the day is used for identity.
    date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    balance_after: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    bank_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_sub_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    file_source: Mapped[str | None] = mapped_column(String(255), nullable=True)
    imported_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=True,
    )

    # Annotation fields (user-owned state that must survive re-import)
    type: Mapped[str] = mapped_column(String(50), default=DEFAULT_TRANSACTION_TYPE, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TransactionStatus.UNREVIEWED.value, nullable=False)
    category_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    subcategory_id: Mapped[UUID | None] = mapped_column(nullable=True)
    user_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    linked_transaction_id: Mapped[UUID | None] = mapped_column(nullable=True)
    savings_target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    corrected_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_manually_changed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("ix_transactions_user_account_date", "user_id", "account_id", "date"),
    )

    user: Mapped["User"] = relationship("User", back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"<Transaction(id={self.id}, account_id={self.account_id}, "
            f"date={self.date}, amount={self.amount})>"
        )

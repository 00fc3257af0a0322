"""User model for data ownership."""
from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from budget_app.models.base import BaseModel


class User(BaseModel):
    """User owning accounts and their transactions.

    Identity comes from the external auth provider; only the id is used to
    scope reconciliation.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Rely on DB-level ON DELETE CASCADE; prevent SQLAlchemy from NULLing FKs on delete.
    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction", back_populates="user", lazy="raise", passive_deletes="all"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, is_active={self.is_active})>"

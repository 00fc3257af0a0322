"""Database models."""
from budget_app.models.user import User
from budget_app.models.transaction import Transaction, TransactionStatus

__all__ = ["User", "Transaction", "TransactionStatus"]

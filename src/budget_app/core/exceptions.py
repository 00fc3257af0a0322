"""Custom exception classes for transaction reconciliation.

Each exception carries an error code from the catalog in errors.py; the
API layer turns it into a structured JSON error.
"""

from typing import Any


class ReconciliationError(Exception):
    """Base exception for all reconciliation errors.

    Attributes:
        error_code: Code from the error catalog (e.g., "SYNC_001")
        details: Additional context about the error (for logging)
        http_status: HTTP status code to return (default: 500)
    """

    def __init__(
        self,
        error_code: str,
        details: dict[str, Any] | None = None,
        http_status: int = 500,
    ):
        """Initialize the exception.

        Args:
            error_code: Error code from errors.py
            details: Additional error context (not shown to users)
            http_status: HTTP status code (default: 500)
        """
        self.error_code = error_code
        self.details = details or {}
        self.http_status = http_status
        super().__init__(error_code)


class InvalidBatchError(ReconciliationError):
    """Raised when a reconciliation request is rejected before any write.

    Common causes:
    - No account id in the request or its first row (SYNC_001)
    - Start of the window after its end (SYNC_002)
    - Rows for more than one account in one batch (SYNC_004)
    - A row dated outside the explicit window (SYNC_005)
    """

    def __init__(self, error_code: str, details: dict[str, Any] | None = None):
        super().__init__(error_code, details, http_status=400)


class StorageError(ReconciliationError):
    """Raised when the database fails mid-operation.

    The surrounding database transaction has been rolled back by the time
    this reaches the caller, so the whole request can simply be retried.
    """

    pass

"""Error codes and user-friendly messages.

This module defines the error catalog for transaction reconciliation.
Each error has:
- error_code: Unique identifier
- message: Technical description (for logs)
- user_message: User-friendly explanation
- suggestion: Actionable guidance for the user
- retry_allowed: Whether the error is retryable
"""

ERROR_CATALOG: dict[str, dict] = {
    "SYNC_001": {
        "code": "SYNC_001",
        "message": "Account id could not be determined for the batch",
        "user_message": "We couldn't tell which account these transactions belong to.",
        "suggestion": "Select the account for this statement and import it again.",
        "retry_allowed": False,
    },
    "SYNC_002": {
        "code": "SYNC_002",
        "message": "Invalid reconciliation window: start is after end",
        "user_message": "The statement period is invalid.",
        "suggestion": "Check the start and end dates of the import.",
        "retry_allowed": False,
    },
    "SYNC_004": {
        "code": "SYNC_004",
        "message": "Batch contains transactions for more than one account",
        "user_message": "This import mixes transactions from several accounts.",
        "suggestion": "Import one account's statement at a time.",
        "retry_allowed": False,
    },
    "SYNC_005": {
        "code": "SYNC_005",
        "message": "Transaction dated outside the reconciliation window",
        "user_message": "Some transactions fall outside the statement period.",
        "suggestion": "Widen the statement period or remove the rows outside it.",
        "retry_allowed": False,
    },
    "SYNC_006": {
        "code": "SYNC_006",
        "message": "Batch exceeds the maximum number of transactions",
        "user_message": "This statement has too many transactions to import at once.",
        "suggestion": "Split the statement into smaller date ranges.",
        "retry_allowed": False,
    },
    "DB_001": {
        "code": "DB_001",
        "message": "Database transaction failed during reconciliation",
        "user_message": "We couldn't save your transactions due to a database error.",
        "suggestion": "Nothing was changed. Please try the import again.",
        "retry_allowed": True,
    },
    "DB_002": {
        "code": "DB_002",
        "message": "Database transaction failed during duplicate cleanup",
        "user_message": "We couldn't clean up duplicate transactions due to a database error.",
        "suggestion": "Nothing was changed. Please try again in a few moments.",
        "retry_allowed": True,
    },
    "VAL_001": {
        "code": "VAL_001",
        "message": "Request payload failed validation",
        "user_message": "Invalid input data",
        "suggestion": "Please check your input and try again",
        "retry_allowed": False,
    },
}


def get_error(error_code: str) -> dict:
    """Get error definition by code.

    Args:
        error_code: Error code from the catalog

    Returns:
        Dict with error details; a generic entry for unknown codes
    """
    if error_code not in ERROR_CATALOG:
        return {
            "code": "UNKNOWN",
            "message": f"Unknown error code: {error_code}",
            "user_message": "An unexpected error occurred.",
            "suggestion": "Please try again. Contact support if the problem persists.",
            "retry_allowed": True,
        }
    return ERROR_CATALOG[error_code]


def is_retryable(error_code: str) -> bool:
    """Check if an error is retryable."""
    return get_error(error_code)["retry_allowed"]

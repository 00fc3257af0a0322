"""Global error handling.

Every failure reaches the client in one shape:
``{error_code, message, user_message, suggestion, retry_allowed}``.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from budget_app.config import settings
from budget_app.core.errors import get_error, is_retryable
from budget_app.core.exceptions import ReconciliationError

logger = logging.getLogger(__name__)


def _error_body(error_code: str, message: str | None = None) -> dict:
    error_info = get_error(error_code)
    return {
        "error_code": error_code,
        "message": message or error_info["message"],
        "user_message": error_info["user_message"],
        "suggestion": error_info["suggestion"],
        "retry_allowed": is_retryable(error_code),
    }


async def handle_reconciliation_error(
    request: Request, exc: ReconciliationError
) -> JSONResponse:
    """Handle reconciliation exceptions using the error catalog.

    Args:
        request: The incoming request
        exc: The reconciliation exception

    Returns:
        JSONResponse with error details from catalog
    """
    # Details can echo bank descriptions; only log them in debug.
    extra = {"error_code": exc.error_code, "path": request.url.path, "method": request.method}
    if settings.debug:
        extra["details"] = exc.details

    if exc.http_status >= 500:
        logger.error(f"Reconciliation error: {exc.error_code}", extra=extra)
    else:
        logger.warning(f"Reconciliation request rejected: {exc.error_code}", extra=extra)

    return JSONResponse(status_code=exc.http_status, content=_error_body(exc.error_code))


async def handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle Pydantic validation errors.

    Args:
        request: The incoming request
        exc: The validation error

    Returns:
        JSONResponse with field-level messages joined into ``message``
    """
    errors = exc.errors()
    error_messages = []

    for error in errors:
        field = ".".join(str(x) for x in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        error_messages.append(f"{field}: {msg}")

    extra = {"path": request.url.path, "method": request.method}
    if settings.debug:
        extra["errors"] = error_messages
    logger.warning(f"Validation error on {request.url.path}", extra=extra)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VAL_001", " | ".join(error_messages)),
    )


async def handle_generic_error(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: The incoming request
        exc: The unexpected exception

    Returns:
        JSONResponse with generic error message
    """
    extra = {
        "error_type": type(exc).__name__,
        "path": request.url.path,
        "method": request.method,
    }
    # In non-debug: do not log str(exc) or traceback (may include bank data).
    if settings.debug:
        logger.exception(f"Unexpected error on {request.url.path}", extra=extra)
    else:
        logger.error(f"Unexpected error on {request.url.path}", extra=extra)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "SYS_001",
            "message": "Internal server error",
            "user_message": "An unexpected error occurred",
            "suggestion": "Please try again later or contact support",
            "retry_allowed": True,
        },
    )

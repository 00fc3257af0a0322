from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from budget_app.api.middleware.error_handler import (
    handle_generic_error,
    handle_reconciliation_error,
    handle_validation_error,
)
from budget_app.api.middleware.logging import RequestLoggingMiddleware, configure_logging
from budget_app.api.v1 import router as v1_router
from budget_app.api.v1.health import router as health_router
from budget_app.config import settings
from budget_app.core.exceptions import ReconciliationError


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level, json_output=settings.log_json)
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Household Budget API",
        description="Bank statement re-import and transaction reconciliation",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers (order matters - most specific first)
    app.add_exception_handler(ReconciliationError, handle_reconciliation_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_generic_error)

    app.include_router(health_router)
    app.include_router(v1_router)

    return app


app = create_app()

"""
Main FastAPI application entry point for the eurozone pricing service.

Creates the application with its routers, exception handlers and the
startup / shutdown lifecycle.

Run with:
    uvicorn bgn_eurozone.main:app
"""

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.models import ErrorResponse, HealthCheckResponse, ValidationErrorResponse
from .config.settings import load_config_with_fallback
from .migration.router import router as migration_router
from .pricing.router import router as pricing_router
from .shared.dependencies import get_settings_store, init_services, shutdown_services
from .shared.exceptions import (
    CatalogError,
    EntityError,
    EurozoneError,
    PreconditionError,
    UnauthorizedError,
)
from .shared.logging_config import configure_structured_logging

logger = logging.getLogger(__name__)

APP_NAME = "BGN Eurozone Pricing API"
APP_DESCRIPTION = """
Dual BGN / EUR price display and the one-time catalog migration to the euro.

## Migration
Start a run, process batches until `has_more` is false, then finalize to
switch the store currency to EUR. Interrupted runs resume from the saved offset.

## Authentication
When an API key is configured, include it in the Authorization header:
```
Authorization: Bearer your-api-key-here
```
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown events."""
    config = load_config_with_fallback()
    configure_structured_logging(level=config.log_level)

    logger.info(f"Starting {APP_NAME} v{__version__}")
    await init_services(config)
    logger.info("Application startup completed")

    yield

    logger.info("Starting application shutdown")
    await shutdown_services()
    logger.info("Application shutdown completed")


app = FastAPI(
    title=APP_NAME,
    version=__version__,
    description=APP_DESCRIPTION,
    lifespan=lifespan,
)

app.include_router(migration_router)
app.include_router(pricing_router)


# ================================
# EXCEPTION HANDLERS
# ================================


def _error_response(
    status_code: int, error: str, message: str, details: dict | None = None
) -> JSONResponse:
    error_response = ErrorResponse(
        error=error, message=message, details=details, timestamp=datetime.now(UTC)
    )
    return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent error format."""
    return _error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors with detailed field information."""
    logger.warning(f"Validation error for {request.method} {request.url}: {exc.errors()}")

    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    error_response = ValidationErrorResponse(
        error="VALIDATION_ERROR",
        message="Request validation failed",
        field_errors=field_errors,
        timestamp=datetime.now(UTC),
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json"),
    )


@app.exception_handler(PreconditionError)
async def precondition_exception_handler(request: Request, exc: PreconditionError):
    """Refused operations; nothing was changed."""
    if isinstance(exc, UnauthorizedError):
        return _error_response(status.HTTP_403_FORBIDDEN, "UNAUTHORIZED", str(exc))
    return _error_response(
        status.HTTP_409_CONFLICT,
        type(exc).__name__,
        str(exc),
        {key: str(value) for key, value in exc.details.items()} or None,
    )


@app.exception_handler(EntityError)
async def entity_exception_handler(request: Request, exc: EntityError):
    details = {"entity_id": exc.entity_id} if exc.entity_id is not None else None
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, type(exc).__name__, str(exc), details)


@app.exception_handler(EurozoneError)
async def eurozone_exception_handler(request: Request, exc: EurozoneError):
    """Catalog failures abort the batch; saved migration state is left intact."""
    logger.error(f"{type(exc).__name__} during {request.method} {request.url.path}: {exc}")
    error = "CATALOG_ERROR" if isinstance(exc, CatalogError) else type(exc).__name__
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, error, str(exc))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    logger.error(traceback.format_exc())
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        {"exception_type": type(exc).__name__},
    )


# ================================
# HEALTH
# ================================


@app.get("/health", response_model=HealthCheckResponse, tags=["health"])
async def health_check(store=Depends(get_settings_store)):
    """Report database reachability and the configured store currency."""
    checks: dict[str, dict] = {}
    try:
        currency = await store.get_store_currency()
        checks["database"] = {"status": "healthy"}
        checks["store_currency"] = {"status": "healthy", "value": currency}
    except CatalogError as e:
        checks["database"] = {"status": "unhealthy", "error": str(e)}

    overall = "healthy" if all(c["status"] == "healthy" for c in checks.values()) else "unhealthy"
    return HealthCheckResponse(
        status=overall,
        timestamp=datetime.now(UTC),
        version=__version__,
        checks=checks,
    )

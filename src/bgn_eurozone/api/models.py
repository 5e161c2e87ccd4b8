"""
Request and response models for the HTTP API.

Migration results (BatchResult, MigrationStatus) and DisplaySettings are
returned as-is; only the shapes specific to the HTTP surface live here.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..migration.state import MigrationState
from ..pricing.annotator import AnnotationContext
from ..pricing.display import DisplayLocation


class HealthCheckResponse(BaseModel):
    """Response model for health checks."""

    status: str = Field(..., description="Overall health status")
    timestamp: datetime = Field(..., description="Health check timestamp")
    version: str = Field(..., description="Application version")
    checks: dict[str, dict[str, Any]] = Field(
        ..., description="Individual component health checks"
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(json_encoders={datetime: lambda v: v.isoformat()})

    error: str = Field(..., description="Error type or code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(None, description="Additional error details")
    timestamp: datetime = Field(..., description="Error timestamp")


class ValidationErrorResponse(BaseModel):
    """Response model for validation errors."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="General error message")
    field_errors: list[dict[str, Any]] = Field(
        ..., description="Detailed field validation errors"
    )
    timestamp: datetime = Field(..., description="Error timestamp")


class OperationResult(BaseModel):
    """Generic operation result model."""

    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field(..., description="Operation result message")
    operation_id: str | None = Field(
        None, description="Correlation ID of the migration run"
    )


# ================================
# MIGRATION
# ================================


class MigrationStartResponse(BaseModel):
    """Returned by POST /migration/start."""

    count: int = Field(..., ge=0, description="Products counted for this run")
    state: MigrationState
    operation_id: str | None = None


class BatchRequest(BaseModel):
    """Body of POST /migration/batch; every field is optional."""

    offset: int | None = Field(
        None, ge=0, description="Start position; omit to continue from the saved offset"
    )
    batch_size: int | None = Field(None, ge=1, le=500)


class FinalizeRequest(BaseModel):
    strict: bool | None = Field(
        None, description="Refuse while products remain; defaults to the server setting"
    )


# ================================
# PRICES
# ================================


class AnnotateRequest(BaseModel):
    """A rendered price fragment to annotate with the secondary currency."""

    fragment: str = Field(..., description="Rendered primary price, text or markup")
    context: AnnotationContext = AnnotationContext.SINGLE_PRICE
    amount: str | None = Field(None, description="Primary amount, if known")
    amount_max: str | None = Field(None, description="Upper bound for range context")
    surroundings: list[str] = Field(
        default_factory=list, description="Sibling or ancestor markup of the fragment"
    )
    locale: str | None = Field(None, description="Visitor locale, e.g. bg_BG")
    location: DisplayLocation | None = Field(
        None, description="Storefront location, checked against the display toggles"
    )


class AnnotateResponse(BaseModel):
    fragment: str
    annotated: bool = Field(..., description="Whether a secondary price was added")


class ProductPriceResponse(BaseModel):
    """Product payload enriched with the secondary price."""

    model_config = ConfigDict(extra="allow")

    id: int
    kind: str
    currency: str
    price: str | None = None
    regular_price: str | None = None
    sale_price: str | None = None
    min_price: str | None = None
    max_price: str | None = None

"""
Upload & Extraction — Pydantic Request/Response Schemas

Covers the full lifecycle of POST /upload:
  - Success response (200) carrying the raw provider text
  - Structured error bodies (400, 500)
  - The extraction document the provider is instructed to produce

Design decisions:
  - geminiResponse is always the provider's text verbatim, never re-serialized.
  - The parsed extraction is an additional field, present only when
    server-side validation is enabled.
  - Every extraction field is required but nullable: the provider must emit an
    explicit null instead of omitting a key.
  - Error bodies keep the human-readable message/error pair and add a stable
    error_code for programmatic handling.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from docextract.core.errors import ErrorCode


# ---------------------------------------------------------------------------
# Extraction document — what the provider is asked to return
# ---------------------------------------------------------------------------

# Providers return amounts both as numbers and as formatted strings
Scalar = Union[int, float, str, None]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Invoice(_CamelModel):
    serial_number: Scalar
    customer_name: Scalar
    product_name:  Scalar
    quantity:      Scalar
    tax:           Scalar
    total_amount:  Scalar
    date:          Scalar


class Product(_CamelModel):
    name:           Scalar
    quantity:       Scalar
    unit_price:     Scalar
    tax:            Scalar
    price_with_tax: Scalar
    discount:       Scalar


class Customer(_CamelModel):
    customer_name:         Scalar
    phone_number:          Scalar
    total_purchase_amount: Scalar


class ExtractionPayload(_CamelModel):
    """All three collections are mandatory, even when empty."""
    invoices:  list[Invoice]
    products:  list[Product]
    customers: list[Customer]


# ---------------------------------------------------------------------------
# Upload success response — 200 OK
# ---------------------------------------------------------------------------

class UploadSuccessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message:         str = "Files processed successfully!"
    gemini_response: str = Field(
        ...,
        alias="geminiResponse",
        description="Raw provider text — expected, not guaranteed, to be JSON",
    )
    extraction:      ExtractionPayload | None = Field(
        None,
        description="Parsed extraction (only when server-side validation is enabled)",
    )


# ---------------------------------------------------------------------------
# Structured error bodies
# ---------------------------------------------------------------------------

class ErrorResponse(BaseModel):
    """
    Uniform error envelope for all 4xx/5xx responses.
    Clients should check `error_code` for programmatic handling.
    """
    message:    str            = Field(..., description="Human-readable summary")
    error:      str | None     = Field(None, description="Underlying error description")
    error_code: ErrorCode      = Field(..., description="Stable machine-readable code")
    stage:      str | None     = Field(None, description="Pipeline stage that failed")
    request_id: str | None     = Field(None, description="Trace ID for log correlation")


# ---------------------------------------------------------------------------
# Pre-defined error factories (keeps route handlers thin)
# ---------------------------------------------------------------------------

class UploadErrors:
    """Factories for every documented error case."""

    @staticmethod
    def no_files() -> ErrorResponse:
        return ErrorResponse(
            message="No files uploaded!",
            error_code=ErrorCode.NO_FILES,
        )

    @staticmethod
    def processing_failed(
        error:      str,
        error_code: ErrorCode,
        stage:      str | None = None,
        request_id: str | None = None,
    ) -> ErrorResponse:
        return ErrorResponse(
            message="Error processing files",
            error=error,
            error_code=error_code,
            stage=stage,
            request_id=request_id,
        )

    @staticmethod
    def internal_error(request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            message="An unexpected error occurred.",
            error_code=ErrorCode.INTERNAL_ERROR,
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# HTTP status code → error code mapping (for OpenAPI documentation)
# ---------------------------------------------------------------------------

HTTP_ERROR_MAP: dict[int, str] = {
    400: "NO_FILES",          # multipart body carried no files
    500: "INTERNAL_ERROR",    # any pipeline failure; see error_code for the kind
}

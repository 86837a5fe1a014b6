"""
Compendium Pipeline - Error Taxonomy & Handlers

Structured error classification for the law ingestion pipeline.
Every pipeline error carries a stable error code that can be:
- Aggregated in logs
- Mapped to an HTTP status by the admin API
- Referenced in operator runbooks

Error Code Format: CMP-{CATEGORY}-{NUMBER}
- VALIDATION (500-599): Local input checks, never hit the network
- STORE (100-199): Record Store lookups and upserts
- BLOB (200-299): Blob Transfer Service writes
- LINK (300-399): Compendium-law associations
- AUTH (400-499): Credential acquisition
- PROTOCOL (600-699): Caller misuse of the upload state machine
- BATCH (700-799): Whole-batch parse failures
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCategory(str, Enum):
    """Error category for classification."""

    VALIDATION = "VALIDATION"
    STORE = "STORE"
    BLOB = "BLOB"
    LINK = "LINK"
    AUTH = "AUTH"
    PROTOCOL = "PROTOCOL"
    BATCH = "BATCH"


@dataclass(frozen=True)
class ErrorCode:
    """Immutable error code definition."""

    code: str
    category: ErrorCategory
    message: str
    http_status: int = 500
    retryable: bool = False

    def __str__(self) -> str:
        return self.code


ERR_VALIDATION = ErrorCode(
    code="CMP-VALIDATION-500",
    category=ErrorCategory.VALIDATION,
    message="Law record failed local validation",
    http_status=422,
)
ERR_LOOKUP = ErrorCode(
    code="CMP-STORE-100",
    category=ErrorCategory.STORE,
    message="Existence lookup failed",
    http_status=502,
    retryable=True,
)
ERR_STORE_UPSERT = ErrorCode(
    code="CMP-STORE-110",
    category=ErrorCategory.STORE,
    message="Record Store upsert failed",
    http_status=502,
)
ERR_BLOB_TRANSFER = ErrorCode(
    code="CMP-BLOB-200",
    category=ErrorCategory.BLOB,
    message="Full-text transfer failed",
    http_status=502,
)
ERR_LINK = ErrorCode(
    code="CMP-LINK-300",
    category=ErrorCategory.LINK,
    message="Compendium-law association failed",
    http_status=502,
    retryable=True,
)
ERR_CREDENTIAL = ErrorCode(
    code="CMP-AUTH-400",
    category=ErrorCategory.AUTH,
    message="Could not obtain Record Store credential",
    http_status=503,
)
ERR_NO_SESSION = ErrorCode(
    code="CMP-PROTOCOL-600",
    category=ErrorCategory.PROTOCOL,
    message="No active upload session",
    http_status=409,
)
ERR_BLOB_REQUIRED = ErrorCode(
    code="CMP-PROTOCOL-610",
    category=ErrorCategory.PROTOCOL,
    message="New law records require a full-text transfer",
    http_status=422,
)
ERR_INVALID_STATE = ErrorCode(
    code="CMP-PROTOCOL-620",
    category=ErrorCategory.PROTOCOL,
    message="Operation not allowed in current upload state",
    http_status=409,
)
ERR_BATCH_PARSE = ErrorCode(
    code="CMP-BATCH-700",
    category=ErrorCategory.BATCH,
    message="Batch file contains no data rows",
    http_status=400,
)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class PipelineError(Exception):
    """Base exception for pipeline errors. Subclasses pin their error code."""

    error_code: ErrorCode = ERR_STORE_UPSERT

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.error_code.message
        self.context = context
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return self.error_code.retryable

    @property
    def status_code(self) -> int:
        return self.error_code.http_status

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "error_code": self.error_code.code,
            "category": self.error_code.category.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.context:
            payload["context"] = self.context
        return payload


class ValidationError(PipelineError):
    """Local validation failed; raised before any network call."""

    error_code = ERR_VALIDATION

    def __init__(self, errors: list[str] | str, **context: Any) -> None:
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors) or ERR_VALIDATION.message, **context)


class LookupFailedError(PipelineError):
    """Existence lookup failed. Recovered by the resolver as "not found"."""

    error_code = ERR_LOOKUP


class StoreError(PipelineError):
    """Metadata upsert failed; metadata must not be assumed applied."""

    error_code = ERR_STORE_UPSERT


class TransferError(PipelineError):
    """Blob PUT failed after metadata was committed."""

    error_code = ERR_BLOB_TRANSFER

    def __init__(
        self,
        message: str | None = None,
        *,
        law_id: str | None = None,
        metadata_committed: bool = True,
        **context: Any,
    ) -> None:
        self.law_id = law_id
        self.metadata_committed = metadata_committed
        super().__init__(message, law_id=law_id, metadata_committed=metadata_committed, **context)


class LinkError(PipelineError):
    """Association creation failed. Safe to re-issue."""

    error_code = ERR_LINK


class CredentialError(PipelineError):
    """The credential provider failed to return a token."""

    error_code = ERR_CREDENTIAL


class NoActiveSessionError(PipelineError):
    """Blob transfer or skip attempted without a live upload session."""

    error_code = ERR_NO_SESSION


class BlobRequiredError(PipelineError):
    """skip_blob() on a record that has never received a blob."""

    error_code = ERR_BLOB_REQUIRED


class InvalidStateError(PipelineError):
    error_code = ERR_INVALID_STATE


class BatchParseError(PipelineError):
    """Batch input is empty or header-only; zero rows can be attempted."""

    error_code = ERR_BATCH_PARSE


# =============================================================================
# API Error Responses
# =============================================================================


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    All API errors return this structure for consistency.
    """

    error: str  # Machine-readable error code
    message: str  # Human-readable error message
    status_code: int
    details: list[str] | None = None


def create_error_response(
    status_code: int,
    error: str,
    message: str,
    details: list[str] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    response = ErrorResponse(
        error=error,
        message=message,
        status_code=status_code,
        details=details,
    )
    return JSONResponse(
        status_code=status_code,
        content=response.model_dump(exclude_none=True),
    )


async def pipeline_exception_handler(request: Request, exc: PipelineError) -> JSONResponse:
    """Render a PipelineError through the standard envelope."""
    if exc.status_code >= 500:
        logger.error(
            "%s on %s: %s",
            exc.error_code.code,
            request.url.path,
            exc.message,
            extra={"error_code": exc.error_code.code, "status_code": exc.status_code},
        )

    details = exc.errors if isinstance(exc, ValidationError) else None
    return create_error_response(
        status_code=exc.status_code,
        error=exc.error_code.code,
        message=exc.message,
        details=details,
    )


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register pipeline error handlers with the FastAPI app.

    Call this in create_app() after creating the FastAPI instance.
    """
    app.add_exception_handler(PipelineError, pipeline_exception_handler)  # type: ignore[arg-type]
    logger.debug("Error handlers registered")

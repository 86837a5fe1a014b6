"""Core infrastructure: configuration, logging and the error taxonomy."""

from compendium.core.config import Settings, get_settings, reset_settings
from compendium.core.errors import (
    BatchParseError,
    BlobRequiredError,
    CredentialError,
    InvalidStateError,
    LinkError,
    LookupFailedError,
    NoActiveSessionError,
    PipelineError,
    StoreError,
    TransferError,
    ValidationError,
)
from compendium.core.logging import LogContext, configure_logging

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "configure_logging",
    "LogContext",
    "PipelineError",
    "ValidationError",
    "LookupFailedError",
    "StoreError",
    "TransferError",
    "LinkError",
    "CredentialError",
    "NoActiveSessionError",
    "BlobRequiredError",
    "InvalidStateError",
    "BatchParseError",
]

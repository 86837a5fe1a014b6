"""
Tests for compendium/core/logging.py and compendium/core/errors.py

Tests cover:
- Context propagation into structured JSON logs
- Redaction of tokens and upload URLs
- Error codes, HTTP mapping and the API error envelope
"""

from __future__ import annotations

import json
import logging

import pytest

from compendium.core.errors import (
    ERR_BLOB_TRANSFER,
    BatchParseError,
    LinkError,
    LookupFailedError,
    PipelineError,
    TransferError,
    ValidationError,
)
from compendium.core.logging import (
    LogContext,
    StructuredJsonFormatter,
    get_current_context,
    redact_sensitive,
)


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("compendium.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:
    def test_context_is_scoped(self):
        with LogContext(law_id="1.00001"):
            with LogContext(row_index=2):
                assert get_current_context()["law_id"] == "1.00001"
                assert get_current_context()["row_index"] == 2
            assert "row_index" not in get_current_context()
        assert "law_id" not in get_current_context()

    def test_json_formatter_includes_context_and_extras(self):
        formatter = StructuredJsonFormatter()
        with LogContext(compendium_id="c1"):
            line = formatter.format(_record("Row imported", law_id="1.00001", row_index=3))

        payload = json.loads(line)
        assert payload["message"] == "Row imported"
        assert payload["compendium_id"] == "c1"
        assert payload["law_id"] == "1.00001"
        assert payload["row_index"] == 3
        assert payload["level"] == "INFO"


class TestRedaction:
    def test_redacts_tokens_and_upload_urls(self):
        data = {
            "Authorization": "Bearer abc",
            "uploadUrl": "https://blobs.example.org/u?sig=1",
            "nested": [{"record_store_token": "x", "law_id": "1.00001"}],
        }
        redacted = redact_sensitive(data)

        assert redacted["Authorization"] == "[REDACTED]"
        assert redacted["uploadUrl"] == "[REDACTED]"
        assert redacted["nested"][0]["record_store_token"] == "[REDACTED]"
        assert redacted["nested"][0]["law_id"] == "1.00001"

    def test_json_formatter_redacts_context(self):
        with LogContext(upload_url="https://blobs.example.org/u?sig=1"):
            line = StructuredJsonFormatter().format(_record("transfer"))
        assert "sig=1" not in line


class TestErrorTaxonomy:
    def test_codes_and_statuses(self):
        assert ValidationError("bad").status_code == 422
        assert BatchParseError().status_code == 400
        assert TransferError("x").error_code is ERR_BLOB_TRANSFER
        assert LinkError().retryable is True
        assert LookupFailedError().retryable is True

    def test_default_message_comes_from_code(self):
        assert BatchParseError().message == "Batch file contains no data rows"

    def test_validation_error_joins_messages(self):
        error = ValidationError(["id is required", "name is required"], law_id=None)
        assert error.errors == ["id is required", "name is required"]
        assert str(error) == "id is required; name is required"

    def test_to_dict(self):
        payload = LinkError("link failed", status=503).to_dict()
        assert payload == {
            "error_code": "CMP-LINK-300",
            "category": "LINK",
            "message": "link failed",
            "retryable": True,
            "context": {"status": 503},
        }

    def test_lookup_error_does_not_shadow_builtin(self):
        assert not issubclass(LookupFailedError, LookupError)
        assert issubclass(LookupFailedError, PipelineError)

    @pytest.mark.parametrize(
        "exc_type",
        [ValidationError, LookupFailedError, LinkError, TransferError, BatchParseError],
    )
    def test_all_errors_are_pipeline_errors(self, exc_type):
        assert issubclass(exc_type, PipelineError)

"""
Tests for compendium/core/config.py

Tests cover:
- Defaults
- Environment overrides and normalization
- Cached access via get_settings / reset_settings
"""

from __future__ import annotations

import logging
import os
from datetime import date
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from compendium.core.config import Settings, get_settings, reset_settings


def _create_settings_no_env_file(**overrides):
    """Create Settings without loading .env file, isolated from current env."""
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestDefaults:
    def test_pipeline_defaults(self):
        s = _create_settings_no_env_file()
        assert s.EXISTENCE_DEBOUNCE_SECONDS == 1.0
        assert s.LINK_MAX_ATTEMPTS == 3
        assert s.BATCH_FALLBACK_REFORM_DATE == date(1900, 1, 1)
        assert s.RECORD_STORE_TOKEN is None
        assert s.ENVIRONMENT == "dev"

    def test_is_production(self):
        assert _create_settings_no_env_file(ENVIRONMENT="prod").is_production
        assert not _create_settings_no_env_file(ENVIRONMENT="staging").is_production


class TestNormalization:
    def test_trailing_slash_stripped(self):
        s = _create_settings_no_env_file(RECORD_STORE_URL="https://records.example.org/api/")
        assert s.RECORD_STORE_URL == "https://records.example.org/api"

    def test_non_http_url_rejected(self):
        with pytest.raises(PydanticValidationError):
            _create_settings_no_env_file(RECORD_STORE_URL="records.example.org")

    def test_log_level_upper_cased(self):
        assert _create_settings_no_env_file(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_link_attempts_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            _create_settings_no_env_file(LINK_MAX_ATTEMPTS=0)


class TestEnvironment:
    def test_reads_environment_variables(self):
        env = {
            "RECORD_STORE_URL": "https://store.example.org",
            "EXISTENCE_DEBOUNCE_SECONDS": "0.25",
            "BATCH_FALLBACK_REFORM_DATE": "1970-01-01",
        }
        with patch.dict(os.environ, env, clear=True):
            s = Settings(_env_file=None)  # type: ignore[call-arg]

        assert s.RECORD_STORE_URL == "https://store.example.org"
        assert s.EXISTENCE_DEBOUNCE_SECONDS == 0.25
        assert s.BATCH_FALLBACK_REFORM_DATE == date(1970, 1, 1)

    def test_get_settings_is_cached_until_reset(self, monkeypatch):
        monkeypatch.setenv("LINK_MAX_ATTEMPTS", "5")
        first = get_settings()
        monkeypatch.setenv("LINK_MAX_ATTEMPTS", "7")

        assert get_settings() is first
        reset_settings()
        assert get_settings().LINK_MAX_ATTEMPTS == 7

    def test_production_without_token_warns(self, monkeypatch, caplog):
        monkeypatch.setenv("ENVIRONMENT", "prod")
        monkeypatch.delenv("RECORD_STORE_TOKEN", raising=False)

        with caplog.at_level(logging.WARNING):
            get_settings()

        assert "RECORD_STORE_TOKEN not set" in caplog.text

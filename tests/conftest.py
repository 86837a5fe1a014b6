"""
tests/conftest.py

Pytest configuration and shared fixtures for the compendium test suite.

No test talks to a real Record Store. Services run against the in-memory
fakes in tests/helpers.py; HTTP clients are exercised through
httpx.MockTransport.
"""

from __future__ import annotations

import os
from typing import Any

import pytest

from compendium.core.config import Settings, reset_settings

# Re-export helpers for convenient imports
from tests.helpers import FakeBlobStore, FakeRecordStore

# =============================================================================
# GLOBAL TEST CONFIGURATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Register custom markers and keep tests away from any configured store.

      - integration: tests that need a live Record Store (none run by default)
    """
    config.addinivalue_line(
        "markers",
        "integration: marks tests as requiring a live Record Store",
    )
    os.environ.setdefault("ENVIRONMENT", "dev")


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before and after each test."""
    reset_settings()
    yield
    reset_settings()


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def blobs(store: FakeRecordStore) -> FakeBlobStore:
    return FakeBlobStore(store)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the process environment and any .env file."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        RECORD_STORE_URL="https://records.example.org/api",
        RECORD_STORE_TOKEN="test-token",
        EXISTENCE_DEBOUNCE_SECONDS=0.01,
        LINK_MAX_ATTEMPTS=3,
    )


@pytest.fixture
def metadata_fields() -> dict[str, Any]:
    return {
        "id": "100.00001",
        "name": "Civil Code",
        "jurisdiction": "Federal",
        "source": "https://laws.example.org/civil-code",
        "lastReformDate": "2021-03-01",
    }

"""
Credential providers for the Record Store.

Every client receives its provider explicitly; nothing here reads or caches a
token in module state. A provider is any zero-argument async callable that
returns a bearer token or raises.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from compendium.core.config import Settings, get_settings
from compendium.core.errors import CredentialError

logger = logging.getLogger(__name__)

CredentialProvider = Callable[[], Awaitable[str]]


class StaticCredentialProvider:
    """Always returns the same token. Used by tests and service accounts."""

    def __init__(self, token: str):
        if not token:
            raise ValueError("token must be non-empty")
        self._token = token

    async def __call__(self) -> str:
        return self._token

    def __repr__(self) -> str:
        return "StaticCredentialProvider(token=[REDACTED])"


class SettingsCredentialProvider:
    """Reads RECORD_STORE_TOKEN from settings on every call."""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings

    async def __call__(self) -> str:
        settings = self._settings or get_settings()
        token = (settings.RECORD_STORE_TOKEN or "").strip()
        if not token:
            raise CredentialError("RECORD_STORE_TOKEN is not configured")
        return token


async def fetch_token(provider: CredentialProvider) -> str:
    """
    Call ``provider`` and return a non-empty token.

    Raises:
        CredentialError: if the provider fails or returns an empty token
    """
    try:
        token = await provider()
    except CredentialError:
        raise
    except Exception as exc:
        logger.warning("Credential provider failed: %s", type(exc).__name__)
        raise CredentialError(f"Credential provider failed: {exc}") from exc

    if not isinstance(token, str) or not token.strip():
        raise CredentialError("Credential provider returned an empty token")
    return token.strip()

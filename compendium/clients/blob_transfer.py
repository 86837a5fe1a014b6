"""
Compendium Pipeline - Blob Transfer Client

Writes a law's full text directly to the one-time upload URL issued by the
Record Store. The URL is pre-signed, so no bearer token is sent.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from compendium.core.errors import TransferError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
CONTENT_TYPE = "text/plain"


class BlobTransferClient:
    """
    Direct PUT client for upload sessions.

    Usage:
        async with BlobTransferClient() as blobs:
            await blobs.put(session.upload_url, text.encode("utf-8"))
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "BlobTransferClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def put(self, upload_url: str, data: bytes, *, law_id: str | None = None) -> int:
        """
        PUT ``data`` to ``upload_url``.

        Returns:
            The 2xx status code

        Raises:
            TransferError: non-2xx status or transport failure
        """
        try:
            response = await self._client.put(
                upload_url,
                content=data,
                headers={"Content-Type": CONTENT_TYPE},
            )
        except httpx.HTTPError as exc:
            raise TransferError(
                f"Full-text transfer failed: {type(exc).__name__}",
                law_id=law_id,
                status=None,
            ) from exc

        if not response.is_success:
            raise TransferError(
                f"Full-text transfer returned HTTP {response.status_code}",
                law_id=law_id,
                status=response.status_code,
            )

        logger.debug("Transferred %d bytes", len(data), extra={"law_id": law_id})
        return response.status_code

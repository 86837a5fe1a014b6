"""
Compendium Pipeline - Record Store Client

Async REST client for the four Record Store endpoints:

    GET  law/{id}         -> law record, or empty / 404
    POST law              -> {"uploadUrl": ...}
    POST compendiumLaw    -> {"id", "compendiumId", "lawId"}
    POST laws             -> [{"lawID", "valid", "errors"?}, ...]

Responses may arrive wrapped in a {"data": {...}} envelope; the client
unwraps it. Every request carries a bearer token fetched from the injected
credential provider.

Usage:
    async with RecordStoreClient(base_url, provider) as store:
        record = await store.get_law("100.00001")
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Optional

import httpx

from compendium.clients.auth import CredentialProvider, fetch_token
from compendium.core.errors import (
    CredentialError,
    LinkError,
    LookupFailedError,
    PipelineError,
    StoreError,
)
from compendium.models import Association, BatchRowResult, LawMetadata, LawRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0


def _unwrap(payload: Any, *keys: str) -> Any:
    """Strip {"data": ...} envelopes and single named wrappers such as {"getLaw": {...}}."""
    current = payload
    while isinstance(current, dict) and len(current) == 1:
        key, value = next(iter(current.items()))
        if key == "data" or key in keys:
            current = value
            continue
        break
    return current


class RecordStoreClient:
    """
    Record Store REST client.

    Owns its httpx.AsyncClient unless one is injected.
    """

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._credentials = credentials
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "RecordStoreClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _send(
        self,
        method: str,
        path: str,
        error_cls: type[PipelineError],
        *,
        json: Any = None,
    ) -> httpx.Response:
        try:
            token = await fetch_token(self._credentials)
        except CredentialError as exc:
            raise error_cls(f"{exc.message}", status=None) from exc

        try:
            return await self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as exc:
            raise error_cls(
                f"{method} {path} failed: {type(exc).__name__}: {exc}", status=None
            ) from exc

    @staticmethod
    def _raise_for_status(
        response: httpx.Response, method: str, path: str, error_cls: type[PipelineError]
    ) -> None:
        if not response.is_success:
            raise error_cls(
                f"{method} {path} returned HTTP {response.status_code}: {response.text[:200]}",
                status=response.status_code,
            )

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: type[PipelineError],
        *,
        json: Any = None,
    ) -> httpx.Response:
        response = await self._send(method, path, error_cls, json=json)
        self._raise_for_status(response, method, path, error_cls)
        return response

    @staticmethod
    def _json(response: httpx.Response, error_cls: type[PipelineError]) -> Any:
        if not response.content or not response.content.strip():
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise error_cls(
                f"Record Store returned invalid JSON (HTTP {response.status_code})",
                status=response.status_code,
            ) from exc

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    async def get_law(self, law_id: str) -> Optional[LawRecord]:
        """
        Fetch a law by id.

        Returns None when the store has no such record.

        Raises:
            LookupFailedError: transport, auth or non-2xx (other than 404) failure
        """
        path = f"/law/{law_id}"
        response = await self._send("GET", path, LookupFailedError)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "GET", path, LookupFailedError)

        payload = _unwrap(self._json(response, LookupFailedError), "law", "getLaw")
        if not isinstance(payload, dict) or not payload.get("id"):
            return None
        try:
            return LawRecord.model_validate(payload)
        except ValueError as exc:
            raise LookupFailedError(f"Malformed law record for {law_id}: {exc}") from exc

    async def upsert_law(self, metadata: LawMetadata) -> str:
        """
        Create or update a law's metadata and return its one-time upload URL.

        Raises:
            StoreError: the upsert failed; metadata must not be assumed applied
        """
        response = await self._request("POST", "/law", StoreError, json=metadata.to_payload())
        payload = _unwrap(self._json(response, StoreError), "law", "createLaw", "upsertLaw")
        upload_url = payload.get("uploadUrl") if isinstance(payload, dict) else None
        if not isinstance(upload_url, str) or not upload_url:
            raise StoreError(
                f"Record Store accepted law {metadata.id} but returned no uploadUrl",
                status=response.status_code,
            )
        return upload_url

    async def create_compendium_law(self, association: Association) -> Association:
        """
        Create a compendium-law association.

        A 409 means the association already exists under the same
        deterministic id and is returned as-is.

        Raises:
            LinkError: the association could not be created
        """
        body = association.model_dump(by_alias=True)
        try:
            response = await self._request("POST", "/compendiumLaw", LinkError, json=body)
        except LinkError as exc:
            if exc.context.get("status") == 409:
                logger.info("Association %s already exists", association.id)
                return association
            raise

        payload = _unwrap(self._json(response, LinkError), "compendiumLaw", "createCompendiumLaw")
        if not isinstance(payload, dict) or not payload.get("id"):
            return association
        try:
            return Association.model_validate(payload)
        except ValueError:
            logger.warning("Unexpected association payload for %s; using request", association.id)
            return association

    async def import_laws(self, csv_bytes: bytes, compendium_id: str) -> list[BatchRowResult]:
        """
        Submit a whole CSV to the store's server-side batch endpoint.

        Raises:
            StoreError: the batch call itself failed
        """
        body = {
            "csvFile": base64.b64encode(csv_bytes).decode("ascii"),
            "compendiumID": compendium_id,
        }
        response = await self._request("POST", "/laws", StoreError, json=body)
        payload = _unwrap(self._json(response, StoreError), "laws", "importLaws")
        if not isinstance(payload, list):
            raise StoreError("Record Store batch response is not a list", status=response.status_code)

        results = []
        for item in payload:
            item = item if isinstance(item, dict) else {}
            row_id = item.get("lawID") or item.get("lawId") or ""
            valid = bool(item.get("valid"))
            errors = [str(err) for err in (item.get("errors") or [])]
            if valid:
                results.append(BatchRowResult.ok(row_id))
            else:
                results.append(BatchRowResult.failed(row_id, errors or ["Rejected by Record Store"]))
        return results

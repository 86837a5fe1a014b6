"""
tests/helpers.py

In-memory stand-ins for the Record Store and blob storage, plus small
factories for the pipeline's error types.
"""

from __future__ import annotations

import asyncio
from itertools import count
from typing import Any, Optional

from compendium.core.errors import LinkError, LookupFailedError, StoreError, TransferError
from compendium.models import Association, BatchRowResult, LawMetadata, LawRecord

# =============================================================================
# FAKES
# =============================================================================


class FakeRecordStore:
    """
    In-memory Record Store.

    Failure injection:
        lookup_error      raised by get_law
        upsert_errors     law_id -> exception raised by upsert_law
        link_failures     LinkErrors raised by successive link calls
        lookup_gates      law_id -> asyncio.Event the lookup waits on
    """

    def __init__(self) -> None:
        self.laws: dict[str, LawRecord] = {}
        self.associations: dict[str, Association] = {}
        self.upserts: list[LawMetadata] = []
        self.lookups: list[str] = []
        self.link_calls: list[Association] = []
        self.issued_urls: list[str] = []
        self.lookup_error: Optional[Exception] = None
        self.upsert_errors: dict[str, Exception] = {}
        self.link_failures: list[Exception] = []
        self.lookup_gates: dict[str, asyncio.Event] = {}
        self.batch_results: list[BatchRowResult] = []
        self.batch_calls: list[tuple[bytes, str]] = []
        self._url_ids = count(1)

    def seed(self, law_id: str, *, blob: bool = True, **fields: Any) -> LawRecord:
        record = LawRecord(
            id=law_id,
            name=fields.get("name", "EXISTING LAW"),
            jurisdiction=fields.get("jurisdiction", "Federal"),
            source=fields.get("source", "https://laws.example.org/existing"),
            last_reform_date=fields.get("last_reform_date", "2020-01-01T00:00:00.000Z"),
            blob_ref=f"blobs/{law_id}.txt" if blob else None,
            associated_compendiums=fields.get("associated_compendiums", []),
        )
        self.laws[law_id] = record
        return record

    async def get_law(self, law_id: str) -> Optional[LawRecord]:
        self.lookups.append(law_id)
        gate = self.lookup_gates.get(law_id)
        if gate is not None:
            await gate.wait()
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.laws.get(law_id)

    async def upsert_law(self, metadata: LawMetadata) -> str:
        if metadata.id in self.upsert_errors:
            raise self.upsert_errors[metadata.id]
        self.upserts.append(metadata)
        existing = self.laws.get(metadata.id)
        self.laws[metadata.id] = LawRecord(
            id=metadata.id,
            name=metadata.name,
            jurisdiction=metadata.jurisdiction,
            source=metadata.source,
            last_reform_date=metadata.to_payload()["lastReformDate"],
            blob_ref=existing.blob_ref if existing else None,
            associated_compendiums=existing.associated_compendiums if existing else [],
        )
        url = f"https://blobs.example.org/upload/{metadata.id}?sig={next(self._url_ids)}"
        self.issued_urls.append(url)
        return url

    async def create_compendium_law(self, association: Association) -> Association:
        self.link_calls.append(association)
        if self.link_failures:
            raise self.link_failures.pop(0)
        self.associations.setdefault(association.id, association)
        return self.associations[association.id]

    async def import_laws(self, csv_bytes: bytes, compendium_id: str) -> list[BatchRowResult]:
        self.batch_calls.append((csv_bytes, compendium_id))
        return list(self.batch_results)


class FakeBlobStore:
    """Records every PUT; ``fail_with`` makes each put raise."""

    def __init__(self, store: Optional[FakeRecordStore] = None) -> None:
        self.puts: list[tuple[str, bytes]] = []
        self.fail_with: Optional[BaseException] = None
        self._store = store

    async def put(self, upload_url: str, data: bytes, *, law_id: str | None = None) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        self.puts.append((upload_url, data))
        if self._store is not None and law_id in self._store.laws:
            record = self._store.laws[law_id]
            self._store.laws[law_id] = record.model_copy(update={"blob_ref": f"blobs/{law_id}.txt"})
        return 200


# =============================================================================
# ERROR FACTORIES
# =============================================================================


def store_error(message: str = "boom", status: int = 500) -> StoreError:
    return StoreError(message, status=status)


def link_error(status: Optional[int]) -> LinkError:
    return LinkError(f"link failed ({status})", status=status)


def lookup_error() -> LookupFailedError:
    return LookupFailedError("store unreachable", status=None)


def transfer_error(status: int = 500) -> TransferError:
    return TransferError(f"Full-text transfer returned HTTP {status}", law_id=None, status=status)

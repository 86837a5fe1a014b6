"""Protocols for the external collaborators the pipeline services depend on.

The HTTP clients in ``compendium.clients`` satisfy these; tests substitute
in-memory fakes.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from compendium.models import Association, BatchRowResult, LawMetadata, LawRecord


@runtime_checkable
class RecordStore(Protocol):
    """Key-value lookup and upsert of law records by id.

    Example:
        class MyStore(RecordStore):
            async def get_law(self, law_id: str) -> LawRecord | None:
                ...
    """

    async def get_law(self, law_id: str) -> Optional[LawRecord]:
        """Return the record, None when absent; raise LookupFailedError on failure."""
        ...

    async def upsert_law(self, metadata: LawMetadata) -> str:
        """Apply metadata and return a one-time upload URL; raise StoreError on failure."""
        ...

    async def create_compendium_law(self, association: Association) -> Association:
        """Create the association; raise LinkError on failure."""
        ...

    async def import_laws(self, csv_bytes: bytes, compendium_id: str) -> list[BatchRowResult]:
        """Server-side batch import; raise StoreError on failure."""
        ...


@runtime_checkable
class BlobStore(Protocol):
    """Accepts one direct byte write per upload URL."""

    async def put(self, upload_url: str, data: bytes, *, law_id: str | None = None) -> int:
        """Write ``data``; raise TransferError on non-2xx or transport failure."""
        ...

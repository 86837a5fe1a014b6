"""
Compendium Pipeline - Composition Root

Builds the Record Store and blob clients from settings and hands out the
pipeline services wired to them. The API and CLI both go through here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from compendium.clients.auth import CredentialProvider, SettingsCredentialProvider
from compendium.clients.blob_transfer import BlobTransferClient
from compendium.clients.record_store import RecordStoreClient
from compendium.core.config import Settings, get_settings
from compendium.core.errors import BlobRequiredError
from compendium.models import LawMetadata, LookupResult, UpsertOutcome
from compendium.services.base import BlobStore, RecordStore
from compendium.services.batch_importer import BatchImporter
from compendium.services.existence_resolver import ExistenceResolver, ResultCallback
from compendium.services.relationship_linker import RelationshipLinker
from compendium.services.upsert_orchestrator import UpsertOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class LawPipeline:
    store: RecordStore
    blobs: BlobStore
    settings: Settings = field(default_factory=get_settings)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        credentials: Optional[CredentialProvider] = None,
    ) -> "LawPipeline":
        settings = settings or get_settings()
        store = RecordStoreClient(
            settings.RECORD_STORE_URL,
            credentials or SettingsCredentialProvider(settings),
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        blobs = BlobTransferClient(timeout=settings.BLOB_TIMEOUT_SECONDS)
        return cls(store=store, blobs=blobs, settings=settings)

    async def __aenter__(self) -> "LawPipeline":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        for client in (self.store, self.blobs):
            close = getattr(client, "aclose", None)
            if close is not None:
                await close()

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def resolver(self, on_result: Optional[ResultCallback] = None) -> ExistenceResolver:
        return ExistenceResolver(
            self.store,
            debounce_seconds=self.settings.EXISTENCE_DEBOUNCE_SECONDS,
            on_result=on_result,
        )

    def orchestrator(self, lookup: Optional[LookupResult] = None) -> UpsertOrchestrator:
        if lookup is None:
            return UpsertOrchestrator(self.store, self.blobs)
        return UpsertOrchestrator.from_lookup(self.store, self.blobs, lookup)

    def linker(self) -> RelationshipLinker:
        return RelationshipLinker(self.store, max_attempts=self.settings.LINK_MAX_ATTEMPTS)

    def importer(self) -> BatchImporter:
        return BatchImporter(
            self.store,
            self.blobs,
            self.linker(),
            fallback_date=self.settings.BATCH_FALLBACK_REFORM_DATE,
        )

    # -------------------------------------------------------------------------
    # Single-record flow
    # -------------------------------------------------------------------------

    async def upsert_law(
        self,
        fields: "Mapping[str, Any] | LawMetadata",
        text: Optional[bytes] = None,
        *,
        keep_existing_text: bool = False,
    ) -> UpsertOutcome:
        """
        Run both phases for one law: lookup, metadata upsert, then transfer or skip.

        Without ``text`` the existing full text is kept, which is only
        allowed when ``keep_existing_text`` is set and the law already has
        one. That check happens before the upsert so a rejected request
        commits nothing.
        """
        metadata = LawMetadata.parse(fields)
        lookup = await self.resolver().resolve(metadata.id)

        if text is None and not (keep_existing_text and lookup.has_blob):
            raise BlobRequiredError(
                f"Law {metadata.id} needs a full text"
                + ("" if lookup.exists else " because it is a new record"),
                law_id=metadata.id,
            )

        orchestrator = self.orchestrator(lookup)
        await orchestrator.submit_metadata(metadata)
        if text is None:
            orchestrator.skip_blob()
        else:
            await orchestrator.transfer_blob(text)

        return UpsertOutcome(
            law_id=metadata.id,
            created=not lookup.exists,
            text_stored=text is not None,
            state=orchestrator.state.value,
        )

"""
Compendium Pipeline - Upsert Orchestrator

Two-phase upload of a law record:

    IDLE -> METADATA_SUBMITTING -> AWAITING_BLOB -> TRANSFERRING -> COMPLETE
                   |                                     |
                   +--------------> FAILED <-------------+

Phase one validates and upserts the metadata and receives a one-time
upload session. Phase two writes the full text to that session, or skips
the write when the record already has a full text that should be kept.

The Record Store and blob storage share no transaction. If the transfer
fails after the metadata was committed, the metadata is NOT rolled back:
the record is left with fresh metadata and a stale or missing full text,
and the caller gets a TransferError telling the operator to re-upload.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Optional

from compendium.core.errors import (
    BlobRequiredError,
    InvalidStateError,
    NoActiveSessionError,
    StoreError,
    TransferError,
)
from compendium.core.logging import LogContext
from compendium.models import LawMetadata, LookupResult, UploadSession
from compendium.services.base import BlobStore, RecordStore

logger = logging.getLogger(__name__)


class UploadState(str, Enum):
    IDLE = "idle"
    METADATA_SUBMITTING = "metadata_submitting"
    AWAITING_BLOB = "awaiting_blob"
    TRANSFERRING = "transferring"
    COMPLETE = "complete"
    FAILED = "failed"


_BUSY_STATES = frozenset({UploadState.METADATA_SUBMITTING, UploadState.TRANSFERRING})

INTEGRITY_WARNING = (
    "Metadata for law {law_id} was committed but its full text was not stored. "
    "The record now has updated metadata with a stale or missing full text. "
    "Re-submit the metadata to obtain a new upload session and upload the text again."
)


class UpsertOrchestrator:
    """
    Owns one law's upload attempt and its upload session.

    Usage:
        lookup = await resolver.resolve(law_id)
        orchestrator = UpsertOrchestrator.from_lookup(store, blobs, lookup)
        await orchestrator.submit_metadata(fields)
        await orchestrator.transfer_blob(text.encode("utf-8"))
    """

    def __init__(
        self,
        store: RecordStore,
        blobs: BlobStore,
        *,
        had_prior_blob: bool = False,
    ):
        self._store = store
        self._blobs = blobs
        self.had_prior_blob = had_prior_blob
        self.state = UploadState.IDLE
        self.metadata: Optional[LawMetadata] = None
        self._session: Optional[UploadSession] = None

    @classmethod
    def from_lookup(
        cls, store: RecordStore, blobs: BlobStore, lookup: LookupResult
    ) -> "UpsertOrchestrator":
        """Seed create-vs-update from an existence lookup."""
        return cls(store, blobs, had_prior_blob=lookup.exists and lookup.has_blob)

    @property
    def session(self) -> Optional[UploadSession]:
        return self._session

    @property
    def has_session(self) -> bool:
        return self._session is not None and not self._session.consumed

    # -------------------------------------------------------------------------
    # Phase one
    # -------------------------------------------------------------------------

    async def submit_metadata(self, fields: "Mapping[str, Any] | LawMetadata") -> UploadSession:
        """
        Validate and upsert metadata, returning a fresh upload session.

        Raises:
            ValidationError: local checks failed; nothing was sent
            StoreError: the upsert failed; state becomes FAILED
            InvalidStateError: another phase is still running

        Any other exception escaping the store call also leaves the state
        FAILED, so the orchestrator can be reused.
        """
        if self.state in _BUSY_STATES:
            raise InvalidStateError(f"Cannot submit metadata while {self.state.value}")

        metadata = LawMetadata.parse(fields)

        if self._session is not None:
            logger.debug("Discarding previous upload session for %s", metadata.id)
            self._session = None

        self.state = UploadState.METADATA_SUBMITTING
        with LogContext(law_id=metadata.id):
            try:
                upload_url = await self._store.upsert_law(metadata)
            except StoreError:
                self.state = UploadState.FAILED
                logger.error("Metadata upsert failed for %s", metadata.id)
                raise
            except BaseException:
                self.state = UploadState.FAILED
                raise

            self.metadata = metadata
            self._session = UploadSession(law_id=metadata.id, upload_url=upload_url)
            self.state = UploadState.AWAITING_BLOB
            logger.info("Metadata upserted for %s; awaiting full text", metadata.id)
        return self._session

    # -------------------------------------------------------------------------
    # Phase two
    # -------------------------------------------------------------------------

    def _claim_session(self) -> UploadSession:
        session = self._session
        if session is None or session.consumed:
            raise NoActiveSessionError("No active upload session; submit metadata first")
        self._session = None
        return session

    async def transfer_blob(self, data: bytes | str) -> None:
        """
        Write the full text to the held upload session.

        The session is claimed before the write starts, so a second call,
        concurrent or not, fails with NoActiveSessionError.

        Raises:
            NoActiveSessionError: no live session is held
            TransferError: the write failed; metadata stays committed
        """
        session = self._claim_session()
        upload_url = session.consume()
        payload = data.encode("utf-8") if isinstance(data, str) else data

        self.state = UploadState.TRANSFERRING
        with LogContext(law_id=session.law_id):
            try:
                await self._blobs.put(upload_url, payload, law_id=session.law_id)
            except TransferError as exc:
                self.state = UploadState.FAILED
                warning = INTEGRITY_WARNING.format(law_id=session.law_id)
                logger.error("%s Cause: %s", warning, exc.message)
                raise TransferError(
                    f"{exc.message}. {warning}",
                    law_id=session.law_id,
                    metadata_committed=True,
                    status=exc.context.get("status"),
                ) from exc
            except BaseException:
                self.state = UploadState.FAILED
                logger.error("%s", INTEGRITY_WARNING.format(law_id=session.law_id))
                raise

            self.had_prior_blob = True
            self.state = UploadState.COMPLETE
            logger.info(
                "Full text stored for %s (%d bytes, %.1fs after metadata)",
                session.law_id,
                len(payload),
                session.age_seconds,
            )

    def skip_blob(self) -> None:
        """
        Keep the existing full text and discard the session unused.

        Raises:
            NoActiveSessionError: no live session is held
            BlobRequiredError: the record has no previous full text to keep
        """
        if not self.has_session:
            raise NoActiveSessionError("No active upload session to skip")
        if not self.had_prior_blob:
            law_id = self._session.law_id if self._session else None
            raise BlobRequiredError(
                f"Law {law_id} has no stored full text; a new record must receive one",
                law_id=law_id,
            )

        session = self._claim_session()
        self.state = UploadState.COMPLETE
        logger.info("Kept existing full text for %s", session.law_id)

    def abandon(self) -> None:
        """Discard the held session without writing. Used by metadata-only flows."""
        if self._session is not None:
            logger.debug("Abandoning upload session for %s", self._session.law_id)
        self._session = None
        if self.state == UploadState.AWAITING_BLOB:
            self.state = UploadState.IDLE

"""
Compendium Pipeline - Batch Importer

Imports a compendium CSV one row at a time:

    parse -> normalize row -> upsert metadata -> link to compendium

Rows run strictly sequentially and in input order. The report's counters
and result list follow input order, and the Record Store API is rate limited.
A failing row is recorded and the next row proceeds; only a file that is
empty, header-only or not UTF-8 fails the whole call.

Full texts are never transferred here. Each row's upload session is
abandoned; attaching full texts to imported laws is a separate, manual step.
"""

from __future__ import annotations

import logging
from datetime import date

from compendium.core.errors import PipelineError, StoreError, ValidationError
from compendium.core.logging import LogContext
from compendium.ingest.contract import IngestContract, RawRow
from compendium.models import BatchReport, BatchRowResult
from compendium.services.base import BlobStore, RecordStore
from compendium.services.relationship_linker import RelationshipLinker
from compendium.services.upsert_orchestrator import UpsertOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_REFORM_DATE = date(1900, 1, 1)


class BatchImporter:
    """
    Sequential CSV importer.

    Usage:
        importer = BatchImporter(store, blobs, RelationshipLinker(store))
        report = await importer.import_batch(csv_bytes, "compendium-1")
        print(report.message)
    """

    def __init__(
        self,
        store: RecordStore,
        blobs: BlobStore,
        linker: RelationshipLinker,
        *,
        fallback_date: date = DEFAULT_FALLBACK_REFORM_DATE,
    ):
        self._store = store
        self._blobs = blobs
        self._linker = linker
        self.fallback_date = fallback_date

    async def import_batch(self, file_bytes: bytes, compendium_id: str) -> BatchReport:
        """
        Upsert and link every row of ``file_bytes``.

        Raises:
            BatchParseError: the file is empty, header-only or not UTF-8
            ValidationError: ``compendium_id`` is empty
        """
        compendium_id = _require_compendium_id(compendium_id)
        rows = IngestContract.parse_rows(file_bytes)
        report = BatchReport(file_hash=IngestContract.compute_file_hash(file_bytes))

        with LogContext(compendium_id=compendium_id):
            logger.info("Batch import started: %d rows", len(rows))
            ignored = IngestContract.unknown_columns(rows[0].keys())
            if ignored:
                logger.warning("Ignoring unknown columns: %s", ", ".join(ignored))
            # Row numbers count the header as row 1, matching a spreadsheet view.
            for row_number, raw in enumerate(rows, start=2):
                report.add(await self._import_row(row_number, raw, compendium_id))

            logger.info(
                "Batch import finished: %s",
                report.message,
                extra={"success_count": report.success_count, "error_count": report.error_count},
            )
        return report

    async def import_batch_remote(self, file_bytes: bytes, compendium_id: str) -> BatchReport:
        """
        Hand the whole file to the Record Store's server-side batch endpoint.

        Raises:
            BatchParseError: the file is empty, header-only or not UTF-8
            StoreError: the batch call failed
        """
        compendium_id = _require_compendium_id(compendium_id)
        IngestContract.parse_rows(file_bytes)

        with LogContext(compendium_id=compendium_id):
            results = await self._store.import_laws(file_bytes, compendium_id)
            report = BatchReport.from_results(
                results, file_hash=IngestContract.compute_file_hash(file_bytes)
            )
            logger.info("Remote batch import finished: %s", report.message)
        return report

    async def _import_row(self, row_number: int, raw: RawRow, compendium_id: str) -> BatchRowResult:
        normalized = IngestContract.normalize_row(raw, self.fallback_date)
        row_id = normalized.law_id

        with LogContext(row_index=row_number, law_id=row_id):
            orchestrator = UpsertOrchestrator(self._store, self._blobs)
            try:
                await orchestrator.submit_metadata(normalized.fields)
            except ValidationError as exc:
                logger.warning("Row %d rejected: %s", row_number, exc.message)
                return BatchRowResult.failed(row_id, exc.errors)
            except StoreError as exc:
                logger.error("Row %d upsert failed: %s", row_number, exc.message)
                return BatchRowResult.failed(row_id, [f"Upsert failed: {exc.message}"])
            except Exception as exc:  # noqa: BLE001 - one row must not abort the batch
                logger.exception("Row %d upsert raised unexpectedly", row_number)
                return BatchRowResult.failed(row_id, [f"Upsert failed: {exc}"])
            finally:
                orchestrator.abandon()

            law_id = orchestrator.metadata.id if orchestrator.metadata else row_id
            try:
                await self._linker.link(compendium_id, law_id)
            except PipelineError as exc:
                logger.error("Row %d link failed: %s", row_number, exc.message)
                return BatchRowResult.failed(
                    row_id, [f"Metadata saved but compendium link failed: {exc.message}"]
                )

            if normalized.date_coerced:
                logger.info(
                    "Row %d imported with fallback reform date %s",
                    row_number,
                    self.fallback_date.isoformat(),
                )
            return BatchRowResult.ok(row_id)


def _require_compendium_id(compendium_id: str) -> str:
    if not isinstance(compendium_id, str) or not compendium_id.strip():
        raise ValidationError("compendiumId is required")
    return compendium_id.strip()

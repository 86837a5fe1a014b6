"""Command-line entry point for the law ingestion pipeline.

Subcommands:

- ``import``  bulk-import a compendium CSV (columns: Id, title, jurisdiction,
  source, last_reform_date). ``--dry-run`` validates rows locally without
  calling the Record Store; ``--remote`` uses the store's batch endpoint.
- ``upsert``  create or update one law and upload its full text.
- ``check``   report whether a law id already exists.
- ``serve``   run the admin API with uvicorn.

Batch imports never upload full texts; attach them afterwards with ``upsert``.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Sequence

from compendium.core.config import get_settings
from compendium.core.errors import PipelineError, ValidationError
from compendium.core.logging import configure_logging
from compendium.ingest.contract import IngestContract
from compendium.models import BatchReport, BatchRowResult, LawMetadata
from compendium.services.pipeline import LawPipeline
from compendium.validators import require_valid_law_id

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="compendium", description="Law record ingestion pipeline")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Bulk import laws from a CSV file")
    import_parser.add_argument("--csv", dest="csv_path", required=True, help="Path to the CSV file")
    import_parser.add_argument("--compendium-id", required=True, help="Compendium to link every law to")
    mode_group = import_parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate rows locally without calling the Record Store",
    )
    mode_group.add_argument(
        "--remote",
        action="store_true",
        help="Submit the file to the Record Store's server-side batch endpoint",
    )

    upsert_parser = subparsers.add_parser("upsert", help="Create or update one law")
    upsert_parser.add_argument("--id", dest="law_id", required=True)
    upsert_parser.add_argument("--title", required=True)
    upsert_parser.add_argument("--jurisdiction", required=True)
    upsert_parser.add_argument("--source", required=True)
    upsert_parser.add_argument("--last-reform-date", required=True, help="YYYY-MM-DD or YYYY/MM/DD")
    text_group = upsert_parser.add_mutually_exclusive_group(required=True)
    text_group.add_argument("--text-file", help="Plain-text full text to upload")
    text_group.add_argument(
        "--keep-existing-text",
        action="store_true",
        help="Update metadata only and keep the stored full text",
    )

    check_parser = subparsers.add_parser("check", help="Check whether a law id exists")
    check_parser.add_argument("--id", dest="law_id", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the admin API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)

    return parser


# =============================================================================
# Commands
# =============================================================================


def dry_run_report(content: bytes, fallback_date: date) -> BatchReport:
    """Validate every row locally; nothing is sent to the Record Store."""
    report = BatchReport(file_hash=IngestContract.compute_file_hash(content))
    for raw in IngestContract.parse_rows(content):
        normalized = IngestContract.normalize_row(raw, fallback_date)
        try:
            LawMetadata.parse(normalized.fields)
        except ValidationError as exc:
            report.add(BatchRowResult.failed(normalized.law_id, exc.errors))
        else:
            report.add(BatchRowResult.ok(normalized.law_id))
    return report


def _print_report(report: BatchReport) -> None:
    for row_number, result in enumerate(report.results, start=2):
        if not result.valid:
            print(f"row {row_number} ({result.row_identifier or '?'}): {'; '.join(result.errors)}")
    print(f"Summary: {report.message}")


async def _run_import(pipeline: LawPipeline, args: argparse.Namespace) -> int:
    path = Path(args.csv_path)
    if not path.exists():
        logger.error("CSV file not found: %s", path)
        return 1
    content = path.read_bytes()

    if args.dry_run:
        logger.info("Dry run enabled; Record Store calls will be skipped")
        report = dry_run_report(content, pipeline.settings.BATCH_FALLBACK_REFORM_DATE)
    elif args.remote:
        report = await pipeline.importer().import_batch_remote(content, args.compendium_id)
    else:
        report = await pipeline.importer().import_batch(content, args.compendium_id)

    _print_report(report)
    if report.success_count and not args.dry_run:
        print("Note: full texts are not uploaded by batch import; use 'compendium upsert'.")
    return 0 if report.error_count == 0 else 1


async def _run_upsert(pipeline: LawPipeline, args: argparse.Namespace) -> int:
    text: Optional[bytes] = None
    if args.text_file:
        text_path = Path(args.text_file)
        if not text_path.exists():
            logger.error("Text file not found: %s", text_path)
            return 1
        text = text_path.read_bytes()

    fields = {
        "id": args.law_id,
        "name": args.title,
        "jurisdiction": args.jurisdiction,
        "source": args.source,
        "lastReformDate": args.last_reform_date,
    }
    outcome = await pipeline.upsert_law(fields, text, keep_existing_text=args.keep_existing_text)
    action = "Created" if outcome.created else "Updated"
    detail = "full text uploaded" if outcome.text_stored else "existing full text kept"
    print(f"{action} law {outcome.law_id}: {detail}")
    return 0


async def _run_check(pipeline: LawPipeline, args: argparse.Namespace) -> int:
    law_id = require_valid_law_id(args.law_id)
    result = await pipeline.resolver().resolve(law_id)
    print(json.dumps(result.model_dump(by_alias=True, mode="json"), indent=2))
    return 0


_COMMANDS = {
    "import": _run_import,
    "upsert": _run_upsert,
    "check": _run_check,
}


async def _dispatch(args: argparse.Namespace) -> int:
    async with LawPipeline.from_settings() as pipeline:
        return await _COMMANDS[args.command](pipeline, args)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "compendium.main:create_app",
        factory=True,
        host=args.host or settings.HOST,
        port=args.port or settings.PORT,
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging("DEBUG" if args.verbose else settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    if args.command == "serve":
        return _serve(args)

    try:
        return asyncio.run(_dispatch(args))
    except ValidationError as exc:
        for message in exc.errors:
            print(f"invalid: {message}", file=sys.stderr)
        return 2
    except PipelineError as exc:
        logger.error("%s: %s", exc.error_code.code, exc.message)
        return 1


if __name__ == "__main__":  # pragma: no cover - CLI entry
    raise SystemExit(main())

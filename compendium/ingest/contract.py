# compendium/ingest/contract.py
"""
Compendium CSV Ingest Contract

The rules every batch import follows:
    1. PARSING: Lines split on "\\n", blank lines dropped, first line is the
       header, cells split on "," with no quoting. Embedded commas are not
       supported.
    2. SHORT ROWS: Missing trailing cells become None; field validation
       rejects the row later, parsing never does.
    3. DATES: An unparseable last-reform date is replaced by the fallback
       sentinel instead of failing the row.
    4. TRACEABILITY: Every batch is identified by the SHA-256 of its bytes.

Usage:
    from compendium.ingest.contract import IngestContract

    rows = IngestContract.parse_rows(file_bytes)
    fields = IngestContract.normalize_row(rows[0], fallback_date)
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from compendium.core.errors import BatchParseError
from compendium.validators import parse_reform_date

logger = logging.getLogger(__name__)

RawRow = dict[str, Optional[str]]


@dataclass
class NormalizedRow:
    """A CSV row mapped onto the LawMetadata field names."""

    fields: dict[str, Any]
    date_coerced: bool = False

    @property
    def law_id(self) -> str:
        value = self.fields.get("id")
        return value.strip() if isinstance(value, str) else ""


class IngestContract:
    """Column mapping and parsing rules for compendium CSV files."""

    # Normalized header -> LawMetadata field
    COLUMN_ALIASES: dict[str, str] = {
        "id": "id",
        "law_id": "id",
        "lawid": "id",
        "title": "name",
        "name": "name",
        "jurisdiction": "jurisdiction",
        "source": "source",
        "last_reform_date": "lastReformDate",
        "lastreformdate": "lastReformDate",
    }

    REQUIRED_FIELDS = ("id", "name", "jurisdiction", "source", "lastReformDate")

    @staticmethod
    def compute_file_hash(content: bytes) -> str:
        """SHA-256 of the raw upload, used to identify a batch in logs and reports."""
        return hashlib.sha256(content).hexdigest()

    @staticmethod
    def normalize_column_name(col: str) -> str:
        """Lowercase, strip, replace spaces and hyphens with underscores."""
        return col.strip().lower().replace(" ", "_").replace("-", "_")

    @classmethod
    def parse_rows(cls, content: bytes | str) -> list[RawRow]:
        """
        Split a CSV payload into header-keyed rows.

        Raises:
            BatchParseError: when the input is not UTF-8, is empty or has only a header
        """
        if isinstance(content, bytes):
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise BatchParseError(
                    f"Batch file is not valid UTF-8 (byte {exc.start}); re-export it as UTF-8"
                ) from exc
        else:
            text = content
        lines = [line.rstrip("\r") for line in text.split("\n") if line.strip() != ""]
        if not lines:
            raise BatchParseError("Batch file is empty")

        headers = [header.strip() for header in lines[0].split(",")]
        if len(lines) == 1:
            raise BatchParseError("Batch file has a header but no data rows")

        rows: list[RawRow] = []
        for line in lines[1:]:
            cells = line.split(",")
            rows.append(
                {header: (cells[i] if i < len(cells) else None) for i, header in enumerate(headers)}
            )
        return rows

    @classmethod
    def unknown_columns(cls, headers: Iterable[str]) -> list[str]:
        """Headers that map to no LawMetadata field and are ignored on import."""
        return [h for h in headers if cls.normalize_column_name(h) not in cls.COLUMN_ALIASES]

    @classmethod
    def normalize_row(cls, row: RawRow, fallback_date: date) -> NormalizedRow:
        """
        Map a raw row onto LawMetadata input fields.

        Values are stripped; missing columns stay None so that validation
        reports them. A last-reform date that does not parse is replaced by
        ``fallback_date``.
        """
        fields: dict[str, Any] = {name: None for name in cls.REQUIRED_FIELDS}

        for header, raw in row.items():
            target = cls.COLUMN_ALIASES.get(cls.normalize_column_name(header))
            if target is None:
                continue
            value = raw.strip() if isinstance(raw, str) else None
            if fields.get(target) is None:
                fields[target] = value or None

        coerced = False
        raw_date = fields.get("lastReformDate")
        if raw_date is not None and parse_reform_date(raw_date) is None:
            logger.warning(
                "Unparseable last_reform_date %r for law %s; using fallback %s",
                raw_date,
                fields.get("id"),
                fallback_date.isoformat(),
            )
            fields["lastReformDate"] = fallback_date
            coerced = True

        return NormalizedRow(fields=fields, date_coerced=coerced)


# =============================================================================
# Convenience Functions
# =============================================================================


def parse_rows(content: bytes | str) -> list[RawRow]:
    return IngestContract.parse_rows(content)


def compute_file_hash(content: bytes) -> str:
    return IngestContract.compute_file_hash(content)

# compendium/ingest/__init__.py
"""
Ingest Module - CSV contract for compendium batch imports.

Usage:
    from compendium.ingest import IngestContract, parse_rows
"""

from compendium.ingest.contract import (
    IngestContract,
    NormalizedRow,
    RawRow,
    compute_file_hash,
    parse_rows,
)

__all__ = [
    "IngestContract",
    "NormalizedRow",
    "RawRow",
    "parse_rows",
    "compute_file_hash",
]

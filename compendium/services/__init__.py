"""Pipeline services: existence checks, two-phase upserts, links and batch imports."""

from compendium.services.base import BlobStore, RecordStore
from compendium.services.batch_importer import BatchImporter
from compendium.services.existence_resolver import ExistenceResolver
from compendium.services.pipeline import LawPipeline
from compendium.services.relationship_linker import RelationshipLinker
from compendium.services.upsert_orchestrator import UploadState, UpsertOrchestrator

__all__ = [
    "RecordStore",
    "BlobStore",
    "ExistenceResolver",
    "UpsertOrchestrator",
    "UploadState",
    "RelationshipLinker",
    "BatchImporter",
    "LawPipeline",
]

"""Clients for the two external collaborators: the Record Store and blob storage."""

from compendium.clients.auth import (
    CredentialProvider,
    SettingsCredentialProvider,
    StaticCredentialProvider,
    fetch_token,
)
from compendium.clients.blob_transfer import BlobTransferClient
from compendium.clients.record_store import RecordStoreClient

__all__ = (
    "CredentialProvider",
    "StaticCredentialProvider",
    "SettingsCredentialProvider",
    "fetch_token",
    "RecordStoreClient",
    "BlobTransferClient",
)

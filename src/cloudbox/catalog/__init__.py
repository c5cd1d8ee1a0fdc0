"""Artifact catalog: File/Folder metadata entries and their blob content."""

from cloudbox.catalog.blobs import BlobStore, LocalBlobStore, S3BlobStore
from cloudbox.catalog.errors import BlobStoreError, CatalogError, EntryNotFoundError
from cloudbox.catalog.models import Entry, EntryKind, File, FileDescriptor, Folder
from cloudbox.catalog.repository import EntryRepository
from cloudbox.catalog.service import ArtifactCatalog

__all__ = [
    "ArtifactCatalog",
    "BlobStore",
    "BlobStoreError",
    "CatalogError",
    "Entry",
    "EntryKind",
    "EntryNotFoundError",
    "EntryRepository",
    "File",
    "FileDescriptor",
    "Folder",
    "LocalBlobStore",
    "S3BlobStore",
]

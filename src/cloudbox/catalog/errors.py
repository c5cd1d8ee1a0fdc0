"""Catalog error hierarchy."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Catalog metadata or content operation failed."""


class EntryNotFoundError(CatalogError):
    """Requested entry does not exist."""

    def __init__(self, entry_id: str, kind: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {entry_id}")
        self.entry_id = entry_id
        self.kind = kind


class BlobStoreError(CatalogError):
    """Blob content could not be stored."""

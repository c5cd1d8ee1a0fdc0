"""Artifact catalog: entry metadata plus blob content."""

from __future__ import annotations

import logging
from uuid import uuid4

from cloudbox.catalog.blobs import PUBLIC_READ_ACL, BlobStore
from cloudbox.catalog.models import DEFAULT_MIME_TYPE, Entry, File, FileDescriptor, Folder
from cloudbox.catalog.repository import EntryRepository
from cloudbox.storage.common import utc_now

logger = logging.getLogger(__name__)


class ArtifactCatalog:
    """Coordinates entry persistence and blob uploads."""

    def __init__(self, *, repository: EntryRepository, blobs: BlobStore) -> None:
        self.repository = repository
        self.blobs = blobs

    def get_file(self, entry_id: str) -> File | None:
        return self.repository.get_file(entry_id)

    def get_folder(self, entry_id: str) -> Folder | None:
        return self.repository.get_folder(entry_id)

    def save_file(self, file: File) -> File:
        return self.repository.save_file(file)

    def save_folder(self, folder: Folder) -> Folder:
        return self.repository.save_folder(folder)

    def delete_file(self, entry_id: str) -> File:
        """Remove the file record; its blob is left in place."""

        return self.repository.delete_file(entry_id)

    def delete_folder(self, entry_id: str) -> Folder:
        return self.repository.delete_folder(entry_id)

    def get_entries_by_parent(self, parent_id: str | None) -> list[Entry]:
        return self.repository.list_by_parent(parent_id)

    def create_file(self, parent_id: str | None, title: str) -> File:
        now = utc_now()
        return File(
            entry_id=str(uuid4()),
            parent_id=parent_id,
            title=title,
            mime_type=DEFAULT_MIME_TYPE,
            original_filename=title,
            filesize=0,
            download_url="",
            created_date=now,
            modified_date=now,
        )

    def create_folder(self, parent_id: str | None, title: str) -> Folder:
        now = utc_now()
        return Folder(
            entry_id=str(uuid4()),
            parent_id=parent_id,
            title=title,
            created_date=now,
            modified_date=now,
        )

    def upload(self, folder_id: str | None, descriptor: FileDescriptor) -> File:
        """Store a local file's bytes and persist a new file entry for it.

        The blob key is the new entry's id. Blob failures propagate before
        any metadata is written.
        """

        file = self.create_file(folder_id, descriptor.name)
        file.mime_type = descriptor.content_type or DEFAULT_MIME_TYPE
        file.filesize = descriptor.size
        key = str(file.entry_id)

        with descriptor.path.open("rb") as stream:
            location = self.blobs.put(key, stream, acl=PUBLIC_READ_ACL)
        file.download_url = self.blobs.download_url(key)
        logger.info(
            "Uploaded %s (%d bytes, %s) to %s as %s",
            descriptor.name,
            descriptor.size,
            file.mime_type,
            location,
            key,
        )
        return self.save_file(file)

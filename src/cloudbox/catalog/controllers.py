"""Controllers for catalog and notification CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import boto3

from cloudbox.catalog.blobs import BlobStore, LocalBlobStore, S3BlobStore
from cloudbox.catalog.errors import EntryNotFoundError
from cloudbox.catalog.models import Entry, EntryKind, File, FileDescriptor
from cloudbox.catalog.repository import EntryRepository
from cloudbox.catalog.service import ArtifactCatalog
from cloudbox.config import Settings
from cloudbox.engine.workspace import guess_content_type
from cloudbox.notifications.log import NotificationLog


@dataclass(slots=True)
class CatalogMkdirCommand:
    """CLI input for folder creation."""

    db_path: Path | None
    title: str
    parent_id: str | None


@dataclass(slots=True)
class CatalogPutCommand:
    """CLI input for uploading a local file into a folder."""

    db_path: Path | None
    path: Path
    folder_id: str | None


@dataclass(slots=True)
class CatalogListCommand:
    db_path: Path | None
    parent_id: str | None


@dataclass(slots=True)
class CatalogShowCommand:
    db_path: Path | None
    entry_id: str


@dataclass(slots=True)
class CatalogRemoveCommand:
    db_path: Path | None
    entry_id: str
    kind: str


@dataclass(slots=True)
class NotificationsListCommand:
    db_path: Path | None
    user_id: str | None


@dataclass(slots=True)
class CatalogCliController:
    """Folder/file management and notification inspection."""

    def make_folder(self, command: CatalogMkdirCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_catalog(settings) as catalog:
            folder = catalog.save_folder(catalog.create_folder(command.parent_id, command.title))
        return [f"Folder created: entry_id={folder.entry_id} title={folder.title}"]

    def put_file(self, command: CatalogPutCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        source = command.path
        descriptor = FileDescriptor(
            name=source.name,
            size=source.stat().st_size,
            content_type=guess_content_type(source.name),
            path=source,
        )
        with open_catalog(settings) as catalog:
            file = catalog.upload(command.folder_id, descriptor)
        return [
            f"File uploaded: entry_id={file.entry_id} size={file.filesize} "
            f"mime={file.mime_type}",
            f"Download URL: {file.download_url}",
        ]

    def list_entries(self, command: CatalogListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_catalog(settings) as catalog:
            entries = catalog.get_entries_by_parent(command.parent_id)

        entries.sort(key=lambda entry: (entry.kind.value != EntryKind.FOLDER.value, entry.title))
        lines = [f"Entries under {command.parent_id or 'root'}: {len(entries)}"]
        for entry in entries:
            lines.append(f"  {_entry_summary(entry)}")
        return lines

    def show_entry(self, command: CatalogShowCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with open_catalog(settings) as catalog:
            entry: Entry | None = catalog.get_file(command.entry_id)
            if entry is None:
                entry = catalog.get_folder(command.entry_id)
        if entry is None:
            return [f"Entry not found: {command.entry_id}"]

        lines = [
            f"Entry: {entry.entry_id}",
            f"Kind: {entry.kind.value}",
            f"Title: {entry.title}",
            f"Parent: {entry.parent_id or '-'}",
            f"Created: {entry.created_date.isoformat()}",
            f"Modified: {entry.modified_date.isoformat()}",
        ]
        if isinstance(entry, File):
            lines.extend(
                [
                    f"MIME type: {entry.mime_type}",
                    f"Original filename: {entry.original_filename or '-'}",
                    f"Size: {entry.filesize}",
                    f"Download URL: {entry.download_url or '-'}",
                ],
            )
        return lines

    def remove_entry(self, command: CatalogRemoveCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        kind = EntryKind(command.kind)
        with open_catalog(settings) as catalog:
            try:
                if kind is EntryKind.FILE:
                    entry: Entry = catalog.delete_file(command.entry_id)
                else:
                    entry = catalog.delete_folder(command.entry_id)
            except EntryNotFoundError:
                return [f"Entry not found: {command.entry_id} ({kind.value})"]
        return [f"Entry deleted: entry_id={entry.entry_id} kind={kind.value} title={entry.title}"]

    def list_notifications(self, command: NotificationsListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        user_id = command.user_id or settings.worker.notify_user_id
        log = NotificationLog(settings.db_path)
        log.init_schema()
        try:
            notifications = log.get_notifications(user_id)
        finally:
            log.close()

        lines = [f"Notifications for {user_id}: {len(notifications)}"]
        for notification in notifications:
            lines.append(
                f"  {notification.created_date.isoformat()} {notification.id} "
                f"{notification.content or '-'}",
            )
        return lines


def build_blob_store(settings: Settings) -> BlobStore:
    """Blob backend selected by ``CLOUDBOX_BLOB_BACKEND``."""

    settings.validate_for_blobs()
    if settings.blobs.backend == "s3":
        return S3BlobStore(
            boto3.client("s3", region_name=settings.blobs.region),
            bucket=settings.blobs.bucket,
            region=settings.blobs.region,
            url_template=settings.blobs.url_template,
        )
    return LocalBlobStore(
        settings.blobs.local_root,
        bucket=settings.blobs.bucket,
        region=settings.blobs.region,
        url_template=settings.blobs.url_template,
    )


@contextmanager
def open_catalog(settings: Settings) -> Iterator[ArtifactCatalog]:
    repository = EntryRepository(settings.db_path)
    repository.init_schema()
    try:
        yield ArtifactCatalog(repository=repository, blobs=build_blob_store(settings))
    finally:
        repository.close()


def _entry_summary(entry: Entry) -> str:
    if isinstance(entry, File):
        return (
            f"{entry.entry_id} file title={entry.title} size={entry.filesize} "
            f"mime={entry.mime_type}"
        )
    return f"{entry.entry_id} folder title={entry.title}"

"""Domain models for catalog entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

DEFAULT_MIME_TYPE = "application/octet-stream"


class EntryKind(str, Enum):
    """Entry variants; part of the storage key together with the entry id."""

    FILE = "file"
    FOLDER = "folder"


@dataclass(slots=True)
class File:
    """Stored file metadata; content lives in blob storage under ``entry_id``."""

    entry_id: str | None
    parent_id: str | None
    title: str
    created_date: datetime
    modified_date: datetime
    mime_type: str = DEFAULT_MIME_TYPE
    original_filename: str = ""
    filesize: int = 0
    download_url: str = ""

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FILE


@dataclass(slots=True)
class Folder:
    """Container entry; children reference it through ``parent_id``."""

    entry_id: str | None
    parent_id: str | None
    title: str
    created_date: datetime
    modified_date: datetime

    @property
    def kind(self) -> EntryKind:
        return EntryKind.FOLDER


Entry = File | Folder


@dataclass(slots=True, frozen=True)
class FileDescriptor:
    """Local file offered for upload into a folder."""

    name: str
    size: int
    content_type: str
    path: Path

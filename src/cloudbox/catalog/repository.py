"""Entry metadata persistence backed by SQLModel + SQLite."""

from __future__ import annotations

from pathlib import Path
from uuid import uuid4

from sqlmodel import Session, select

from cloudbox.catalog.errors import CatalogError, EntryNotFoundError
from cloudbox.catalog.models import DEFAULT_MIME_TYPE, Entry, EntryKind, File, Folder
from cloudbox.storage.alembic_runner import upgrade_head
from cloudbox.storage.common import build_sqlite_engine, from_iso, to_iso, utc_now
from cloudbox.storage.sqlmodel_models import ROOT_PARENT_SENTINEL, EntryRow


class EntryRepository:
    """Keyed by ``(entry_id, kind)`` with a secondary index on ``parent_id``.

    The store keeps the root marker as the literal string ``"null"`` and
    ``filesize`` as a decimal string; both are translated here so the rest of
    the code sees ``None`` and ``int``.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def get_file(self, entry_id: str) -> File | None:
        row = self._get_row(entry_id, EntryKind.FILE)
        if row is None:
            return None
        return _to_file(row)

    def get_folder(self, entry_id: str) -> Folder | None:
        row = self._get_row(entry_id, EntryKind.FOLDER)
        if row is None:
            return None
        return _to_folder(row)

    def save_file(self, file: File) -> File:
        """Upsert a file entry; the id must already be assigned."""

        if not file.entry_id:
            raise CatalogError("File entry must have an entry_id before it is saved.")
        file.modified_date = utc_now()
        self._upsert(
            entry_id=file.entry_id,
            kind=EntryKind.FILE,
            values={
                "parent_id": _parent_to_db(file.parent_id),
                "title": file.title,
                "mime_type": file.mime_type or DEFAULT_MIME_TYPE,
                "original_filename": file.original_filename,
                "filesize": encode_filesize(file.filesize),
                "download_url": file.download_url,
                "created_date": to_iso(file.created_date),
                "modified_date": to_iso(file.modified_date),
            },
        )
        return file

    def save_folder(self, folder: Folder) -> Folder:
        """Upsert a folder entry, assigning an id when absent."""

        if not folder.entry_id:
            folder.entry_id = str(uuid4())
        folder.modified_date = utc_now()
        self._upsert(
            entry_id=folder.entry_id,
            kind=EntryKind.FOLDER,
            values={
                "parent_id": _parent_to_db(folder.parent_id),
                "title": folder.title,
                "created_date": to_iso(folder.created_date),
                "modified_date": to_iso(folder.modified_date),
            },
        )
        return folder

    def delete_file(self, entry_id: str) -> File:
        file = self.get_file(entry_id)
        if file is None:
            raise EntryNotFoundError(entry_id, EntryKind.FILE.value)
        self._delete_row(entry_id, EntryKind.FILE)
        return file

    def delete_folder(self, entry_id: str) -> Folder:
        folder = self.get_folder(entry_id)
        if folder is None:
            raise EntryNotFoundError(entry_id, EntryKind.FOLDER.value)
        self._delete_row(entry_id, EntryKind.FOLDER)
        return folder

    def list_by_parent(self, parent_id: str | None) -> list[Entry]:
        """Return files and folders directly under ``parent_id`` (``None`` = root)."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(EntryRow).where(EntryRow.parent_id == _parent_to_db(parent_id)),
            ).all()
        entries: list[Entry] = []
        for row in rows:
            entries.append(_to_entry(row))
        return entries

    def _get_row(self, entry_id: str, kind: EntryKind) -> EntryRow | None:
        with Session(self.engine) as session:
            return session.get(EntryRow, (entry_id, kind.value))

    def _upsert(self, *, entry_id: str, kind: EntryKind, values: dict[str, str | None]) -> None:
        with Session(self.engine) as session:
            row = session.get(EntryRow, (entry_id, kind.value))
            if row is None:
                row = EntryRow(entry_id=entry_id, kind=kind.value, **values)
            else:
                for name, value in values.items():
                    setattr(row, name, value)
            session.add(row)
            session.commit()

    def _delete_row(self, entry_id: str, kind: EntryKind) -> None:
        with Session(self.engine) as session:
            row = session.get(EntryRow, (entry_id, kind.value))
            if row is None:
                return
            session.delete(row)
            session.commit()


def encode_filesize(value: int) -> str:
    if value < 0:
        raise CatalogError(f"filesize must be non-negative, got {value}")
    return str(int(value))


def decode_filesize(value: str | None) -> int:
    if value is None or value == "":
        return 0
    return int(value)


def _parent_to_db(parent_id: str | None) -> str:
    return ROOT_PARENT_SENTINEL if parent_id is None else parent_id


def _parent_from_db(value: str | None) -> str | None:
    if value is None or value == ROOT_PARENT_SENTINEL:
        return None
    return value


def _to_entry(row: EntryRow) -> Entry:
    kind = EntryKind(row.kind)
    if kind is EntryKind.FILE:
        return _to_file(row)
    return _to_folder(row)


def _to_file(row: EntryRow) -> File:
    return File(
        entry_id=row.entry_id,
        parent_id=_parent_from_db(row.parent_id),
        title=row.title,
        mime_type=row.mime_type or DEFAULT_MIME_TYPE,
        original_filename=row.original_filename or "",
        filesize=decode_filesize(row.filesize),
        download_url=row.download_url or "",
        created_date=from_iso(row.created_date),
        modified_date=from_iso(row.modified_date),
    )


def _to_folder(row: EntryRow) -> Folder:
    return Folder(
        entry_id=row.entry_id,
        parent_id=_parent_from_db(row.parent_id),
        title=row.title,
        created_date=from_iso(row.created_date),
        modified_date=from_iso(row.modified_date),
    )

"""SQLModel ORM tables for catalog, notification and queue storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, PrimaryKeyConstraint, Text
from sqlmodel import Field, SQLModel

ROOT_PARENT_SENTINEL = "null"


class EntryRow(SQLModel, table=True):
    __tablename__ = "entries"  # type: ignore[bad-override]
    __table_args__ = (
        PrimaryKeyConstraint("entry_id", "kind", name="pk_entries"),
        Index("idx_entries_parent", "parent_id"),
    )

    entry_id: str
    kind: str
    parent_id: str = ROOT_PARENT_SENTINEL
    title: str
    mime_type: str | None = None
    original_filename: str | None = None
    filesize: str | None = None
    download_url: str | None = None
    created_date: str
    modified_date: str


class NotificationRow(SQLModel, table=True):
    __tablename__ = "notifications"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_notifications_user", "user_id"),)

    id: str = Field(primary_key=True)
    user_id: str
    created_date: str
    attributes_json: str = Field(default="{}", sa_column=Column(Text, nullable=False))


class QueueMessageRow(SQLModel, table=True):
    __tablename__ = "queue_messages"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_queue_messages_queue_visible", "queue_name", "visible_after"),
        Index("idx_queue_messages_receipt", "receipt_handle", unique=True),
    )

    message_id: str = Field(primary_key=True)
    queue_name: str
    body: str = Field(sa_column=Column(Text, nullable=False))
    receipt_handle: str | None = None
    receive_count: int = 0
    visible_after: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    sent_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))

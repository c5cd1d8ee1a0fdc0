"""Notification persistence backed by SQLModel + SQLite."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from sqlalchemy import text
from sqlmodel import Session, col, select

from cloudbox.storage.alembic_runner import upgrade_head
from cloudbox.storage.common import build_sqlite_engine, from_iso, to_iso, utc_now
from cloudbox.storage.sqlmodel_models import NotificationRow

logger = logging.getLogger(__name__)

CONTENT_ATTRIBUTE = "content"


@dataclass(slots=True)
class Notification:
    """Event record addressed to one recipient."""

    id: str | None
    user_id: str
    created_date: datetime
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def content(self) -> str | None:
        return self.attributes.get(CONTENT_ATTRIBUTE)


class NotificationLog:
    """Upsert-by-id store with a secondary index on ``user_id``."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def create_notification(self, user_id: str, message: str) -> Notification:
        """Build an unsaved record with a fresh id and a ``content`` attribute."""

        return Notification(
            id=str(uuid4()),
            user_id=user_id,
            created_date=utc_now(),
            attributes={CONTENT_ATTRIBUTE: message},
        )

    def save_notification(self, notification: Notification) -> Notification:
        if not notification.id:
            notification.id = str(uuid4())
        attributes_json = json.dumps(
            {str(name): str(value) for name, value in notification.attributes.items()},
            ensure_ascii=False,
            sort_keys=True,
        )
        with Session(self.engine) as session:
            row = session.get(NotificationRow, notification.id)
            if row is None:
                row = NotificationRow(
                    id=notification.id,
                    user_id=notification.user_id,
                    created_date=to_iso(notification.created_date),
                    attributes_json=attributes_json,
                )
            else:
                row.user_id = notification.user_id
                row.created_date = to_iso(notification.created_date)
                row.attributes_json = attributes_json
            session.add(row)
            session.commit()
        logger.debug("Saved notification %s for %s", notification.id, notification.user_id)
        return notification

    def notify(self, user_id: str, message: str) -> Notification:
        """Create and persist a notification in one step."""

        return self.save_notification(self.create_notification(user_id, message))

    def get_notifications(self, user_id: str) -> list[Notification]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(NotificationRow)
                .where(NotificationRow.user_id == user_id)
                .order_by(col(NotificationRow.created_date).asc(), text("notifications.rowid")),
            ).all()
        return [_to_notification(row) for row in rows]


def _to_notification(row: NotificationRow) -> Notification:
    raw = json.loads(row.attributes_json or "{}")
    return Notification(
        id=row.id,
        user_id=row.user_id,
        created_date=from_iso(row.created_date),
        attributes={str(name): str(value) for name, value in raw.items()},
    )

"""SQLite-backed queue with long-poll and visibility-window emulation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from cloudbox.queue.base import QueueError, QueueMessage
from cloudbox.storage.alembic_runner import upgrade_head
from cloudbox.storage.common import build_sqlite_engine, to_db_datetime, utc_now
from cloudbox.storage.sqlmodel_models import QueueMessageRow

logger = logging.getLogger(__name__)


class SqliteQueue:
    """Single-host queue for local runs and tests.

    Received messages stay hidden for ``visibility_timeout_seconds`` and are
    redelivered with a new receipt handle unless deleted first.
    """

    def __init__(  # noqa: PLR0913
        self,
        db_path: Path,
        *,
        queue_name: str = "jobs",
        visibility_timeout_seconds: int = 300,
        poll_interval_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.db_path = db_path
        self.queue_name = queue_name
        self.visibility_timeout_seconds = visibility_timeout_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._sleep = sleep
        self.engine = build_sqlite_engine(db_path=db_path)

    def close(self) -> None:
        self.engine.dispose()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    def send(self, body: str) -> str:
        now = to_db_datetime(utc_now())
        message_id = str(uuid4())
        try:
            with Session(self.engine) as session:
                session.add(
                    QueueMessageRow(
                        message_id=message_id,
                        queue_name=self.queue_name,
                        body=body,
                        visible_after=now,
                        sent_at=now,
                    ),
                )
                session.commit()
        except SQLAlchemyError as error:
            raise QueueError(f"Failed to send message to {self.queue_name!r}: {error}") from error
        return message_id

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20) -> list[QueueMessage]:
        deadline = time.monotonic() + max(0, wait_seconds)
        while True:
            try:
                messages = self._claim_visible(max_messages=max(1, max_messages))
            except SQLAlchemyError as error:
                raise QueueError(f"Failed to receive from {self.queue_name!r}: {error}") from error
            if messages:
                return messages
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return []
            self._sleep(min(self.poll_interval_seconds, remaining))

    def delete(self, receipt_handle: str) -> None:
        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(QueueMessageRow).where(
                        QueueMessageRow.queue_name == self.queue_name,
                        QueueMessageRow.receipt_handle == receipt_handle,
                    ),
                ).one_or_none()
                if row is None:
                    raise QueueError(f"Unknown or expired receipt handle: {receipt_handle}")
                session.delete(row)
                session.commit()
        except SQLAlchemyError as error:
            raise QueueError(f"Failed to delete message: {error}") from error

    def pending_count(self) -> int:
        with Session(self.engine) as session:
            rows = session.exec(
                select(QueueMessageRow.message_id).where(
                    QueueMessageRow.queue_name == self.queue_name,
                ),
            ).all()
        return len(rows)

    def _claim_visible(self, *, max_messages: int) -> list[QueueMessage]:
        now = to_db_datetime(utc_now())
        hidden_until = now + timedelta(seconds=max(0, self.visibility_timeout_seconds))
        claimed: list[QueueMessage] = []
        with Session(self.engine) as session:
            candidates = session.exec(
                select(QueueMessageRow)
                .where(
                    QueueMessageRow.queue_name == self.queue_name,
                    QueueMessageRow.visible_after <= now,
                )
                .order_by(col(QueueMessageRow.sent_at).asc())
                .limit(max_messages),
            ).all()
            for candidate in candidates:
                message_id = candidate.message_id
                body = candidate.body
                receive_count = candidate.receive_count + 1
                receipt_handle = str(uuid4())
                result = session.exec(
                    sa_update(QueueMessageRow)
                    .where(
                        col(QueueMessageRow.message_id) == message_id,
                        col(QueueMessageRow.visible_after) <= now,
                    )
                    .values(
                        receipt_handle=receipt_handle,
                        receive_count=receive_count,
                        visible_after=hidden_until,
                    ),
                )
                if result.rowcount != 1:
                    continue
                claimed.append(
                    QueueMessage(
                        message_id=message_id,
                        receipt_handle=receipt_handle,
                        body=body,
                        receive_count=receive_count,
                    ),
                )
            session.commit()
        if claimed:
            logger.debug("Received %d message(s) from %s", len(claimed), self.queue_name)
        return claimed

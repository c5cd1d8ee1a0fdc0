from __future__ import annotations

import json
from pathlib import Path

import allure
from sqlmodel import Session

from cloudbox.notifications.log import NotificationLog
from cloudbox.storage.sqlmodel_models import NotificationRow

pytestmark = [
    allure.epic("Notifications"),
    allure.feature("Notification Log"),
]


def _log(tmp_path: Path) -> NotificationLog:
    log = NotificationLog(tmp_path / "notifications.db")
    log.init_schema()
    return log


def test_create_notification_sets_content_attribute(tmp_path: Path) -> None:
    log = _log(tmp_path)

    notification = log.create_notification("alice", "Job started")

    assert notification.id
    assert notification.user_id == "alice"
    assert notification.attributes == {"content": "Job started"}
    assert notification.content == "Job started"
    assert log.get_notifications("alice") == []
    log.close()


def test_save_assigns_id_when_absent(tmp_path: Path) -> None:
    log = _log(tmp_path)
    notification = log.create_notification("alice", "hello")
    notification.id = None

    saved = log.save_notification(notification)

    assert saved.id
    assert [item.id for item in log.get_notifications("alice")] == [saved.id]
    log.close()


def test_save_is_upsert_by_id_and_serializes_attributes(tmp_path: Path) -> None:
    log = _log(tmp_path)
    notification = log.notify("alice", "first")
    notification.attributes["image"] = "tools"
    log.save_notification(notification)

    stored = log.get_notifications("alice")
    assert len(stored) == 1
    assert stored[0].attributes == {"content": "first", "image": "tools"}

    with Session(log.engine) as session:
        row = session.get(NotificationRow, notification.id)
        assert row is not None
        assert json.loads(row.attributes_json) == {"content": "first", "image": "tools"}
    log.close()


def test_get_notifications_filters_by_recipient_in_creation_order(tmp_path: Path) -> None:
    log = _log(tmp_path)
    log.notify("alice", "one")
    log.notify("bob", "other")
    log.notify("alice", "two")

    assert [item.content for item in log.get_notifications("alice")] == ["one", "two"]
    assert [item.content for item in log.get_notifications("bob")] == ["other"]
    assert log.get_notifications("nobody") == []
    log.close()

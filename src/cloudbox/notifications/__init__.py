"""Append-only notification records keyed by id and queryable by recipient."""

from cloudbox.notifications.log import Notification, NotificationLog

__all__ = ["Notification", "NotificationLog"]

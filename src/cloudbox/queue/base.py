"""Queue interface consumed by the worker loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class QueueError(RuntimeError):
    """Queue receive/delete/send failed."""


@dataclass(slots=True, frozen=True)
class QueueMessage:
    """One received message; ``receipt_handle`` is valid for a single delete."""

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 1


class MessageQueue(Protocol):
    """Protocol implemented by queue backends."""

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20) -> list[QueueMessage]:
        """Block up to ``wait_seconds`` for at most ``max_messages`` messages."""

    def delete(self, receipt_handle: str) -> None:
        """Acknowledge a received message so it is never redelivered."""

    def send(self, body: str) -> str:
        """Enqueue a message body and return its id."""

"""Job message queues: local SQLite emulation and Amazon SQS."""

from cloudbox.queue.base import MessageQueue, QueueError, QueueMessage
from cloudbox.queue.sqlite_queue import SqliteQueue
from cloudbox.queue.sqs_queue import SqsQueue

__all__ = ["MessageQueue", "QueueError", "QueueMessage", "SqliteQueue", "SqsQueue"]

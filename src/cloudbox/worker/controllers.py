"""Controllers for worker, queue and schema CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import boto3

from cloudbox.catalog.controllers import open_catalog
from cloudbox.config import Settings
from cloudbox.engine.executor import ContainerExecutionEngine
from cloudbox.engine.workspace import WorkspaceManager
from cloudbox.http.fetcher import HttpFetcher
from cloudbox.notifications.log import NotificationLog
from cloudbox.queue.base import MessageQueue
from cloudbox.queue.sqlite_queue import SqliteQueue
from cloudbox.queue.sqs_queue import SqsQueue
from cloudbox.runtime.docker_runtime import BuildContextResolver, DockerRuntime
from cloudbox.storage.alembic_runner import upgrade_head
from cloudbox.worker.dispatcher import JobDescriptor, JobDispatcher
from cloudbox.worker.loop import QueueConsumerLoop


@dataclass(slots=True)
class DbInitCommand:
    db_path: Path | None


@dataclass(slots=True)
class WorkerCommand:
    """CLI input for worker execution."""

    db_path: Path | None
    once: bool
    max_jobs: int | None
    max_idle_polls: int | None = None


@dataclass(slots=True)
class QueueSendCommand:
    """CLI input for job enqueue."""

    db_path: Path | None
    image: str
    cmd: str
    src: str
    dst: str
    user: str | None = None


@dataclass(slots=True)
class WorkerCliController:
    """Coordinates schema setup, job enqueue, and the queue consumer."""

    def init_db(self, command: DbInitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        upgrade_head(settings.db_path)
        return [f"Database ready: {settings.db_path}"]

    def send_job(self, command: QueueSendCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        descriptor = JobDescriptor(
            image=command.image,
            cmd=command.cmd,
            src=command.src,
            dst=command.dst,
            user=command.user,
        )
        with open_queue(settings) as queue:
            message_id = queue.send(descriptor.to_payload())
        return [
            f"Job enqueued: message_id={message_id} image={descriptor.image} "
            f"src={descriptor.src} dst={descriptor.dst}",
        ]

    def run_worker(self, command: WorkerCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate_for_worker()
        notifications = NotificationLog(settings.db_path)
        notifications.init_schema()
        try:
            with (
                open_catalog(settings) as catalog,
                open_queue(settings) as queue,
                HttpFetcher(
                    timeout_seconds=settings.worker.http_timeout_seconds,
                    max_retries=settings.worker.http_max_retries,
                ) as fetcher,
            ):
                engine = ContainerExecutionEngine(
                    catalog=catalog,
                    notifications=notifications,
                    runtime=DockerRuntime(),
                    fetcher=fetcher,
                    contexts=BuildContextResolver(settings.containers.images_root),
                    workspaces=WorkspaceManager(settings.worker.workspace_root),
                    mount_path=settings.containers.mount_path,
                    shell=settings.containers.shell,
                )
                loop = QueueConsumerLoop(
                    queue=queue,
                    dispatcher=JobDispatcher(
                        engine=engine,
                        default_user_id=settings.worker.notify_user_id,
                    ),
                    ack_policy=settings.ack_policy,
                    wait_seconds=settings.queue.wait_seconds,
                    max_messages=settings.queue.max_messages,
                    max_consecutive_receive_errors=settings.queue.max_consecutive_receive_errors,
                )
                summary = (
                    loop.run_once()
                    if command.once
                    else loop.run_loop(
                        max_jobs=command.max_jobs,
                        max_idle_polls=command.max_idle_polls,
                    )
                )
        finally:
            notifications.close()

        return [
            "Worker summary: "
            f"processed={summary.processed} succeeded={summary.succeeded} "
            f"failed={summary.failed} skipped={summary.skipped} "
            f"idle_polls={summary.idle_polls} receive_errors={summary.receive_errors} "
            f"ack_errors={summary.ack_errors}",
        ]


@contextmanager
def open_queue(settings: Settings) -> Iterator[MessageQueue]:
    """Queue backend selected by ``CLOUDBOX_QUEUE_BACKEND``."""

    settings.validate_for_queue()
    queue_url = settings.queue.queue_url
    if settings.queue.backend == "sqs":
        if not queue_url:
            raise ValueError("CLOUDBOX_QUEUE_URL is required for the sqs queue backend.")
        yield SqsQueue(
            boto3.client("sqs", region_name=settings.queue.region),
            queue_url=queue_url,
            visibility_timeout_seconds=settings.queue.visibility_timeout_seconds,
        )
        return

    queue = SqliteQueue(
        settings.db_path,
        queue_name=settings.queue.queue_name,
        visibility_timeout_seconds=settings.queue.visibility_timeout_seconds,
    )
    queue.init_schema()
    try:
        yield queue
    finally:
        queue.close()

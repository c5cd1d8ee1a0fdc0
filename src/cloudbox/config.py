"""Runtime configuration for the container job worker."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from cloudbox.catalog.blobs import DEFAULT_URL_TEMPLATE
from cloudbox.worker.loop import AckPolicy

QUEUE_BACKENDS = ("sqlite", "sqs")
BLOB_BACKENDS = ("local", "s3")
MAX_SQS_BATCH = 10
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class QueueSettings:
    """Job queue settings."""

    backend: str = "sqlite"
    queue_url: str | None = None
    queue_name: str = "jobs"
    region: str = "eu-west-1"
    wait_seconds: int = 20
    max_messages: int = 1
    visibility_timeout_seconds: int = 300
    ack_policy: str = AckPolicy.ON_RECEIPT.value
    max_consecutive_receive_errors: int = 3


@dataclass(slots=True)
class BlobSettings:
    """Blob storage settings for catalog file content."""

    backend: str = "local"
    bucket: str = "ccstore"
    region: str = "eu-west-1"
    local_root: Path = Path(".cloudbox_blobs")
    url_template: str = DEFAULT_URL_TEMPLATE


@dataclass(slots=True)
class ContainerSettings:
    """Image build and container run settings."""

    images_root: Path = Path("images")
    mount_path: str = "/download"
    shell: str = "sh"


@dataclass(slots=True)
class WorkerSettings:
    """Per-job workspace, notification and fetch settings."""

    workspace_root: Path | None = None
    notify_user_id: str = "default_user"
    http_timeout_seconds: float = 30.0
    http_max_retries: int = 3


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".cloudbox.db")
    log_level: str = "INFO"
    queue: QueueSettings = field(default_factory=QueueSettings)
    blobs: BlobSettings = field(default_factory=BlobSettings)
    containers: ContainerSettings = field(default_factory=ContainerSettings)
    worker: WorkerSettings = field(default_factory=WorkerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        workspace_root = os.getenv("CLOUDBOX_WORKSPACE_ROOT", "").strip()
        return cls(
            db_path=db_path or Path(os.getenv("CLOUDBOX_DB_PATH", ".cloudbox.db")),
            log_level=os.getenv("CLOUDBOX_LOG_LEVEL", "INFO").strip().upper(),
            queue=QueueSettings(
                backend=os.getenv("CLOUDBOX_QUEUE_BACKEND", "sqlite").strip().lower(),
                queue_url=os.getenv("CLOUDBOX_QUEUE_URL", "").strip() or None,
                queue_name=os.getenv("CLOUDBOX_QUEUE_NAME", "jobs"),
                region=os.getenv("CLOUDBOX_QUEUE_REGION", "eu-west-1"),
                wait_seconds=int(os.getenv("CLOUDBOX_QUEUE_WAIT_SECONDS", "20")),
                max_messages=int(os.getenv("CLOUDBOX_QUEUE_MAX_MESSAGES", "1")),
                visibility_timeout_seconds=int(
                    os.getenv("CLOUDBOX_QUEUE_VISIBILITY_TIMEOUT_SECONDS", "300"),
                ),
                ack_policy=os.getenv(
                    "CLOUDBOX_QUEUE_ACK_POLICY",
                    AckPolicy.ON_RECEIPT.value,
                )
                .strip()
                .lower(),
                max_consecutive_receive_errors=int(
                    os.getenv("CLOUDBOX_QUEUE_MAX_RECEIVE_ERRORS", "3"),
                ),
            ),
            blobs=BlobSettings(
                backend=os.getenv("CLOUDBOX_BLOB_BACKEND", "local").strip().lower(),
                bucket=os.getenv("CLOUDBOX_BLOB_BUCKET", "ccstore"),
                region=os.getenv("CLOUDBOX_BLOB_REGION", "eu-west-1"),
                local_root=Path(os.getenv("CLOUDBOX_BLOB_LOCAL_ROOT", ".cloudbox_blobs")),
                url_template=os.getenv("CLOUDBOX_BLOB_URL_TEMPLATE", DEFAULT_URL_TEMPLATE),
            ),
            containers=ContainerSettings(
                images_root=Path(os.getenv("CLOUDBOX_IMAGES_ROOT", "images")),
                mount_path=os.getenv("CLOUDBOX_CONTAINER_MOUNT_PATH", "/download"),
                shell=os.getenv("CLOUDBOX_CONTAINER_SHELL", "sh"),
            ),
            worker=WorkerSettings(
                workspace_root=Path(workspace_root) if workspace_root else None,
                notify_user_id=os.getenv("CLOUDBOX_NOTIFY_USER_ID", "default_user"),
                http_timeout_seconds=float(
                    os.getenv("CLOUDBOX_HTTP_TIMEOUT_SECONDS", "30.0"),
                ),
                http_max_retries=int(os.getenv("CLOUDBOX_HTTP_MAX_RETRIES", "3")),
            ),
        )

    @property
    def ack_policy(self) -> AckPolicy:
        return AckPolicy(self.queue.ack_policy)

    def validate_for_worker(self) -> None:
        """Raise configuration error if the worker cannot start with these settings."""

        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"Invalid CLOUDBOX_LOG_LEVEL: {self.log_level!r}")
        self.validate_for_queue()
        if self.queue.wait_seconds <= 0:
            raise ValueError("CLOUDBOX_QUEUE_WAIT_SECONDS must be > 0.")
        if not 1 <= self.queue.max_messages <= MAX_SQS_BATCH:
            raise ValueError(
                f"CLOUDBOX_QUEUE_MAX_MESSAGES must be between 1 and {MAX_SQS_BATCH}.",
            )
        if self.queue.visibility_timeout_seconds <= 0:
            raise ValueError("CLOUDBOX_QUEUE_VISIBILITY_TIMEOUT_SECONDS must be > 0.")
        if self.queue.ack_policy not in {policy.value for policy in AckPolicy}:
            raise ValueError(
                f"Invalid CLOUDBOX_QUEUE_ACK_POLICY: {self.queue.ack_policy!r}. "
                f"Expected one of: {', '.join(policy.value for policy in AckPolicy)}.",
            )
        if self.queue.max_consecutive_receive_errors <= 0:
            raise ValueError("CLOUDBOX_QUEUE_MAX_RECEIVE_ERRORS must be > 0.")
        self.validate_for_blobs()
        if not self.containers.mount_path.startswith("/"):
            raise ValueError("CLOUDBOX_CONTAINER_MOUNT_PATH must be an absolute path.")
        if self.worker.http_timeout_seconds <= 0:
            raise ValueError("CLOUDBOX_HTTP_TIMEOUT_SECONDS must be > 0.")
        if self.worker.http_max_retries < 0:
            raise ValueError("CLOUDBOX_HTTP_MAX_RETRIES must be >= 0.")
        if not self.worker.notify_user_id.strip():
            raise ValueError("CLOUDBOX_NOTIFY_USER_ID must not be empty.")

    def validate_for_queue(self) -> None:
        if self.queue.backend not in QUEUE_BACKENDS:
            raise ValueError(
                f"Invalid CLOUDBOX_QUEUE_BACKEND: {self.queue.backend!r}. "
                f"Expected one of: {', '.join(QUEUE_BACKENDS)}.",
            )
        if self.queue.backend == "sqs" and not self.queue.queue_url:
            raise ValueError("CLOUDBOX_QUEUE_URL is required for the sqs queue backend.")

    def validate_for_blobs(self) -> None:
        if self.blobs.backend not in BLOB_BACKENDS:
            raise ValueError(
                f"Invalid CLOUDBOX_BLOB_BACKEND: {self.blobs.backend!r}. "
                f"Expected one of: {', '.join(BLOB_BACKENDS)}.",
            )
        if "{key}" not in self.blobs.url_template:
            raise ValueError("CLOUDBOX_BLOB_URL_TEMPLATE must contain a {key} placeholder.")
        if not self.blobs.bucket.strip():
            raise ValueError("CLOUDBOX_BLOB_BUCKET must not be empty.")

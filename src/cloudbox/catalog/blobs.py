"""Blob storage backends for catalog file content."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from cloudbox.catalog.errors import BlobStoreError

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"
DEFAULT_URL_TEMPLATE = "https://s3-{region}.amazonaws.com/{bucket}/{key}"


class BlobStore(Protocol):
    """Protocol implemented by blob storage backends."""

    bucket: str

    def put(self, key: str, stream: BinaryIO, *, acl: str = PUBLIC_READ_ACL) -> str:
        """Store ``stream`` under ``key`` and return the storage location."""

    def download_url(self, key: str) -> str:
        """Deterministic public URL for ``key``."""


class LocalBlobStore:
    """Bucket directory on local disk; ACLs are recorded only in logs."""

    def __init__(
        self,
        root_dir: Path,
        *,
        bucket: str,
        region: str = "local",
        url_template: str = DEFAULT_URL_TEMPLATE,
    ) -> None:
        self.root_dir = root_dir
        self.bucket = bucket
        self.region = region
        self.url_template = url_template

    def put(self, key: str, stream: BinaryIO, *, acl: str = PUBLIC_READ_ACL) -> str:
        target = self.path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                shutil.copyfileobj(stream, handle)
        except OSError as error:
            raise BlobStoreError(f"Failed to store blob {key!r}: {error}") from error
        logger.debug("Stored blob %s/%s acl=%s", self.bucket, key, acl)
        return str(target)

    def path_for(self, key: str) -> Path:
        if not key or "/" in key or key in {".", ".."}:
            raise BlobStoreError(f"Invalid blob key: {key!r}")
        return self.root_dir / self.bucket / key

    def download_url(self, key: str) -> str:
        return render_download_url(
            self.url_template,
            bucket=self.bucket,
            region=self.region,
            key=key,
        )


class S3BlobStore:
    """S3 bucket accessed through a boto3 client."""

    def __init__(
        self,
        client,
        *,
        bucket: str,
        region: str,
        url_template: str = DEFAULT_URL_TEMPLATE,
    ) -> None:
        self.client = client
        self.bucket = bucket
        self.region = region
        self.url_template = url_template

    def put(self, key: str, stream: BinaryIO, *, acl: str = PUBLIC_READ_ACL) -> str:
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=stream, ACL=acl)
        except (BotoCoreError, ClientError) as error:
            raise BlobStoreError(f"Failed to upload s3://{self.bucket}/{key}: {error}") from error
        return f"s3://{self.bucket}/{key}"

    def download_url(self, key: str) -> str:
        return render_download_url(
            self.url_template,
            bucket=self.bucket,
            region=self.region,
            key=key,
        )


def render_download_url(template: str, *, bucket: str, region: str, key: str) -> str:
    return template.format(bucket=bucket, region=region, key=key)

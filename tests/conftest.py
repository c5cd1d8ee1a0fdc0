"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

import pytest

from cloudbox.catalog.blobs import DEFAULT_URL_TEMPLATE, PUBLIC_READ_ACL, render_download_url
from cloudbox.catalog.errors import BlobStoreError
from cloudbox.catalog.repository import EntryRepository
from cloudbox.catalog.service import ArtifactCatalog
from cloudbox.engine.executor import ContainerExecutionEngine
from cloudbox.engine.workspace import WorkspaceManager
from cloudbox.http.fetcher import FetchError
from cloudbox.notifications.log import NotificationLog
from cloudbox.runtime.docker_runtime import BuildContextResolver

RunHook = Callable[[Path], None]


@dataclass
class FakeBlobStore:
    """In-memory blob store; ``fail_all`` makes every put fail."""

    bucket: str = "ccstore"
    region: str = "eu-west-1"
    objects: dict[str, bytes] = field(default_factory=dict)
    acls: dict[str, str] = field(default_factory=dict)
    fail_all: bool = False

    def put(self, key: str, stream: BinaryIO, *, acl: str = PUBLIC_READ_ACL) -> str:
        if self.fail_all:
            raise BlobStoreError(f"Injected failure storing {key}")
        self.objects[key] = stream.read()
        self.acls[key] = acl
        return f"memory://{self.bucket}/{key}"

    def download_url(self, key: str) -> str:
        return render_download_url(
            DEFAULT_URL_TEMPLATE,
            bucket=self.bucket,
            region=self.region,
            key=key,
        )


@dataclass
class FakeFetcher:
    """Serves registered URLs from memory."""

    payloads: dict[str, bytes] = field(default_factory=dict)
    requested: list[str] = field(default_factory=list)

    def download(self, url: str, destination: Path) -> int:
        self.requested.append(url)
        if url not in self.payloads:
            raise FetchError(f"HTTP 404 fetching {url}", url=url, status_code=404)
        destination.write_bytes(self.payloads[url])
        return len(self.payloads[url])


@dataclass
class FakeRuntime:
    """Records builds and runs; ``on_run`` writes container outputs into the workspace."""

    build_exit_code: int = 0
    run_exit_code: int = 0
    on_run: RunHook | None = None
    builds: list[tuple[str, Path]] = field(default_factory=list)
    runs: list[tuple[str, list[str], Path, str]] = field(default_factory=list)
    workspace_listing: list[str] = field(default_factory=list)

    def build(self, image: str, context_dir: Path) -> int:
        self.builds.append((image, context_dir))
        return self.build_exit_code

    def run(self, image: str, command: list[str], *, workspace: Path, mount_path: str) -> int:
        self.runs.append((image, command, workspace, mount_path))
        self.workspace_listing = sorted(path.name for path in workspace.iterdir())
        if self.on_run is not None:
            self.on_run(workspace)
        return self.run_exit_code


@dataclass
class EngineHarness:
    engine: ContainerExecutionEngine
    catalog: ArtifactCatalog
    notifications: NotificationLog
    blobs: FakeBlobStore
    fetcher: FakeFetcher
    runtime: FakeRuntime
    workspace_root: Path

    def seed_input(self, content: bytes = b"input-bytes") -> tuple[str, str]:
        """Create an input file served by the fake fetcher and an output folder."""

        folder = self.catalog.save_folder(self.catalog.create_folder(None, "outputs"))
        source = self.catalog.create_file(None, "input.bin")
        source.filesize = len(content)
        source.download_url = f"https://blobs.example.com/{source.entry_id}"
        self.catalog.save_file(source)
        self.fetcher.payloads[source.download_url] = content
        return str(source.entry_id), str(folder.entry_id)


@pytest.fixture()
def catalog(tmp_path: Path) -> Iterator[ArtifactCatalog]:
    repository = EntryRepository(tmp_path / "catalog.db")
    repository.init_schema()
    try:
        yield ArtifactCatalog(repository=repository, blobs=FakeBlobStore())
    finally:
        repository.close()


@pytest.fixture()
def harness(tmp_path: Path) -> Iterator[EngineHarness]:
    db_path = tmp_path / "engine.db"
    repository = EntryRepository(db_path)
    repository.init_schema()
    notifications = NotificationLog(db_path)
    images_root = tmp_path / "images"
    (images_root / "tools").mkdir(parents=True)
    workspace_root = tmp_path / "workspaces"

    blobs = FakeBlobStore()
    fetcher = FakeFetcher()
    runtime = FakeRuntime()
    catalog = ArtifactCatalog(repository=repository, blobs=blobs)
    engine = ContainerExecutionEngine(
        catalog=catalog,
        notifications=notifications,
        runtime=runtime,
        fetcher=fetcher,
        contexts=BuildContextResolver(images_root),
        workspaces=WorkspaceManager(workspace_root),
    )
    try:
        yield EngineHarness(
            engine=engine,
            catalog=catalog,
            notifications=notifications,
            blobs=blobs,
            fetcher=fetcher,
            runtime=runtime,
            workspace_root=workspace_root,
        )
    finally:
        notifications.close()
        repository.close()


"""Docker-backed image build and ephemeral container run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

import docker
from docker.errors import APIError, BuildError, ContainerError, DockerException, ImageNotFound

logger = logging.getLogger(__name__)

OUTPUT_PREVIEW_CHARS = 2_000


class ContainerRuntimeError(RuntimeError):
    """Container daemon or image operation failed."""


class ImageBuildError(ContainerRuntimeError):
    """Image could not be built from its context."""


class ContainerRunError(ContainerRuntimeError):
    """Container could not be started or exited non-zero."""

    def __init__(self, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class ContainerRuntime(Protocol):
    """Protocol implemented by container backends."""

    def build(self, image: str, context_dir: Path) -> int:
        """Build ``image`` from ``context_dir`` and return the exit code."""

    def run(self, image: str, command: list[str], *, workspace: Path, mount_path: str) -> int:
        """Run ``command`` in a throwaway container and return its exit code."""


class BuildContextResolver:
    """Maps an image name to a build directory under ``root_dir``."""

    def __init__(self, root_dir: Path) -> None:
        self.root_dir = root_dir

    def resolve(self, image: str) -> Path:
        name = image.split(":", 1)[0].strip()
        if not name:
            raise ImageBuildError(f"Invalid image name: {image!r}")
        root = self.root_dir.resolve()
        context_dir = (root / name).resolve()
        if context_dir != root and root not in context_dir.parents:
            raise ImageBuildError(f"Build context for {image!r} escapes {root}")
        if not context_dir.is_dir():
            raise ImageBuildError(f"No build context for image {image!r} at {context_dir}")
        return context_dir


class DockerRuntime:
    """Build and run through the Docker Engine API."""

    def __init__(self, client=None) -> None:
        self._client = client

    @property
    def client(self):
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as error:
                raise ContainerRuntimeError(f"Docker is not available: {error}") from error
        return self._client

    def build(self, image: str, context_dir: Path) -> int:
        logger.info("Building image %s from %s", image, context_dir)
        try:
            _, build_log = self.client.images.build(path=str(context_dir), tag=image, rm=True)
        except BuildError as error:
            logger.error("Image build failed for %s: %s", image, error.msg)
            _log_build_output(image, error.build_log)
            return 1
        except APIError as error:
            raise ImageBuildError(f"Docker API error building {image}: {error}") from error
        _log_build_output(image, build_log)
        return 0

    def run(self, image: str, command: list[str], *, workspace: Path, mount_path: str) -> int:
        logger.info("Running %s in %s with %s mounted at %s", command, image, workspace, mount_path)
        try:
            output = self.client.containers.run(
                image,
                command,
                volumes={str(workspace): {"bind": mount_path, "mode": "rw"}},
                remove=True,
                stdout=True,
                stderr=True,
            )
        except ContainerError as error:
            stderr = _decode(error.stderr)
            logger.warning(
                "Container %s exited with %s: %s",
                image,
                error.exit_status,
                stderr[-OUTPUT_PREVIEW_CHARS:],
            )
            return int(error.exit_status)
        except ImageNotFound as error:
            raise ContainerRunError(f"Image not found: {image}") from error
        except APIError as error:
            raise ContainerRunError(f"Docker API error running {image}: {error}") from error
        logger.debug("Container output (%s): %s", image, _decode(output)[-OUTPUT_PREVIEW_CHARS:])
        return 0


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _log_build_output(image: str, build_log) -> None:
    for chunk in build_log or ():
        if not isinstance(chunk, dict):
            continue
        line = chunk.get("stream") or chunk.get("error") or ""
        if line.strip():
            logger.debug("[build %s] %s", image, line.rstrip())

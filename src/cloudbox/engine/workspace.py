"""Ephemeral job workspaces and output discovery."""

from __future__ import annotations

import logging
import mimetypes
import os
import shutil
import stat
import tempfile
from pathlib import Path

from cloudbox.catalog.models import DEFAULT_MIME_TYPE, FileDescriptor

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "cloudbox-job-"


class WorkspaceManager:
    """Allocates uniquely named empty directories and removes them recursively."""

    def __init__(self, root_dir: Path | None = None) -> None:
        self.root_dir = root_dir

    def allocate(self) -> Path:
        if self.root_dir is not None:
            self.root_dir.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=self.root_dir))
        logger.debug("Allocated workspace %s", path)
        return path

    def teardown(self, path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
        except OSError as error:
            logger.warning("Failed to remove workspace %s: %s", path, error)
            return
        logger.debug("Removed workspace %s", path)


def discover_outputs(workspace: Path, *, input_name: str) -> list[FileDescriptor]:
    """Collect regular, non-empty files produced in ``workspace``.

    The downloaded input (named ``input_name``) is never returned. Walk and
    stat errors are logged and the walk continues with the remaining entries.
    """

    outputs: list[FileDescriptor] = []

    def _on_walk_error(error: OSError) -> None:
        logger.warning("Skipping unreadable workspace path %s: %s", error.filename, error)

    for dirpath, dirnames, filenames in os.walk(workspace, onerror=_on_walk_error):
        dirnames.sort()
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            try:
                info = path.lstat()
            except OSError as error:
                logger.warning("Skipping unreadable output %s: %s", path, error)
                continue
            if not stat.S_ISREG(info.st_mode):
                continue
            if filename == input_name or info.st_size == 0:
                continue
            outputs.append(
                FileDescriptor(
                    name=filename,
                    size=info.st_size,
                    content_type=guess_content_type(filename),
                    path=path,
                ),
            )
    return outputs


def guess_content_type(filename: str) -> str:
    content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type or DEFAULT_MIME_TYPE

"""Job execution request and outcome models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cloudbox.catalog.models import File


class JobStage(str, Enum):
    """Pipeline stages, in execution order."""

    WORKSPACE = "workspace"
    NOTIFY_START = "notify_start"
    FETCH_INPUT = "fetch_input"
    BUILD = "build"
    RUN = "run"
    HARVEST = "harvest"
    NOTIFY_FINISH = "notify_finish"


@dataclass(slots=True, frozen=True)
class JobRequest:
    """Validated job handed to the execution engine."""

    image: str
    cmd: str
    src: str
    dst: str
    user_id: str


@dataclass(slots=True)
class JobOutcome:
    """Settled result of one job; ``stage`` names the failing stage."""

    ok: bool
    workspace: Path | None = None
    stage: JobStage | None = None
    error_summary: str | None = None
    exit_code: int | None = None
    uploaded: list[File] = field(default_factory=list)


class StageFailure(Exception):
    """Raised inside the engine to stop the pipeline at ``stage``."""

    def __init__(self, stage: JobStage, message: str, *, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.stage = stage
        self.exit_code = exit_code

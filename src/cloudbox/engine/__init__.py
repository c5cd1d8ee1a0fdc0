"""Per-job container execution: workspace, fetch, build, run, harvest."""

from cloudbox.engine.executor import ContainerExecutionEngine
from cloudbox.engine.models import JobOutcome, JobRequest, JobStage

__all__ = ["ContainerExecutionEngine", "JobOutcome", "JobRequest", "JobStage"]

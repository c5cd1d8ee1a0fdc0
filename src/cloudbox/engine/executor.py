"""Runs one job in a disposable container and files its outputs in the catalog."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from cloudbox.catalog.errors import CatalogError, EntryNotFoundError
from cloudbox.catalog.models import File
from cloudbox.catalog.service import ArtifactCatalog
from cloudbox.engine.models import JobOutcome, JobRequest, JobStage, StageFailure
from cloudbox.engine.workspace import WorkspaceManager, discover_outputs
from cloudbox.http.fetcher import FetchError, HttpFetcher
from cloudbox.notifications.log import NotificationLog
from cloudbox.runtime.docker_runtime import (
    BuildContextResolver,
    ContainerRuntime,
    ContainerRuntimeError,
)

logger = logging.getLogger(__name__)

DEFAULT_MOUNT_PATH = "/download"
DEFAULT_SHELL = "sh"

_NOTIFY_STAGES = frozenset({JobStage.NOTIFY_START, JobStage.NOTIFY_FINISH})


class ContainerExecutionEngine:
    """Sequential stage pipeline for a single job.

    Stages: workspace -> start notification -> input fetch -> image build ->
    container run -> output harvest -> workspace teardown -> finish
    notification. Known stage errors end the job with a failed
    ``JobOutcome`` and a failure notification naming the stage; the
    workspace is removed whatever the outcome.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        catalog: ArtifactCatalog,
        notifications: NotificationLog,
        runtime: ContainerRuntime,
        fetcher: HttpFetcher,
        contexts: BuildContextResolver,
        workspaces: WorkspaceManager,
        mount_path: str = DEFAULT_MOUNT_PATH,
        shell: str = DEFAULT_SHELL,
    ) -> None:
        self.catalog = catalog
        self.notifications = notifications
        self.runtime = runtime
        self.fetcher = fetcher
        self.contexts = contexts
        self.workspaces = workspaces
        self.mount_path = mount_path
        self.shell = shell

    def execute(self, job: JobRequest) -> JobOutcome:
        try:
            workspace = self.workspaces.allocate()
        except OSError as error:
            return self._failed(job, StageFailure(JobStage.WORKSPACE, str(error)), workspace=None)

        uploaded: list[File] = []
        try:
            self._notify(job, JobStage.NOTIFY_START, f"Running `{job.cmd}` in image {job.image}")
            input_file = self._fetch_input(job, workspace)
            self._build_image(job)
            self._run_container(job, workspace)
            uploaded = self._harvest(job, workspace, input_name=str(input_file.entry_id))
        except StageFailure as failure:
            return self._failed(job, failure, workspace=workspace)
        finally:
            self.workspaces.teardown(workspace)

        try:
            self._notify(
                job,
                JobStage.NOTIFY_FINISH,
                f"Finished `{job.cmd}` in image {job.image}: {len(uploaded)} output file(s)",
            )
        except StageFailure as failure:
            return self._failed(job, failure, workspace=workspace)

        logger.info(
            "Job %s `%s` finished: %d output file(s) filed under %s",
            job.image,
            job.cmd,
            len(uploaded),
            job.dst,
        )
        return JobOutcome(ok=True, workspace=workspace, exit_code=0, uploaded=uploaded)

    def _notify(self, job: JobRequest, stage: JobStage, message: str) -> None:
        try:
            self.notifications.notify(job.user_id, message)
        except SQLAlchemyError as error:
            raise StageFailure(stage, f"Notification store error: {error}") from error

    def _fetch_input(self, job: JobRequest, workspace: Path) -> File:
        try:
            source = self.catalog.get_file(job.src)
            if source is None:
                raise EntryNotFoundError(job.src, "file")
            self.fetcher.download(source.download_url, workspace / str(source.entry_id))
        except (CatalogError, FetchError, SQLAlchemyError, OSError) as error:
            raise StageFailure(JobStage.FETCH_INPUT, str(error)) from error
        return source

    def _build_image(self, job: JobRequest) -> None:
        try:
            context_dir = self.contexts.resolve(job.image)
            exit_code = self.runtime.build(job.image, context_dir)
        except ContainerRuntimeError as error:
            raise StageFailure(JobStage.BUILD, str(error)) from error
        if exit_code != 0:
            raise StageFailure(
                JobStage.BUILD,
                f"Image build for {job.image} exited with {exit_code}",
                exit_code=exit_code,
            )

    def _run_container(self, job: JobRequest, workspace: Path) -> None:
        command = [self.shell, "-c", job.cmd]
        try:
            exit_code = self.runtime.run(
                job.image,
                command,
                workspace=workspace,
                mount_path=self.mount_path,
            )
        except ContainerRuntimeError as error:
            raise StageFailure(
                JobStage.RUN,
                str(error),
                exit_code=getattr(error, "exit_code", None),
            ) from error
        if exit_code != 0:
            raise StageFailure(
                JobStage.RUN,
                f"Container {job.image} running {shlex.join(command)} exited with {exit_code}",
                exit_code=exit_code,
            )

    def _harvest(self, job: JobRequest, workspace: Path, *, input_name: str) -> list[File]:
        uploaded: list[File] = []
        for descriptor in discover_outputs(workspace, input_name=input_name):
            try:
                uploaded.append(self.catalog.upload(job.dst, descriptor))
            except (CatalogError, SQLAlchemyError, OSError) as error:
                raise StageFailure(
                    JobStage.HARVEST,
                    f"Upload of {descriptor.name} failed: {error}",
                ) from error
        return uploaded

    def _failed(
        self,
        job: JobRequest,
        failure: StageFailure,
        *,
        workspace: Path | None,
    ) -> JobOutcome:
        logger.error(
            "Job %s `%s` failed at %s: %s",
            job.image,
            job.cmd,
            failure.stage.value,
            failure,
        )
        if failure.stage not in _NOTIFY_STAGES:
            try:
                self.notifications.notify(
                    job.user_id,
                    f"Failed `{job.cmd}` in image {job.image} at {failure.stage.value}: {failure}",
                )
            except SQLAlchemyError:
                logger.exception("Could not record failure notification for %s", job.user_id)
        return JobOutcome(
            ok=False,
            workspace=workspace,
            stage=failure.stage,
            error_summary=str(failure),
            exit_code=failure.exit_code,
        )

"""Container build/run backends."""

from cloudbox.runtime.docker_runtime import (
    BuildContextResolver,
    ContainerRunError,
    ContainerRuntime,
    ContainerRuntimeError,
    DockerRuntime,
    ImageBuildError,
)

__all__ = [
    "BuildContextResolver",
    "ContainerRunError",
    "ContainerRuntime",
    "ContainerRuntimeError",
    "DockerRuntime",
    "ImageBuildError",
]

"""Decode queue payloads into jobs and hand them to the execution engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cloudbox.engine.executor import ContainerExecutionEngine
from cloudbox.engine.models import JobOutcome, JobRequest

logger = logging.getLogger(__name__)

JOB_MESSAGE_TYPE = "job"
REQUIRED_FIELDS = ("image", "cmd", "src", "dst")
PAYLOAD_PREVIEW_CHARS = 200


class InvalidJobError(ValueError):
    """Payload is not a well-formed job descriptor."""


class DispatchStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class JobDescriptor:
    """Decoded ``{"type": "job", ...}`` message body."""

    image: str
    cmd: str
    src: str
    dst: str
    user: str | None = None

    def to_payload(self) -> str:
        payload: dict[str, str] = {
            "type": JOB_MESSAGE_TYPE,
            "image": self.image,
            "cmd": self.cmd,
            "src": self.src,
            "dst": self.dst,
        }
        if self.user:
            payload["user"] = self.user
        return json.dumps(payload, ensure_ascii=False)


@dataclass(slots=True)
class DispatchResult:
    status: DispatchStatus
    descriptor: JobDescriptor | None = None
    outcome: JobOutcome | None = None
    reason: str | None = None


def parse_job(payload: bytes | str) -> JobDescriptor:
    """Decode and validate a job descriptor, raising ``InvalidJobError``."""

    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        document: Any = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise InvalidJobError(f"Payload is not UTF-8 JSON: {error}") from error
    except RecursionError as error:
        raise InvalidJobError("Payload nests too deeply to decode.") from error
    if not isinstance(document, dict):
        raise InvalidJobError("Payload must be a JSON object.")
    if document.get("type") != JOB_MESSAGE_TYPE:
        raise InvalidJobError(f"Unsupported message type: {document.get('type')!r}")

    values: dict[str, str] = {}
    for name in REQUIRED_FIELDS:
        value = document.get(name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidJobError(f"Field {name!r} must be a non-empty string.")
        values[name] = value
    user = document.get("user")
    if user is not None and (not isinstance(user, str) or not user.strip()):
        raise InvalidJobError("Field 'user' must be a non-empty string when present.")
    return JobDescriptor(user=user, **values)


class JobDispatcher:
    """Skips malformed payloads; runs valid jobs to completion."""

    def __init__(self, *, engine: ContainerExecutionEngine, default_user_id: str) -> None:
        self.engine = engine
        self.default_user_id = default_user_id

    def dispatch(self, payload: bytes | str) -> DispatchResult:
        try:
            descriptor = parse_job(payload)
        except InvalidJobError as error:
            logger.warning(
                "Skipping malformed job message (%s): %r",
                error,
                _preview(payload),
            )
            return DispatchResult(status=DispatchStatus.SKIPPED, reason=str(error))

        logger.info(
            "Dispatching job image=%s cmd=%r src=%s dst=%s",
            descriptor.image,
            descriptor.cmd,
            descriptor.src,
            descriptor.dst,
        )
        outcome = self.engine.execute(
            JobRequest(
                image=descriptor.image,
                cmd=descriptor.cmd,
                src=descriptor.src,
                dst=descriptor.dst,
                user_id=descriptor.user or self.default_user_id,
            ),
        )
        return DispatchResult(
            status=DispatchStatus.SUCCEEDED if outcome.ok else DispatchStatus.FAILED,
            descriptor=descriptor,
            outcome=outcome,
            reason=outcome.error_summary,
        )


def _preview(payload: bytes | str) -> bytes | str:
    return payload[:PAYLOAD_PREVIEW_CHARS]

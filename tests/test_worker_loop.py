from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from cloudbox.engine.models import JobOutcome, JobRequest, JobStage
from cloudbox.queue.base import QueueError, QueueMessage
from cloudbox.queue.sqlite_queue import SqliteQueue
from cloudbox.worker.dispatcher import JobDispatcher
from cloudbox.worker.loop import AckPolicy, QueueConsumerLoop

pytestmark = [
    allure.epic("Worker"),
    allure.feature("Queue Consumer Loop"),
]

JOB = json.dumps({"type": "job", "image": "tools", "cmd": "ls", "src": "f-1", "dst": "d-1"})


class ScriptedQueue:
    """Replays receive results; each item is a list of bodies or an exception."""

    def __init__(self, script: list, *, fail_delete: bool = False) -> None:
        self.script = list(script)
        self.fail_delete = fail_delete
        self.events: list[str] = []
        self.receive_calls: list[tuple[int, int]] = []

    def receive(self, *, max_messages: int = 1, wait_seconds: int = 20) -> list[QueueMessage]:
        self.receive_calls.append((max_messages, wait_seconds))
        self.events.append("receive")
        if not self.script:
            return []
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return [
            QueueMessage(message_id=f"m-{index}", receipt_handle=f"rh-{index}", body=body)
            for index, body in enumerate(item)
        ]

    def delete(self, receipt_handle: str) -> None:
        self.events.append(f"delete:{receipt_handle}")
        if self.fail_delete:
            raise QueueError("delete refused")

    def send(self, body: str) -> str:
        raise NotImplementedError


class RecordingEngine:
    def __init__(self, queue: ScriptedQueue, outcomes: list[JobOutcome] | None = None) -> None:
        self.queue = queue
        self.outcomes = list(outcomes or [])
        self.jobs: list[JobRequest] = []

    def execute(self, job: JobRequest) -> JobOutcome:
        self.queue.events.append("execute")
        self.jobs.append(job)
        if self.outcomes:
            return self.outcomes.pop(0)
        return JobOutcome(ok=True)


def _loop(queue, engine, **kwargs) -> QueueConsumerLoop:
    return QueueConsumerLoop(
        queue=queue,
        dispatcher=JobDispatcher(engine=engine, default_user_id="default_user"),
        **kwargs,
    )


def test_on_receipt_acknowledges_before_dispatch() -> None:
    queue = ScriptedQueue([[JOB]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_once()

    assert queue.events == ["receive", "delete:rh-0", "execute"]
    assert queue.receive_calls == [(1, 20)]
    assert (summary.processed, summary.succeeded, summary.failed) == (1, 1, 0)


def test_on_receipt_ack_failure_skips_dispatch() -> None:
    queue = ScriptedQueue([[JOB]], fail_delete=True)
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_once()

    assert engine.jobs == []
    assert summary.ack_errors == 1
    assert summary.processed == 0


def test_after_settle_acknowledges_only_successful_jobs() -> None:
    queue = ScriptedQueue([[JOB], [JOB]])
    engine = RecordingEngine(
        queue,
        [
            JobOutcome(ok=True),
            JobOutcome(ok=False, stage=JobStage.RUN, error_summary="exit 1"),
        ],
    )
    loop = _loop(queue, engine, ack_policy=AckPolicy.AFTER_SETTLE)

    first = loop.run_once()
    second = loop.run_once()

    assert queue.events == ["receive", "execute", "delete:rh-0", "receive", "execute"]
    assert first.succeeded == 1
    assert second.failed == 1


def test_after_settle_acknowledges_malformed_messages() -> None:
    queue = ScriptedQueue([[json.dumps({"type": "ping"})]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine, ack_policy=AckPolicy.AFTER_SETTLE).run_once()

    assert queue.events == ["receive", "delete:rh-0"]
    assert summary.skipped == 1


def test_malformed_message_is_skipped_and_loop_receives_again() -> None:
    queue = ScriptedQueue([["\xff not json"], [JOB]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_loop(max_jobs=1)

    assert summary.skipped == 1
    assert summary.processed == 1
    assert queue.events.count("receive") == 2
    assert len(engine.jobs) == 1


def test_deeply_nested_message_is_skipped_and_acknowledged() -> None:
    queue = ScriptedQueue([["[" * 100_000], [JOB]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine, ack_policy=AckPolicy.AFTER_SETTLE).run_loop(max_jobs=1)

    assert summary.skipped == 1
    assert summary.processed == 1
    assert queue.events[:2] == ["receive", "delete:rh-0"]
    assert len(engine.jobs) == 1


def test_empty_receive_is_idle_and_repolled_immediately() -> None:
    queue = ScriptedQueue([[], [], [JOB]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_loop(max_jobs=1)

    assert summary.idle_polls == 2
    assert summary.processed == 1
    assert queue.events.count("receive") == 3


def test_loop_stops_after_max_idle_polls() -> None:
    queue = ScriptedQueue([])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_loop(max_idle_polls=3)

    assert summary.idle_polls == 3
    assert summary.processed == 0


def test_failed_job_does_not_stop_the_loop() -> None:
    queue = ScriptedQueue([[JOB], [JOB]])
    engine = RecordingEngine(
        queue,
        [JobOutcome(ok=False, stage=JobStage.BUILD, error_summary="boom"), JobOutcome(ok=True)],
    )

    summary = _loop(queue, engine).run_loop(max_jobs=2)

    assert (summary.processed, summary.succeeded, summary.failed) == (2, 1, 1)


def test_receive_error_is_counted_then_recovered() -> None:
    queue = ScriptedQueue([QueueError("throttled"), [JOB]])
    engine = RecordingEngine(queue)

    summary = _loop(queue, engine).run_loop(max_jobs=1)

    assert summary.receive_errors == 1
    assert summary.processed == 1


def test_consecutive_receive_errors_become_fatal() -> None:
    queue = ScriptedQueue([QueueError("down")] * 3)
    engine = RecordingEngine(queue)

    with pytest.raises(QueueError, match="3 times"):
        _loop(queue, engine, max_consecutive_receive_errors=3).run_loop()
    assert engine.jobs == []


def test_request_stop_ends_loop_before_next_receive() -> None:
    queue = ScriptedQueue([[JOB], [JOB]])
    engine = RecordingEngine(queue)
    loop = _loop(queue, engine)
    original_execute = engine.execute

    def _execute_then_stop(job: JobRequest) -> JobOutcome:
        loop.request_stop(signal_name="SIGTERM")
        return original_execute(job)

    engine.execute = _execute_then_stop

    summary = loop.run_loop()

    assert summary.processed == 1
    assert queue.events.count("receive") == 1


def test_on_receipt_message_is_gone_even_when_job_fails(tmp_path: Path) -> None:
    queue = SqliteQueue(tmp_path / "queue.db", visibility_timeout_seconds=0)
    queue.init_schema()
    queue.send(JOB)

    class FailingEngine:
        def execute(self, job: JobRequest) -> JobOutcome:
            return JobOutcome(ok=False, stage=JobStage.RUN, error_summary="exit 1")

    loop = QueueConsumerLoop(
        queue=queue,
        dispatcher=JobDispatcher(engine=FailingEngine(), default_user_id="u"),
        wait_seconds=1,
    )

    summary = loop.run_once()

    assert summary.failed == 1
    assert queue.pending_count() == 0
    queue.close()


def test_after_settle_failed_message_is_redelivered(tmp_path: Path) -> None:
    queue = SqliteQueue(tmp_path / "queue.db", visibility_timeout_seconds=0)
    queue.init_schema()
    queue.send(JOB)

    class FailingEngine:
        def execute(self, job: JobRequest) -> JobOutcome:
            return JobOutcome(ok=False, stage=JobStage.RUN, error_summary="exit 1")

    loop = QueueConsumerLoop(
        queue=queue,
        dispatcher=JobDispatcher(engine=FailingEngine(), default_user_id="u"),
        ack_policy=AckPolicy.AFTER_SETTLE,
        wait_seconds=1,
    )

    loop.run_once()

    [redelivered] = queue.receive(wait_seconds=0)
    assert redelivered.receive_count == 2
    queue.close()

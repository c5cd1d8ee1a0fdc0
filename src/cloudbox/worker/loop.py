"""Blocking receive loop that feeds the job dispatcher one message at a time."""

from __future__ import annotations

import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

from cloudbox.queue.base import MessageQueue, QueueError, QueueMessage
from cloudbox.worker.dispatcher import DispatchResult, DispatchStatus, JobDispatcher

logger = logging.getLogger(__name__)


class AckPolicy(str, Enum):
    """When a received message is deleted from the queue.

    ``on_receipt``: before dispatch. A message is never redelivered once taken,
    so a crash mid-job loses it (at-most-once).
    ``after_settle``: after the job succeeds or is skipped as malformed. Failed
    jobs stay on the queue and come back after the visibility window.
    """

    ON_RECEIPT = "on_receipt"
    AFTER_SETTLE = "after_settle"


@dataclass(slots=True)
class WorkerRunSummary:
    """Aggregate worker counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    idle_polls: int = 0
    receive_errors: int = 0
    ack_errors: int = 0

    def add(self, other: WorkerRunSummary) -> None:
        self.processed += other.processed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.skipped += other.skipped
        self.idle_polls += other.idle_polls
        self.receive_errors += other.receive_errors
        self.ack_errors += other.ack_errors


class QueueConsumerLoop:
    """Single-flight consumer: the next receive starts only after a job settles."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: MessageQueue,
        dispatcher: JobDispatcher,
        ack_policy: AckPolicy = AckPolicy.ON_RECEIPT,
        wait_seconds: int = 20,
        max_messages: int = 1,
        max_consecutive_receive_errors: int = 3,
    ) -> None:
        self.queue = queue
        self.dispatcher = dispatcher
        self.ack_policy = ack_policy
        self.wait_seconds = wait_seconds
        self.max_messages = max_messages
        self.max_consecutive_receive_errors = max_consecutive_receive_errors
        self._stop_requested = False
        self._stop_signal_name: str | None = None

    def run_once(self) -> WorkerRunSummary:
        """Receive at most one batch and settle every message in it."""

        summary = WorkerRunSummary()
        try:
            messages = self.queue.receive(
                max_messages=self.max_messages,
                wait_seconds=self.wait_seconds,
            )
        except QueueError:
            logger.exception("Queue receive failed")
            summary.receive_errors = 1
            return summary

        if not messages:
            summary.idle_polls = 1
            return summary

        for message in messages:
            summary.add(self._handle_message(message))
        return summary

    def run_loop(
        self,
        *,
        max_jobs: int | None = None,
        max_idle_polls: int | None = None,
    ) -> WorkerRunSummary:
        """Poll until stopped, ``max_jobs`` processed, or ``max_idle_polls`` empty receives.

        Empty receives are re-issued immediately; the long-poll wait is the
        only pause. Consecutive receive errors beyond the configured limit
        are raised as ``QueueError``.
        """

        aggregate = WorkerRunSummary()
        consecutive_idle = 0
        consecutive_errors = 0
        with self._signal_handlers():
            while True:
                if self._stop_requested:
                    logger.info("Worker stopping on %s", self._stop_signal_name)
                    return aggregate
                if max_jobs is not None and aggregate.processed >= max_jobs:
                    return aggregate

                summary = self.run_once()
                aggregate.add(summary)

                if summary.receive_errors:
                    consecutive_errors += 1
                    if consecutive_errors >= self.max_consecutive_receive_errors:
                        raise QueueError(
                            f"Queue receive failed {consecutive_errors} times in a row.",
                        )
                    continue
                consecutive_errors = 0

                if summary.processed == 0 and summary.skipped == 0:
                    consecutive_idle += 1
                    if max_idle_polls is not None and consecutive_idle >= max_idle_polls:
                        return aggregate
                    continue
                consecutive_idle = 0

    def request_stop(self, *, signal_name: str = "request") -> None:
        self._stop_requested = True
        self._stop_signal_name = signal_name

    def _handle_message(self, message: QueueMessage) -> WorkerRunSummary:
        summary = WorkerRunSummary()
        if self.ack_policy is AckPolicy.ON_RECEIPT and not self._ack(message, summary):
            return summary

        result = self.dispatcher.dispatch(message.body)
        _count(result, summary)

        if self.ack_policy is AckPolicy.AFTER_SETTLE:
            if result.status is DispatchStatus.FAILED:
                logger.warning(
                    "Leaving message %s on the queue for redelivery (receive #%d)",
                    message.message_id,
                    message.receive_count,
                )
            else:
                self._ack(message, summary)
        return summary

    def _ack(self, message: QueueMessage, summary: WorkerRunSummary) -> bool:
        try:
            self.queue.delete(message.receipt_handle)
        except QueueError:
            logger.exception("Failed to acknowledge message %s", message.message_id)
            summary.ack_errors += 1
            return False
        logger.debug("Acknowledged message %s", message.message_id)
        return True

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        installed = False
        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
            installed = True
        except ValueError:
            # Signal handlers can only be installed in main thread.
            pass
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)


def _count(result: DispatchResult, summary: WorkerRunSummary) -> None:
    if result.status is DispatchStatus.SKIPPED:
        summary.skipped += 1
        return
    summary.processed += 1
    if result.status is DispatchStatus.SUCCEEDED:
        summary.succeeded += 1
    else:
        summary.failed += 1

"""Queue consumption: message decoding, dispatch and the receive loop."""

from cloudbox.worker.dispatcher import DispatchResult, DispatchStatus, JobDescriptor, JobDispatcher
from cloudbox.worker.loop import AckPolicy, QueueConsumerLoop, WorkerRunSummary

__all__ = [
    "AckPolicy",
    "DispatchResult",
    "DispatchStatus",
    "JobDescriptor",
    "JobDispatcher",
    "QueueConsumerLoop",
    "WorkerRunSummary",
]

# Workers package - generation tracking (poll loop, state machine, sessions)

from storystudio.workers.base import (
    GenerationError,
    TransportError,
    JobStoreError,
    RemoteFailureError,
    GenerationTimeoutError,
    GenerationInProgressError,
    InvalidTransitionError,
)

__all__ = [
    "GenerationError",
    "TransportError",
    "JobStoreError",
    "RemoteFailureError",
    "GenerationTimeoutError",
    "GenerationInProgressError",
    "InvalidTransitionError",
]

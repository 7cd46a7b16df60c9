"""
Generation Errors
Exception taxonomy for the generation-tracking state machine.
"""

from typing import Optional


class GenerationError(Exception):
    """Base exception for generation tracking errors."""

    def __init__(self, message: str, retryable: bool = True, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.details = details or {}


class TransportError(GenerationError):
    """The trigger request failed. Logged and swallowed; the executor may still run."""


class JobStoreError(GenerationError):
    """A Job Store read failed or the job row does not exist."""


class RemoteFailureError(GenerationError):
    """The executor reported an error/failed status."""


class GenerationTimeoutError(GenerationError):
    """The poll attempt budget was exhausted without a terminal status."""


class GenerationInProgressError(GenerationError):
    """A generation is already running for this job."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, retryable=False, details=details)


class InvalidTransitionError(GenerationError):
    """A phase transition that the state machine does not allow."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, retryable=False, details=details)


__all__ = [
    "GenerationError",
    "TransportError",
    "JobStoreError",
    "RemoteFailureError",
    "GenerationTimeoutError",
    "GenerationInProgressError",
    "InvalidTransitionError",
]

"""
Generation Controller
Owns the lifecycle of one story generation:
trigger (detached) -> poll -> assemble, with failure reporting and retry.

    idle --submit--> triggering --> polling
    polling --completed--> assembling --> complete
    polling --failed / timed out--> failed
    failed --retry--> triggering
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from storystudio.schemas.job import GenerationJob, JobPhase, TERMINAL_FAILURE_STATUSES
from storystudio.schemas.result import GenerationResult
from storystudio.schemas.story import StoryParameters
from storystudio.services.assembler import ResultAssembler
from storystudio.workers.base import (
    GenerationError,
    GenerationInProgressError,
    GenerationTimeoutError,
    InvalidTransitionError,
    JobStoreError,
    RemoteFailureError,
)
from storystudio.workers.poller import PollOutcome, PollResult, StatusPoller

logger = logging.getLogger(__name__)

ASSEMBLY_ERROR = "Could not load generated content"
CANCELLED_ERROR = "Generation cancelled"

ALLOWED_TRANSITIONS: Dict[JobPhase, frozenset] = {
    JobPhase.IDLE: frozenset({JobPhase.TRIGGERING}),
    JobPhase.TRIGGERING: frozenset({JobPhase.POLLING, JobPhase.FAILED}),
    JobPhase.POLLING: frozenset({JobPhase.ASSEMBLING, JobPhase.FAILED}),
    JobPhase.ASSEMBLING: frozenset({JobPhase.COMPLETE, JobPhase.FAILED}),
    JobPhase.COMPLETE: frozenset(),
    JobPhase.FAILED: frozenset({JobPhase.TRIGGERING}),
}


class Trigger(Protocol):
    def fire(self, job_id: str, parameters: StoryParameters) -> Any:
        """Start the remote job without waiting for it."""


class GenerationController:
    """
    State machine for one generation job.

    Callbacks:
        on_progress_change(status, step_label) after every poll read
        on_phase_change(phase) on every transition
        on_complete(result) once the result is assembled
        on_error(error) when the job fails (GenerationError subclass)

    No callback fires after cancel(). Only one run may be in flight at a
    time; start_generation() or retry() during a run raises
    GenerationInProgressError.
    """

    def __init__(
        self,
        trigger: Trigger,
        poller: StatusPoller,
        assembler: ResultAssembler,
    ):
        self.trigger = trigger
        self.poller = poller
        self.assembler = assembler

        self._job: Optional[GenerationJob] = None
        self._result: Optional[GenerationResult] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self._running = False

        self._progress_listeners: List[Callable[[str, str], None]] = []
        self._phase_listeners: List[Callable[[JobPhase], None]] = []
        self._complete_listeners: List[Callable[[GenerationResult], None]] = []
        self._error_listeners: List[Callable[[GenerationError], None]] = []

    # Observers

    def on_progress_change(self, callback: Callable[[str, str], None]):
        self._progress_listeners.append(callback)
        return callback

    def on_phase_change(self, callback: Callable[[JobPhase], None]):
        self._phase_listeners.append(callback)
        return callback

    def on_complete(self, callback: Callable[[GenerationResult], None]):
        self._complete_listeners.append(callback)
        return callback

    def on_error(self, callback: Callable[[GenerationError], None]):
        self._error_listeners.append(callback)
        return callback

    # State

    @property
    def job(self) -> Optional[GenerationJob]:
        return self._job

    @property
    def phase(self) -> JobPhase:
        return self._job.phase if self._job else JobPhase.IDLE

    @property
    def error(self) -> Optional[str]:
        return self._job.error if self._job else None

    @property
    def current_step_label(self) -> str:
        return self._job.current_step_label if self._job else ""

    @property
    def result(self) -> Optional[GenerationResult]:
        return self._result

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    # Commands

    async def start_generation(self, job_id: str, parameters: StoryParameters) -> Optional[GenerationResult]:
        """
        Run a generation to a terminal phase.

        Returns:
            The assembled result, or None if the job failed or was cancelled
        """
        if self._running:
            raise GenerationInProgressError(
                f"Generation {self._job.id} is already running", details={"job_id": job_id}
            )
        if self._job is not None:
            raise InvalidTransitionError(
                f"Controller already owns job {self._job.id}; use retry()",
                details={"job_id": job_id, "phase": self.phase.value},
            )

        self._job = GenerationJob(id=job_id, parameters=parameters)
        return await self._run()

    async def retry(self) -> Optional[GenerationResult]:
        """Restart a failed job with the original parameters."""
        self.ensure_can_retry()
        logger.info(f"[Controller] Retrying {self._job.id} (attempt {self._job.attempt + 1})")
        return await self._run()

    def ensure_can_retry(self) -> None:
        """Raise unless the controller holds a failed, idle job."""
        if self._job is None:
            raise InvalidTransitionError("Nothing to retry: no generation was started")
        if self._running:
            raise GenerationInProgressError(
                f"Generation {self._job.id} is already running", details={"job_id": self._job.id}
            )
        if self._job.phase != JobPhase.FAILED:
            raise InvalidTransitionError(
                f"Cannot retry job {self._job.id} in phase {self._job.phase.value}",
                details={"job_id": self._job.id, "phase": self._job.phase.value},
            )

    def cancel(self) -> None:
        """Stop polling and silence all further callbacks for the current run."""
        if self._cancel_event is not None and self._running:
            logger.info(f"[Controller] Cancelling {self._job.id}")
            self._cancel_event.set()

    # Internals

    async def _run(self) -> Optional[GenerationResult]:
        job = self._job
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        self._running = True
        self._result = None

        try:
            job.error = None
            job.current_step_label = ""
            job.attempt += 1
            self._transition(JobPhase.TRIGGERING)

            self.trigger.fire(job.id, job.parameters)
            self._transition(JobPhase.POLLING)

            poll = await self.poller.poll(job.id, self._handle_progress, cancel_event=cancel_event)

            if poll.outcome == PollOutcome.CANCELLED or cancel_event.is_set():
                self._abort()
                return None

            if poll.outcome != PollOutcome.COMPLETED:
                self._fail(self._poll_error(job.id, poll))
                return None

            self._transition(JobPhase.ASSEMBLING)
            try:
                base = await self.assembler.build_base(job.id)
                result = await self.assembler.assemble(job.id, base)
            except JobStoreError as e:
                logger.error(f"[Controller] Assembly failed for {job.id}: {e}")
                self._fail(JobStoreError(ASSEMBLY_ERROR, details=e.details))
                return None

            if cancel_event.is_set():
                self._abort()
                return None

            self._result = result
            self._transition(JobPhase.COMPLETE)
            logger.info(
                f"[Controller] {job.id} complete: {len(result.pages)} pages, "
                f"{len(result.characters)} characters"
            )
            self._emit(self._complete_listeners, result)
            return result

        except asyncio.CancelledError:
            cancel_event.set()
            self._abort()
            raise
        finally:
            self._running = False

    @staticmethod
    def _poll_error(job_id: str, poll: PollResult) -> GenerationError:
        details = {"job_id": job_id, "attempts": poll.attempts, "status": poll.status}
        if poll.outcome == PollOutcome.TIMED_OUT:
            return GenerationTimeoutError(poll.error, details=details)
        if poll.status in TERMINAL_FAILURE_STATUSES:
            return RemoteFailureError(poll.error, details=details)
        return JobStoreError(poll.error, details=details)

    def _handle_progress(self, status: str, step_label: str) -> None:
        if self.cancelled:
            return
        self._job.current_step_label = step_label
        self._emit(self._progress_listeners, status, step_label)

    def _transition(self, phase: JobPhase) -> None:
        current = self._job.phase
        if phase not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Illegal transition {current.value} -> {phase.value}",
                details={"job_id": self._job.id},
            )
        self._job.phase = phase
        logger.debug(f"[Controller] {self._job.id}: {current.value} -> {phase.value}")
        self._emit(self._phase_listeners, phase)

    def _fail(self, error: GenerationError) -> None:
        self._job.error = error.message
        self._transition(JobPhase.FAILED)
        logger.warning(f"[Controller] {self._job.id} failed: {error.message}")
        self._emit(self._error_listeners, error)

    def _abort(self) -> None:
        """Park a cancelled run in failed without notifying anyone."""
        if self._job.phase in (JobPhase.COMPLETE, JobPhase.FAILED):
            return
        self._job.phase = JobPhase.FAILED
        self._job.error = CANCELLED_ERROR
        logger.info(f"[Controller] {self._job.id} cancelled")

    def _emit(self, listeners: List[Callable], *args) -> None:
        if self.cancelled:
            return
        for callback in list(listeners):
            try:
                callback(*args)
            except Exception:
                logger.exception(f"[Controller] Listener {callback!r} failed for {self._job.id}")

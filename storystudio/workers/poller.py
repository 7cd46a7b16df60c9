"""
Status Poller
Reads a job's status from the Job Store on a fixed interval until it reaches
a terminal state, the attempt budget runs out, or the caller cancels.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from storystudio.core.config import settings
from storystudio.schemas.job import StoreStatus, TERMINAL_FAILURE_STATUSES
from storystudio.services.job_store import JobStore
from storystudio.services.steps import translate_step
from storystudio.workers.base import JobStoreError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, str], None]

STATUS_READ_ERROR = "Could not read generation status"
REMOTE_FAILURE_ERROR = "Story generation failed"


class PollOutcome(str, Enum):
    """How a poll ended."""
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    """Outcome of one poll() call."""
    outcome: PollOutcome
    attempts: int
    status: Optional[str] = None
    step: Optional[str] = None
    error: Optional[str] = None


def timeout_message(interval: float, max_attempts: int) -> str:
    """User-facing timeout text derived from the polling budget."""
    total = interval * max_attempts
    if total >= 60:
        minutes = total / 60
        amount = f"{minutes:g} minute" + ("" if minutes == 1 else "s")
    else:
        amount = f"{total:g} second" + ("" if total == 1 else "s")
    return f"Story generation timed out after {amount}"


class StatusPoller:
    """
    Bounded fixed-interval poll of the Job Store.

    Each successful read is reported through on_progress in read order.
    A read failure ends the poll at once. The inter-poll wait is the only
    timer and is bound to cancel_event, so setting the event ends the poll
    promptly and suppresses any callback for a read still in flight.
    """

    def __init__(
        self,
        job_store: JobStore,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self.job_store = job_store
        self.interval = settings.POLL_INTERVAL_SECONDS if interval is None else interval
        self.max_attempts = settings.MAX_POLL_ATTEMPTS if max_attempts is None else max_attempts

    async def _wait(self, cancel_event: Optional[asyncio.Event]) -> bool:
        """Sleep one interval; returns True if cancelled meanwhile."""
        if cancel_event is None:
            await asyncio.sleep(self.interval)
            return False
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def poll(
        self,
        job_id: str,
        on_progress: ProgressCallback,
        max_attempts: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> PollResult:
        """
        Poll job_id until terminal, exhausted or cancelled.

        Args:
            job_id: Job to watch
            on_progress: Called with (status, translated step) after every read
            max_attempts: Override of the configured attempt budget
            cancel_event: Setting this event aborts the poll

        Returns:
            PollResult describing how polling ended
        """
        budget = self.max_attempts if max_attempts is None else max_attempts
        status: Optional[str] = None
        step: Optional[str] = None

        for attempt in range(1, budget + 1):
            if cancel_event is not None and cancel_event.is_set():
                return PollResult(PollOutcome.CANCELLED, attempt - 1, status, step)

            try:
                record = await self.job_store.read_status(job_id)
            except JobStoreError as e:
                logger.error(f"[Poller] Status read {attempt}/{budget} failed for {job_id}: {e}")
                return PollResult(PollOutcome.FAILED, attempt, status, step, STATUS_READ_ERROR)

            # A read that lands after cancellation must not reach the caller
            if cancel_event is not None and cancel_event.is_set():
                return PollResult(PollOutcome.CANCELLED, attempt, status, step)

            status, step = record.status, record.current_step
            on_progress(status, translate_step(step))
            logger.debug(f"[Poller] {job_id} attempt {attempt}/{budget}: status={status} step={step}")

            if status == StoreStatus.COMPLETED.value:
                return PollResult(PollOutcome.COMPLETED, attempt, status, step)

            if status in TERMINAL_FAILURE_STATUSES:
                logger.warning(f"[Poller] {job_id} reported {status}: {record.error_message}")
                return PollResult(
                    PollOutcome.FAILED, attempt, status, step,
                    record.error_message or REMOTE_FAILURE_ERROR,
                )

            if attempt < budget and await self._wait(cancel_event):
                return PollResult(PollOutcome.CANCELLED, attempt, status, step)

        logger.warning(f"[Poller] {job_id} still '{status}' after {budget} attempts")
        return PollResult(
            PollOutcome.TIMED_OUT, budget, status, step,
            timeout_message(self.interval, budget),
        )

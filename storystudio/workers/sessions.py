"""
Generation Sessions
Process-wide registry holding at most one controller per job id and the
background task driving it.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from storystudio.core.config import settings
from storystudio.schemas.job import StoreStatus, TERMINAL_FAILURE_STATUSES
from storystudio.schemas.story import StoryParameters
from storystudio.services.job_store import JobStore
from storystudio.services.submissions import SubmissionStore
from storystudio.workers.base import GenerationInProgressError, InvalidTransitionError
from storystudio.workers.controller import GenerationController

logger = logging.getLogger(__name__)


class UnknownJobError(KeyError):
    """No session and no persisted submission exist for a job id."""


class GenerationSessions:
    """
    Starts, retries and cancels generation sessions.

    The Job Store row is created first, so a duplicate id is rejected before
    anything else is written. The submission is then persisted before the
    executor is triggered, because the trigger request may fail before the
    executor records anything for that id.

    Finished sessions are kept for retention_seconds and at most
    max_retained of them; evicted ones are answered from the Job Store.
    """

    def __init__(
        self,
        job_store: JobStore,
        submissions: SubmissionStore,
        controller_factory: Callable[[], GenerationController],
        retention_seconds: Optional[float] = None,
        max_retained: Optional[int] = None,
    ):
        self.job_store = job_store
        self.submissions = submissions
        self.controller_factory = controller_factory
        self.retention_seconds = settings.SESSION_RETENTION_SECONDS if retention_seconds is None else retention_seconds
        self.max_retained = settings.MAX_RETAINED_SESSIONS if max_retained is None else max_retained
        self._controllers: Dict[str, GenerationController] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        # job id -> monotonic finish time, oldest first
        self._finished: "OrderedDict[str, float]" = OrderedDict()

    def get(self, job_id: str) -> Optional[GenerationController]:
        return self._controllers.get(job_id)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._controllers

    def __len__(self) -> int:
        return len(self._controllers)

    def _ensure_idle(self, job_id: str) -> None:
        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            raise GenerationInProgressError(f"Generation {job_id} is already running", details={"job_id": job_id})

    def _spawn(self, job_id: str, coro) -> asyncio.Task:
        self._finished.pop(job_id, None)
        task = asyncio.create_task(coro, name=f"generation-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda t: self._on_task_done(job_id, t))
        return task

    def _on_task_done(self, job_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.info(f"[Sessions] Session task for {job_id} cancelled")
        elif task.exception() is not None:
            logger.error(f"[Sessions] Session task for {job_id} crashed: {task.exception()!r}")

        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
            self._finished[job_id] = time.monotonic()
        self._prune()

    def _prune(self) -> None:
        """Drop finished sessions past the retention window or over the cap."""
        now = time.monotonic()
        while self._finished:
            job_id, finished_at = next(iter(self._finished.items()))
            expired = now - finished_at >= self.retention_seconds
            if not expired and len(self._finished) <= self.max_retained:
                break
            del self._finished[job_id]
            controller = self._controllers.get(job_id)
            if controller is not None and not controller.is_running and job_id not in self._tasks:
                del self._controllers[job_id]
                logger.debug(f"[Sessions] Evicted finished session {job_id}")

    async def submit(self, job_id: str, parameters: StoryParameters) -> GenerationController:
        """Record a submission and start tracking its generation in the background."""
        self._ensure_idle(job_id)
        if job_id in self._controllers:
            raise GenerationInProgressError(f"Story {job_id} was already submitted", details={"job_id": job_id})

        await self.job_store.create_job(job_id, parameters)
        await self.submissions.save(job_id, parameters)

        controller = self.controller_factory()
        self._controllers[job_id] = controller
        self._spawn(job_id, controller.start_generation(job_id, parameters))
        logger.info(f"[Sessions] Started generation session {job_id}")
        return controller

    async def retry(self, job_id: str) -> GenerationController:
        """
        Retry a failed session.

        When this process holds no controller for job_id (e.g. after a
        restart or eviction) a fresh one is built from the persisted
        submission, provided the Job Store reports the job as failed.
        """
        self._ensure_idle(job_id)
        controller = self._controllers.get(job_id)

        if controller is not None:
            controller.ensure_can_retry()
            self._spawn(job_id, controller.retry())
            return controller

        parameters = await self.submissions.load(job_id)
        if parameters is None:
            raise UnknownJobError(job_id)

        record = await self.job_store.read_status(job_id)
        if record.status == StoreStatus.COMPLETED.value:
            raise InvalidTransitionError(
                f"Story {job_id} already completed", details={"job_id": job_id, "status": record.status}
            )
        if record.status not in TERMINAL_FAILURE_STATUSES:
            raise GenerationInProgressError(
                f"Story {job_id} is still {record.status}", details={"job_id": job_id, "status": record.status}
            )

        controller = self.controller_factory()
        self._controllers[job_id] = controller
        self._spawn(job_id, controller.start_generation(job_id, parameters))
        logger.info(f"[Sessions] Rebuilt generation session {job_id} from stored submission")
        return controller

    def cancel(self, job_id: str) -> bool:
        """Cancel a running session; returns False when nothing is running."""
        controller = self._controllers.get(job_id)
        if controller is None or not controller.is_running:
            return False
        controller.cancel()
        return True

    async def wait(self, job_id: str) -> None:
        """Wait for the current session task of job_id to finish."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel all running sessions and wait for them to unwind."""
        running: List[asyncio.Task] = [t for t in self._tasks.values() if not t.done()]
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
        logger.info(f"[Sessions] Shut down {len(running)} running session(s)")

"""
Job Trigger
Fire-and-forget hand-off of a story job to the workflow executor webhook.
"""

import asyncio
import logging
from typing import Optional, Set

import httpx

from storystudio.core.config import settings
from storystudio.schemas.story import StoryParameters
from storystudio.workers.base import TransportError

logger = logging.getLogger(__name__)


class JobTrigger:
    """
    Starts remote generation jobs.

    trigger() sends exactly one request and never raises: the executor may
    already be processing even when the request errors or times out, so a
    transport failure is only logged. fire() runs trigger() as a detached
    task and returns immediately.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url or settings.TRIGGER_URL
        self.timeout = timeout or settings.TRIGGER_TIMEOUT_SECONDS
        self._client = client
        self._owns_client = client is None
        self._pending: Set[asyncio.Task] = set()

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazily created HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    @staticmethod
    def build_payload(job_id: str, parameters: StoryParameters) -> dict:
        """Request body: the job id plus the submitted parameters, nothing else."""
        return {
            "jobId": job_id,
            "storyId": job_id,
            "storyText": parameters.story_text,
            "settings": parameters.settings.to_payload(),
        }

    async def _send(self, job_id: str, parameters: StoryParameters) -> httpx.Response:
        try:
            response = await self.client.post(self.url, json=self.build_payload(job_id, parameters))
        except httpx.HTTPError as e:
            raise TransportError(
                f"Trigger request failed: {e.__class__.__name__}",
                details={"job_id": job_id, "error": str(e)},
            ) from e

        if response.is_error:
            raise TransportError(
                f"Trigger returned HTTP {response.status_code}",
                details={"job_id": job_id, "status_code": response.status_code},
            )
        return response

    async def trigger(self, job_id: str, parameters: StoryParameters) -> None:
        """Send one job start request; failures are logged and swallowed."""
        logger.info(f"[Trigger] Starting workflow for {job_id}")
        try:
            response = await self._send(job_id, parameters)
        except TransportError as e:
            logger.warning(
                f"[Trigger] {e.message} for {job_id}; "
                f"workflow may still be running, continuing to poll"
            )
            return
        except Exception as e:
            logger.exception(f"[Trigger] Unexpected error starting workflow for {job_id}: {e}")
            return

        logger.debug(f"[Trigger] {job_id} accepted: HTTP {response.status_code} {response.text[:200]}")

    def fire(self, job_id: str, parameters: StoryParameters) -> asyncio.Task:
        """Spawn trigger() in the background and return without waiting."""
        task = asyncio.create_task(self.trigger(job_id, parameters), name=f"trigger-{job_id}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self) -> None:
        """Wait for in-flight triggers and close the owned HTTP client."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

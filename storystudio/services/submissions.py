"""
Submission Store
Keeps the original submission of each story so a retry can re-read it,
even after the process that accepted it has gone away.
"""

import asyncio
import logging
from typing import Optional, Protocol

from redis import Redis
from redis.exceptions import RedisError

from storystudio.core.config import settings
from storystudio.schemas.story import StoryParameters
from storystudio.workers.base import JobStoreError

logger = logging.getLogger(__name__)

KEY_PREFIX = "storystudio:submission:"


class SubmissionStore(Protocol):
    async def save(self, job_id: str, parameters: StoryParameters) -> None:
        """Persist a submission."""

    async def load(self, job_id: str) -> Optional[StoryParameters]:
        """Return a persisted submission, if still present."""


class RedisSubmissionStore:
    """Submission store backed by Redis string keys with a TTL."""

    def __init__(self, redis: Redis, ttl_seconds: Optional[int] = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.SUBMISSION_TTL_SECONDS

    @staticmethod
    def _key(job_id: str) -> str:
        return f"{KEY_PREFIX}{job_id}"

    async def save(self, job_id: str, parameters: StoryParameters) -> None:
        value = parameters.model_dump_json(by_alias=True)
        try:
            await asyncio.to_thread(self.redis.set, self._key(job_id), value, ex=self.ttl_seconds)
        except RedisError as e:
            raise JobStoreError(
                "Could not save submission", details={"job_id": job_id, "error": str(e)}
            ) from e
        logger.debug(f"[Submissions] Saved submission for {job_id}")

    async def load(self, job_id: str) -> Optional[StoryParameters]:
        try:
            raw = await asyncio.to_thread(self.redis.get, self._key(job_id))
        except RedisError as e:
            logger.error(f"[Submissions] Could not load submission for {job_id}: {e}")
            return None

        if raw is None:
            return None
        return StoryParameters.model_validate_json(raw)

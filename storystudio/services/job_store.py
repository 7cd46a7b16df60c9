"""
Job Store
Persistent record of story jobs, their status and produced assets.

The executor is the only writer of status and assets; this service creates
the initial row and reads everything else. Blocking SQLAlchemy calls run in
a worker thread so polling never stalls the event loop.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storystudio.core.database import session_scope
from storystudio.models import Story, StoryPage, StoryCharacter
from storystudio.schemas.job import (
    AssetKind, CharacterAsset, JobStatusRecord, PageAsset, StoreStatus
)
from storystudio.schemas.story import StoryParameters, StorySummary
from storystudio.services.stories import extract_title
from storystudio.workers.base import GenerationInProgressError, JobStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobStore(Protocol):
    """Read/create contract the generation core depends on."""

    async def create_job(self, job_id: str, parameters: StoryParameters) -> None:
        """Record a queued job before the executor is triggered; raises GenerationInProgressError for a known id."""

    async def read_status(self, job_id: str) -> JobStatusRecord:
        """Return current status and step; raises JobStoreError when missing."""

    async def read_result(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Return the executor's final payload, if it wrote one."""

    async def list_page_assets(self, job_id: str) -> List[PageAsset]:
        """Return page assets ordered by page number."""

    async def list_character_assets(self, job_id: str) -> List[CharacterAsset]:
        """Return character portrait assets."""

    async def list_stories(self, limit: int = 50) -> List[StorySummary]:
        """Return stored stories, newest first."""

    async def get_story(self, job_id: str) -> Optional[StorySummary]:
        """Return one stored story."""


async def list_assets(store: JobStore, job_id: str, kind: AssetKind) -> list:
    """List produced assets of one kind for a job."""
    if kind == AssetKind.PAGE:
        return await store.list_page_assets(job_id)
    return await store.list_character_assets(job_id)


class SQLJobStore:
    """Job Store backed by SQLAlchemy sessions (SQLite or PostgreSQL)."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def _run(self, action: str, job_id: Optional[str], fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with session_scope(self._session_factory) as db:
                return fn(db)

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            logger.error(f"[JobStore] {action} failed for {job_id}: {e}")
            raise JobStoreError(f"Job Store {action} failed", details={"job_id": job_id, "error": str(e)}) from e

    async def create_job(self, job_id: str, parameters: StoryParameters) -> None:
        def insert(db: Session) -> None:
            db.add(Story(
                id=job_id,
                source_text=parameters.story_text,
                settings=parameters.settings.to_payload(),
                status=StoreStatus.QUEUED.value,
            ))
            try:
                db.commit()
            except IntegrityError as e:
                raise GenerationInProgressError(
                    f"Story {job_id} was already submitted", details={"job_id": job_id}
                ) from e

        await self._run("create", job_id, insert)
        logger.info(f"[JobStore] Created story job {job_id}")

    async def read_status(self, job_id: str) -> JobStatusRecord:
        def select(db: Session) -> Optional[JobStatusRecord]:
            story = db.query(Story).filter(Story.id == job_id).first()
            if story is None:
                return None
            return JobStatusRecord(
                status=story.status or StoreStatus.QUEUED.value,
                current_step=story.current_step,
                error_message=story.error_message,
            )

        record = await self._run("status read", job_id, select)
        if record is None:
            raise JobStoreError(f"Story {job_id} not found", details={"job_id": job_id})
        return record

    async def read_result(self, job_id: str) -> Optional[Dict[str, Any]]:
        def select(db: Session) -> Optional[Dict[str, Any]]:
            story = db.query(Story).filter(Story.id == job_id).first()
            if story is None:
                raise JobStoreError(f"Story {job_id} not found", details={"job_id": job_id})
            if not story.result:
                return None
            if not isinstance(story.result, dict):
                raise JobStoreError(
                    f"Stored result for {job_id} is not an object",
                    details={"job_id": job_id, "type": type(story.result).__name__},
                )
            payload = dict(story.result)
            payload.setdefault("title", story.title)
            payload.setdefault("theme", story.theme)
            return payload

        return await self._run("result read", job_id, select)

    async def list_page_assets(self, job_id: str) -> List[PageAsset]:
        def select(db: Session) -> List[PageAsset]:
            rows = (
                db.query(StoryPage)
                .filter(StoryPage.story_id == job_id)
                .order_by(StoryPage.page_number.asc())
                .all()
            )
            return [
                PageAsset(
                    page_number=row.page_number,
                    image_ref=row.image_url,
                    caption=row.caption,
                    was_fixed=bool(row.was_fixed),
                )
                for row in rows
            ]

        return await self._run("page asset read", job_id, select)

    async def list_character_assets(self, job_id: str) -> List[CharacterAsset]:
        def select(db: Session) -> List[CharacterAsset]:
            rows = (
                db.query(StoryCharacter)
                .filter(StoryCharacter.story_id == job_id)
                .order_by(StoryCharacter.id.asc())
                .all()
            )
            return [
                CharacterAsset(
                    name=row.name,
                    role=row.role,
                    image_ref=row.reference_image,
                    is_hero=bool(row.is_hero),
                    description=row.description,
                )
                for row in rows
            ]

        return await self._run("character asset read", job_id, select)

    async def list_stories(self, limit: int = 50) -> List[StorySummary]:
        def select(db: Session) -> List[StorySummary]:
            rows = db.query(Story).order_by(Story.created_at.desc()).limit(limit).all()
            return [_summarize(row) for row in rows]

        return await self._run("story list", None, select)

    async def get_story(self, job_id: str) -> Optional[StorySummary]:
        def select(db: Session) -> Optional[StorySummary]:
            story = db.query(Story).filter(Story.id == job_id).first()
            return _summarize(story) if story else None

        return await self._run("story read", job_id, select)


def _summarize(story: Story) -> StorySummary:
    return StorySummary(
        id=story.id,
        title=story.title or extract_title(story.source_text),
        theme=story.theme,
        status=story.status,
        created_at=story.created_at,
    )

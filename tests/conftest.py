"""Shared fakes for generation tracking tests."""

import asyncio
from typing import Any, Dict, List, Optional, Union

import pytest

from storystudio.schemas.job import CharacterAsset, JobStatusRecord, PageAsset
from storystudio.schemas.story import StoryParameters, StorySettings, StorySummary
from storystudio.services.stories import extract_title
from storystudio.workers.base import GenerationInProgressError, JobStoreError


@pytest.fixture
def anyio_backend():
    return "asyncio"


def status(value: str, step: Optional[str] = None, error: Optional[str] = None) -> JobStatusRecord:
    return JobStatusRecord(status=value, current_step=step, error_message=error)


class FakeJobStore:
    """
    In-memory Job Store.

    read_status() walks through `statuses`, repeating the last entry once
    the list is exhausted. Exceptions in the list are raised.
    """

    def __init__(
        self,
        statuses: Optional[List[Union[JobStatusRecord, Exception]]] = None,
        result: Optional[Dict[str, Any]] = None,
        pages: Optional[List[PageAsset]] = None,
        characters: Optional[List[CharacterAsset]] = None,
    ):
        self.statuses = list(statuses or [status("running")])
        self.result = result
        self.pages = list(pages or [])
        self.characters = list(characters or [])
        self.reads = 0
        self.asset_reads = 0
        self.created: Dict[str, StoryParameters] = {}
        self.fail_assets = False
        self.gate: Optional[asyncio.Event] = None
        self.read_started = asyncio.Event()
        self.asset_gate: Optional[asyncio.Event] = None
        self.asset_started = asyncio.Event()

    async def create_job(self, job_id: str, parameters: StoryParameters) -> None:
        if job_id in self.created:
            raise GenerationInProgressError(f"Story {job_id} was already submitted")
        self.created[job_id] = parameters

    async def read_status(self, job_id: str) -> JobStatusRecord:
        self.reads += 1
        self.read_started.set()
        if self.gate is not None:
            await self.gate.wait()
        item = self.statuses[min(self.reads, len(self.statuses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    async def read_result(self, job_id: str) -> Optional[Dict[str, Any]]:
        return self.result

    async def list_page_assets(self, job_id: str) -> List[PageAsset]:
        self.asset_reads += 1
        self.asset_started.set()
        if self.asset_gate is not None:
            await self.asset_gate.wait()
        if self.fail_assets:
            raise JobStoreError("page asset read failed")
        return list(self.pages)

    async def list_character_assets(self, job_id: str) -> List[CharacterAsset]:
        self.asset_reads += 1
        if self.fail_assets:
            raise JobStoreError("character asset read failed")
        return list(self.characters)

    async def list_stories(self, limit: int = 50) -> List[StorySummary]:
        return [
            StorySummary(id=job_id, title=extract_title(p.story_text), status="queued")
            for job_id, p in reversed(list(self.created.items()))
        ][:limit]

    async def get_story(self, job_id: str) -> Optional[StorySummary]:
        parameters = self.created.get(job_id)
        if parameters is None:
            return None
        return StorySummary(id=job_id, title=extract_title(parameters.story_text), status="queued")


class FakeTrigger:
    """Records fire() calls instead of sending requests."""

    def __init__(self):
        self.calls: List[tuple] = []

    def fire(self, job_id: str, parameters: StoryParameters) -> None:
        self.calls.append((job_id, parameters))


class InMemorySubmissionStore:
    def __init__(self):
        self.saved: Dict[str, StoryParameters] = {}

    async def save(self, job_id: str, parameters: StoryParameters) -> None:
        self.saved[job_id] = parameters

    async def load(self, job_id: str) -> Optional[StoryParameters]:
        return self.saved.get(job_id)


BOOK_PAYLOAD = {
    "title": "Pip and the Lantern",
    "theme": "courage",
    "storyArcSummary": ["Pip is afraid", "Pip finds the lantern", "Pip lights the way"],
    "pages": [
        {"pageNumber": 1, "caption": "Pip lived by the sea."},
        {"pageNumber": 2, "caption": "One night the lights went out.", "wasFixed": True},
        {"pageNumber": 3, "caption": "Pip found a lantern."},
    ],
    "characters": [
        {"name": "Pip", "role": "hero", "description": "A small grey mouse"},
        {"name": "Gull", "role": "friend", "description": "A noisy seagull"},
    ],
    "metadata": {"pageCount": 3, "characterCount": 2, "consistencyIssuesFound": 1, "pagesFixed": 1},
}


@pytest.fixture
def parameters() -> StoryParameters:
    return StoryParameters(
        story_text="**Pip and the Lantern**\nPip was a small mouse who feared the dark.",
        settings=StorySettings(target_age=5, intensity=3, page_count=10),
    )

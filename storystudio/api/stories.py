"""
Stories API Routes
Story intake and the story library.
"""

import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from storystudio.api.deps import get_job_store, get_sessions
from storystudio.schemas.story import StoryAccepted, StoryParameters, StorySubmission, StorySummary
from storystudio.services.job_store import JobStore
from storystudio.workers.base import GenerationInProgressError, JobStoreError
from storystudio.workers.sessions import GenerationSessions

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=StoryAccepted, status_code=status.HTTP_202_ACCEPTED)
async def submit_story(
    submission: StorySubmission,
    sessions: GenerationSessions = Depends(get_sessions),
):
    """
    Accept a story and start generating its picture book.
    Returns immediately; progress is read from /generations/{id}.
    """
    story_id = submission.story_id or str(uuid.uuid4())
    parameters = StoryParameters(
        story_text=submission.story_text,
        file_name=submission.file_name,
        settings=submission.settings,
    )

    try:
        await sessions.submit(story_id, parameters)
    except GenerationInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except JobStoreError as e:
        logger.error(f"Could not record story {story_id}: {e.details}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return StoryAccepted(
        story_id=story_id,
        status="queued",
        message="Story accepted; generation started",
    )


@router.get("", response_model=List[StorySummary])
async def list_stories(
    limit: int = 50,
    job_store: JobStore = Depends(get_job_store),
):
    """List stored stories, newest first."""
    try:
        return await job_store.list_stories(limit=limit)
    except JobStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("/{story_id}", response_model=StorySummary)
async def get_story(
    story_id: str,
    job_store: JobStore = Depends(get_job_store),
):
    """Get one stored story."""
    try:
        story = await job_store.get_story(story_id)
    except JobStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    if not story:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Story not found"
        )
    return story

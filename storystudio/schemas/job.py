"""
Job Schemas
Pydantic models for generation job state and Job Store records.
"""

from typing import Optional
from enum import Enum
from pydantic import BaseModel

from storystudio.schemas.result import GenerationResult
from storystudio.schemas.story import StoryParameters


class JobPhase(str, Enum):
    """Lifecycle phase of one generation, as seen by the display layer."""
    IDLE = "idle"
    TRIGGERING = "triggering"
    POLLING = "polling"
    ASSEMBLING = "assembling"
    COMPLETE = "complete"
    FAILED = "failed"


class StoreStatus(str, Enum):
    """Status values the executor writes to the Job Store."""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"
    FAILED = "failed"


TERMINAL_FAILURE_STATUSES = frozenset({StoreStatus.ERROR.value, StoreStatus.FAILED.value})


class AssetKind(str, Enum):
    """Kinds of produced assets listed per job."""
    PAGE = "page"
    CHARACTER = "character"


class JobStatusRecord(BaseModel):
    """Status row read from the Job Store while polling."""
    status: str
    current_step: Optional[str] = None
    error_message: Optional[str] = None


class PageAsset(BaseModel):
    """Page image record produced by the executor."""
    page_number: int
    image_ref: Optional[str] = None
    caption: Optional[str] = None
    was_fixed: bool = False


class CharacterAsset(BaseModel):
    """Character portrait record produced by the executor."""
    name: str
    role: Optional[str] = None
    image_ref: Optional[str] = None
    is_hero: bool = False
    description: Optional[str] = None


class GenerationJob(BaseModel):
    """Controller-owned state of one generation request."""
    id: str
    parameters: StoryParameters
    phase: JobPhase = JobPhase.IDLE
    current_step_label: str = ""
    error: Optional[str] = None
    attempt: int = 0


class GenerationStatusResponse(BaseModel):
    """Snapshot of a generation session for the display layer."""
    job_id: str
    phase: JobPhase
    current_step_label: str = ""
    error: Optional[str] = None
    attempt: int = 0
    store_status: Optional[str] = None
    result: Optional[GenerationResult] = None

# Pydantic schemas package
from storystudio.schemas.story import (
    StorySettings, StoryParameters, StorySubmission, StoryAccepted, StorySummary
)
from storystudio.schemas.result import Page, Character, ResultMetadata, GenerationResult
from storystudio.schemas.job import (
    JobPhase, StoreStatus, AssetKind, JobStatusRecord, PageAsset, CharacterAsset,
    GenerationJob, GenerationStatusResponse
)

__all__ = [
    "StorySettings", "StoryParameters", "StorySubmission", "StoryAccepted", "StorySummary",
    "Page", "Character", "ResultMetadata", "GenerationResult",
    "JobPhase", "StoreStatus", "AssetKind", "JobStatusRecord", "PageAsset", "CharacterAsset",
    "GenerationJob", "GenerationStatusResponse",
]

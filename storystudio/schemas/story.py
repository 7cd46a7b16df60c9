"""
Story Schemas
Pydantic models for story submissions and the settings bundle sent to the executor.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_AESTHETIC_STYLE = "watercolor children's book illustration, soft and whimsical, gentle brush strokes"


class StorySettings(BaseModel):
    """Style and pacing settings for one story (wire names are camelCase)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_age: int = Field(6, ge=2, le=12, alias="targetAge")
    intensity: int = Field(5, ge=0, le=10, alias="harshness", description="0 = very gentle, 10 = maximum")
    page_count: int = Field(10, ge=5, le=30, alias="desiredPageCount")
    aesthetic_style: str = Field(DEFAULT_AESTHETIC_STYLE, min_length=1, alias="aestheticStyle")
    freeform_notes: str = Field("", alias="freeformNotes")
    hero_image: Optional[str] = Field(None, alias="heroImage", description="Data URL or image reference")
    character_consistency: bool = Field(True, alias="characterConsistency")
    quality_tier: str = Field("standard-flash", alias="qualityTier")
    aspect_ratio: str = Field("2:3", alias="aspectRatio")

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the executor's field names."""
        return self.model_dump(by_alias=True)


class StoryParameters(BaseModel):
    """Immutable job parameters: the story text plus its settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    story_text: str = Field(..., alias="storyText")
    file_name: Optional[str] = Field(None, alias="fileName")
    settings: StorySettings = Field(default_factory=StorySettings)

    @field_validator("story_text")
    @classmethod
    def story_text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Please enter or upload a story first")
        return v


class StorySubmission(StoryParameters):
    """Intake request; the story id is caller-generated when provided."""

    story_id: Optional[str] = Field(None, alias="storyId")


class StoryAccepted(BaseModel):
    """Response returned once a submission has been recorded."""
    story_id: str
    status: str
    message: str


class StorySummary(BaseModel):
    """Story library entry."""
    id: str
    title: str
    theme: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None

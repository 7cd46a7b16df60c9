"""
Generation Result Schemas
Pydantic models for the assembled picture book.
"""

import logging
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)


class Page(BaseModel):
    """A single illustrated page."""
    model_config = ConfigDict(frozen=True)

    page_number: int = Field(..., ge=1)
    caption: str = ""
    image_data: Optional[str] = None
    was_fixed: bool = False


class Character(BaseModel):
    """A story character with an optional reference portrait."""
    model_config = ConfigDict(frozen=True)

    name: str
    role: str = ""
    description: str = ""
    reference_image: Optional[str] = None
    is_hero: bool = False


class ResultMetadata(BaseModel):
    """Summary counts for a finished book."""
    model_config = ConfigDict(frozen=True)

    page_count: int = 0
    character_count: int = 0
    consistency_issues_found: int = 0
    pages_fixed: int = 0

    @property
    def has_fixed_pages(self) -> bool:
        return self.pages_fixed > 0


class GenerationResult(BaseModel):
    """
    Final result of a generation job.

    Pages are kept sorted by page number and unique; characters are unique
    by name. Later duplicates are dropped on construction.
    """
    model_config = ConfigDict(frozen=True)

    job_id: str
    title: str = ""
    theme: str = ""
    story_arc_summary: List[str] = []
    pages: List[Page] = []
    characters: List[Character] = []
    metadata: ResultMetadata = Field(default_factory=ResultMetadata)

    @model_validator(mode="before")
    @classmethod
    def normalize_collections(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        data = dict(data)
        pages = [p if isinstance(p, Page) else Page.model_validate(p) for p in data.get("pages") or []]
        unique_pages: Dict[int, Page] = {}
        for page in pages:
            if page.page_number in unique_pages:
                logger.warning(f"Dropping duplicate page {page.page_number} for job {data.get('job_id')}")
                continue
            unique_pages[page.page_number] = page
        data["pages"] = [unique_pages[n] for n in sorted(unique_pages)]

        characters = [c if isinstance(c, Character) else Character.model_validate(c) for c in data.get("characters") or []]
        unique_characters: Dict[str, Character] = {}
        for character in characters:
            if character.name in unique_characters:
                logger.warning(f"Dropping duplicate character '{character.name}' for job {data.get('job_id')}")
                continue
            unique_characters[character.name] = character
        data["characters"] = list(unique_characters.values())

        if data.get("metadata") is None:
            data["metadata"] = ResultMetadata(
                page_count=len(data["pages"]),
                character_count=len(data["characters"]),
                pages_fixed=sum(1 for p in data["pages"] if p.was_fixed),
            )
        return data

    @classmethod
    def from_payload(cls, job_id: str, payload: Dict[str, Any]) -> "GenerationResult":
        """
        Build a result from the executor's camelCase payload.

        Unknown keys are ignored; missing counts are derived from the
        pages and characters actually present.
        """
        pages = [
            Page(
                page_number=int(p["pageNumber"]),
                caption=p.get("caption") or "",
                image_data=p.get("imageData") or None,
                was_fixed=bool(p.get("wasFixed", False)),
            )
            for p in payload.get("pages") or []
            if p.get("pageNumber") is not None
        ]
        characters = [
            Character(
                name=c["name"],
                role=c.get("role") or "",
                description=c.get("description") or "",
                reference_image=c.get("referenceImage") or None,
                is_hero=bool(c.get("isHero", False)),
            )
            for c in payload.get("characters") or []
            if c.get("name")
        ]
        raw_meta = payload.get("metadata") or {}
        metadata = ResultMetadata(
            page_count=raw_meta.get("pageCount", len(pages)),
            character_count=raw_meta.get("characterCount", len(characters)),
            consistency_issues_found=raw_meta.get("consistencyIssuesFound", 0),
            pages_fixed=raw_meta.get("pagesFixed", sum(1 for p in pages if p.was_fixed)),
        )
        return cls(
            job_id=job_id,
            title=payload.get("title") or "",
            theme=payload.get("theme") or "",
            story_arc_summary=list(payload.get("storyArcSummary") or []),
            pages=pages,
            characters=characters,
            metadata=metadata,
        )

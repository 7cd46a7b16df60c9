"""
Result Assembler
Merges asynchronously produced page and character assets into a result.
"""

import logging
from typing import Dict, List

from storystudio.schemas.job import AssetKind, CharacterAsset, PageAsset
from storystudio.schemas.result import Character, GenerationResult, Page
from storystudio.services.job_store import JobStore, list_assets
from storystudio.workers.base import JobStoreError

logger = logging.getLogger(__name__)


class ResultAssembler:
    """
    Overlays asset images onto a base result.

    The base result decides which pages and characters exist: an asset with
    no matching base entry is ignored, and a base entry without an asset is
    kept without an image. Assembly never mutates its input and is
    idempotent.
    """

    def __init__(self, job_store: JobStore):
        self.job_store = job_store

    async def assemble(self, job_id: str, base: GenerationResult) -> GenerationResult:
        """Fetch assets for job_id and merge them into base by key."""
        page_assets: List[PageAsset] = await list_assets(self.job_store, job_id, AssetKind.PAGE)
        character_assets: List[CharacterAsset] = await list_assets(self.job_store, job_id, AssetKind.CHARACTER)

        return merge_assets(base, page_assets, character_assets)

    async def build_base(self, job_id: str) -> GenerationResult:
        """
        Load the base result for a completed job.

        Uses the executor's stored payload; when the job row carries none,
        a skeleton is seeded from the asset listings so captions and roles
        still reach the display.
        """
        payload = await self.job_store.read_result(job_id)
        if payload:
            try:
                return GenerationResult.from_payload(job_id, payload)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                # pydantic ValidationError is a ValueError
                logger.error(f"[Assembler] Malformed result payload for {job_id}: {e}")
                raise JobStoreError(
                    f"Stored result for {job_id} is malformed",
                    details={"job_id": job_id, "error": str(e)},
                ) from e

        logger.info(f"[Assembler] No stored payload for {job_id}, seeding base from assets")
        page_assets = await list_assets(self.job_store, job_id, AssetKind.PAGE)
        character_assets = await list_assets(self.job_store, job_id, AssetKind.CHARACTER)
        return GenerationResult(
            job_id=job_id,
            pages=[
                Page(page_number=a.page_number, caption=a.caption or "", was_fixed=a.was_fixed)
                for a in page_assets
            ],
            characters=[
                Character(
                    name=a.name,
                    role=a.role or "",
                    description=a.description or "",
                    is_hero=a.is_hero,
                )
                for a in character_assets
            ],
        )


def merge_assets(
    base: GenerationResult,
    page_assets: List[PageAsset],
    character_assets: List[CharacterAsset],
) -> GenerationResult:
    """Pure merge step of assemble()."""
    page_images: Dict[int, str] = {}
    for asset in page_assets:
        if asset.image_ref and asset.page_number not in page_images:
            page_images[asset.page_number] = asset.image_ref

    portraits: Dict[str, str] = {}
    for asset in character_assets:
        if asset.image_ref and asset.name not in portraits:
            portraits[asset.name] = asset.image_ref

    known_pages = {page.page_number for page in base.pages}
    orphans = sorted(set(page_images) - known_pages)
    if orphans:
        logger.debug(f"[Assembler] Ignoring assets for unknown pages {orphans} in {base.job_id}")

    known_names = {character.name for character in base.characters}
    orphan_names = sorted(set(portraits) - known_names)
    if orphan_names:
        logger.debug(f"[Assembler] Ignoring portraits for unknown characters {orphan_names} in {base.job_id}")

    pages = [
        page.model_copy(update={"image_data": page_images[page.page_number]})
        if page.page_number in page_images else page
        for page in base.pages
    ]
    characters = [
        character.model_copy(update={"reference_image": portraits[character.name]})
        if character.name in portraits else character
        for character in base.characters
    ]

    return base.model_copy(update={"pages": pages, "characters": characters})

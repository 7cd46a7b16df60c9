import pytest

from storystudio.schemas.job import CharacterAsset, PageAsset
from storystudio.schemas.result import Character, GenerationResult, Page
from storystudio.services.assembler import ResultAssembler, merge_assets
from storystudio.workers.base import JobStoreError
from tests.conftest import BOOK_PAYLOAD, FakeJobStore


def base_result() -> GenerationResult:
    return GenerationResult(
        job_id="job-1",
        pages=[Page(page_number=n, caption=f"Page {n}") for n in (1, 2, 3)],
        characters=[Character(name="Pip", role="hero"), Character(name="Gull", role="friend")],
    )


@pytest.mark.anyio
async def test_pages_without_assets_stay_imageless():
    store = FakeJobStore(pages=[
        PageAsset(page_number=2, image_ref="https://cdn/2.png"),
        PageAsset(page_number=3, image_ref="https://cdn/3.png"),
    ])

    result = await ResultAssembler(store).assemble("job-1", base_result())

    images = {p.page_number: p.image_data for p in result.pages}
    assert images == {1: None, 2: "https://cdn/2.png", 3: "https://cdn/3.png"}


@pytest.mark.anyio
async def test_characters_matched_by_name():
    store = FakeJobStore(characters=[
        CharacterAsset(name="Gull", role="friend", image_ref="data:image/png;base64,AAA"),
        CharacterAsset(name="Stranger", image_ref="https://cdn/stranger.png"),
    ])

    result = await ResultAssembler(store).assemble("job-1", base_result())

    portraits = {c.name: c.reference_image for c in result.characters}
    assert portraits == {"Pip": None, "Gull": "data:image/png;base64,AAA"}


@pytest.mark.anyio
async def test_orphan_and_empty_assets_are_ignored():
    store = FakeJobStore(pages=[
        PageAsset(page_number=1, image_ref=""),
        PageAsset(page_number=9, image_ref="https://cdn/9.png"),
    ])

    result = await ResultAssembler(store).assemble("job-1", base_result())

    assert [p.page_number for p in result.pages] == [1, 2, 3]
    assert all(p.image_data is None for p in result.pages)


@pytest.mark.anyio
async def test_assemble_is_idempotent_and_does_not_mutate_base():
    store = FakeJobStore(
        pages=[PageAsset(page_number=1, image_ref="https://cdn/1.png")],
        characters=[CharacterAsset(name="Pip", image_ref="https://cdn/pip.png")],
    )
    assembler = ResultAssembler(store)
    base = base_result()

    once = await assembler.assemble("job-1", base)
    twice = await assembler.assemble("job-1", once)

    assert once.model_dump_json() == twice.model_dump_json()
    assert base.pages[0].image_data is None


@pytest.mark.anyio
async def test_asset_read_failure_propagates():
    store = FakeJobStore()
    store.fail_assets = True

    with pytest.raises(JobStoreError):
        await ResultAssembler(store).assemble("job-1", base_result())


@pytest.mark.anyio
async def test_build_base_uses_stored_payload():
    store = FakeJobStore(result=BOOK_PAYLOAD)

    base = await ResultAssembler(store).build_base("job-1")

    assert base.title == "Pip and the Lantern"
    assert [p.page_number for p in base.pages] == [1, 2, 3]
    assert base.pages[1].was_fixed is True
    assert base.metadata.pages_fixed == 1
    assert base.metadata.has_fixed_pages
    assert store.asset_reads == 0


@pytest.mark.anyio
async def test_build_base_seeds_from_assets_without_payload():
    store = FakeJobStore(
        pages=[
            PageAsset(page_number=1, caption="Once upon a time", image_ref="https://cdn/1.png"),
            PageAsset(page_number=2, caption="The end", was_fixed=True),
        ],
        characters=[CharacterAsset(name="Pip", role="hero", is_hero=True)],
    )
    assembler = ResultAssembler(store)

    base = await assembler.build_base("job-1")
    result = await assembler.assemble("job-1", base)

    assert [p.caption for p in result.pages] == ["Once upon a time", "The end"]
    assert result.pages[0].image_data == "https://cdn/1.png"
    assert result.pages[1].image_data is None
    assert result.characters[0].is_hero
    assert result.metadata.page_count == 2
    assert result.metadata.pages_fixed == 1


def test_first_asset_wins_for_duplicate_keys():
    merged = merge_assets(
        base_result(),
        [PageAsset(page_number=1, image_ref="first"), PageAsset(page_number=1, image_ref="second")],
        [],
    )
    assert merged.pages[0].image_data == "first"


@pytest.mark.anyio
async def test_build_base_rejects_malformed_payload():
    store = FakeJobStore(result={"title": "Broken", "pages": [{"pageNumber": 0, "caption": "zero"}]})

    with pytest.raises(JobStoreError) as exc_info:
        await ResultAssembler(store).build_base("job-1")

    assert exc_info.value.details["job_id"] == "job-1"

import asyncio

import pytest

from storystudio.schemas.job import JobPhase
from storystudio.schemas.story import StoryParameters
from storystudio.services.assembler import ResultAssembler
from storystudio.workers.base import GenerationInProgressError, InvalidTransitionError
from storystudio.workers.controller import GenerationController
from storystudio.workers.poller import StatusPoller
from storystudio.workers.sessions import GenerationSessions, UnknownJobError
from tests.conftest import BOOK_PAYLOAD, FakeJobStore, FakeTrigger, InMemorySubmissionStore, status


def make_sessions(store: FakeJobStore, submissions=None, interval: float = 0, **retention):
    trigger = FakeTrigger()
    submissions = submissions or InMemorySubmissionStore()
    sessions = GenerationSessions(
        job_store=store,
        submissions=submissions,
        controller_factory=lambda: GenerationController(
            trigger, StatusPoller(store, interval=interval, max_attempts=5), ResultAssembler(store)
        ),
        **retention,
    )
    return sessions, trigger, submissions


@pytest.mark.anyio
async def test_submit_records_before_tracking(parameters):
    store = FakeJobStore([status("completed")], result=BOOK_PAYLOAD)
    sessions, trigger, submissions = make_sessions(store)

    controller = await sessions.submit("job-1", parameters)
    await sessions.wait("job-1")

    assert submissions.saved["job-1"] is parameters
    assert store.created["job-1"] is parameters
    assert controller.phase == JobPhase.COMPLETE
    assert trigger.calls == [("job-1", parameters)]


@pytest.mark.anyio
async def test_duplicate_submit_rejected(parameters):
    store = FakeJobStore([status("completed")], result=BOOK_PAYLOAD)
    sessions, _, _ = make_sessions(store)

    await sessions.submit("job-1", parameters)
    with pytest.raises(GenerationInProgressError):
        await sessions.submit("job-1", parameters)
    await sessions.wait("job-1")


@pytest.mark.anyio
async def test_retry_failed_session(parameters):
    store = FakeJobStore([status("error"), status("completed")], result=BOOK_PAYLOAD)
    sessions, trigger, _ = make_sessions(store)

    controller = await sessions.submit("job-1", parameters)
    await sessions.wait("job-1")
    assert controller.phase == JobPhase.FAILED

    assert await sessions.retry("job-1") is controller
    await sessions.wait("job-1")

    assert controller.phase == JobPhase.COMPLETE
    assert trigger.calls[1][1] is parameters


@pytest.mark.anyio
async def test_retry_of_completed_session_rejected(parameters):
    store = FakeJobStore([status("completed")], result=BOOK_PAYLOAD)
    sessions, _, _ = make_sessions(store)

    await sessions.submit("job-1", parameters)
    await sessions.wait("job-1")

    with pytest.raises(InvalidTransitionError):
        await sessions.retry("job-1")


@pytest.mark.anyio
async def test_retry_rebuilds_from_stored_submission(parameters):
    store = FakeJobStore([status("failed"), status("completed")], result=BOOK_PAYLOAD)
    submissions = InMemorySubmissionStore()
    submissions.saved["job-9"] = parameters
    sessions, trigger, _ = make_sessions(store, submissions=submissions)

    controller = await sessions.retry("job-9")
    await sessions.wait("job-9")

    assert controller.phase == JobPhase.COMPLETE
    assert trigger.calls == [("job-9", parameters)]


@pytest.mark.anyio
async def test_retry_unknown_job(parameters):
    sessions, _, _ = make_sessions(FakeJobStore())

    with pytest.raises(UnknownJobError):
        await sessions.retry("ghost")


@pytest.mark.anyio
async def test_cancel_and_shutdown(parameters):
    store = FakeJobStore([status("running")])
    sessions, _, _ = make_sessions(store, interval=30)

    controller = await sessions.submit("job-1", parameters)
    await store.read_started.wait()

    assert sessions.cancel("job-1") is True
    await sessions.wait("job-1")
    assert controller.phase == JobPhase.FAILED
    assert sessions.cancel("job-1") is False

    await sessions.retry("job-1")
    await sessions.shutdown()
    assert not controller.is_running


@pytest.mark.anyio
async def test_duplicate_story_id_keeps_original_submission(parameters):
    store = FakeJobStore([status("failed")])
    submissions = InMemorySubmissionStore()
    store.created["job-1"] = parameters
    submissions.saved["job-1"] = parameters
    sessions, trigger, _ = make_sessions(store, submissions=submissions)
    other = StoryParameters(story_text="A totally different story")

    with pytest.raises(GenerationInProgressError):
        await sessions.submit("job-1", other)

    assert submissions.saved["job-1"] is parameters
    assert trigger.calls == []
    assert "job-1" not in sessions


@pytest.mark.anyio
@pytest.mark.parametrize("store_status, error", [
    ("completed", InvalidTransitionError),
    ("running", GenerationInProgressError),
    ("queued", GenerationInProgressError),
])
async def test_rebuilt_retry_requires_failed_job(parameters, store_status, error):
    store = FakeJobStore([status(store_status)], result=BOOK_PAYLOAD)
    submissions = InMemorySubmissionStore()
    submissions.saved["job-1"] = parameters
    sessions, trigger, _ = make_sessions(store, submissions=submissions)

    with pytest.raises(error):
        await sessions.retry("job-1")

    assert trigger.calls == []
    assert "job-1" not in sessions


@pytest.mark.anyio
async def test_finished_sessions_are_evicted_after_retention(parameters):
    store = FakeJobStore([status("completed")], result=BOOK_PAYLOAD)
    sessions, _, _ = make_sessions(store, retention_seconds=0)

    await sessions.submit("job-1", parameters)
    await sessions.wait("job-1")
    await asyncio.sleep(0)

    assert sessions.get("job-1") is None
    assert len(sessions) == 0
    assert sessions._tasks == {}


@pytest.mark.anyio
async def test_retained_sessions_are_capped(parameters):
    store = FakeJobStore([status("completed")], result=BOOK_PAYLOAD)
    sessions, _, _ = make_sessions(store, max_retained=1)

    for job_id in ("job-1", "job-2", "job-3"):
        await sessions.submit(job_id, parameters)
        await sessions.wait(job_id)
    await asyncio.sleep(0)

    assert "job-3" in sessions
    assert "job-1" not in sessions
    assert "job-2" not in sessions
    assert len(sessions) == 1


@pytest.mark.anyio
async def test_running_sessions_are_never_evicted(parameters):
    store = FakeJobStore([status("running")])
    sessions, _, _ = make_sessions(store, interval=30, retention_seconds=0, max_retained=1)

    controller = await sessions.submit("job-1", parameters)
    await store.read_started.wait()

    assert sessions.get("job-1") is controller
    await sessions.shutdown()

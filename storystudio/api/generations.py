"""
Generations API Routes
Status snapshots, retry and cancellation of generation sessions.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from storystudio.api.deps import get_job_store, get_sessions
from storystudio.schemas.job import GenerationStatusResponse, JobPhase, StoreStatus, TERMINAL_FAILURE_STATUSES
from storystudio.services.job_store import JobStore
from storystudio.services.steps import translate_step
from storystudio.workers.base import GenerationInProgressError, InvalidTransitionError, JobStoreError
from storystudio.workers.controller import GenerationController
from storystudio.workers.sessions import GenerationSessions, UnknownJobError

router = APIRouter()


def _snapshot(job_id: str, controller: GenerationController) -> GenerationStatusResponse:
    job = controller.job
    return GenerationStatusResponse(
        job_id=job_id,
        phase=controller.phase,
        current_step_label=controller.current_step_label,
        error=controller.error,
        attempt=job.attempt if job else 0,
        result=controller.result,
    )


@router.get("/{job_id}", response_model=GenerationStatusResponse)
async def get_generation(
    job_id: str,
    sessions: GenerationSessions = Depends(get_sessions),
    job_store: JobStore = Depends(get_job_store),
):
    """
    Get the current phase, progress label and result of a generation.
    Without a live session the Job Store row is reported instead.
    """
    controller = sessions.get(job_id)
    if controller is not None:
        return _snapshot(job_id, controller)

    try:
        record = await job_store.read_status(job_id)
    except JobStoreError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Generation not found"
        )

    if record.status == StoreStatus.COMPLETED.value:
        phase = JobPhase.COMPLETE
    elif record.status in TERMINAL_FAILURE_STATUSES:
        phase = JobPhase.FAILED
    else:
        phase = JobPhase.POLLING

    return GenerationStatusResponse(
        job_id=job_id,
        phase=phase,
        current_step_label=translate_step(record.current_step),
        error=record.error_message if phase == JobPhase.FAILED else None,
        store_status=record.status,
    )


@router.post("/{job_id}/retry", response_model=GenerationStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def retry_generation(
    job_id: str,
    sessions: GenerationSessions = Depends(get_sessions),
):
    """Retry a failed generation with its original submission."""
    try:
        controller = await sessions.retry(job_id)
    except UnknownJobError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No submission recorded for this story"
        )
    except (GenerationInProgressError, InvalidTransitionError) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except JobStoreError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return _snapshot(job_id, controller)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_generation(
    job_id: str,
    sessions: GenerationSessions = Depends(get_sessions),
):
    """Stop tracking a running generation."""
    if not sessions.cancel(job_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No running generation for this story"
        )

"""
API Dependencies
Shared collaborators built once in the application lifespan.
"""

from fastapi import Request

from storystudio.services.job_store import JobStore
from storystudio.workers.sessions import GenerationSessions


def get_job_store(request: Request) -> JobStore:
    """Get the process-wide Job Store client."""
    return request.app.state.job_store


def get_sessions(request: Request) -> GenerationSessions:
    """Get the generation session registry."""
    return request.app.state.sessions

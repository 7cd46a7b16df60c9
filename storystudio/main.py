"""
Storybook Studio API - Picture Book Generation Tracking
FastAPI Backend Entry Point
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storystudio.core.config import settings
from storystudio.core.logging_config import configure_logging
from storystudio.api import generations, stories
from storystudio.services.assembler import ResultAssembler
from storystudio.services.trigger import JobTrigger
from storystudio.workers.controller import GenerationController
from storystudio.workers.poller import StatusPoller
from storystudio.workers.sessions import GenerationSessions

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _init_state(app: FastAPI) -> list:
    """
    Build the Job Store, submission store, trigger and session registry once.
    Anything already placed on app.state (e.g. test fakes) is kept.
    Returns cleanup callables for what was created here.
    """
    state = app.state
    owned = []

    if getattr(state, "job_store", None) is None:
        from storystudio.core.database import SessionLocal, init_db
        from storystudio.services.job_store import SQLJobStore
        init_db()
        state.job_store = SQLJobStore(SessionLocal)
        logger.info("Job Store ready")

    if getattr(state, "submissions", None) is None:
        from storystudio.core.redis import get_redis, get_redis_manager
        from storystudio.services.submissions import RedisSubmissionStore
        state.submissions = RedisSubmissionStore(get_redis())
        owned.append(get_redis_manager().close)

    if getattr(state, "trigger", None) is None:
        state.trigger = JobTrigger()
        owned.append(state.trigger.aclose)

    if getattr(state, "poller", None) is None:
        state.poller = StatusPoller(state.job_store)

    if getattr(state, "sessions", None) is None:
        job_store, trigger, poller = state.job_store, state.trigger, state.poller
        assembler = ResultAssembler(job_store)
        state.sessions = GenerationSessions(
            job_store=job_store,
            submissions=state.submissions,
            controller_factory=lambda: GenerationController(trigger, poller, assembler),
        )

    return owned


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME}...")
    owned = _init_state(app)
    logger.info(
        f"Polling every {settings.POLL_INTERVAL_SECONDS:g}s, "
        f"up to {settings.MAX_POLL_ATTEMPTS} attempts ({settings.poll_budget_seconds:g}s budget)"
    )
    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")
    await app.state.sessions.shutdown()
    for close in reversed(owned):
        result = close()
        if hasattr(result, "__await__"):
            await result


def create_app() -> FastAPI:
    """Create the API application."""
    app = FastAPI(
        title=settings.APP_NAME,
        description="Starts picture book generation workflows and tracks them to completion",
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(stories.router, prefix="/api/v1/stories", tags=["Stories"])
    app.include_router(generations.router, prefix="/api/v1/generations", tags=["Generations"])

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint for monitoring.
        Returns status of the Job Store database and Redis.
        """
        status = {
            "status": "healthy",
            "version": VERSION,
            "services": {}
        }

        # Check database connection
        from storystudio.core.database import check_database
        db_status = check_database()
        status["services"]["database"] = db_status
        if db_status != "ok":
            status["status"] = "degraded"

        # Check Redis connection
        try:
            from storystudio.core.redis import redis_health_check
            redis_status = redis_health_check()
            if redis_status.get("connected"):
                status["services"]["redis"] = "ok"
                status["services"]["redis_version"] = redis_status.get("redis_version")
                status["services"]["redis_latency_ms"] = redis_status.get("latency_ms")
            else:
                status["services"]["redis"] = f"error: {redis_status.get('error', 'not connected')}"
                status["status"] = "degraded"
        except Exception as e:
            status["services"]["redis"] = f"error: {str(e)}"
            status["status"] = "degraded"

        return status

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            "message": "Storybook Studio API - Picture Book Generation Tracking",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("storystudio.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

"""
Database Configuration
Engine, sessions and table setup for the Job Store shared with the workflow executor.
Supports both SQLite (local dev) and PostgreSQL (production).
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from storystudio.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> Engine:
    """Create an engine for the Job Store database URL."""
    if url.startswith("sqlite"):
        # Status reads run in worker threads
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def session_scope(session_factory: Callable[[], Session] = SessionLocal) -> Iterator[Session]:
    """Yield a session, rolling back on error and always closing it."""
    db = session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_database() -> str:
    """Return "ok" or an error description for the health endpoint."""
    try:
        with session_scope() as db:
            db.execute(text("SELECT 1"))
        return "ok"
    except SQLAlchemyError as e:
        logger.error(f"Job Store health check failed: {e}")
        return f"error: {e}"


def init_db(bind=None):
    """Create the stories, story_pages and story_characters tables if missing."""
    from storystudio.models import Story, StoryPage, StoryCharacter  # noqa

    try:
        Base.metadata.create_all(bind=bind or engine)
    except SQLAlchemyError as e:
        # The executor may own the schema and the service role may lack DDL rights
        logger.warning(f"Could not create Job Store tables: {e}")
        logger.info("Continuing with existing database...")

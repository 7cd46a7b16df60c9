"""
Story Model
Job Store row for one story generation request.
The external executor advances status/current_step and writes the result.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, JSON
from sqlalchemy.orm import relationship

from storystudio.core.database import Base


class Story(Base):
    """Story generation job model."""

    __tablename__ = "stories"

    id = Column(String, primary_key=True)  # caller-generated uuid

    # Submission
    source_text = Column(Text, nullable=False)
    settings = Column(JSON, default=dict)

    # Status: queued, running, completed, error, failed
    status = Column(String, default="queued", index=True)
    current_step = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)

    # Final payload written by the executor (title, theme, pages, characters)
    title = Column(String, nullable=True)
    theme = Column(String, nullable=True)
    result = Column(JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    pages = relationship("StoryPage", back_populates="story", cascade="all, delete-orphan")
    characters = relationship("StoryCharacter", back_populates="story", cascade="all, delete-orphan")

"""
Story Character Model
Character portrait assets produced by the executor.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from storystudio.core.database import Base


class StoryCharacter(Base):
    """Character reference portrait for a story."""

    __tablename__ = "story_characters"
    __table_args__ = (UniqueConstraint("story_id", "name", name="uq_story_character_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    story_id = Column(String, ForeignKey("stories.id"), nullable=False, index=True)

    name = Column(String, nullable=False)
    role = Column(String, nullable=True)  # hero, sidekick, villain...
    description = Column(Text, nullable=True)
    reference_image = Column(Text, nullable=True)
    is_hero = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    story = relationship("Story", back_populates="characters")

"""
Story Page Model
Illustrated page assets produced by the executor.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from storystudio.core.database import Base


class StoryPage(Base):
    """Page image asset for a story."""

    __tablename__ = "story_pages"
    __table_args__ = (UniqueConstraint("story_id", "page_number", name="uq_story_page_number"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    story_id = Column(String, ForeignKey("stories.id"), nullable=False, index=True)

    page_number = Column(Integer, nullable=False)
    caption = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)  # URL or data URL
    was_fixed = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    story = relationship("Story", back_populates="pages")

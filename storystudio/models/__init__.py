# Job Store models package
from storystudio.models.story import Story
from storystudio.models.page import StoryPage
from storystudio.models.character import StoryCharacter

__all__ = [
    "Story",
    "StoryPage",
    "StoryCharacter",
]

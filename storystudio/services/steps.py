"""
Step Translator
Maps the executor's opaque step identifiers to user-facing progress text.
"""

from typing import Dict, Optional

STEP_MESSAGES: Dict[str, str] = {
    "characters": "Extracting characters...",
    "portraits": "Generating character portraits...",
    "environments": "Creating environment references...",
    "pages": "Illustrating pages...",
    "consistency": "Reviewing for consistency...",
    "fixing": "Fixing inconsistencies...",
    "finalizing": "Finalizing...",
}


def translate_step(step_id: Optional[str]) -> str:
    """
    Translate a step identifier into progress text.

    Unknown identifiers are returned unchanged so new pipeline steps show
    up unlabeled instead of breaking the display.
    """
    if step_id is None:
        return ""
    return STEP_MESSAGES.get(step_id, step_id)

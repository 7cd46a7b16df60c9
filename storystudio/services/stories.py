"""
Story Library Helpers
Display titles for stored stories.
"""

import re

UNTITLED = "Untitled Story"

_BOLD_TITLE = re.compile(r"^\*\*([^*]+)\*\*")
_ITALIC_TITLE = re.compile(r"^\*([^*]+)\*")
_QUOTED_TITLE = re.compile(r'^"([^"]+)"')
_COLON_TITLE = re.compile(r"^([^:.\n]{5,50}):")


def extract_title(source_text: str) -> str:
    """
    Extract a display title from story text.

    Tries **Title**, *Title*, "Title" and a short "Title:" prefix before
    falling back to the first line, truncated to 50 characters when long.
    """
    if not source_text:
        return UNTITLED

    for pattern in (_BOLD_TITLE, _ITALIC_TITLE, _QUOTED_TITLE, _COLON_TITLE):
        match = pattern.match(source_text)
        if match:
            return match.group(1).strip()

    first_line = source_text.split("\n")[0].strip()
    if len(first_line) <= 60:
        return first_line or UNTITLED

    return first_line[:50].strip() + "..."

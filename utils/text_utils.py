"""
Text utilities for values coming from external files.

Free text ends up in other systems (reports, exports, SQL consoles), so
markup and statement characters are stripped before storage.
"""

import re
from typing import Any, Optional

# Angle brackets, statement separators and comment openers
_UNSAFE_PATTERN = re.compile(r"[<>]|;|--|/\*")


def sanitize_text(value: Any, max_length: int = 500) -> Optional[str]:
    """
    Clean a free-text value for storage.

    - Removes <, >, ;, -- and /*
    - Strips whitespace
    - Truncates to max_length
    - Returns None for empty/whitespace-only values

    Args:
        value: Raw cell value (any type)
        max_length: Maximum characters to keep

    Returns:
        Cleaned string or None
    """
    if value is None:
        return None

    text = _UNSAFE_PATTERN.sub("", str(value)).strip()

    if not text:
        return None

    return text[:max_length]


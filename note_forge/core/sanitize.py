"""
Sanitization of upstream document text.

Generation services occasionally wrap the document in markdown code fences
even when told not to; the fence lines are removed before the text is
treated as HTML.
"""

import re

_OPENING_FENCE = re.compile(r"\A\s*```[\w-]*[ \t]*\r?\n?")
_CLOSING_FENCE = re.compile(r"\r?\n?[ \t]*```\s*\Z")


def strip_code_fences(text: str) -> str:
    """Remove a markdown code fence wrapping the whole text.

    Only a fence at the very start and/or the very end is removed; fences
    inside the document are content and stay untouched.

    Args:
        text: Raw upstream text

    Returns:
        Text without the wrapping fence, stripped of surrounding whitespace
    """
    if text is None:
        return ""
    cleaned = _OPENING_FENCE.sub("", text, count=1)
    cleaned = _CLOSING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()

import html
import re
from typing import Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Escape HTML special characters before a value is interpolated into an email.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(str(value), quote=True)


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace and control characters from free text input"""
    if value is None:
        return None
    return _CONTROL_CHARS.sub("", str(value)).strip()

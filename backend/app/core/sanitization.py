"""
Input sanitization utilities for uploaded files and column names.
"""
import re
from typing import Any

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f-\x9f]')

# Windows reserved device names
_RESERVED_NAMES = re.compile(r'^(CON|PRN|AUX|NUL|COM[1-9]|LPT[1-9])$', re.IGNORECASE)


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Sanitize filename to prevent path traversal and log injection.

    Args:
        filename: Original filename
        max_length: Maximum length of sanitized filename

    Returns:
        Sanitized filename safe for logging and download headers
    """
    if not filename:
        return "unknown"

    # Drop any directory components
    filename = filename.split('/')[-1].split('\\')[-1]
    filename = _CONTROL_CHARS.sub('', filename)
    filename = filename.strip('. ')

    return filename[:max_length] or "unknown"


def sanitize_for_logging(value: str, max_length: int = 500) -> str:
    """
    Sanitize value for safe logging (prevents log injection).
    """
    if not value:
        return ""

    value = re.sub(r'[\r\n]', ' ', value)
    value = _CONTROL_CHARS.sub('', value)

    if len(value) > max_length:
        value = value[:max_length] + "..."

    return value


def validate_column_name(name: str) -> bool:
    """
    Check that a column header is safe to use as a record key.

    Newlines and tabs are tolerated (they are common in spreadsheet headers
    and are collapsed by `clean_column_name`); other control characters,
    path traversal and reserved device names are not.
    """
    if not name or len(name) > 1000:
        return False

    if '..' in name:
        return False
    if re.search(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', name):
        return False
    if _RESERVED_NAMES.match(name):
        return False

    return True


def clean_column_name(name: Any) -> Any:
    """Collapse newlines and runs of whitespace in a string header."""
    if isinstance(name, str):
        name = name.replace('\n', ' ').replace('\r', ' ')
        name = ' '.join(name.split())
    return name

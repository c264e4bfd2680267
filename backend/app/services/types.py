"""
Column type inference.

Two heuristics are offered:
- `detect_column_types`: a cheap single-row pass over the first record,
  the only path that reports `boolean`.
- `infer_type`: a majority vote over sampled values, used by the profiler.
"""
import re
from typing import Any, Dict, List, Sequence

from app.services.cells import CellKind, classify, to_date, to_number

NUMBER = "number"
DATE = "date"
BOOLEAN = "boolean"
STRING = "string"

# Share of sampled values that must agree before a column is typed
MAJORITY_THRESHOLD = 0.6

DATE_PATTERNS = [
    re.compile(r"^\d{4}-\d{2}-\d{2}$"),          # YYYY-MM-DD
    re.compile(r"^\d{2}/\d{2}/\d{4}$"),          # MM/DD/YYYY
    re.compile(r"^\d{2}-\d{2}-\d{4}$"),          # DD-MM-YYYY
    re.compile(r"^\d{1,2} [a-zA-Z]{3} \d{4}$"),  # D MMM YYYY
]


def is_date_string(value: Any) -> bool:
    """Check whether a value is text in one of the recognised date shapes."""
    if not isinstance(value, str) or not value:
        return False
    return any(pattern.match(value) for pattern in DATE_PATTERNS)


def infer_type(values: Sequence[Any]) -> str:
    """
    Majority-vote type of a column from its non-null sampled values.

    Args:
        values: Non-null raw values from the sample

    Returns:
        "date" if more than 60% parse as dates, else "number" if more than
        60% coerce to finite numbers, else "string" (also for an empty sample)
    """
    total = len(values)
    if total == 0:
        return STRING

    date_count = sum(1 for v in values if to_date(v) is not None)
    numeric_count = sum(1 for v in values if to_number(v) is not None)

    if date_count / total > MAJORITY_THRESHOLD:
        return DATE
    if numeric_count / total > MAJORITY_THRESHOLD:
        return NUMBER
    return STRING


def detect_column_types(records: List[Dict[str, Any]]) -> Dict[str, str]:
    """
    Classify every column of the first record by that record's value alone.
    """
    if not records or not isinstance(records[0], dict):
        return {}

    types = {}
    for column, value in records[0].items():
        kind = classify(value)
        if kind is CellKind.NUMBER:
            types[column] = NUMBER
        elif kind is CellKind.DATE or is_date_string(value):
            types[column] = DATE
        elif kind is CellKind.BOOL:
            types[column] = BOOLEAN
        else:
            types[column] = STRING
    return types

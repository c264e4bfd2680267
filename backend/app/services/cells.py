"""
Cell classification and coercion.

Record cells arrive untyped (whatever the decoder produced). Every cell is
classified into a closed set of kinds so the numeric, date and text
coercions used by the profiler, filters and aggregator are total functions.
"""
import json
import math
import numbers
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import numpy as np
import pandas as pd


class CellKind(str, Enum):
    NUMBER = "number"
    TEXT = "text"
    BOOL = "bool"
    DATE = "date"
    NULL = "null"
    NESTED = "nested"


def unwrap(value: Any) -> Any:
    """Convert NumPy scalars to their Python equivalents."""
    if isinstance(value, np.generic):
        return value.item()
    return value


def classify(value: Any) -> CellKind:
    """Return the kind of a raw cell value."""
    value = unwrap(value)

    if value is None or value is pd.NaT:
        return CellKind.NULL
    # bool subclasses int, so it must be checked first
    if isinstance(value, bool):
        return CellKind.BOOL
    if isinstance(value, (datetime, date, pd.Timestamp)):
        return CellKind.DATE
    if isinstance(value, numbers.Number):
        if isinstance(value, float) and math.isnan(value):
            return CellKind.NULL
        return CellKind.NUMBER
    if isinstance(value, str):
        return CellKind.TEXT
    return CellKind.NESTED


def is_null(value: Any) -> bool:
    return classify(value) is CellKind.NULL


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a cell to a finite float.

    Returns None when the cell has no finite numeric reading (null, nested,
    dates, non-numeric or empty text, NaN and infinities).
    """
    kind = classify(value)
    value = unwrap(value)

    if kind is CellKind.BOOL:
        return 1.0 if value else 0.0
    if kind is CellKind.NUMBER:
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return None
    elif kind is CellKind.TEXT:
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    return number if math.isfinite(number) else None


def _naive(ts: pd.Timestamp) -> pd.Timestamp:
    if ts.tzinfo is not None:
        return ts.tz_convert("UTC").tz_localize(None)
    return ts


def to_date(value: Any) -> Optional[pd.Timestamp]:
    """
    Parse a cell as a calendar date.

    Native date values are accepted as-is. Text is parsed with pandas unless
    it reads as a plain number or has no digits at all, so "2021", "10" and
    month names such as "Jan" never become dates.
    Timezone-aware results are normalised to naive UTC.
    """
    kind = classify(value)
    value = unwrap(value)

    if kind is CellKind.DATE:
        try:
            return _naive(pd.Timestamp(value))
        except (TypeError, ValueError, OverflowError):
            return None
    if kind is not CellKind.TEXT:
        return None

    text = value.strip()
    if not text or to_number(text) is not None:
        return None
    if not any(ch.isdigit() for ch in text):
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return _naive(parsed)


def to_text(value: Any) -> str:
    """String form used for grouping, deduplication and text matching."""
    kind = classify(value)
    value = unwrap(value)

    if kind is CellKind.NULL:
        return ""
    if kind is CellKind.BOOL:
        return "true" if value else "false"
    if kind is CellKind.NUMBER:
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)
    if kind is CellKind.DATE:
        return value.isoformat()
    if kind is CellKind.TEXT:
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)

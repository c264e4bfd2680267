"""
Record export to CSV and JSON text.

Only the serialisation lives here; the API wraps the text in a download
response.
"""
import csv
import json
import logging
from typing import Any, Sequence

import pandas as pd

from app.services.cells import to_text
from app.services.profiler import collect_columns, valid_records

logger = logging.getLogger(__name__)

CSV_LINE_END = "\r\n"

EXPORT_FORMATS = {
    "csv": ("text/csv; charset=utf-8", "data.csv"),
    "json": ("application/json; charset=utf-8", "data.json"),
}


def to_csv(records: Sequence[Any]) -> str:
    """
    Serialise records as CSV with every field quoted.

    The header is the union of keys across all records in first-seen order;
    records missing a column get an empty field. Cells are written in their
    text form (nested values as JSON, nulls as ""). Empty input gives "".
    """
    rows = valid_records(records)
    if not rows:
        return ""

    columns = collect_columns(rows)
    df = pd.DataFrame(
        [[to_text(row.get(c)) for c in columns] for row in rows],
        columns=columns,
        dtype=object,
    )
    text = df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator=CSV_LINE_END)

    logger.debug(f"Exported {len(rows)} records as CSV")
    # No line end after the final record
    return text[:-len(CSV_LINE_END)]


def to_json(records: Sequence[Any]) -> str:
    """Serialise records as pretty-printed JSON."""
    rows = valid_records(records)
    return json.dumps(rows, indent=2, ensure_ascii=False, default=str)

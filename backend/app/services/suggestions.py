"""
Starter questions for the natural-language query box.
"""
from typing import Any, List, Sequence

from app.services.profiler import valid_records

MAX_SUGGESTIONS = 5

GENERAL_SUGGESTIONS = [
    "What is the average of all numeric values?",
    "Show me the highest and lowest values",
]

TIME_SUGGESTIONS = [
    "How has the data changed over time?",
    "What's the trend for the most recent period?",
]


def generate_query_suggestions(records: Sequence[Any]) -> List[str]:
    """
    Up to five example questions built from the first record's columns.
    """
    rows = valid_records(records)
    if not rows:
        return []

    columns = list(rows[0].keys())
    suggestions = list(GENERAL_SUGGESTIONS)
    for column in columns:
        suggestions.append(f"What is the average {column}?")
        suggestions.append(f"What is the highest {column}?")

    if any("date" in str(c).lower() or "time" in str(c).lower() for c in columns):
        suggestions.extend(TIME_SUGGESTIONS)

    return suggestions[:MAX_SUGGESTIONS]

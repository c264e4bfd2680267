"""
Record filtering.

Applies a FilterSpec (global text search plus per-column predicates) to a
record sequence. Filtering is stable: retained records keep their original
relative order, and applying the same spec twice changes nothing.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from app.core.schemas import ColumnPredicate, FilterChip, FilterSpec, Record
from app.core.performance import track_performance
from app.services.cells import is_null, to_date, to_number, to_text
from app.services.profiler import valid_records

logger = logging.getLogger(__name__)

GLOBAL_CHIP_KEY = "__global"


def as_filter_spec(spec: Optional[Union[FilterSpec, Dict[str, Any]]]) -> FilterSpec:
    if spec is None:
        return FilterSpec()
    if isinstance(spec, FilterSpec):
        return spec
    return FilterSpec.model_validate(spec)


def matches_global_search(record: Record, term: str) -> bool:
    """True if any non-null cell contains `term` (already lower-cased)."""
    for value in record.values():
        if is_null(value):
            continue
        if term in to_text(value).lower():
            return True
    return False


def _passes_range(value: Any, predicate: ColumnPredicate) -> bool:
    number = to_number(value)
    if number is None:
        return False
    if predicate.min is not None and number < predicate.min:
        return False
    if predicate.max is not None and number > predicate.max:
        return False
    return True


def _passes_dates(value: Any, predicate: ColumnPredicate) -> bool:
    moment = to_date(value)
    if moment is None:
        return False
    # A bound that does not parse imposes nothing
    start = to_date(predicate.start)
    end = to_date(predicate.end)
    if start is not None and moment < start:
        return False
    if end is not None and moment > end:
        return False
    return True


def _passes_text(value: Any, predicate: ColumnPredicate) -> bool:
    text = to_text(value).lower()
    needle = predicate.value.lower()
    if predicate.op == "equals":
        return text == needle
    return needle in text


def matches_predicate(value: Any, predicate: ColumnPredicate) -> bool:
    """
    Evaluate every clause present on a predicate against one cell.

    Clauses that are not set are skipped, so a predicate with none of them
    accepts every value.
    """
    if predicate.has_range and not _passes_range(value, predicate):
        return False
    if predicate.has_dates and not _passes_dates(value, predicate):
        return False
    if predicate.values is not None:
        allowed = {to_text(v) for v in predicate.values}
        if to_text(value) not in allowed:
            return False
    if predicate.has_text and not _passes_text(value, predicate):
        return False
    return True


def matches_record(record: Record, spec: FilterSpec, term: str = "") -> bool:
    if term and not matches_global_search(record, term):
        return False
    for column, predicate in spec.columns.items():
        if not matches_predicate(record.get(column), predicate):
            return False
    return True


@track_performance("apply_filters")
def apply_filters(records: Sequence[Any], spec: Optional[Union[FilterSpec, Dict[str, Any]]] = None) -> List[Record]:
    """
    Return the records that pass the global search and every column predicate.

    Args:
        records: Decoded records; non-record entries are dropped
        spec: FilterSpec or an equivalent mapping (camelCase keys accepted)

    Returns:
        Matching records in their original order
    """
    spec = as_filter_spec(spec)
    rows = valid_records(records)
    term = spec.global_search.strip().lower()

    if not term and not spec.columns:
        return rows

    result = [r for r in rows if matches_record(r, spec, term)]
    logger.debug(f"Filtered {len(rows)} records down to {len(result)}")
    return result


def _bound(value: Any) -> str:
    return "-" if value is None else to_text(value)


def describe_active_filters(spec: Optional[Union[FilterSpec, Dict[str, Any]]]) -> List[FilterChip]:
    """
    Labels for the active filters, one chip per constraint the user can remove.
    """
    spec = as_filter_spec(spec)
    chips = []

    if spec.global_search.strip():
        chips.append(FilterChip(key=GLOBAL_CHIP_KEY, label=f"Search: {spec.global_search}"))

    for column, predicate in spec.columns.items():
        if predicate.has_range:
            detail = f"{_bound(predicate.min)} - {_bound(predicate.max)}"
        elif predicate.has_dates:
            detail = f"{_bound(predicate.start)} ↦ {_bound(predicate.end)}"
        elif predicate.values is not None:
            detail = ", ".join(to_text(v) for v in predicate.values)
        else:
            detail = f"{predicate.op} {predicate.value}"
        chips.append(FilterChip(key=column, label=f"{column}: {detail}"))

    return chips


def remove_filter(spec: FilterSpec, key: str) -> FilterSpec:
    """Return a copy of `spec` without the constraint behind a chip key."""
    updated = spec.model_copy(deep=True)
    if key == GLOBAL_CHIP_KEY:
        updated.global_search = ""
    else:
        updated.remove_predicate(key)
    return updated

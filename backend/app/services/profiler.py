import logging
from typing import Any, Dict, List, Optional, Sequence

from app.core.schemas import ColumnProfile, Record
from app.core.performance import track_performance
from app.services.cells import is_null, to_number, to_text
from app.services.types import infer_type

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 500
MAX_EXAMPLES = 5


def valid_records(records: Optional[Sequence[Any]]) -> List[Record]:
    """Drop anything that is not a record (None, scalars, lists)."""
    if not records:
        return []
    return [r for r in records if isinstance(r, dict)]


def collect_columns(sample: Sequence[Record]) -> List[str]:
    """
    Union of keys across the sample, in first-seen order.

    Sparse records contribute their own keys, so a column that only appears
    on later rows is still profiled.
    """
    seen: Dict[str, None] = {}
    for record in sample:
        for key in record.keys():
            seen.setdefault(key, None)
    return list(seen)


def profile_column(name: str, values: List[Any]) -> ColumnProfile:
    """
    Profile one column from its non-null sampled values.
    """
    unique = {to_text(v) for v in values}
    numbers = [n for n in (to_number(v) for v in values) if n is not None]

    return ColumnProfile(
        name=name,
        type=infer_type(values),
        non_null_count=len(values),
        unique_count=len(unique),
        example=values[:MAX_EXAMPLES],
        min=min(numbers) if numbers else None,
        max=max(numbers) if numbers else None,
    )


@track_performance("profile_data")
def profile_data(records: Sequence[Any], sample_size: int = DEFAULT_SAMPLE_SIZE) -> Dict[str, ColumnProfile]:
    """
    Profile the columns of a record sequence.

    Only the first `sample_size` valid records are inspected, which bounds
    the cost on large datasets.

    Args:
        records: Decoded records; non-record entries are ignored
        sample_size: Number of records to sample

    Returns:
        Mapping of column name to ColumnProfile, in first-seen column order
    """
    sample = valid_records(records)[:max(sample_size, 0)]
    columns = collect_columns(sample)

    profile = {}
    for name in columns:
        values = [r[name] for r in sample if name in r and not is_null(r[name])]
        profile[name] = profile_column(name, values)

    logger.debug(f"Profiled {len(columns)} columns over {len(sample)} sampled records")
    return profile

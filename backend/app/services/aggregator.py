"""
Series aggregation for a chart configuration.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from app.core.schemas import AggregatedPoint, ChartConfig, Record, Series
from app.core.performance import track_performance
from app.services.cells import is_null, to_number, to_text
from app.services.profiler import valid_records

logger = logging.getLogger(__name__)

OTHER_LABEL = "Other"


class _NullKey:
    """Group key for records with no value in the grouping column."""

    def __repr__(self) -> str:
        return "<null key>"


NULL_KEY = _NullKey()


def group_key(record: Record, column: Optional[str]) -> Union[str, _NullKey]:
    value = record.get(column) if column is not None else None
    if is_null(value):
        return NULL_KEY
    return to_text(value)


def histogram_values(rows: Sequence[Record], column: Optional[str]) -> List[float]:
    """Finite numeric readings of one column; binning is left to the renderer."""
    if column is None:
        return []
    values = (to_number(r.get(column)) for r in rows)
    return [v for v in values if v is not None]


def collapse_top_n(points: List[AggregatedPoint], top_n: Optional[int]) -> List[AggregatedPoint]:
    """
    Keep the first `top_n` points and merge the rest into one "Other" point.
    """
    if not top_n or len(points) <= top_n:
        return points

    rest = points[top_n:]
    other = AggregatedPoint(
        x=OTHER_LABEL,
        y=sum(p.y for p in rest),
        count=sum(p.count for p in rest),
        sum=sum(p.sum for p in rest),
    )
    return points[:top_n] + [other]


def group_and_aggregate(rows: Sequence[Record], config: ChartConfig) -> List[AggregatedPoint]:
    groups: Dict[Any, Dict[str, float]] = {}
    for row in rows:
        key = group_key(row, config.x)
        bucket = groups.setdefault(key, {"count": 0, "sum": 0.0})
        bucket["count"] += 1
        if config.y is not None:
            bucket["sum"] += to_number(row.get(config.y)) or 0.0

    points = []
    for key, bucket in groups.items():
        count, total = int(bucket["count"]), bucket["sum"]
        if config.aggregation == "sum":
            value = total
        elif config.aggregation == "avg":
            value = total / count if count else 0.0
        else:
            value = float(count)
        points.append(AggregatedPoint(
            x=None if key is NULL_KEY else key,
            y=value,
            count=count,
            sum=total,
        ))

    # Tie order is not guaranteed to callers
    points.sort(key=lambda p: p.y, reverse=True)
    return collapse_top_n(points, config.top_n)


@track_performance("aggregate_data")
def aggregate_data(records: Sequence[Any], config: Union[ChartConfig, Dict[str, Any]]) -> Series:
    """
    Produce the series a chart renders.

    Args:
        records: Filtered records; non-record entries are dropped
        config: Chart configuration (usually from select_chart_type)

    Returns:
        - table: the records unchanged
        - histogram: raw finite numeric values of the x column
        - otherwise: AggregatedPoint list sorted by y descending, with the
          tail beyond top_n merged into an "Other" point
    """
    if not isinstance(config, ChartConfig):
        config = ChartConfig.model_validate(config)
    rows = valid_records(records)

    if config.chart_type == "table":
        return rows
    if config.chart_type == "histogram":
        return histogram_values(rows, config.x)

    points = group_and_aggregate(rows, config)
    logger.debug(f"Aggregated {len(rows)} records into {len(points)} {config.chart_type} points")
    return points

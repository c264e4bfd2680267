"""
Chart selection.

Maps a column profile plus optional intent to a chart configuration using
deterministic rules. The rules are an ordered list; the first one that
returns a configuration wins, and the list ends with a table fallback so
selection always succeeds.

Known quirk: the pie rule can only fire for a numeric group-by column,
because any non-numeric group-by with cardinality <= 50 is claimed by the
bar rule first. The order is kept as is.
"""
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.core.schemas import ChartConfig, ChartIntent, ColumnProfile

logger = logging.getLogger(__name__)

TIME_HINTS = {"month", "day", "year", "week", "time", "trend"}
DISTRIBUTION_HINT = "distribution"

MAX_BAR_CARDINALITY = 50
MAX_PIE_CARDINALITY = 6
BAR_TOP_N = 10


class ProfileView:
    """Read-only helpers over a profile mapping."""

    def __init__(self, profile: Mapping[str, ColumnProfile]):
        self.profile = profile
        self.columns = list(profile.keys())

    def type_of(self, column: Optional[str]) -> Optional[str]:
        if column is None or column not in self.profile:
            return None
        return self.profile[column].type

    def is_numeric(self, column: Optional[str]) -> bool:
        return self.type_of(column) == "number"

    def is_date(self, column: Optional[str]) -> bool:
        return self.type_of(column) == "date"

    def cardinality(self, column: Optional[str]) -> int:
        if column is None or column not in self.profile:
            return 0
        return self.profile[column].unique_count or 0

    def first_numeric(self) -> Optional[str]:
        return next((c for c in self.columns if self.is_numeric(c)), None)

    def first_date(self) -> Optional[str]:
        return next((c for c in self.columns if self.is_date(c)), None)

    def first_category(self) -> Optional[str]:
        return next(
            (c for c in self.columns
             if self.type_of(c) == "string" and self.cardinality(c) <= MAX_BAR_CARDINALITY),
            None,
        )


Rule = Callable[[ChartIntent, ProfileView], Optional[ChartConfig]]


def _time_series(x: str, intent: ChartIntent, view: ProfileView) -> ChartConfig:
    y = intent.metric or view.first_numeric()
    return ChartConfig(
        chart_type="line",
        x=x,
        y=y,
        aggregation="sum" if y else "count",
    )


def scatter_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    if intent.x and intent.y and view.is_numeric(intent.x) and view.is_numeric(intent.y):
        return ChartConfig(chart_type="scatter", x=intent.x, y=intent.y)
    return None


def date_group_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    if intent.group_by and view.is_date(intent.group_by):
        return _time_series(intent.group_by, intent, view)
    return None


def time_hint_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    if not TIME_HINTS.intersection(intent.hints):
        return None
    date_column = view.first_date()
    if date_column is None:
        return None
    return _time_series(date_column, intent, view)


def category_bar_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    group_by = intent.group_by
    if group_by and not view.is_numeric(group_by) and view.cardinality(group_by) <= MAX_BAR_CARDINALITY:
        return ChartConfig(
            chart_type="bar",
            x=group_by,
            y=intent.metric,
            aggregation="sum" if intent.metric else "count",
            top_n=BAR_TOP_N,
        )
    return None


def pie_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    if intent.group_by and 0 < view.cardinality(intent.group_by) <= MAX_PIE_CARDINALITY:
        return ChartConfig(
            chart_type="pie",
            x=intent.group_by,
            y=intent.metric,
            aggregation="sum" if intent.metric else "count",
        )
    return None


def histogram_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    if (intent.column and view.is_numeric(intent.column)) or DISTRIBUTION_HINT in intent.hints:
        return ChartConfig(chart_type="histogram", x=intent.column or view.first_numeric())
    return None


def fallback_bar_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    category = view.first_category()
    if category is None:
        return None
    return ChartConfig(
        chart_type="bar",
        x=category,
        y=intent.metric,
        aggregation="sum" if intent.metric else "count",
        top_n=BAR_TOP_N,
    )


def table_rule(intent: ChartIntent, view: ProfileView) -> Optional[ChartConfig]:
    return ChartConfig(chart_type="table")


# Evaluated top to bottom; order decides ties between rules
RULES: List[Rule] = [
    scatter_rule,
    date_group_rule,
    time_hint_rule,
    category_bar_rule,
    pie_rule,
    histogram_rule,
    fallback_bar_rule,
    table_rule,
]


def _as_profile(profile: Optional[Mapping[str, Any]]) -> Dict[str, ColumnProfile]:
    result = {}
    for name, column in (profile or {}).items():
        if isinstance(column, ColumnProfile):
            result[name] = column
        elif isinstance(column, Mapping):
            try:
                result[name] = ColumnProfile.model_validate({"name": name, **column})
            except ValidationError as e:
                logger.warning(f"Ignoring malformed profile entry {name!r}: {e.error_count()} errors")
    return result


def _as_intent(intent: Optional[Union[ChartIntent, Mapping[str, Any]]]) -> ChartIntent:
    """Validate an intent, keeping only the fields that parse."""
    if isinstance(intent, ChartIntent):
        return intent
    if not isinstance(intent, Mapping):
        if intent is not None:
            logger.warning(f"Ignoring chart intent of type {type(intent).__name__}")
        return ChartIntent()

    try:
        return ChartIntent.model_validate(dict(intent))
    except ValidationError as e:
        bad = {err["loc"][0] for err in e.errors() if err["loc"]}
        logger.warning(f"Ignoring malformed intent fields: {sorted(map(str, bad))}")

    kept = {k: v for k, v in intent.items() if k not in bad}
    try:
        return ChartIntent.model_validate(kept)
    except ValidationError:
        return ChartIntent()


def select_chart_type(
    intent: Optional[Union[ChartIntent, Dict[str, Any]]] = None,
    profile: Optional[Mapping[str, Any]] = None,
) -> ChartConfig:
    """
    Choose a chart configuration for a profiled dataset.

    Args:
        intent: Optional guidance (x, y, column, metric, group_by, hints)
        profile: Output of profile_data, or equivalent mappings

    Returns:
        ChartConfig. The result is advisory; callers may override fields
        before aggregating.
    """
    intent = _as_intent(intent)
    view = ProfileView(_as_profile(profile))

    for rule in RULES:
        config = rule(intent, view)
        if config is not None:
            logger.debug(f"Chart rule {rule.__name__} selected {config.chart_type}")
            return config

    return ChartConfig(chart_type="table")

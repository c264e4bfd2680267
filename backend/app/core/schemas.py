import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from typing import List, Optional, Any, Dict, Literal, Union

Record = Dict[str, Any]

ColumnType = Literal["number", "date", "boolean", "string"]
ChartType = Literal["bar", "line", "area", "pie", "scatter", "histogram", "table"]
Aggregation = Literal["count", "sum", "avg"]

logger = logging.getLogger(__name__)


class ColumnProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    type: ColumnType
    non_null_count: int = Field(alias="nonNullCount")
    unique_count: int = Field(alias="uniqueCount")
    example: List[Any] = []  # up to 5 raw values
    min: Optional[float] = None  # only when some value coerces to a finite number
    max: Optional[float] = None


class ColumnPredicate(BaseModel):
    """
    Constraint on a single column.

    Any combination of clauses may be present; each one that is present must
    pass. Blank strings and empty value lists count as absent.
    """
    min: Optional[float] = None
    max: Optional[float] = None
    start: Optional[str] = None  # ISO date
    end: Optional[str] = None
    values: Optional[List[Any]] = None
    op: Optional[str] = None  # 'equals' | 'contains'
    value: Optional[str] = None

    @field_validator("start", "end", "value", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("values", mode="before")
    @classmethod
    def empty_values_to_none(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple)) and len(v) == 0:
            return None
        return v

    @property
    def has_range(self) -> bool:
        return self.min is not None or self.max is not None

    @property
    def has_dates(self) -> bool:
        return self.start is not None or self.end is not None

    @property
    def has_text(self) -> bool:
        return self.value is not None and self.op in ("equals", "contains")

    def is_empty(self) -> bool:
        return not (self.has_range or self.has_dates or self.values is not None or self.has_text)


class FilterSpec(BaseModel):
    """Global text search plus per-column predicates, ANDed together."""
    model_config = ConfigDict(populate_by_name=True)

    global_search: str = Field(default="", alias="globalSearch")
    columns: Dict[str, ColumnPredicate] = {}

    @field_validator("global_search", mode="before")
    @classmethod
    def coerce_search_term(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        if not isinstance(v, str):
            logger.warning(f"Ignoring non-text global search of type {type(v).__name__}")
            return ""
        return v

    @field_validator("columns", mode="before")
    @classmethod
    def drop_malformed_predicates(cls, v: Any) -> Any:
        """Validate predicates one by one, skipping the ones that do not parse."""
        if not isinstance(v, dict):
            if v is not None:
                logger.warning(f"Ignoring column filters of type {type(v).__name__}")
            return {}

        predicates = {}
        for column, predicate in v.items():
            if not predicate:
                continue
            if isinstance(predicate, ColumnPredicate):
                predicates[column] = predicate
                continue
            if not isinstance(predicate, dict):
                logger.warning(f"Ignoring filter on {column!r}: expected an object")
                continue
            try:
                predicates[column] = ColumnPredicate.model_validate(predicate)
            except ValidationError as e:
                logger.warning(f"Ignoring malformed filter on {column!r}: {e.error_count()} errors")
        return predicates

    @model_validator(mode="after")
    def drop_empty_predicates(self) -> "FilterSpec":
        # An empty predicate would show up as an active filter that constrains nothing
        self.columns = {k: p for k, p in self.columns.items() if not p.is_empty()}
        return self

    def set_predicate(self, column: str, predicate: Optional[Union[ColumnPredicate, Dict[str, Any]]]) -> None:
        """Store a predicate, or remove the column's entry if it is empty."""
        if predicate is not None and not isinstance(predicate, ColumnPredicate):
            predicate = ColumnPredicate.model_validate(predicate)
        if predicate is None or predicate.is_empty():
            self.columns.pop(column, None)
        else:
            self.columns[column] = predicate

    def remove_predicate(self, column: str) -> None:
        self.columns.pop(column, None)

    def active_columns(self) -> List[str]:
        return list(self.columns.keys())

    def is_active(self) -> bool:
        return bool(self.global_search.strip()) or bool(self.columns)


class FilterChip(BaseModel):
    key: str  # column name, or '__global' for the search term
    label: str


class ChartIntent(BaseModel):
    """Optional guidance for chart selection. All fields may be omitted."""
    model_config = ConfigDict(populate_by_name=True)

    x: Optional[str] = None
    y: Optional[str] = None
    column: Optional[str] = None
    metric: Optional[str] = None
    group_by: Optional[str] = Field(default=None, alias="groupBy")
    hints: List[str] = []

    @field_validator("hints", mode="before")
    @classmethod
    def normalize_hints(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple, set)):
            logger.warning(f"Ignoring chart hints of type {type(v).__name__}")
            return []
        return [str(h).lower() for h in v]


class ChartConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chart_type: ChartType = Field(alias="chartType")
    x: Optional[str] = None
    y: Optional[str] = None
    aggregation: Optional[Aggregation] = None
    top_n: Optional[int] = Field(default=None, alias="topN")


class ChartOverrides(BaseModel):
    """Caller edits applied on top of a selected configuration."""
    model_config = ConfigDict(populate_by_name=True)

    chart_type: Optional[ChartType] = Field(default=None, alias="chartType")
    x: Optional[str] = None
    y: Optional[str] = None
    aggregation: Optional[Aggregation] = None
    top_n: Optional[int] = Field(default=None, alias="topN")

    def apply(self, config: ChartConfig) -> ChartConfig:
        return config.model_copy(update=self.model_dump(exclude_unset=True))


class AggregatedPoint(BaseModel):
    x: Optional[str] = None
    y: float
    count: int
    sum: float


Series = Union[List[AggregatedPoint], List[float], List[Record]]


# API payloads

class ProfileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    records: List[Any]
    sample_size: Optional[int] = Field(default=None, alias="sampleSize", ge=1)


class FilterRequest(BaseModel):
    records: List[Any]
    filters: FilterSpec = Field(default_factory=FilterSpec)


class FilterResult(BaseModel):
    count: int
    records: List[Record]
    active_filters: List[FilterChip]


class ChartRequest(BaseModel):
    profile: Dict[str, ColumnProfile] = {}
    intent: ChartIntent = Field(default_factory=ChartIntent)


class ExploreRequest(BaseModel):
    records: Optional[List[Any]] = None  # falls back to the persisted dataset
    filters: FilterSpec = Field(default_factory=FilterSpec)
    intent: ChartIntent = Field(default_factory=ChartIntent)
    overrides: ChartOverrides = Field(default_factory=ChartOverrides)


class ExploreResult(BaseModel):
    row_count: int
    filtered_count: int
    profile: Dict[str, ColumnProfile]
    chart: ChartConfig
    series: List[Any]
    active_filters: List[FilterChip]
    cached: bool = False


class ExportRequest(BaseModel):
    records: Optional[List[Any]] = None
    filters: FilterSpec = Field(default_factory=FilterSpec)


class UploadResult(BaseModel):
    filename: str
    row_count: int
    columns: List[str]
    column_types: Dict[str, ColumnType]  # single-row fast path
    profile: Dict[str, ColumnProfile]
    chart: ChartConfig
    series: List[Any]
    dataset: List[Record]
    suggestions: List[str] = []
    persisted: bool = False

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, UploadFile, File, HTTPException, Request, Response

from app.core.cache import QueryCache, fingerprint_records, make_query_key
from app.core.config import Settings
from app.core.errors import ErrorCodes, error_detail
from app.core.middleware import get_correlation_id
from app.core.rate_limit import limiter, upload_rate_limit
from app.core.sanitization import sanitize_filename, sanitize_for_logging
from app.core.schemas import (
    AggregatedPoint,
    ChartConfig,
    ChartIntent,
    ChartRequest,
    ColumnProfile,
    ExploreRequest,
    ExploreResult,
    ExportRequest,
    FilterRequest,
    FilterResult,
    FilterSpec,
    ProfileRequest,
    UploadResult,
)
from app.core.storage import DatasetStore
from app.services.aggregator import aggregate_data
from app.services.exporter import EXPORT_FORMATS, to_csv, to_json
from app.services.filters import apply_filters, describe_active_filters, remove_filter
from app.services.parser import parse_file
from app.services.profiler import profile_data
from app.services.selector import select_chart_type
from app.services.suggestions import generate_query_suggestions
from app.services.types import detect_column_types

logger = logging.getLogger(__name__)

router = APIRouter()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> DatasetStore:
    return request.app.state.store


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


def resolve_records(request: Request, records: Optional[List[Any]]) -> List[Any]:
    """Records sent with the request, else the saved dataset."""
    if records is not None:
        return records

    saved = get_store(request).load()
    if saved is None:
        raise HTTPException(
            status_code=404,
            detail=error_detail(ErrorCodes.DATASET_NOT_FOUND, get_correlation_id(request))
        )
    return saved


def serialize_series(series: List[Any], chart: ChartConfig, max_rows: int) -> List[Any]:
    """JSON-ready series; table series are truncated like echoed datasets."""
    if chart.chart_type == "table":
        return list(series[:max_rows])
    return [p.model_dump() if isinstance(p, AggregatedPoint) else p for p in series]


@router.get("/health")
async def health_check():
    return {"status": "ok"}


async def _process_upload(file: UploadFile, request: Request) -> UploadResult:
    """Parse, persist and analyse an uploaded file."""
    settings = get_app_settings(request)
    safe_filename = sanitize_filename(file.filename) if file.filename else 'unknown'

    try:
        records = await parse_file(file)
    except HTTPException as e:
        if isinstance(e.detail, dict):
            e.detail["correlation_id"] = get_correlation_id(request)
        raise

    persisted = get_store(request).save(records)
    if not persisted:
        logger.warning(f"Dataset from {sanitize_for_logging(safe_filename)} was not persisted")

    profile = profile_data(records, sample_size=settings.profile_sample_size)
    chart = select_chart_type(ChartIntent(), profile)
    series = aggregate_data(records, chart)

    logger.info(
        f"Analysed {sanitize_for_logging(safe_filename)}: {len(records)} records, "
        f"{len(profile)} columns, default chart {chart.chart_type}"
    )

    return UploadResult(
        filename=safe_filename,
        row_count=len(records),
        columns=list(profile.keys()),
        column_types=detect_column_types(records),
        profile=profile,
        chart=chart,
        series=serialize_series(series, chart, settings.max_dataset_rows),
        dataset=records[:settings.max_dataset_rows],
        suggestions=generate_query_suggestions(records),
        persisted=persisted,
    )


@router.post("/upload", response_model=UploadResult)
@limiter.limit(upload_rate_limit)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """
    Upload a CSV or JSON file, save it, and return its profile and a default chart.

    Rate limited per client IP (RATE_LIMIT_PER_MINUTE).
    """
    try:
        return await _process_upload(file, request)
    except HTTPException:
        raise
    except Exception as e:
        safe_filename = sanitize_for_logging(sanitize_filename(file.filename) if file.filename else 'unknown')
        logger.error(f"Unexpected error processing file {safe_filename}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_detail(ErrorCodes.UNKNOWN_ERROR, get_correlation_id(request))
        )


@router.get("/dataset")
async def get_dataset(request: Request):
    """The saved dataset."""
    records = resolve_records(request, None)
    return {"count": len(records), "records": records}


@router.delete("/dataset")
async def delete_dataset(request: Request):
    """Forget the saved dataset, its filters and any cached results."""
    get_store(request).clear()
    get_query_cache(request).clear()
    return {"status": "cleared"}


@router.get("/filters", response_model=FilterSpec)
async def get_filters(request: Request):
    return get_store(request).load_filters()


@router.put("/filters", response_model=FilterSpec)
async def save_filters(request: Request, spec: FilterSpec):
    if not get_store(request).save_filters(spec):
        raise HTTPException(
            status_code=500,
            detail=error_detail(ErrorCodes.STORAGE_ERROR, get_correlation_id(request))
        )
    return spec


@router.delete("/filters/{key}", response_model=FilterSpec)
async def remove_saved_filter(request: Request, key: str):
    """Drop one active-filter chip from the saved filters."""
    store = get_store(request)
    spec = remove_filter(store.load_filters(), key)
    if not store.save_filters(spec):
        raise HTTPException(
            status_code=500,
            detail=error_detail(ErrorCodes.STORAGE_ERROR, get_correlation_id(request))
        )
    return spec


@router.post("/profile", response_model=Dict[str, ColumnProfile])
async def profile_records(request: Request, body: ProfileRequest):
    sample_size = body.sample_size or get_app_settings(request).profile_sample_size
    return profile_data(body.records, sample_size=sample_size)


@router.post("/filter", response_model=FilterResult)
async def filter_records(body: FilterRequest):
    records = apply_filters(body.records, body.filters)
    return FilterResult(
        count=len(records),
        records=records,
        active_filters=describe_active_filters(body.filters),
    )


@router.post("/chart", response_model=ChartConfig)
async def select_chart(body: ChartRequest):
    return select_chart_type(body.intent, body.profile)


@router.post("/explore", response_model=ExploreResult)
async def explore(request: Request, body: ExploreRequest):
    """
    Filter, profile, pick a chart and aggregate in one call.

    Results are cached per dataset content, filters, intent and overrides.
    """
    settings = get_app_settings(request)
    cache = get_query_cache(request)
    records = resolve_records(request, body.records)

    cache_key = make_query_key({
        "dataset": fingerprint_records(records),
        "filters": body.filters.model_dump(by_alias=True),
        "intent": body.intent.model_dump(by_alias=True),
        "overrides": body.overrides.model_dump(by_alias=True, exclude_unset=True),
    })
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug("Serving explore result from cache")
        return cached.model_copy(update={"cached": True})

    filtered = apply_filters(records, body.filters)
    profile = profile_data(filtered, sample_size=settings.profile_sample_size)
    chart = body.overrides.apply(select_chart_type(body.intent, profile))
    series = aggregate_data(filtered, chart)

    result = ExploreResult(
        row_count=sum(1 for r in records if isinstance(r, dict)),
        filtered_count=len(filtered),
        profile=profile,
        chart=chart,
        series=serialize_series(series, chart, settings.max_dataset_rows),
        active_filters=describe_active_filters(body.filters),
    )
    cache.put(cache_key, result)
    return result


@router.post("/export/{fmt}")
async def export_records(request: Request, fmt: str, body: ExportRequest):
    """Download the (optionally filtered) records as CSV or JSON."""
    fmt = fmt.lower()
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=error_detail(
                ErrorCodes.INVALID_FILE_TYPE,
                get_correlation_id(request),
                f"Export format must be one of: {', '.join(sorted(EXPORT_FORMATS))}."
            )
        )

    records = apply_filters(resolve_records(request, body.records), body.filters)
    content = to_csv(records) if fmt == "csv" else to_json(records)
    media_type, filename = EXPORT_FORMATS[fmt]

    logger.info(f"Exporting {len(records)} records as {fmt}")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

"""
Metrics endpoint for performance monitoring.
"""
from fastapi import APIRouter, Request
from app.core.performance import PerformanceMonitor

router = APIRouter()


@router.get("/metrics")
async def get_metrics(request: Request):
    """
    Get performance metrics and cache statistics.

    Returns timing statistics for every tracked operation (parsing,
    profiling, filtering, aggregation, request duration) and the
    query-result cache counters.
    """
    return {
        'performance': PerformanceMonitor.get_all_metrics(),
        'cache': {
            'query_cache': request.app.state.query_cache.get_stats()
        }
    }

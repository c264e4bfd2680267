"""
Performance monitoring and metrics collection.
"""
import inspect
import time
import logging
import threading
from collections import defaultdict
from functools import wraps
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Samples kept per metric
MAX_SAMPLES = 1000

_metrics_lock = threading.Lock()
_metrics: Dict[str, List[Dict[str, Any]]] = defaultdict(list)


def _percentile(sorted_values: List[float], fraction: float) -> float:
    index = min(int(len(sorted_values) * fraction), len(sorted_values) - 1)
    return sorted_values[index]


class PerformanceMonitor:
    """Monitor and track performance metrics."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., 'apply_filters', 'request_duration')
            value: Metric value (usually duration in seconds)
            metadata: Optional metadata (correlation_id, status, ...)
        """
        with _metrics_lock:
            samples = _metrics[name]
            samples.append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {}
            })
            if len(samples) > MAX_SAMPLES:
                del samples[:-MAX_SAMPLES]

    @staticmethod
    def _stats(samples: List[Dict[str, Any]]) -> Optional[Dict[str, float]]:
        if not samples:
            return None
        values = sorted(m['value'] for m in samples)
        return {
            'count': len(values),
            'min': values[0],
            'max': values[-1],
            'mean': sum(values) / len(values),
            'p50': _percentile(values, 0.50),
            'p95': _percentile(values, 0.95),
            'p99': _percentile(values, 0.99),
        }

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """Statistics for one metric, or None if nothing was recorded."""
        with _metrics_lock:
            return PerformanceMonitor._stats(list(_metrics.get(metric_name, [])))

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        with _metrics_lock:
            snapshot = {name: list(samples) for name, samples in _metrics.items()}
        return {name: PerformanceMonitor._stats(samples) for name, samples in snapshot.items()}

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def _finish(metric_name: str, start_time: float, error: Optional[Exception] = None):
    duration = time.time() - start_time
    if error is None:
        PerformanceMonitor.record_metric(metric_name, duration, {'status': 'success'})
        logger.debug(
            f"{metric_name} completed in {duration:.3f}s",
            extra={'metric': metric_name, 'duration': duration}
        )
    else:
        PerformanceMonitor.record_metric(metric_name, duration, {'status': 'error', 'error': str(error)})
        logger.error(
            f"{metric_name} failed after {duration:.3f}s: {error}",
            extra={'metric': metric_name, 'duration': duration},
            exc_info=True
        )


def track_performance(metric_name: str):
    """
    Decorator to track function execution time.

    Usage:
        @track_performance("apply_filters")
        def apply_filters(...):
            ...
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finish(metric_name, start_time, e)
                    raise
                _finish(metric_name, start_time)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, start_time, e)
                raise
            _finish(metric_name, start_time)
            return result
        return sync_wrapper

    return decorator

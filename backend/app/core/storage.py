"""
Dataset persistence.

Keeps the most recently uploaded dataset and the active filters so a client
can pick up where it left off. Two backends:
- In-memory (development, single worker)
- Redis (production)

Configure via the STORAGE_BACKEND setting. Saved datasets are capped to the
first `max_records` records.
"""
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from app.core.config import Settings
from app.core.schemas import FilterSpec, Record

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000
DATASET_KEY = "explorer:data"
FILTERS_KEY = "explorer:filters"


class StorageError(Exception):
    """Raised by backends when a payload cannot be written or read."""


def _records_only(records: Optional[List[Any]]) -> List[Record]:
    return [r for r in (records or []) if isinstance(r, dict)]


class DatasetStore(ABC):
    """Persists one dataset and one filter specification."""

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS):
        self.max_records = max_records
        self.saved_at: Optional[datetime] = None

    @abstractmethod
    def _write(self, key: str, payload: str) -> None:
        pass

    @abstractmethod
    def _read(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def _delete(self, key: str) -> None:
        pass

    def save(self, records: Optional[List[Any]]) -> bool:
        """
        Save the first `max_records` records.

        Returns:
            True on success, False if the backend rejected the payload
        """
        to_store = _records_only(records)[:self.max_records]
        try:
            self._write(DATASET_KEY, json.dumps(to_store, default=str))
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Error saving dataset: {e}")
            return False
        self.saved_at = datetime.now(timezone.utc)
        logger.info(f"Saved dataset with {len(to_store)} records")
        return True

    def load(self) -> Optional[List[Record]]:
        """Saved records, or None if nothing is saved or the payload is unreadable."""
        try:
            payload = self._read(DATASET_KEY)
            return json.loads(payload) if payload else None
        except (StorageError, ValueError) as e:
            logger.error(f"Error loading dataset: {e}")
            return None

    def save_filters(self, spec: FilterSpec) -> bool:
        try:
            self._write(FILTERS_KEY, spec.model_dump_json(by_alias=True))
        except StorageError as e:
            logger.error(f"Error saving filters: {e}")
            return False
        return True

    def load_filters(self) -> FilterSpec:
        """Saved filters, or an empty specification."""
        try:
            payload = self._read(FILTERS_KEY)
            return FilterSpec.model_validate_json(payload) if payload else FilterSpec()
        except (StorageError, ValueError) as e:
            logger.warning(f"Discarding unreadable saved filters: {e}")
            return FilterSpec()

    def clear(self) -> None:
        """Delete the saved dataset and filters."""
        try:
            self._delete(DATASET_KEY)
            self._delete(FILTERS_KEY)
        except StorageError as e:
            logger.error(f"Error clearing storage: {e}")
        self.saved_at = None


class InMemoryDatasetStore(DatasetStore):
    """
    In-memory storage for development.

    NOT suitable for production with multiple workers.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS):
        super().__init__(max_records)
        self._store: Dict[str, str] = {}

    def _write(self, key: str, payload: str) -> None:
        self._store[key] = payload

    def _read(self, key: str) -> Optional[str]:
        return self._store.get(key)

    def _delete(self, key: str) -> None:
        self._store.pop(key, None)


class RedisDatasetStore(DatasetStore):
    """
    Redis storage for production.

    Requires the redis package and a REDIS_URL.
    """

    def __init__(self, redis_url: str, max_records: int = DEFAULT_MAX_RECORDS):
        super().__init__(max_records)
        try:
            import redis
        except ImportError:
            raise RuntimeError(
                "Redis storage requires the 'redis' package. "
                "Install with: pip install 'data-explorer[redis]'"
            )
        self._errors = (redis.RedisError,)
        try:
            self._client = redis.from_url(redis_url, decode_responses=True)
            self._client.ping()
        except redis.RedisError as e:
            raise RuntimeError(f"Failed to connect to Redis: {e}")
        logger.info("Connected to Redis storage backend")

    def _write(self, key: str, payload: str) -> None:
        try:
            self._client.set(key, payload)
        except self._errors as e:
            raise StorageError(str(e))

    def _read(self, key: str) -> Optional[str]:
        try:
            return self._client.get(key)
        except self._errors as e:
            raise StorageError(str(e))

    def _delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except self._errors as e:
            raise StorageError(str(e))


def create_store(settings: Settings) -> DatasetStore:
    """Build the dataset store selected by the settings."""
    if settings.storage_backend == "redis":
        if not settings.redis_url:
            raise RuntimeError("REDIS_URL environment variable required for redis storage")
        return RedisDatasetStore(settings.redis_url, max_records=settings.persist_max_records)

    logger.info("Using in-memory dataset store (development only)")
    return InMemoryDatasetStore(max_records=settings.persist_max_records)

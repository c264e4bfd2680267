"""
Tests for dataset persistence.
"""
import pytest

from app.core.config import Settings
from app.core.schemas import ColumnPredicate, FilterSpec
from app.core.storage import (
    DATASET_KEY,
    FILTERS_KEY,
    InMemoryDatasetStore,
    StorageError,
    create_store,
)


class FailingStore(InMemoryDatasetStore):
    """Backend that rejects every write, like a full quota."""

    def _write(self, key, payload):
        raise StorageError("quota exceeded")


@pytest.mark.unit
def test_save_and_load():
    store = InMemoryDatasetStore()
    records = [{"region": "East", "sales": 10}, {"region": "West", "sales": 7}]

    assert store.save(records) is True
    assert store.load() == records
    assert store.saved_at is not None


@pytest.mark.unit
def test_load_without_data():
    assert InMemoryDatasetStore().load() is None


@pytest.mark.unit
def test_save_caps_records():
    store = InMemoryDatasetStore(max_records=1000)
    store.save([{"n": i} for i in range(1500)])

    loaded = store.load()
    assert len(loaded) == 1000
    assert loaded[-1] == {"n": 999}


@pytest.mark.unit
def test_save_drops_non_records():
    store = InMemoryDatasetStore()
    store.save([{"a": 1}, None, 5])
    assert store.load() == [{"a": 1}]


@pytest.mark.unit
def test_save_failure_is_reported():
    store = FailingStore()
    assert store.save([{"a": 1}]) is False
    assert store.load() is None
    assert store.save_filters(FilterSpec(global_search="x")) is False


@pytest.mark.unit
def test_unreadable_payload_loads_as_none():
    store = InMemoryDatasetStore()
    store._write(DATASET_KEY, "{not json")
    assert store.load() is None


@pytest.mark.unit
def test_filters_round_trip():
    store = InMemoryDatasetStore()
    spec = FilterSpec(global_search="east", columns={"sales": ColumnPredicate(min=5)})

    assert store.save_filters(spec) is True
    assert store.load_filters() == spec


@pytest.mark.unit
def test_missing_or_corrupt_filters_load_empty():
    store = InMemoryDatasetStore()
    assert store.load_filters() == FilterSpec()

    store._write(FILTERS_KEY, '{"columns": 5}')
    assert store.load_filters() == FilterSpec()


@pytest.mark.unit
def test_clear():
    store = InMemoryDatasetStore()
    store.save([{"a": 1}])
    store.save_filters(FilterSpec(global_search="a"))

    store.clear()

    assert store.load() is None
    assert store.load_filters() == FilterSpec()
    assert store.saved_at is None


@pytest.mark.unit
def test_create_store_defaults_to_memory():
    store = create_store(Settings(persist_max_records=10))
    assert isinstance(store, InMemoryDatasetStore)
    assert store.max_records == 10


@pytest.mark.unit
def test_create_store_redis_requires_url():
    with pytest.raises(RuntimeError):
        create_store(Settings(storage_backend="redis"))

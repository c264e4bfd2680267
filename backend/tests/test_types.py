"""
Tests for column type inference.
"""
from datetime import date

import pytest

from app.services.types import detect_column_types, infer_type, is_date_string


@pytest.mark.unit
@pytest.mark.parametrize("value", ["2024-01-31", "01/31/2024", "31-01-2024", "5 Jan 2024", "15 Mar 2023"])
def test_is_date_string_accepts_known_shapes(value):
    assert is_date_string(value)


@pytest.mark.unit
@pytest.mark.parametrize("value", ["", "2024/01/31", "January 5, 2024", "2024-1-5", 20240131, None])
def test_is_date_string_rejects_other_values(value):
    assert not is_date_string(value)


@pytest.mark.unit
def test_infer_type_date_column():
    assert infer_type(["2023-01-01", "2023-02-15", "2023-03-30"]) == "date"


@pytest.mark.unit
def test_infer_type_number_column():
    assert infer_type([1, "2", 3.5, "4"]) == "number"


@pytest.mark.unit
def test_infer_type_numbers_are_not_dates():
    """Year-like numbers stay numeric."""
    assert infer_type(["2019", "2020", "2021"]) == "number"


@pytest.mark.unit
def test_infer_type_month_names_are_strings():
    assert infer_type(["Jan", "Feb", "Mar"]) == "string"


@pytest.mark.unit
def test_infer_type_needs_a_majority():
    # 3 of 5 is exactly 60%, which is not more than the threshold
    assert infer_type([1, 2, 3, "foo", "bar"]) == "string"
    assert infer_type([1, 2, 3, 4, "foo"]) == "number"


@pytest.mark.unit
def test_infer_type_empty_sample():
    assert infer_type([]) == "string"


@pytest.mark.unit
def test_infer_type_booleans_vote_numeric():
    """The majority vote never reports boolean."""
    assert infer_type([True, False, True]) == "number"


@pytest.mark.unit
def test_detect_column_types_uses_first_record():
    records = [
        {"name": "Alice", "age": 30, "joined": "2024-01-01", "active": True, "when": date(2024, 1, 1)},
        {"name": 5, "age": "unknown", "joined": "never", "active": "no", "when": None},
    ]
    assert detect_column_types(records) == {
        "name": "string",
        "age": "number",
        "joined": "date",
        "active": "boolean",
        "when": "date",
    }


@pytest.mark.unit
def test_detect_column_types_numeric_text_is_string():
    assert detect_column_types([{"code": "123"}]) == {"code": "string"}


@pytest.mark.unit
def test_detect_column_types_empty_input():
    assert detect_column_types([]) == {}
    assert detect_column_types([None, {"a": 1}]) == {}

"""
Tests for cell classification and coercion.
"""
import math
from datetime import date, datetime, timezone

import numpy as np
import pandas as pd
import pytest

from app.services.cells import CellKind, classify, is_null, to_date, to_number, to_text


@pytest.mark.unit
@pytest.mark.parametrize("value,kind", [
    (None, CellKind.NULL),
    (float("nan"), CellKind.NULL),
    (pd.NaT, CellKind.NULL),
    (True, CellKind.BOOL),
    (np.bool_(False), CellKind.BOOL),
    (3, CellKind.NUMBER),
    (np.int64(3), CellKind.NUMBER),
    (2.5, CellKind.NUMBER),
    ("abc", CellKind.TEXT),
    (date(2024, 1, 1), CellKind.DATE),
    (pd.Timestamp("2024-01-01"), CellKind.DATE),
    ({"a": 1}, CellKind.NESTED),
    ([1, 2], CellKind.NESTED),
])
def test_classify(value, kind):
    assert classify(value) is kind


@pytest.mark.unit
def test_is_null():
    assert is_null(None)
    assert is_null(np.nan)
    assert not is_null(0)
    assert not is_null("")


@pytest.mark.unit
def test_to_number():
    """Only finite readings survive coercion."""
    assert to_number(10) == 10.0
    assert to_number(" 4.5 ") == 4.5
    assert to_number(True) == 1.0
    assert to_number(False) == 0.0
    assert to_number(np.float32(1.5)) == 1.5

    assert to_number("") is None
    assert to_number("   ") is None
    assert to_number("abc") is None
    assert to_number(None) is None
    assert to_number(float("inf")) is None
    assert to_number("nan") is None
    assert to_number({"a": 1}) is None
    assert to_number(date(2024, 1, 1)) is None


@pytest.mark.unit
def test_to_date_parses_text_and_native_dates():
    assert to_date("2023-01-01") == pd.Timestamp("2023-01-01")
    assert to_date("03/30/2023") == pd.Timestamp("2023-03-30")
    assert to_date(datetime(2023, 5, 1, 12, 0)) == pd.Timestamp("2023-05-01 12:00")
    assert to_date(date(2023, 5, 1)) == pd.Timestamp("2023-05-01")


@pytest.mark.unit
def test_to_date_rejects_numbers_and_garbage():
    """Numeric-looking text never reads as a date."""
    assert to_date("2021") is None
    assert to_date("10") is None
    assert to_date(2021) is None
    assert to_date("not a date") is None
    assert to_date("Jan") is None
    assert to_date("today") is None
    assert to_date("") is None
    assert to_date(None) is None
    assert to_date(True) is None


@pytest.mark.unit
def test_to_date_normalises_timezones_to_utc():
    aware = datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert to_date(aware) == pd.Timestamp("2023-01-01 12:00")
    assert to_date("2023-01-01T14:00:00+02:00") == pd.Timestamp("2023-01-01 12:00")


@pytest.mark.unit
def test_to_text():
    assert to_text(None) == ""
    assert to_text(True) == "true"
    assert to_text(False) == "false"
    assert to_text(10) == "10"
    assert to_text(10.0) == "10"
    assert to_text(2.5) == "2.5"
    assert to_text("East") == "East"
    assert to_text({"b": 1, "a": 2}) == '{"a":2,"b":1}'
    assert to_text([1, "x"]) == '[1,"x"]'
    assert to_text(date(2024, 1, 2)) == "2024-01-02"
    assert to_text(np.int64(7)) == "7"


@pytest.mark.unit
def test_to_text_nan_is_empty():
    assert to_text(math.nan) == ""

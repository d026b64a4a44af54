"""Shared test fixtures."""

import pytest

from calculator_session import CalculatorSession
from dose_table import FIVE_BUCKET, SIX_BUCKET


@pytest.fixture
def six_bucket():
    return SIX_BUCKET


@pytest.fixture
def five_bucket():
    return FIVE_BUCKET


@pytest.fixture
def session() -> CalculatorSession:
    return CalculatorSession(SIX_BUCKET)


@pytest.fixture
def table_payload() -> dict:
    return {
        "name": "clinic",
        "thresholds": [10, 14, 18],
        "doses": {
            "breakfast": [12, 14, 16, 18],
            "lunch": [6, 8, 10, 12],
            "tea": [4, 6, 8, 10],
        },
        "long_acting_units": 24,
        "safety_bands": {"hypo_below": 4.0, "ketoacidosis_above": 20},
    }

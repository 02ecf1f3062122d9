from datetime import datetime

import pytest

from salesdash.data import build_dataset, prepare_context

HEADERS = ["date", "product", "revenue"]
HEADER_TYPES = {"date": "string", "product": "string", "revenue": "number"}
ROWS = [
    {"date": "01/03/2024", "product": "A", "revenue": 100},
    {"date": "15/03/2024", "product": "A", "revenue": 50},
    {"date": "01/03/2024", "product": "B", "revenue": 30},
]


@pytest.fixture
def now():
    return datetime(2024, 3, 15, 12, 0)


@pytest.fixture
def sample_data():
    return build_dataset(HEADERS, HEADER_TYPES, ROWS, position_hints=False)


@pytest.fixture
def make_ctx(sample_data, now):
    def _make(filters=None, data=None):
        return prepare_context(filters or {}, data or sample_data, now=now)

    return _make

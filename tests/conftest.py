import json

import pytest

from core.data import normalize_customers, normalize_transactions


CUSTOMERS = [
    {"id": 1, "name": "Ann"},
    {"id": 2, "name": "Bob"},
    {"id": 3, "name": "Annette"},
]

TRANSACTIONS = [
    {"id": 10, "customer_id": 1, "amount": 30, "date": "2024-01-01"},
    {"id": 11, "customer_id": 1, "amount": 20, "date": "2024-01-01"},
    {"id": 12, "customer_id": 2, "amount": 50, "date": "2024-01-02"},
    {"id": 13, "customer_id": 3, "amount": 50.5, "date": "2024-01-03"},
    {"id": 14, "customer_id": 1, "amount": 15, "date": "2024-01-02"},
    {"id": 15, "customer_id": 99, "amount": 500, "date": "2024-01-01"},
]


@pytest.fixture
def customers():
    return normalize_customers(CUSTOMERS)


@pytest.fixture
def transactions():
    return normalize_transactions(TRANSACTIONS)


@pytest.fixture
def data_ctx(customers, transactions):
    return {"source": "fixture", "customers": customers, "transactions": transactions}


@pytest.fixture
def fixture_file(tmp_path):
    path = tmp_path / "db.json"
    path.write_text(json.dumps({"customers": CUSTOMERS, "transactions": TRANSACTIONS}), encoding="utf-8")
    return path

import json

import pytest
from fastapi.testclient import TestClient

from api import main
from core import data as dc


@pytest.fixture
def client(monkeypatch, fixture_file):
    dc._load_fixture_cached.cache_clear()
    monkeypatch.setattr(dc, "FIXTURE_PATH", fixture_file)
    yield TestClient(main.app)
    dc._load_fixture_cached.cache_clear()


def test_customers_endpoint(client):
    response = client.get("/customers")
    assert response.status_code == 200
    assert response.json()[0] == {"id": 1, "name": "Ann"}


def test_transactions_endpoint(client):
    response = client.get("/transactions")
    assert response.status_code == 200
    assert len(response.json()) == 6


def test_db_json_endpoint(client):
    body = client.get("/db.json").json()
    assert set(body) == {"customers", "transactions"}


def test_dashboard_transactions(client):
    response = client.post("/dashboard/transactions", json={"selected_customer_id": 1})
    assert response.status_code == 200
    body = response.json()
    assert body["chart"]["labels"] == ["2024-01-01", "2024-01-02"]
    assert body["kpis"]["total_amount"] == 65.0


def test_dashboard_transactions_amount_filter(client):
    body = client.post("/dashboard/transactions", json={"amount_query": "50"}).json()
    assert [r["id"] for r in body["rows"]] == [12]


def test_dashboard_customers(client):
    body = client.post("/dashboard/customers?column_query=ann", json={}).json()
    assert [r["name"] for r in body["rows"]] == ["Ann", "Annette"]
    assert body["rows"][0]["total"] == 65.0


def test_dashboard_error_is_json_500(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(main, "compute_transactions", boom)
    response = client.post("/dashboard/transactions", json={})
    assert response.status_code == 500
    assert response.json() == {"error": "boom", "type": "RuntimeError"}


def test_export_transactions_csv(client):
    response = client.post("/export/transactions", json={"selected_customer_id": 2})
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0] == "id,customer_name,amount,date"
    assert lines[1] == "12,Bob,50.0,2024-01-02"


def test_export_unknown_page_is_empty(client):
    response = client.post("/export/nope", json={})
    assert response.status_code == 200
    assert len(response.text.strip().splitlines()) <= 1


@pytest.fixture
def malformed_client(monkeypatch, tmp_path):
    path = tmp_path / "db.json"
    path.write_text(
        json.dumps(
            {
                "customers": [{"id": 1, "name": "Ann"}, {"name": "Ghost"}],
                "transactions": [
                    {"id": 1, "customer_id": 1, "amount": "oops", "date": "2024-01-01"},
                    {"id": 2, "customer_id": 1, "amount": 25, "date": "2024-01-02"},
                ],
            }
        ),
        encoding="utf-8",
    )
    dc._load_fixture_cached.cache_clear()
    monkeypatch.setattr(dc, "FIXTURE_PATH", path)
    yield TestClient(main.app)
    dc._load_fixture_cached.cache_clear()


def test_transactions_endpoint_skips_malformed_rows(malformed_client):
    response = malformed_client.get("/transactions")
    assert response.status_code == 200
    assert response.json() == [{"id": 2, "customer_id": 1, "amount": 25.0, "date": "2024-01-02"}]


def test_customers_endpoint_skips_malformed_rows(malformed_client):
    response = malformed_client.get("/customers")
    assert response.status_code == 200
    assert response.json() == [{"id": 1, "name": "Ann"}]


def test_db_json_skips_malformed_rows(malformed_client):
    body = malformed_client.get("/db.json").json()
    assert [c["id"] for c in body["customers"]] == [1]
    assert [t["id"] for t in body["transactions"]] == [2]

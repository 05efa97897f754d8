import pandas as pd
import pytest

from core.data import normalize_customers, normalize_transactions, prepare_context
from core.filters import TransactionFilters
from core.metrics_customers import compute_customer_totals, compute_customers
from core.metrics_transactions import compute_transactions, date_totals_frame, group_by_date


def test_ann_example():
    customers = normalize_customers([{"id": 1, "name": "Ann"}])
    transactions = normalize_transactions(
        [
            {"id": 10, "customer_id": 1, "amount": 30, "date": "2024-01-01"},
            {"id": 11, "customer_id": 1, "amount": 20, "date": "2024-01-01"},
        ]
    )
    totals = compute_customer_totals(customers, transactions)
    assert totals["total"].tolist() == [50.0]
    labels, values = group_by_date(transactions)
    assert dict(zip(labels, values)) == {"2024-01-01": 50.0}


def test_customer_totals_match_transaction_sums(customers, transactions):
    totals = compute_customer_totals(customers, transactions).set_index("id")["total"]
    for cid, total in totals.items():
        expected = transactions.loc[transactions["customer_id"] == cid, "amount"].sum()
        assert total == pytest.approx(expected)
    assert totals[1] == pytest.approx(65.0)


def test_customer_without_transactions_totals_zero(transactions):
    customers = normalize_customers([{"id": 1, "name": "Ann"}, {"id": 42, "name": "Zed"}])
    totals = compute_customer_totals(customers, transactions).set_index("id")["total"]
    assert totals[42] == 0.0


def test_customer_totals_with_no_transactions(customers):
    totals = compute_customer_totals(customers, normalize_transactions([]))
    assert totals["total"].tolist() == [0.0, 0.0, 0.0]


def test_group_by_date_keeps_first_seen_order(transactions):
    labels, values = group_by_date(transactions)
    assert labels == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert values == [550.0, 65.0, 50.5]


def test_group_by_date_preserves_total(transactions):
    _, values = group_by_date(transactions)
    assert sum(values) == pytest.approx(transactions["amount"].sum())


def test_group_by_date_keeps_rows_without_date():
    transactions = normalize_transactions([{"id": 1, "customer_id": 1, "amount": 5}])
    grouped = date_totals_frame(transactions)
    assert grouped["amount"].sum() == 5.0


def test_date_totals_empty():
    grouped = date_totals_frame(normalize_transactions([]))
    assert grouped.empty
    assert list(grouped.columns) == ["date", "amount"]


def test_compute_customers_column_filter_counts(data_ctx):
    filters = TransactionFilters()
    ctx = prepare_context(filters, data_ctx)
    payload = compute_customers(filters, ctx, column_query="bo")
    assert payload["column_filter"]["total_rows"] == 3
    assert payload["column_filter"]["matching_rows"] == 1
    assert payload["column_filter"]["placeholder"] == "Search 3 records..."
    assert [r["name"] for r in payload["rows"]] == ["Bob"]
    assert payload["kpis"]["grand_total"] == pytest.approx(50.0)


def test_compute_transactions_with_selection(data_ctx):
    filters = TransactionFilters(selected_customer_id=1)
    ctx = prepare_context(filters, data_ctx)
    payload = compute_transactions(filters, ctx)
    assert payload["selected_customer"] == {"id": 1, "name": "Ann"}
    assert payload["chart"] == {"labels": ["2024-01-01", "2024-01-02"], "values": [50.0, 15.0]}
    assert payload["kpis"] == {"transactions": 3, "total_amount": 65.0}
    assert "amount_by_date" in payload["charts"]
    assert {r["customer_name"] for r in payload["rows"]} == {"Ann"}


def test_compute_transactions_without_selection_has_no_chart(data_ctx):
    filters = TransactionFilters()
    payload = compute_transactions(filters, prepare_context(filters, data_ctx))
    assert payload["charts"] == {}
    assert payload["kpis"]["transactions"] == 6


def test_compute_transactions_empty(data_ctx):
    filters = TransactionFilters(amount_query="123456")
    payload = compute_transactions(filters, prepare_context(filters, data_ctx))
    assert payload["rows"] == []
    assert payload["chart"] == {"labels": [], "values": []}


def test_prepare_context_from_raw_dict(data_ctx):
    ctx = prepare_context({"selected_customer_id": 2, "name_query": ""}, data_ctx)
    assert ctx["filters"].selected_customer_id == 2
    assert ctx["filtered_transactions"]["id"].astype(int).tolist() == [12]
    assert isinstance(ctx["date_totals"], pd.DataFrame)


def test_prepare_context_orphans_have_blank_name(data_ctx):
    ctx = prepare_context(TransactionFilters(), data_ctx)
    orphan = ctx["filtered_transactions"].set_index("id").loc[15]
    assert pd.isna(orphan["customer_name"])

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import pandas as pd

from core.filters import TransactionFilters, filter_customers_by_name


def compute_customer_totals(customers: pd.DataFrame, transactions: pd.DataFrame) -> pd.DataFrame:
    """Customers plus `total`, the summed amount of their transactions (0 when none).

    Grouped once by customer_id and mapped back by id, so orphaned
    transactions simply never match a customer.
    """
    out = customers.copy()
    if transactions.empty or "customer_id" not in transactions.columns:
        out["total"] = 0.0
        return out
    totals = transactions.dropna(subset=["customer_id"]).groupby("customer_id")["amount"].sum()
    out["total"] = out["id"].map(totals).fillna(0.0).astype(float)
    return out


def compute_customers(filters: TransactionFilters, ctx: Dict[str, Any], *, column_query: str = "") -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_customers", pd.DataFrame()).copy()
    column_query = (column_query or "").strip()
    total_rows = int(len(df))
    rows = filter_customers_by_name(df, column_query) if not df.empty else df

    return {
        "filters": asdict(filters),
        "selected_customer": ctx.get("selected_customer"),
        "column_filter": {
            "query": column_query,
            "total_rows": total_rows,
            "matching_rows": int(len(rows)),
            "placeholder": f"Search {total_rows} records...",
        },
        "kpis": {
            "customers": int(len(rows)),
            "grand_total": float(rows["total"].sum()) if not rows.empty else 0.0,
        },
        "rows": rows.to_dict(orient="records"),
    }

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Tuple

import pandas as pd

from core.charts import date_totals_line, to_vega_spec
from core.filters import TransactionFilters

TABLE_COLUMNS = ["id", "customer_name", "amount", "date"]


def date_totals_frame(transactions: pd.DataFrame) -> pd.DataFrame:
    """Sum amounts per date, dates in first-seen order. Missing dates group under ""."""
    if transactions.empty:
        return pd.DataFrame({"date": pd.Series(dtype="string"), "amount": pd.Series(dtype="float64")})
    grouped = (
        transactions.assign(date=transactions["date"].astype("string").fillna(""))
        .groupby("date", sort=False)["amount"]
        .sum()
        .reset_index()
    )
    grouped["amount"] = grouped["amount"].astype(float)
    return grouped


def group_by_date(transactions: pd.DataFrame) -> Tuple[List[str], List[float]]:
    grouped = date_totals_frame(transactions)
    return [str(d) for d in grouped["date"]], [float(v) for v in grouped["amount"]]


def compute_transactions(filters: TransactionFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    df: pd.DataFrame = ctx.get("filtered_transactions", pd.DataFrame()).copy()
    selected = ctx.get("selected_customer")
    if df.empty:
        return {
            "filters": asdict(filters),
            "selected_customer": selected,
            "kpis": {"transactions": 0, "total_amount": 0.0},
            "rows": [],
            "chart": {"labels": [], "values": []},
            "charts": {},
        }

    labels, values = group_by_date(df)
    table = df[[c for c in TABLE_COLUMNS if c in df.columns]]

    charts: Dict[str, Any] = {}
    if selected is not None:
        line = date_totals_line(
            pd.DataFrame({"date": labels, "amount": values}),
            title=f"Transaction Data for {selected['name']}",
        )
        charts["amount_by_date"] = to_vega_spec(line)

    return {
        "filters": asdict(filters),
        "selected_customer": selected,
        "kpis": {"transactions": int(len(df)), "total_amount": float(sum(values))},
        "rows": table.to_dict(orient="records"),
        "chart": {"labels": labels, "values": values},
        "charts": charts,
    }

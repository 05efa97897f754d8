from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Iterable, Optional

import pandas as pd


@dataclass(frozen=True)
class TransactionFilters:
    selected_customer_id: Optional[int] = None
    name_query: str = ""
    amount_query: str = ""

    @property
    def amount(self) -> Optional[float]:
        return parse_amount(self.amount_query)


def parse_amount(text: object) -> Optional[float]:
    """Blank -> None (no filter); finite numeric text -> float; anything else -> NaN, which matches nothing."""
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    if "_" in s:
        return math.nan
    try:
        value = float(s)
    except ValueError:
        return math.nan
    return value if math.isfinite(value) else math.nan


def _as_optional_int(value: object) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_filters(raw: dict, *, customer_ids: Optional[Iterable[int]] = None) -> TransactionFilters:
    selected = _as_optional_int(raw.get("selected_customer_id"))
    if selected is not None and customer_ids is not None and selected not in set(customer_ids):
        selected = None
    name_query = str(raw.get("name_query") or "")
    amount_query = raw.get("amount_query")
    amount_query = "" if amount_query is None else str(amount_query).strip()
    return TransactionFilters(selected_customer_id=selected, name_query=name_query, amount_query=amount_query)


# ---------------- Selection rules ----------------
def select_customer(filters: TransactionFilters, customer_id: Optional[int]) -> TransactionFilters:
    """Picking a customer (or clearing the pick) resets the name and amount filters."""
    return TransactionFilters(selected_customer_id=_as_optional_int(customer_id))


def update_name_query(filters: TransactionFilters, query: str, customers: pd.DataFrame) -> TransactionFilters:
    """Set the name filter; a single matching customer becomes the selection, otherwise the selection is cleared."""
    query = query or ""
    matches = filter_customers_by_name(customers, query)
    if "id" in matches.columns:
        matches = matches.dropna(subset=["id"])
    selected = int(matches["id"].iloc[0]) if len(matches) == 1 else None
    return replace(filters, name_query=query, selected_customer_id=selected)


def update_amount_query(filters: TransactionFilters, text: str) -> TransactionFilters:
    return replace(filters, amount_query=(text or "").strip())


# ---------------- Predicates ----------------
def name_mask(names: pd.Series, query: str) -> pd.Series:
    if not query:
        return pd.Series(True, index=names.index)
    return names.astype("string").str.lower().str.contains(query.lower(), regex=False, na=False).astype(bool)


def customer_name_lookup(customers: pd.DataFrame) -> pd.Series:
    """id -> name; the first record wins when ids repeat."""
    if customers.empty or not {"id", "name"}.issubset(customers.columns):
        return pd.Series(dtype="string")
    dedup = customers.dropna(subset=["id"]).drop_duplicates(subset=["id"])
    return dedup.set_index("id")["name"]


def filter_customers_by_name(customers: pd.DataFrame, query: str) -> pd.DataFrame:
    if customers.empty or not query or "name" not in customers.columns:
        return customers
    return customers[name_mask(customers["name"], query)]


def filter_transactions(transactions: pd.DataFrame, customers: pd.DataFrame, filters: TransactionFilters) -> pd.DataFrame:
    """Apply selection, name and exact-amount predicates conjunctively.

    Transactions whose customer_id matches no customer have no name, so they
    only survive when the name filter is empty.
    """
    if transactions.empty:
        return transactions

    out = transactions
    if filters.selected_customer_id is not None:
        out = out[out["customer_id"].eq(filters.selected_customer_id).fillna(False).astype(bool)]

    if filters.name_query:
        names = out["customer_id"].map(customer_name_lookup(customers))
        out = out[name_mask(names, filters.name_query)]

    amount = filters.amount
    if amount is not None:
        # NaN compares unequal to everything, so non-numeric input empties the table.
        out = out[out["amount"] == amount]

    return out

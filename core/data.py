from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd
import requests

from core.filters import (
    TransactionFilters,
    customer_name_lookup,
    filter_customers_by_name,
    filter_transactions,
    normalize_filters,
)
from core.metrics_customers import compute_customer_totals
from core.metrics_transactions import date_totals_frame


logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
FIXTURE_PATH = Path(os.getenv("DASHBOARD_FIXTURE_PATH", str(DATA_DIR / "db.json")))
API_BASE_URL = os.getenv("DASHBOARD_API_BASE_URL", "http://localhost:5000")
DATA_SOURCE = os.getenv("DASHBOARD_DATA_SOURCE", "fixture")
REQUEST_TIMEOUT = float(os.getenv("DASHBOARD_REQUEST_TIMEOUT", "10"))

DATA_SOURCES = ("api", "fixture")
CUSTOMER_COLUMNS = ["id", "name"]
TRANSACTION_COLUMNS = ["id", "customer_id", "amount", "date"]


class DataSourceError(Exception):
    """Raised when customers/transactions cannot be fetched or parsed."""


# ---------------- Normalization ----------------
def _records_frame(records: Optional[Iterable[dict]], columns: List[str]) -> pd.DataFrame:
    df = pd.DataFrame(list(records or []))
    for col in columns:
        if col not in df.columns:
            df[col] = pd.NA
    return df[columns]


def normalize_customers(records: Optional[Iterable[dict]]) -> pd.DataFrame:
    df = _records_frame(records, CUSTOMER_COLUMNS)
    df["id"] = pd.to_numeric(df["id"], errors="coerce").astype("Int64")
    df["name"] = df["name"].astype("string")
    # A customer without an id can never match a transaction.
    return df.dropna(subset=["id"]).reset_index(drop=True)


def normalize_transactions(records: Optional[Iterable[dict]]) -> pd.DataFrame:
    df = _records_frame(records, TRANSACTION_COLUMNS)
    df["id"] = pd.to_numeric(df["id"], errors="coerce").astype("Int64")
    df["customer_id"] = pd.to_numeric(df["customer_id"], errors="coerce").astype("Int64")
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce").astype("float64")
    df["date"] = df["date"].astype("string")
    return df.reset_index(drop=True)


def empty_dashboard_data(source: str) -> Dict[str, object]:
    return {
        "source": source,
        "customers": normalize_customers([]),
        "transactions": normalize_transactions([]),
    }


# ---------------- Loaders ----------------
def _get_json_list(url: str, *, timeout: float) -> List[dict]:
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as exc:
        raise DataSourceError(f"GET {url} failed: {exc}") from exc
    except ValueError as exc:
        raise DataSourceError(f"GET {url} returned invalid JSON") from exc
    if not isinstance(payload, list):
        raise DataSourceError(f"GET {url} returned {type(payload).__name__}, expected a list")
    return payload


def fetch_remote_data(base_url: str = API_BASE_URL, *, timeout: float = REQUEST_TIMEOUT) -> Tuple[List[dict], List[dict]]:
    """GET {base_url}/customers and {base_url}/transactions."""
    base = base_url.rstrip("/")
    customers = _get_json_list(f"{base}/customers", timeout=timeout)
    transactions = _get_json_list(f"{base}/transactions", timeout=timeout)
    return customers, transactions


def read_fixture(path: Path) -> Tuple[List[dict], List[dict]]:
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise DataSourceError(f"Cannot read fixture {path}: {exc}") from exc
    except ValueError as exc:
        raise DataSourceError(f"Fixture {path} is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise DataSourceError(f"Fixture {path} must be an object with 'customers' and 'transactions'")
    return list(payload.get("customers") or []), list(payload.get("transactions") or [])


def file_signature(path: Path) -> Tuple[str, float]:
    path = Path(path)
    try:
        return str(path), path.stat().st_mtime
    except OSError:
        return str(path), 0.0


@lru_cache(maxsize=4)
def _load_fixture_cached(sig: Tuple[str, float]) -> Tuple[Tuple[dict, ...], Tuple[dict, ...]]:
    customers, transactions = read_fixture(Path(sig[0]))
    return tuple(customers), tuple(transactions)


def load_fixture_data(path: Optional[Path] = None) -> Tuple[List[dict], List[dict]]:
    """Read {customers: [...], transactions: [...]}; cached until the file changes."""
    customers, transactions = _load_fixture_cached(file_signature(path or FIXTURE_PATH))
    return list(customers), list(transactions)


def load_dashboard_data(
    source: Optional[str] = None,
    *,
    base_url: Optional[str] = None,
    fixture_path: Optional[Path] = None,
) -> Dict[str, object]:
    source = (source or DATA_SOURCE).strip().lower()
    if source not in DATA_SOURCES:
        logger.warning("Unknown data source %r; falling back to fixture", source)
        source = "fixture"

    try:
        if source == "api":
            customers, transactions = fetch_remote_data(base_url or API_BASE_URL)
        else:
            customers, transactions = load_fixture_data(fixture_path)
    except DataSourceError:
        logger.exception("Error fetching dashboard data from %s", source)
        return empty_dashboard_data(source)

    data_ctx = {
        "source": source,
        "customers": normalize_customers(customers),
        "transactions": normalize_transactions(transactions),
    }
    logger.info(
        "Loaded %d customers and %d transactions from %s",
        len(data_ctx["customers"]),
        len(data_ctx["transactions"]),
        source,
    )
    return data_ctx


# ---------------- Derived views ----------------
def attach_customer_names(transactions: pd.DataFrame, customers: pd.DataFrame) -> pd.DataFrame:
    """Left join on customer id; orphaned transactions keep a blank name."""
    out = transactions.copy()
    out["customer_name"] = out["customer_id"].map(customer_name_lookup(customers)).astype("string")
    return out


def prepare_context(filters: dict | TransactionFilters, data_ctx: Dict[str, object]) -> Dict[str, object]:
    customers: pd.DataFrame = data_ctx.get("customers", normalize_customers([]))
    transactions: pd.DataFrame = data_ctx.get("transactions", normalize_transactions([]))

    customer_ids = customers["id"].dropna().astype(int).tolist() if not customers.empty else []
    filt = filters if isinstance(filters, TransactionFilters) else normalize_filters(filters, customer_ids=customer_ids)

    customers_with_totals = compute_customer_totals(customers, transactions)
    filtered_customers = filter_customers_by_name(customers_with_totals, filt.name_query)
    filtered_transactions = attach_customer_names(filter_transactions(transactions, customers, filt), customers)

    selected_customer = None
    if filt.selected_customer_id is not None and not customers.empty:
        match = customers[customers["id"].eq(filt.selected_customer_id).fillna(False).astype(bool)]
        if not match.empty:
            selected_customer = {"id": int(match.iloc[0]["id"]), "name": str(match.iloc[0]["name"])}

    return {
        "filters": filt,
        "source": data_ctx.get("source"),
        "customers": customers,
        "transactions": transactions,
        "customers_with_totals": customers_with_totals,
        "filtered_customers": filtered_customers,
        "filtered_transactions": filtered_transactions,
        "date_totals": date_totals_frame(filtered_transactions),
        "selected_customer": selected_customer,
    }


# ---------------- Formatting ----------------
def format_currency(value: object, decimals: int = 2) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"${float(value):,.{decimals}f}"


def format_currency_columns(df: pd.DataFrame, cols: Iterable[str], decimals: int = 2) -> pd.DataFrame:
    formatted = df.copy()
    for c in cols:
        if c in formatted.columns:
            formatted[c] = formatted[c].apply(lambda v: f"${float(v):,.{decimals}f}" if pd.notna(v) else "")
    return formatted

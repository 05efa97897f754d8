import logging
import os
from contextlib import contextmanager
from typing import List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core import data as dc
from core.charts import date_totals_line
from core.filters import TransactionFilters, filter_customers_by_name, select_customer, update_amount_query, update_name_query
from core.metrics_customers import compute_customers
from core.metrics_transactions import TABLE_COLUMNS, compute_transactions

alt.data_transformers.disable_max_rows()
logging.basicConfig(
    level=os.getenv("DASHBOARD_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip-row {display: flex;gap: 6px;flex-wrap: wrap;margin: 4px 0 10px;}
        .chip {background: #eef2ff;color: #3730a3;border-radius: 999px;padding: 2px 10px;font-size: 0.8rem;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: TransactionFilters, selected_name: Optional[str]) -> str:
    chips: List[str] = [
        f"Customer: {selected_name}" if selected_name else "Customer: All",
        f"Name: {filters.name_query}" if filters.name_query else "Name: Any",
        f"Amount: {filters.amount_query}" if filters.amount_query else "Amount: Any",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([7, 3])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.session_state.pop("data_ctx", None)
            dc._load_fixture_cached.cache_clear()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


# ---------- Data + selection state ----------
def get_data_ctx(source: str) -> dict:
    """Fetch once per session and source; later reruns reuse the loaded frames."""
    cached = st.session_state.get("data_ctx")
    if cached is None or cached.get("source") != source:
        cached = dc.load_dashboard_data(source)
        st.session_state["data_ctx"] = cached
    return cached


def current_filters() -> TransactionFilters:
    return st.session_state.setdefault("filters", TransactionFilters())


def _sync_widgets(filters: TransactionFilters):
    st.session_state["filters"] = filters
    st.session_state["customer_select"] = filters.selected_customer_id
    st.session_state["name_query_input"] = filters.name_query
    st.session_state["amount_query_input"] = filters.amount_query


def on_customer_change():
    _sync_widgets(select_customer(current_filters(), st.session_state.get("customer_select")))


def on_name_change():
    customers = st.session_state["data_ctx"]["customers"]
    _sync_widgets(update_name_query(current_filters(), st.session_state.get("name_query_input", ""), customers))


def on_amount_change():
    _sync_widgets(update_amount_query(current_filters(), st.session_state.get("amount_query_input", "")))


def on_table_select():
    event = st.session_state.get("customer_table")
    rows = event.selection.rows if event is not None else []
    ids = st.session_state.get("_customer_table_ids", [])
    if rows and rows[0] < len(ids):
        _sync_widgets(select_customer(current_filters(), ids[rows[0]]))


# ---------- UI setup ----------
st.set_page_config(page_title="Customer Transactions", layout="wide")
inject_base_styles()
st.title("Customer Transactions")
st.caption("Totals per customer and transaction amounts over time.")

with st.sidebar:
    st.markdown("### Data source")
    source_labels = {"fixture": "Static file (db.json)", "api": f"API ({dc.API_BASE_URL})"}
    source = st.radio(
        "Load from",
        list(dc.DATA_SOURCES)[::-1],
        index=0 if dc.DATA_SOURCE == "fixture" else 1,
        format_func=lambda s: source_labels[s],
    )

data_ctx = get_data_ctx(source)
customers = data_ctx["customers"]
filters = current_filters()

with st.sidebar:
    st.markdown("---")
    st.markdown("### Filters")
    options_df = filter_customers_by_name(customers, filters.name_query).dropna(subset=["id"])
    names = {int(cid): str(name) for cid, name in zip(options_df["id"], options_df["name"])}
    if st.session_state.get("customer_select") not in names:
        st.session_state["customer_select"] = None
    st.selectbox(
        "Select Customer",
        options=[None] + list(names),
        format_func=lambda cid: "--Select a Customer--" if cid is None else names[cid],
        key="customer_select",
        on_change=on_customer_change,
    )
    st.text_input("Filter by Name", key="name_query_input", on_change=on_name_change)
    st.text_input("Filter by Amount", key="amount_query_input", on_change=on_amount_change, help="Exact match, e.g. 50")

ctx = dc.prepare_context(filters, data_ctx)
selected = ctx["selected_customer"]

if customers.empty:
    st.warning("No customers loaded. Check the data source and the logs.")

render_page_header(
    "Customer Transactions",
    f"Home / {source_labels[source]}",
    format_filter_summary(filters, selected["name"] if selected else None),
    export_df=ctx["filtered_transactions"][[c for c in TABLE_COLUMNS if c in ctx["filtered_transactions"].columns]],
    export_name="transactions.csv",
)

left, right = st.columns([2, 3])
with left:
    with card("Customers"):
        total_rows = len(ctx["filtered_customers"])
        column_query = st.text_input("Customer Name", key="customer_column_query", placeholder=f"Search {total_rows} records...")
        payload = compute_customers(filters, ctx, column_query=column_query)
        table = pd.DataFrame(payload["rows"], columns=["id", "name", "total"]).dropna(subset=["id"])
        st.session_state["_customer_table_ids"] = table["id"].astype(int).tolist()
        st.caption(f"{payload['column_filter']['matching_rows']} of {total_rows} customers")
        st.dataframe(
            dc.format_currency_columns(table.rename(columns={"name": "Customer Name", "total": "Total Transactions"}), ["Total Transactions"]),
            use_container_width=True,
            hide_index=True,
            column_order=["Customer Name", "Total Transactions"],
            key="customer_table",
            on_select=on_table_select,
            selection_mode="single-row",
        )

with right:
    tx_payload = compute_transactions(filters, ctx)
    with card("Transactions"):
        kpi_cols = st.columns(2)
        kpi_cols[0].metric("Transactions", f"{tx_payload['kpis']['transactions']:,}")
        kpi_cols[1].metric("Total amount", dc.format_currency(tx_payload["kpis"]["total_amount"]))
        tx_table = pd.DataFrame(tx_payload["rows"], columns=TABLE_COLUMNS)
        if tx_table.empty:
            st.info("No transactions match the current filters.")
        else:
            st.dataframe(
                tx_table.rename(columns={"customer_name": "Customer Name", "amount": "Transaction Amount", "date": "Date"}),
                use_container_width=True,
                hide_index=True,
                column_order=["Customer Name", "Transaction Amount", "Date"],
            )

    if selected is not None:
        with card(f"Transaction Data for {selected['name']}"):
            if ctx["date_totals"].empty:
                st.info("No transactions for this customer with the current filters.")
            else:
                st.altair_chart(date_totals_line(ctx["date_totals"]), use_container_width=True)

from __future__ import annotations

import logging
import math
import os
from typing import List, Type

import numpy as np
import pandas as pd
from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from api.schemas import CustomerModel, DatabaseModel, TransactionFiltersModel, TransactionModel
from core.data import DataSourceError, load_dashboard_data, load_fixture_data, prepare_context
from core.filters import TransactionFilters, normalize_filters
from core.metrics_customers import compute_customers
from core.metrics_transactions import TABLE_COLUMNS, compute_transactions


app = FastAPI(title="Customer Transactions API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _filters_from_model(model: TransactionFiltersModel, data_ctx: dict) -> TransactionFilters:
    customers: pd.DataFrame = data_ctx.get("customers", pd.DataFrame())
    ids = customers["id"].dropna().astype(int).tolist() if not customers.empty else []
    return normalize_filters(model.model_dump(), customer_ids=ids)


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
            },
        )
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _valid_rows(rows: List[dict], model: Type[BaseModel]) -> List[dict]:
    """Drop records that do not fit `model`; malformed rows are logged and skipped."""
    out: List[dict] = []
    for row in rows:
        try:
            out.append(model.model_validate(row).model_dump())
        except ValidationError as exc:
            logger.warning("Skipping malformed %s record %r: %s", model.__name__, row, exc.errors())
    return out


# ---------------- Backend resources ----------------
@app.get("/customers", response_model=List[CustomerModel])
def customers():
    try:
        rows, _ = load_fixture_data()
    except DataSourceError as exc:
        logger.exception("customers failed")
        return _error(exc)
    return _valid_rows(rows, CustomerModel)


@app.get("/transactions", response_model=List[TransactionModel])
def transactions():
    try:
        _, rows = load_fixture_data()
    except DataSourceError as exc:
        logger.exception("transactions failed")
        return _error(exc)
    return _valid_rows(rows, TransactionModel)


@app.get("/db.json", response_model=DatabaseModel)
def database():
    try:
        customers_rows, transaction_rows = load_fixture_data()
    except DataSourceError as exc:
        logger.exception("database failed")
        return _error(exc)
    return {
        "customers": _valid_rows(customers_rows, CustomerModel),
        "transactions": _valid_rows(transaction_rows, TransactionModel),
    }


# ---------------- Dashboard payloads ----------------
@app.post("/dashboard/customers")
def dashboard_customers(filters: TransactionFiltersModel, column_query: str = Query(default="")):
    try:
        data_ctx = load_dashboard_data("fixture")
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_customers(f, ctx, column_query=column_query))
    except Exception as exc:
        logger.exception("dashboard_customers failed")
        return _error(exc)


@app.post("/dashboard/transactions")
def dashboard_transactions(filters: TransactionFiltersModel):
    try:
        data_ctx = load_dashboard_data("fixture")
        f = _filters_from_model(filters, data_ctx)
        ctx = prepare_context(f, data_ctx)
        return _json(compute_transactions(f, ctx))
    except Exception as exc:
        logger.exception("dashboard_transactions failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, filters: TransactionFiltersModel):
    data_ctx = load_dashboard_data("fixture")
    f = _filters_from_model(filters, data_ctx)
    ctx = prepare_context(f, data_ctx)

    filename = f"{page}.csv"
    if page == "customers":
        export_df = ctx.get("filtered_customers")
    elif page == "transactions":
        export_df = ctx.get("filtered_transactions")
        if export_df is not None:
            export_df = export_df[[c for c in TABLE_COLUMNS if c in export_df.columns]]
    else:
        logger.warning("Unknown export page %r", page)
        export_df = pd.DataFrame()

    if export_df is None or not hasattr(export_df, "to_csv"):
        export_df = pd.DataFrame()
    csv_bytes = export_df.to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("DASHBOARD_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("DASHBOARD_API_PORT", "5000")))

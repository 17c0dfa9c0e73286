from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Sequence

import pandas as pd
from sqlalchemy import func
from sqlalchemy.orm import Session

from models.sales import SalesRecord
from models.stock import StockRecord
from services.options_cache import OptionsCache

FILTER_OPTIONS_TTL_SECONDS = int(os.getenv("FILTER_OPTIONS_TTL_SECONDS", "3600"))
FILTER_OPTIONS_CACHE_KEY = "filter-options"
DEFAULT_TREND_DAYS = 30
TOP_PRODUCTS_LIMIT = 5

SALES_DIMENSIONS = {
    "division": SalesRecord.division,
    "depot": SalesRecord.depot,
    "prodLine": SalesRecord.prod_line,
    "category": SalesRecord.category,
    "brand": SalesRecord.brand,
    "seller": SalesRecord.seller,
    "employeeName": SalesRecord.employee_name,
    "dbName": SalesRecord.db_name,
    "productName": SalesRecord.product_name,
}

STOCK_DIMENSIONS = {
    "division": StockRecord.division,
    "siteName": StockRecord.site_name,
    "group": StockRecord.group,
    "category": StockRecord.category,
    "brand": StockRecord.brand,
    "source": StockRecord.source,
    "partyName": StockRecord.party_name,
    "productName": StockRecord.product_name,
}

SALES_SUMS = {
    "qtyPc": SalesRecord.qty_pc,
    "dpValue": SalesRecord.dp_value,
    "tpValue": SalesRecord.tp_value,
}

STOCK_SUMS = {
    "qty": StockRecord.qty,
    "dealerAmount": StockRecord.dealer_amount,
    "retailerAmount": StockRecord.retailer_amount,
}

INTEGER_SUMS = {"qtyPc", "qty"}


class AnalyticsQueryError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidDimensionError(AnalyticsQueryError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --------------------------------------------------
# PARAMETER HELPERS
# --------------------------------------------------
def parse_dimensions(
    dimensions: str | None,
    dimension: str | None,
    allowed: Mapping[str, Any],
) -> list[str]:
    if dimensions:
        dims = [d.strip() for d in dimensions.split(",") if d.strip()]
    else:
        dims = [dimension.strip()] if dimension and dimension.strip() else []

    invalid = [d for d in dims if d not in allowed]
    if not dims or invalid:
        raise InvalidDimensionError(f"Invalid dimensions: {', '.join(invalid)}")
    return dims


def _is_date_only(value: str) -> bool:
    return len(value.strip()) <= 10


def parse_date(value: str | None, end_of_day: bool = False) -> datetime | None:
    if not value:
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if parsed is None or parsed is pd.NaT:
        raise AnalyticsQueryError(f"Invalid date: {value}")
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    result = parsed.to_pydatetime()
    # a bare end date covers the whole day
    if end_of_day and _is_date_only(value):
        result = result + timedelta(days=1) - timedelta(microseconds=1)
    return result


def _apply_date_range(query, column, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def _apply_filters(query, columns: Mapping[str, Any], filters: Mapping[str, Sequence[str] | None]):
    for key, values in filters.items():
        if key not in columns:
            continue
        wanted = [str(v) for v in (values or []) if v and v != "all"]
        if not wanted:
            continue
        column = columns[key]
        if len(wanted) == 1:
            query = query.filter(column == wanted[0])
        else:
            query = query.filter(column.in_(wanted))
    return query


def _number(value: Any, key: str | None = None) -> float | int:
    if value is None:
        return 0
    if key in INTEGER_SUMS:
        return int(value)
    return float(value)


# --------------------------------------------------
# SUMMARIES
# --------------------------------------------------
def _summary(
    db: Session,
    model,
    dimension_columns: Mapping[str, Any],
    sum_columns: Mapping[str, Any],
    date_column,
    dims: Sequence[str],
    filters: Mapping[str, Sequence[str] | None],
    start: datetime | None,
    end: datetime | None,
) -> list[dict[str, Any]]:
    group_cols = [dimension_columns[d] for d in dims]
    query = db.query(
        *[col.label(d) for d, col in zip(dims, group_cols)],
        *[func.sum(col).label(name) for name, col in sum_columns.items()],
        func.count(model.id).label("count"),
    )
    query = _apply_filters(query, dimension_columns, filters)
    query = _apply_date_range(query, date_column, start, end)
    query = query.group_by(*group_cols).order_by(*[col.asc() for col in group_cols])

    out = []
    for row in query.all():
        mapping = row._mapping
        item: dict[str, Any] = {d: mapping[d] for d in dims}
        item["_sum"] = {name: _number(mapping[name], name) for name in sum_columns}
        item["_count"] = {"id": int(mapping["count"] or 0)}
        out.append(item)
    return out


def sales_summary(
    db: Session,
    dims: Sequence[str],
    filters: Mapping[str, Sequence[str] | None],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict[str, Any]]:
    return _summary(db, SalesRecord, SALES_DIMENSIONS, SALES_SUMS, SalesRecord.date, dims, filters, start, end)


def stock_summary(
    db: Session,
    dims: Sequence[str],
    filters: Mapping[str, Sequence[str] | None],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict[str, Any]]:
    return _summary(db, StockRecord, STOCK_DIMENSIONS, STOCK_SUMS, StockRecord.stock_date, dims, filters, start, end)


# --------------------------------------------------
# KPIS / TRENDS
# --------------------------------------------------
def dashboard_kpis(db: Session, start: datetime | None = None, end: datetime | None = None) -> dict[str, Any]:
    sales_q = _apply_date_range(
        db.query(
            func.sum(SalesRecord.dp_value),
            func.sum(SalesRecord.qty_pc),
            func.count(SalesRecord.id),
        ),
        SalesRecord.date,
        start,
        end,
    )
    sales_amount, sales_qty, sales_count = sales_q.one()

    stock_q = _apply_date_range(
        db.query(func.sum(StockRecord.dealer_amount), func.sum(StockRecord.qty)),
        StockRecord.stock_date,
        start,
        end,
    )
    stock_value, stock_qty = stock_q.one()

    dp_sum = func.sum(SalesRecord.dp_value)
    top_q = _apply_date_range(
        db.query(SalesRecord.product_name, dp_sum.label("dpValue")),
        SalesRecord.date,
        start,
        end,
    )
    top_products = top_q.group_by(SalesRecord.product_name).order_by(dp_sum.desc()).limit(TOP_PRODUCTS_LIMIT).all()

    return {
        "totalSalesAmount": _number(sales_amount),
        "totalSalesQty": _number(sales_qty, "qtyPc"),
        "totalSalesTransactions": int(sales_count or 0),
        "totalStockValue": _number(stock_value),
        "totalStockQty": _number(stock_qty, "qty"),
        "topProducts": [
            {"productName": name, "_sum": {"dpValue": _number(value)}}
            for name, value in top_products
        ],
    }


def sales_trends(
    db: Session,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    now = now or _utcnow()
    start = start or now - timedelta(days=DEFAULT_TREND_DAYS)
    end = end or now

    day = func.date(SalesRecord.date)
    rows = (
        db.query(
            day.label("day"),
            func.sum(SalesRecord.dp_value).label("amount"),
            func.sum(SalesRecord.qty_pc).label("qty"),
        )
        .filter(SalesRecord.date >= start, SalesRecord.date <= end)
        .group_by(day)
        .order_by(day.asc())
        .all()
    )
    return [
        {"day": str(r.day), "amount": _number(r.amount), "qty": _number(r.qty, "qty")}
        for r in rows
    ]


# --------------------------------------------------
# FILTER OPTIONS
# --------------------------------------------------
def _distinct(db: Session, column) -> list[str]:
    values = [v for (v,) in db.query(column).distinct().all()]
    return sorted(str(v) for v in values if v)


def filter_options(db: Session) -> dict[str, dict[str, list[str]]]:
    return {
        "sales": {
            "brands": _distinct(db, SalesRecord.brand),
            "divisions": _distinct(db, SalesRecord.division),
            "categories": _distinct(db, SalesRecord.category),
            "depots": _distinct(db, SalesRecord.depot),
            "prodLines": _distinct(db, SalesRecord.prod_line),
            "sellers": _distinct(db, SalesRecord.seller),
            "employeeNames": _distinct(db, SalesRecord.employee_name),
            "dbNames": _distinct(db, SalesRecord.db_name),
            "products": _distinct(db, SalesRecord.product_name),
        },
        "stock": {
            "brands": _distinct(db, StockRecord.brand),
            "divisions": _distinct(db, StockRecord.division),
            "categories": _distinct(db, StockRecord.category),
            "siteNames": _distinct(db, StockRecord.site_name),
            "groups": _distinct(db, StockRecord.group),
            "sources": _distinct(db, StockRecord.source),
            "parties": _distinct(db, StockRecord.party_name),
            "products": _distinct(db, StockRecord.product_name),
        },
    }


def cached_filter_options(
    db: Session,
    cache: OptionsCache,
    ttl: float = FILTER_OPTIONS_TTL_SECONDS,
) -> dict[str, dict[str, list[str]]]:
    return cache.get_or_compute(FILTER_OPTIONS_CACHE_KEY, ttl, lambda: filter_options(db))

# routers/analytics.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db.deps import get_db
from services.analytics_queries import (
    SALES_DIMENSIONS,
    STOCK_DIMENSIONS,
    cached_filter_options,
    dashboard_kpis,
    parse_date,
    parse_dimensions,
    sales_summary,
    sales_trends,
    stock_summary,
)
from services.ingestion import get_options_cache
from services.options_cache import OptionsCache

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/sales-summary")
def sales_summary_route(
    dimension: str | None = Query(None),
    dimensions: str | None = Query(None),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    division: list[str] | None = Query(None),
    brand: list[str] | None = Query(None),
    category: list[str] | None = Query(None),
    depot: list[str] | None = Query(None),
    prod_line: list[str] | None = Query(None, alias="prodLine"),
    seller: list[str] | None = Query(None),
    employee_name: list[str] | None = Query(None, alias="employeeName"),
    db_name: list[str] | None = Query(None, alias="dbName"),
    product_name: list[str] | None = Query(None, alias="productName"),
    db: Session = Depends(get_db),
):
    dims = parse_dimensions(dimensions, dimension, SALES_DIMENSIONS)
    filters = {
        "division": division,
        "brand": brand,
        "category": category,
        "depot": depot,
        "prodLine": prod_line,
        "seller": seller,
        "employeeName": employee_name,
        "dbName": db_name,
        "productName": product_name,
    }
    return sales_summary(
        db,
        dims,
        filters,
        start=parse_date(start_date),
        end=parse_date(end_date, end_of_day=True),
    )


@router.get("/stock-summary")
def stock_summary_route(
    dimension: str | None = Query(None),
    dimensions: str | None = Query(None),
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    division: list[str] | None = Query(None),
    brand: list[str] | None = Query(None),
    category: list[str] | None = Query(None),
    site_name: list[str] | None = Query(None, alias="siteName"),
    group: list[str] | None = Query(None),
    source: list[str] | None = Query(None),
    party_name: list[str] | None = Query(None, alias="partyName"),
    product_name: list[str] | None = Query(None, alias="productName"),
    db: Session = Depends(get_db),
):
    dims = parse_dimensions(dimensions, dimension, STOCK_DIMENSIONS)
    filters = {
        "division": division,
        "brand": brand,
        "category": category,
        "siteName": site_name,
        "group": group,
        "source": source,
        "partyName": party_name,
        "productName": product_name,
    }
    return stock_summary(
        db,
        dims,
        filters,
        start=parse_date(start_date),
        end=parse_date(end_date, end_of_day=True),
    )


@router.get("/dashboard-kpis")
def dashboard_kpis_route(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return dashboard_kpis(db, start=parse_date(start_date), end=parse_date(end_date, end_of_day=True))


@router.get("/sales-trends")
def sales_trends_route(
    start_date: str | None = Query(None, alias="startDate"),
    end_date: str | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
):
    return sales_trends(db, start=parse_date(start_date), end=parse_date(end_date, end_of_day=True))


@router.get("/filter-options")
def filter_options_route(
    db: Session = Depends(get_db),
    cache: OptionsCache = Depends(get_options_cache),
):
    return cached_filter_options(db, cache)

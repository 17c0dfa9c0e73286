from __future__ import annotations

import os
from collections.abc import Iterator, Sequence
from datetime import datetime
from io import BytesIO
from pathlib import Path

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy.orm import Session, sessionmaker

from authentication.security import create_access_token
from db.base import Base
from db.deps import get_db
from db.session import build_engine, build_session_factory
from main import app
from services.ingestion import get_ingestion_service, get_options_cache
from services.ingestion.engine import IngestionService
from services.ingestion.runner import BackgroundRunner
from services.options_cache import OptionsCache

FIXED_NOW = datetime(2024, 6, 30, 12, 0, 0)

SALES_HEADERS = [
    "Date",
    "Division",
    "Depot",
    "Seller",
    "DB Code",
    "DB Name",
    "Prod. Line",
    "Category",
    "Brand",
    "Product SKU",
    "Product Name",
    "Emp. ID",
    "Employee Name",
    "QTY PC",
    "QTY LTR/KG",
    "DP Value",
    "TP Value",
]

STOCK_HEADERS = [
    "Stock Date",
    "Division",
    "Site Name",
    "Dist. Code",
    "Source",
    "Party Name",
    "Group",
    "Category",
    "Brand",
    "Product SKU",
    "Product Name",
    "Batch Name",
    "Qty",
    "Retailer Price",
    "Dealer Price",
    "LTR/KG",
    "Retailer Amount",
    "Dealer Amount",
]

ALL_PERMISSIONS = [
    "import_sales",
    "import_stock",
    "view_sales_reports",
    "view_stock_reports",
]


def make_sales_row(index: int, **overrides) -> list:
    values = {
        "Date": datetime(2024, 3, 1 + index % 28),
        "Division": "North" if index % 2 == 0 else "South",
        "Depot": f"Depot {index % 3}",
        "Seller": "Seller A",
        "DB Code": f"DB{index:03d}",
        "DB Name": f"Distributor {index % 4}",
        "Prod. Line": "Paints",
        "Category": "Emulsion",
        "Brand": "Brand X" if index % 2 == 0 else "Brand Y",
        "Product SKU": f"SKU-{index:04d}",
        "Product Name": f"Product {index}",
        "Emp. ID": f"E{index % 5}",
        "Employee Name": f"Employee {index % 5}",
        "QTY PC": 10 + index,
        "QTY LTR/KG": 2.5,
        "DP Value": 100.0 + index,
        "TP Value": 90.0 + index,
    }
    values.update(overrides)
    return [values[h] for h in SALES_HEADERS]


def make_stock_row(index: int, **overrides) -> list:
    values = {
        "Stock Date": datetime(2024, 4, 1 + index % 28),
        "Division": "North",
        "Site Name": f"Site {index % 2}",
        "Dist. Code": f"DC{index:03d}",
        "Source": "Factory",
        "Party Name": "Party One",
        "Group": "Decor",
        "Category": "Emulsion",
        "Brand": "Brand X",
        "Product SKU": f"SKU-{index:04d}",
        "Product Name": f"Product {index}",
        "Batch Name": f"B{index:03d}",
        "Qty": 4,
        "Retailer Price": 30.0,
        "Dealer Price": 25.0,
        "LTR/KG": 1.0,
        "Retailer Amount": 120.0,
        "Dealer Amount": 100.0,
    }
    values.update(overrides)
    return [values[h] for h in STOCK_HEADERS]


def build_workbook(rows: Sequence[Sequence[object]]) -> bytes:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Sheet1"
    for row in rows:
        worksheet.append(list(row))
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def workbook_builder():
    return build_workbook


@pytest.fixture
def sales_workbook():
    def _builder(count: int = 3, title_rows: int = 0, overrides: dict[int, dict] | None = None) -> bytes:
        overrides = overrides or {}
        rows: list[list] = [["Sales Register FY24"] for _ in range(title_rows)]
        rows.append(SALES_HEADERS)
        rows.extend(make_sales_row(i, **overrides.get(i, {})) for i in range(count))
        return build_workbook(rows)

    return _builder


@pytest.fixture
def stock_workbook():
    def _builder(count: int = 3, overrides: dict[int, dict] | None = None) -> bytes:
        overrides = overrides or {}
        rows: list[list] = [STOCK_HEADERS]
        rows.extend(make_stock_row(i, **overrides.get(i, {})) for i in range(count))
        return build_workbook(rows)

    return _builder


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'portal.db'}"


@pytest.fixture
def session_factory(sqlite_url: str) -> Iterator[sessionmaker]:
    engine = build_engine(sqlite_url)
    Base.metadata.create_all(bind=engine)
    factory = build_session_factory(engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    with session_factory() as session:
        yield session


@pytest.fixture
def runner() -> Iterator[BackgroundRunner]:
    background = BackgroundRunner(max_workers=2)
    try:
        yield background
    finally:
        background.shutdown(wait=True)


@pytest.fixture
def options_cache() -> OptionsCache:
    return OptionsCache()


@pytest.fixture
def ingestion_service(session_factory, runner, options_cache) -> IngestionService:
    return IngestionService(
        session_factory=session_factory,
        runner=runner,
        options_cache=options_cache,
        chunk_size=500,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def client(session_factory, ingestion_service, options_cache) -> Iterator[TestClient]:
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_ingestion_service] = lambda: ingestion_service
    app.dependency_overrides[get_options_cache] = lambda: options_cache
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _headers(permissions: Sequence[str] = ALL_PERMISSIONS, user_id: str = "7") -> dict[str, str]:
        token = create_access_token(user_id, role="Admin", permissions=permissions)
        return {"Authorization": f"Bearer {token}"}

    return _headers

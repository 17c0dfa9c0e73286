from __future__ import annotations

import math
import numbers
import re
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping

import pandas as pd

from models.import_jobs import RecordType

# Excel serial day 25569 is 1970-01-01 (serial 0 is 1899-12-30)
EXCEL_UNIX_EPOCH_SERIAL = 25569
SECONDS_PER_DAY = 86400
_UNIX_EPOCH = datetime(1970, 1, 1)

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_NUMERIC_PREFIX = re.compile(r"-?(?:\d+(?:\.\d*)?|\.\d+)")
_SERIAL_TEXT = re.compile(r"\d+(?:\.\d+)?")

# --------------------------------------------------
# HEADER ALIASES
# --------------------------------------------------
PRODUCT_CODE_ALIASES = ("Product SKU", "ProductCode", "SKU")
PRODUCT_NAME_ALIASES = ("Product Name", "ProductName")

SALES_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("Date", "Sales Date", "SalesDate"),
    "division": ("Division",),
    "depot": ("Depot",),
    "seller": ("Seller",),
    "db_code": ("DB Code", "DBCode"),
    "db_name": ("DB Name", "DBName"),
    "prod_line": ("Prod. Line", "ProdLine"),
    "category": ("Category",),
    "brand": ("Brand",),
    "product_code": PRODUCT_CODE_ALIASES,
    "product_name": PRODUCT_NAME_ALIASES,
    "emp_id": ("Emp. ID", "EmpID"),
    "employee_name": ("Employee Name", "EmployeeName"),
    "qty_pc": ("QTY PC", "Quantity", "Qty"),
    "qty_ltr_kg": ("QTY LTR/KG",),
    "dp_value": ("DP Value", "Amount", "Value"),
    "tp_value": ("TP Value",),
}

STOCK_ALIASES: dict[str, tuple[str, ...]] = {
    "stock_date": ("Stock Date", "StockDate", "Date"),
    "division": ("Division",),
    "site_name": ("Site Name", "SiteName"),
    "dist_code": ("Dist. Code", "DistCode"),
    "source": ("Source",),
    "party_name": ("Party Name", "PartyName"),
    "group": ("Group",),
    "category": ("Category",),
    "brand": ("Brand",),
    "product_code": PRODUCT_CODE_ALIASES,
    "product_name": PRODUCT_NAME_ALIASES,
    "batch_name": ("Batch Name", "BatchName"),
    "qty": ("Qty", "Quantity"),
    "retailer_price": ("Retailer Price",),
    "dealer_price": ("Dealer Price",),
    "ltr_kg": ("LTR/KG",),
    "retailer_amount": ("Retailer Amount",),
    "dealer_amount": ("Dealer Amount",),
}

SALES_TEXT_FIELDS = (
    "division",
    "depot",
    "seller",
    "db_code",
    "db_name",
    "prod_line",
    "category",
    "brand",
    "product_code",
    "product_name",
    "emp_id",
    "employee_name",
)
SALES_DECIMAL_FIELDS = ("qty_ltr_kg", "dp_value", "tp_value")

STOCK_TEXT_FIELDS = (
    "division",
    "site_name",
    "dist_code",
    "source",
    "party_name",
    "group",
    "category",
    "brand",
    "product_code",
    "product_name",
    "batch_name",
)
STOCK_DECIMAL_FIELDS = (
    "retailer_price",
    "dealer_price",
    "ltr_kg",
    "retailer_amount",
    "dealer_amount",
)


# --------------------------------------------------
# TYPED ROWS
# --------------------------------------------------
@dataclass
class SalesRow:
    date: datetime
    division: str = ""
    depot: str = ""
    seller: str = ""
    db_code: str = ""
    db_name: str = ""
    prod_line: str = ""
    category: str = ""
    brand: str = ""
    product_code: str = ""
    product_name: str = ""
    emp_id: str = ""
    employee_name: str = ""
    qty_pc: int = 0
    qty_ltr_kg: float = 0.0
    dp_value: float = 0.0
    tp_value: float = 0.0
    hash: str = ""
    imported_by: str | None = None

    record_type = RecordType.SALES

    def as_row(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StockRow:
    stock_date: datetime
    division: str = ""
    site_name: str = ""
    dist_code: str = ""
    source: str = ""
    party_name: str = ""
    group: str = ""
    category: str = ""
    brand: str = ""
    product_code: str = ""
    product_name: str = ""
    batch_name: str = ""
    qty: int = 0
    retailer_price: float = 0.0
    dealer_price: float = 0.0
    ltr_kg: float = 0.0
    retailer_amount: float = 0.0
    dealer_amount: float = 0.0
    hash: str = ""
    imported_by: str | None = None

    record_type = RecordType.STOCK

    def as_row(self) -> dict[str, Any]:
        return asdict(self)


# --------------------------------------------------
# VALUE COERCION
# --------------------------------------------------
def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def round_half_up(value: float, places: int = 0) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def clean_num(value: Any) -> float:
    """
    Coerce a spreadsheet cell into a number rounded half-up to 4 places.

    Strings keep only digits, "." and "-" before the leading numeric prefix
    is parsed, so "1,234.5 units" becomes 1234.5. Anything unparseable is 0.
    """
    if value is None or (isinstance(value, str) and value == ""):
        return 0.0

    if _is_number(value):
        num = float(value)
    else:
        cleaned = _NON_NUMERIC.sub("", str(value))
        match = _NUMERIC_PREFIX.match(cleaned)
        num = float(match.group(0)) if match else math.nan

    if not math.isfinite(num):
        return 0.0
    return round_half_up(num, 4)


def clean_qty(value: Any) -> int:
    return int(round_half_up(clean_num(value)))


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if not math.isfinite(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def _is_blank_date(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if _is_number(value):
        return value == 0 or value != value
    return False


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def coerce_date(value: Any, default: datetime) -> datetime:
    if _is_blank_date(value):
        return default

    if isinstance(value, pd.Timestamp):
        return _naive_utc(value.to_pydatetime())
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if _is_number(value):
        seconds = (float(value) - EXCEL_UNIX_EPOCH_SERIAL) * SECONDS_PER_DAY
        try:
            return _UNIX_EPOCH + timedelta(seconds=seconds)
        except OverflowError as exc:
            raise ValueError(f"Invalid date value: {value!r}") from exc

    text = str(value).strip()
    # csv cells arrive as text, serial days included
    if _SERIAL_TEXT.fullmatch(text):
        return coerce_date(float(text), default)
    try:
        parsed = pd.Timestamp(text)
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid date value: {text!r}") from exc
    if parsed is pd.NaT:
        raise ValueError(f"Invalid date value: {text!r}")
    return _naive_utc(parsed.to_pydatetime())


# --------------------------------------------------
# HEADER LOOKUP
# --------------------------------------------------
def _header_index(row: Mapping[str, Any]) -> dict[str, str]:
    index: dict[str, str] = {}
    for key in row:
        index.setdefault(str(key).strip().lower(), key)
    return index


def get_value(row: Mapping[str, Any], aliases: tuple[str, ...], index: dict[str, str] | None = None) -> Any:
    """Return the cell under the first alias present in the row (case-insensitive, trimmed)."""
    lookup = index if index is not None else _header_index(row)
    for alias in aliases:
        key = lookup.get(alias.strip().lower())
        if key is not None:
            return row[key]
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# --------------------------------------------------
# NORMALIZERS
# --------------------------------------------------
def normalize_sales_row(
    row: Mapping[str, Any],
    imported_by: str | None = None,
    default_date: datetime | None = None,
) -> SalesRow:
    index = _header_index(row)

    def cell(field: str) -> Any:
        return get_value(row, SALES_ALIASES[field], index)

    values: dict[str, Any] = {field: to_text(cell(field)) for field in SALES_TEXT_FIELDS}
    values.update({field: clean_num(cell(field)) for field in SALES_DECIMAL_FIELDS})

    return SalesRow(
        date=coerce_date(cell("date"), default_date or _utcnow()),
        qty_pc=clean_qty(cell("qty_pc")),
        imported_by=imported_by,
        **values,
    )


def normalize_stock_row(
    row: Mapping[str, Any],
    imported_by: str | None = None,
    default_date: datetime | None = None,
) -> StockRow:
    index = _header_index(row)

    def cell(field: str) -> Any:
        return get_value(row, STOCK_ALIASES[field], index)

    values: dict[str, Any] = {field: to_text(cell(field)) for field in STOCK_TEXT_FIELDS}
    values.update({field: clean_num(cell(field)) for field in STOCK_DECIMAL_FIELDS})

    record = StockRow(
        stock_date=coerce_date(cell("stock_date"), default_date or _utcnow()),
        qty=clean_qty(cell("qty")),
        imported_by=imported_by,
        **values,
    )

    # unit prices fall back to amount / qty when the sheet leaves them blank
    if record.dealer_price == 0 and record.dealer_amount > 0 and record.qty > 0:
        record.dealer_price = record.dealer_amount / record.qty
    if record.retailer_price == 0 and record.retailer_amount > 0 and record.qty > 0:
        record.retailer_price = record.retailer_amount / record.qty

    return record


NORMALIZERS: dict[RecordType, Callable[..., SalesRow | StockRow]] = {
    RecordType.SALES: normalize_sales_row,
    RecordType.STOCK: normalize_stock_row,
}


def normalize(
    row: Mapping[str, Any],
    record_type: RecordType,
    imported_by: str | None = None,
    default_date: datetime | None = None,
) -> SalesRow | StockRow:
    return NORMALIZERS[RecordType(record_type)](row, imported_by=imported_by, default_date=default_date)


def is_persistable(record: SalesRow | StockRow) -> bool:
    return bool(record.product_code) and bool(record.product_name)

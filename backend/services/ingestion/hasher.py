import hashlib
import json
from datetime import date, datetime
from typing import Any

from models.import_jobs import RecordType

HASH_FIELDS: dict[RecordType, tuple[str, ...]] = {
    RecordType.SALES: ("date", "db_code", "product_code", "emp_id", "qty_pc", "dp_value"),
    RecordType.STOCK: ("stock_date", "product_code", "batch_name", "site_name", "qty", "division"),
}


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def hash_payload(record, record_type: RecordType | None = None) -> str:
    """Canonical JSON of the dedup fields, in fixed order."""
    kind = RecordType(record_type or record.record_type)
    payload = {field: getattr(record, field) for field in HASH_FIELDS[kind]}
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=_json_default)


def record_hash(record, record_type: RecordType | None = None) -> str:
    # dedup key only; md5 keeps it short enough for the unique index
    return hashlib.md5(hash_payload(record, record_type).encode("utf-8")).hexdigest()

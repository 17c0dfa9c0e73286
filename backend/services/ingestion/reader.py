from __future__ import annotations

from io import BytesIO
from typing import Any

import pandas as pd

from services.ingestion.errors import SpreadsheetReadError


def _clean_cell(value: Any):
    if value is None:
        return None
    if isinstance(value, float) and value != value:
        return None
    if value is pd.NaT:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, str) and not value.strip():
        return None
    return value


def read_sheet(content: bytes, filename: str | None = None) -> list[list[Any]]:
    """
    Read the first worksheet into raw rows without header inference.
    Empty cells come back as None so the header row can be located later.
    """
    name = (filename or "").lower()
    buffer = BytesIO(content)
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(buffer, header=None, dtype=str, keep_default_na=False)
        else:
            df = pd.read_excel(buffer, sheet_name=0, header=None)
    except Exception as exc:
        raise SpreadsheetReadError(f"Failed to parse file: {exc}") from exc

    df = df.astype(object).where(pd.notnull(df), None)
    return [[_clean_cell(cell) for cell in row] for row in df.itertuples(index=False, name=None)]


def _header_keys(header_row: list[Any]) -> list[str]:
    keys: list[str] = []
    seen: dict[str, int] = {}
    blanks = 0
    for cell in header_row:
        if cell is None:
            key = "__EMPTY" if blanks == 0 else f"__EMPTY_{blanks}"
            blanks += 1
        else:
            key = str(cell).strip()
        if key in seen:
            seen[key] += 1
            key = f"{key}_{seen[key]}"
        else:
            seen[key] = 0
        keys.append(key)
    return keys


def rows_from_header(raw_rows: list[list[Any]], header_row_index: int) -> list[dict[str, Any]]:
    if header_row_index >= len(raw_rows):
        return []

    keys = _header_keys(raw_rows[header_row_index])
    out: list[dict[str, Any]] = []
    for raw in raw_rows[header_row_index + 1 :]:
        row = {
            key: value
            for key, value in zip(keys, raw)
            if value is not None
        }
        if row:
            out.append(row)
    return out

import json
from dataclasses import dataclass
from typing import Any, Sequence

from models.import_jobs import RecordType

SNIFF_ROW_LIMIT = 10

SALES_KEYWORDS = ("qty pc", "dp value", "tp value")
STOCK_MARKERS = ("site name", "batch name", "retailer price")
HEADER_KEYWORDS = ("product sku", "product name")

TEMPLATE_LABELS = {
    RecordType.SALES: "Sales Register",
    RecordType.STOCK: "Stock Ledger",
}


@dataclass(frozen=True)
class SniffResult:
    header_row_index: int
    detected_type: RecordType | None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _has_any(text: str, keywords: Sequence[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _has_stock_signature(text: str) -> bool:
    return "product sku" in text and ("site name" in text or "batch name" in text)


def detect_type(text: str) -> RecordType | None:
    if _has_any(text, SALES_KEYWORDS):
        return RecordType.SALES
    if _has_stock_signature(text) or _has_any(text, STOCK_MARKERS):
        return RecordType.STOCK
    return None


def _template_message(expected: RecordType, detected: RecordType | None) -> str:
    expected_label = TEMPLATE_LABELS[expected]
    detected_label = f"a {TEMPLATE_LABELS[detected]}" if detected else "an unrecognised layout"
    return (
        f"Invalid Template: expected a {expected_label} but the file looks like {detected_label}. "
        f"Please use the correct {expected_label.split()[0]} template."
    )


def find_header_row(raw_rows: Sequence[Sequence[Any]], expected: RecordType) -> int:
    keywords = HEADER_KEYWORDS + (("qty pc",) if expected == RecordType.SALES else ())
    for index, row in enumerate(raw_rows):
        for cell in row:
            if cell is None:
                continue
            lowered = str(cell).lower()
            if any(keyword in lowered for keyword in keywords):
                return index
    return 0


def classify(raw_rows: Sequence[Sequence[Any]], expected_type: RecordType) -> SniffResult:
    text = json.dumps([list(row) for row in raw_rows[:SNIFF_ROW_LIMIT]], default=str).lower()
    detected = detect_type(text)

    if expected_type == RecordType.SALES:
        rejected = _has_any(text, STOCK_MARKERS) or not _has_any(text, SALES_KEYWORDS)
    else:
        rejected = _has_any(text, SALES_KEYWORDS) or not _has_stock_signature(text)

    if rejected:
        # a sales sheet that also carries stock markers still reads as the wrong ledger
        if detected == expected_type:
            detected = RecordType.STOCK if expected_type == RecordType.SALES else None
        return SniffResult(
            header_row_index=0,
            detected_type=detected,
            error=_template_message(expected_type, detected),
        )

    return SniffResult(
        header_row_index=find_header_row(raw_rows, expected_type),
        detected_type=detected,
    )

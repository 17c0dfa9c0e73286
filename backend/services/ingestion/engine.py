from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Sequence

from sqlalchemy.orm import sessionmaker

from models.import_jobs import RecordType
from models.sales import SalesRecord
from models.stock import StockRecord
from services.ingestion.errors import EmptyFileError, WrongTemplateError
from services.ingestion.hasher import record_hash
from services.ingestion.job_tracker import JobTracker
from services.ingestion.normalizer import is_persistable, normalize
from services.ingestion.persistence import insert_skip_duplicates
from services.ingestion.reader import read_sheet, rows_from_header
from services.ingestion.runner import BackgroundRunner
from services.ingestion.sniffer import classify
from services.options_cache import OptionsCache

logger = logging.getLogger(__name__)

IMPORT_CHUNK_SIZE = int(os.getenv("IMPORT_CHUNK_SIZE", "500"))

RECORD_MODELS = {
    RecordType.SALES: SalesRecord,
    RecordType.STOCK: StockRecord,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def chunked(rows: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


class IngestionService:
    """
    Drives an upload end-to-end: parse and validate synchronously, then hand the
    rows to the background runner which normalizes, hashes and inserts them chunk by chunk.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        runner: BackgroundRunner,
        options_cache: OptionsCache | None = None,
        chunk_size: int = IMPORT_CHUNK_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.session_factory = session_factory
        self.runner = runner
        self.options_cache = options_cache
        self.chunk_size = chunk_size
        self.clock = clock
        self.tracker = JobTracker(session_factory)

    # --------------------------------------------------
    # SYNCHRONOUS PART (request thread)
    # --------------------------------------------------
    def prepare(self, content: bytes, filename: str | None, record_type: RecordType) -> list[dict[str, Any]]:
        raw_rows = read_sheet(content, filename)
        result = classify(raw_rows, record_type)
        if not result.ok:
            raise WrongTemplateError(result.error)

        rows = rows_from_header(raw_rows, result.header_row_index)
        if not rows:
            raise EmptyFileError("No data found in Excel")
        return rows

    def start(
        self,
        content: bytes,
        filename: str | None,
        record_type: RecordType,
        actor: str | None = None,
    ) -> str:
        record_type = RecordType(record_type)
        rows = self.prepare(content, filename, record_type)

        job_id = self.tracker.create(record_type, len(rows), created_by=actor)
        self.runner.submit(job_id, self.run, job_id, rows, record_type, actor)

        logger.info(
            "IMPORT: accepted file=%s type=%s rows=%s job=%s",
            filename,
            record_type.value,
            len(rows),
            job_id,
        )
        return job_id

    # --------------------------------------------------
    # BACKGROUND PART
    # --------------------------------------------------
    def build_records(
        self,
        chunk: Sequence[dict[str, Any]],
        record_type: RecordType,
        actor: str | None,
        default_date: datetime,
    ) -> list[dict[str, Any]]:
        records = []
        for row in chunk:
            record = normalize(row, record_type, imported_by=actor, default_date=default_date)
            if not is_persistable(record):
                continue
            record.hash = record_hash(record)
            records.append(record.as_row())
        return records

    def run(
        self,
        job_id: str,
        rows: Sequence[dict[str, Any]],
        record_type: RecordType,
        actor: str | None = None,
    ) -> None:
        model = RECORD_MODELS[RecordType(record_type)]
        # rows without a date are stamped with the time the run started
        started_at = self.clock()
        inserted_total = 0

        try:
            for chunk in chunked(rows, self.chunk_size):
                records = self.build_records(chunk, record_type, actor, started_at)
                if records:
                    with self.session_factory() as db:
                        inserted_total += insert_skip_duplicates(db, model, records)
                self.tracker.advance(job_id, len(chunk))

            self.tracker.complete(job_id)
        except Exception as exc:
            logger.exception("IMPORT: background processing failed job=%s", job_id)
            self.tracker.fail(job_id, str(exc) or exc.__class__.__name__)
            return

        if self.options_cache is not None:
            self.options_cache.invalidate()

        logger.info(
            "IMPORT: finished job=%s type=%s rows=%s inserted=%s",
            job_id,
            RecordType(record_type).value,
            len(rows),
            inserted_total,
        )

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session, sessionmaker

from models.import_jobs import TERMINAL_STATUSES, ImportJob, JobStatus, RecordType
from services.ingestion.errors import JobNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSnapshot:
    id: str
    type: str
    status: str
    total_records: int
    processed: int
    progress: int
    error_message: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_model(cls, job: ImportJob) -> "JobSnapshot":
        return cls(
            id=job.id,
            type=job.type,
            status=job.status,
            total_records=int(job.total_records or 0),
            processed=int(job.processed or 0),
            progress=int(job.progress or 0),
            error_message=job.error_message,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


def compute_progress(processed: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, math.floor(processed / total * 100 + 0.5))


class JobTracker:
    """
    Persists import job state in import_jobs.
    Every call opens its own short session so pollers see each update as soon as it commits.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _load(self, db: Session, job_id: str) -> ImportJob:
        job = db.get(ImportJob, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def create(self, record_type: RecordType, total_records: int, created_by: str | None = None) -> str:
        with self.session_factory() as db:
            job = ImportJob(
                type=RecordType(record_type).value,
                status=JobStatus.PROCESSING.value,
                total_records=int(total_records),
                processed=0,
                progress=0,
                created_by=created_by,
            )
            db.add(job)
            db.commit()
            logger.info("IMPORT JOB: created id=%s type=%s total=%s", job.id, job.type, total_records)
            return job.id

    def advance(self, job_id: str, processed_delta: int) -> JobSnapshot:
        with self.session_factory() as db:
            job = self._load(db, job_id)
            if job.status in TERMINAL_STATUSES:
                logger.warning("IMPORT JOB: ignoring advance on terminal job id=%s status=%s", job_id, job.status)
                return JobSnapshot.from_model(job)

            job.processed = int(job.processed or 0) + int(processed_delta)
            job.progress = compute_progress(job.processed, int(job.total_records or 0))
            db.commit()
            return JobSnapshot.from_model(job)

    def complete(self, job_id: str) -> JobSnapshot:
        with self.session_factory() as db:
            job = self._load(db, job_id)
            if job.status not in TERMINAL_STATUSES:
                job.status = JobStatus.COMPLETED.value
                job.progress = 100
                db.commit()
                logger.info("IMPORT JOB: completed id=%s processed=%s", job_id, job.processed)
            return JobSnapshot.from_model(job)

    def fail(self, job_id: str, message: str) -> JobSnapshot:
        with self.session_factory() as db:
            job = self._load(db, job_id)
            if job.status not in TERMINAL_STATUSES:
                job.status = JobStatus.FAILED.value
                job.error_message = message
                db.commit()
                logger.error("IMPORT JOB: failed id=%s error=%s", job_id, message)
            return JobSnapshot.from_model(job)

    def get(self, job_id: str) -> JobSnapshot:
        with self.session_factory() as db:
            return JobSnapshot.from_model(self._load(db, job_id))

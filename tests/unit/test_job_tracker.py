from __future__ import annotations

import pytest

from models.import_jobs import ImportJob, JobStatus, RecordType
from services.ingestion.errors import JobNotFoundError
from services.ingestion.job_tracker import JobTracker, compute_progress


@pytest.fixture
def tracker(session_factory) -> JobTracker:
    return JobTracker(session_factory)


def test_create_initialises_processing_job(tracker: JobTracker) -> None:
    job_id = tracker.create(RecordType.SALES, 1200, created_by="7")

    snapshot = tracker.get(job_id)

    assert snapshot.id == job_id
    assert snapshot.type == "SALES"
    assert snapshot.status == JobStatus.PROCESSING.value
    assert snapshot.total_records == 1200
    assert snapshot.processed == 0
    assert snapshot.progress == 0
    assert snapshot.error_message is None
    assert not snapshot.is_terminal


def test_advance_accumulates_and_rounds_progress(tracker: JobTracker) -> None:
    job_id = tracker.create(RecordType.STOCK, 1200)

    first = tracker.advance(job_id, 500)
    second = tracker.advance(job_id, 500)
    third = tracker.advance(job_id, 200)

    assert (first.processed, first.progress) == (500, 42)
    assert (second.processed, second.progress) == (1000, 83)
    assert (third.processed, third.progress) == (1200, 100)
    assert third.status == JobStatus.PROCESSING.value


def test_complete_sets_progress_to_100(tracker: JobTracker) -> None:
    job_id = tracker.create(RecordType.SALES, 10)
    tracker.advance(job_id, 3)

    snapshot = tracker.complete(job_id)

    assert snapshot.status == JobStatus.COMPLETED.value
    assert snapshot.progress == 100
    assert snapshot.processed == 3


def test_terminal_jobs_ignore_further_updates(tracker: JobTracker) -> None:
    job_id = tracker.create(RecordType.SALES, 10)
    tracker.advance(job_id, 5)
    tracker.fail(job_id, "disk full")

    after_advance = tracker.advance(job_id, 5)
    after_complete = tracker.complete(job_id)
    after_second_fail = tracker.fail(job_id, "other")

    for snapshot in (after_advance, after_complete, after_second_fail):
        assert snapshot.status == JobStatus.FAILED.value
        assert snapshot.processed == 5
        assert snapshot.progress == 50
        assert snapshot.error_message == "disk full"


def test_completed_job_cannot_fail(tracker: JobTracker) -> None:
    job_id = tracker.create(RecordType.STOCK, 1)
    tracker.advance(job_id, 1)
    tracker.complete(job_id)

    snapshot = tracker.fail(job_id, "late error")

    assert snapshot.status == JobStatus.COMPLETED.value
    assert snapshot.error_message is None


def test_unknown_job_raises_not_found(tracker: JobTracker) -> None:
    with pytest.raises(JobNotFoundError) as excinfo:
        tracker.get("missing")

    assert excinfo.value.message == "Job not found"
    assert excinfo.value.status_code == 404

    with pytest.raises(JobNotFoundError):
        tracker.advance("missing", 1)


def test_job_row_is_persisted(tracker: JobTracker, session_factory) -> None:
    job_id = tracker.create(RecordType.SALES, 2)

    with session_factory() as db:
        row = db.get(ImportJob, job_id)

    assert row is not None
    assert row.created_at is not None


@pytest.mark.parametrize(
    ("processed", "total", "expected"),
    [
        (0, 10, 0),
        (1, 3, 33),
        (2, 3, 67),
        (1, 200, 1),
        (1, 2, 50),
        (12, 10, 100),
        (0, 0, 100),
    ],
)
def test_compute_progress(processed: int, total: int, expected: int) -> None:
    assert compute_progress(processed, total) == expected

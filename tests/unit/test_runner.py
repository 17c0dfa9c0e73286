from __future__ import annotations

import threading

from services.ingestion.runner import BackgroundRunner


def test_submit_runs_off_the_calling_thread(runner: BackgroundRunner) -> None:
    seen: list[str] = []

    future = runner.submit("job-1", lambda: seen.append(threading.current_thread().name))
    future.result(timeout=5)

    assert seen and seen[0].startswith("import")
    assert seen[0] != threading.current_thread().name


def test_active_jobs_tracks_running_handles(runner: BackgroundRunner) -> None:
    release = threading.Event()
    started = threading.Event()

    def _work() -> None:
        started.set()
        release.wait(timeout=5)

    runner.submit("job-2", _work)
    assert started.wait(timeout=5)

    assert runner.active_jobs() == ["job-2"]
    assert runner.get("job-2") is not None

    release.set()
    runner.wait("job-2", timeout=5)

    assert runner.active_jobs() == []


def test_wait_on_unknown_job_returns_immediately(runner: BackgroundRunner) -> None:
    runner.wait("never-submitted", timeout=0.1)

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)

IMPORT_MAX_WORKERS = int(os.getenv("IMPORT_MAX_WORKERS", "4"))


class BackgroundRunner:
    """Runs import jobs off the request thread and keeps a handle per job id."""

    def __init__(self, max_workers: int = IMPORT_MAX_WORKERS):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="import")
        self._lock = threading.Lock()
        self._tasks: dict[str, Future] = {}

    def submit(self, job_id: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        future = self._executor.submit(fn, *args, **kwargs)
        with self._lock:
            self._tasks[job_id] = future
        future.add_done_callback(lambda _: self._forget(job_id, future))
        logger.info("RUNNER: submitted job=%s", job_id)
        return future

    def _forget(self, job_id: str, future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            logger.error("RUNNER: job=%s crashed: %s", job_id, future.exception())
        with self._lock:
            if self._tasks.get(job_id) is future:
                self._tasks.pop(job_id, None)

    def get(self, job_id: str) -> Future | None:
        with self._lock:
            return self._tasks.get(job_id)

    def active_jobs(self) -> list[str]:
        with self._lock:
            return [job_id for job_id, future in self._tasks.items() if not future.done()]

    def wait(self, job_id: str, timeout: float | None = None) -> None:
        """Block until the job's run returns; no-op when it already finished."""
        future = self.get(job_id)
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

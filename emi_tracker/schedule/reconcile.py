"""Fire-and-forget write-back of recomputed loan status."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from emi_tracker.models.enums import LoanStatus

logger = logging.getLogger(__name__)

StatusWriter = Callable[[str, LoanStatus], None]


class StatusReconciler:
    """Submit persisted-status corrections without blocking the caller.

    Each submission runs ``writer(loan_id, status)`` on a worker thread.
    Failures are logged from a done-callback and never reach the code that
    triggered the write. A write already pending for the same loan and
    status is not submitted twice.

    Parameters
    ----------
    writer : StatusWriter
        Callable persisting the new status for a loan id.
    max_workers : int
        Worker threads for pending writes (default: 1).
    """

    def __init__(self, writer: StatusWriter, max_workers: int = 1) -> None:
        self._writer = writer
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="emi-status-sync",
        )
        self._lock = threading.Lock()
        self._pending: dict[str, tuple[LoanStatus, Future]] = {}
        self._submitted = 0
        self._failed = 0

    def submit(self, loan_id: str, status: LoanStatus) -> Future:
        """Schedule a status write and return its future."""
        with self._lock:
            pending = self._pending.get(loan_id)
            if pending is not None and pending[0] == status:
                return pending[1]

            logger.debug("Reconciling status of loan %s to %s", loan_id, status.value)
            future = self._executor.submit(self._writer, loan_id, status)
            self._pending[loan_id] = (status, future)
            self._submitted += 1

        future.add_done_callback(lambda f: self._on_done(f, loan_id, status))
        return future

    def _on_done(self, future: Future, loan_id: str, status: LoanStatus) -> None:
        with self._lock:
            pending = self._pending.get(loan_id)
            if pending is not None and pending[1] is future:
                del self._pending[loan_id]

        exc = future.exception()
        if exc is not None:
            with self._lock:
                self._failed += 1
            logger.error(
                "Failed to sync status of loan %s to %s: %s",
                loan_id,
                status.value,
                exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def stats(self) -> dict[str, int]:
        """Return submission and failure counts."""
        with self._lock:
            return {
                "submitted": self._submitted,
                "failed": self._failed,
                "pending": len(self._pending),
            }

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pool."""
        self._executor.shutdown(wait=wait)

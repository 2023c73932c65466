"""In-memory solve job table with atomic state transitions.

The JobStore is the single shared mutable structure of the orchestrator.
Every read and write goes through one lock; records are immutable SolveJob
snapshots replaced wholesale, so a concurrent reader sees either the old
record or the new one, never a partial update.

Created at service start and cleared at shutdown. Nothing is held under
the lock while a solve runs.
"""

import itertools
import logging
import threading
from datetime import datetime, timedelta

from treasure_hunt.engine.cancellation import CancellationToken
from treasure_hunt.engine.errors import JobNotFoundError
from treasure_hunt.models.common import SolveStatus, utc_now
from treasure_hunt.models.solve import Solution, SolveJob, SolveRequest

logger = logging.getLogger(__name__)


class JobStore:
    """Thread-safe table of SolveJob records keyed by monotonically assigned ids."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids = itertools.count(1)
        self._jobs: dict[int, SolveJob] = {}
        self._tokens: dict[int, CancellationToken] = {}
        self._sealed: set[int] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, job_id: int) -> SolveJob:
        with self._lock:
            return self._get_locked(job_id)

    def token(self, job_id: int) -> CancellationToken:
        with self._lock:
            self._get_locked(job_id)
            return self._tokens[job_id]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, request: SolveRequest) -> SolveJob:
        """Allocate a fresh id and store a Pending job."""
        with self._lock:
            job = SolveJob(job_id=next(self._ids), request=request)
            self._jobs[job.job_id] = job
            self._tokens[job.job_id] = CancellationToken()
            return job

    def mark_in_progress(self, job_id: int) -> SolveJob | None:
        """Pending → InProgress. Returns None if the job already left Pending."""
        with self._lock:
            job = self._get_locked(job_id)
            if job.status != SolveStatus.PENDING:
                return None
            return self._put_locked(job.transition(SolveStatus.IN_PROGRESS))

    def seal(self, job_id: int) -> bool:
        """Close an InProgress job to further cancellation before it completes.

        Returns False if cancellation was already requested; the caller must
        then finish the job as Cancelled.
        """
        with self._lock:
            self._get_locked(job_id)
            if self._tokens[job_id].cancelled:
                return False
            self._sealed.add(job_id)
            return True

    def complete(self, job_id: int, solution: Solution, *, history_id: int | None = None) -> SolveJob:
        with self._lock:
            job = self._get_locked(job_id)
            return self._put_locked(job.transition(
                SolveStatus.COMPLETED, result=solution, history_id=history_id,
            ))

    def fail(self, job_id: int, error_message: str) -> SolveJob:
        with self._lock:
            job = self._get_locked(job_id)
            return self._put_locked(job.transition(
                SolveStatus.FAILED, error_message=error_message,
            ))

    def mark_cancelled(self, job_id: int) -> SolveJob:
        """Move a job to Cancelled; a job that is already Cancelled is returned as is."""
        with self._lock:
            job = self._get_locked(job_id)
            if job.status == SolveStatus.CANCELLED:
                return job
            return self._put_locked(job.transition(SolveStatus.CANCELLED))

    def request_cancel(self, job_id: int) -> bool:
        """Request cancellation of a job.

        - Pending: moves straight to Cancelled.
        - InProgress: raises the job's cancellation token; the worker
          finishes it as Cancelled at its next checkpoint.
        - Terminal, or sealed for completion: no-op.

        Returns:
            True if the cancellation was accepted, False for a no-op.
        """
        with self._lock:
            job = self._get_locked(job_id)
            if job.is_terminal or job_id in self._sealed:
                return False
            self._tokens[job_id].cancel()
            if job.status == SolveStatus.PENDING:
                self._put_locked(job.transition(SolveStatus.CANCELLED))
            return True

    def prune(self, older_than: timedelta, *, now: datetime | None = None) -> int:
        """Drop terminal jobs that finished more than ``older_than`` ago."""
        cutoff = (now or utc_now()) - older_than
        with self._lock:
            expired = [
                job_id for job_id, job in self._jobs.items()
                if job.is_terminal and job.completed_at is not None and job.completed_at < cutoff
            ]
            for job_id in expired:
                del self._jobs[job_id]
                del self._tokens[job_id]
                self._sealed.discard(job_id)
        if expired:
            logger.debug("Pruned %d expired solve jobs", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()
            self._tokens.clear()
            self._sealed.clear()

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _get_locked(self, job_id: int) -> SolveJob:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def _put_locked(self, job: SolveJob) -> SolveJob:
        self._jobs[job.job_id] = job
        if job.is_terminal:
            self._sealed.discard(job.job_id)
        return job

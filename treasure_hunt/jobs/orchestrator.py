"""Solve job orchestrator - asynchronous, cancellable solver execution.

Submit validates the grid and schedules the job; a long-lived thread pool
runs the solver; the asyncio side records the terminal state:

    Pending → InProgress → Completed | Cancelled | Failed
    Pending → Cancelled

A Completed job has already been written to history by the time its status
becomes visible. Solver faults end the job Failed and never reach the pool.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

from treasure_hunt.engine.cancellation import CancellationToken
from treasure_hunt.engine.errors import JobNotFoundError, SolveCancelled
from treasure_hunt.engine.grid import Grid, TierIndex
from treasure_hunt.engine.path_solver import PathSolver
from treasure_hunt.jobs.history import HistoryRecorder
from treasure_hunt.jobs.store import JobStore
from treasure_hunt.models.solve import Solution, SolveJob, SolveRequest

logger = logging.getLogger(__name__)


class JobOrchestrator:
    """Runs solve jobs on a worker pool and tracks them in a JobStore."""

    def __init__(
        self,
        *,
        store: JobStore,
        recorder: HistoryRecorder | None = None,
        solver: PathSolver | None = None,
        max_workers: int = 4,
        retention: timedelta | None = None,
        require_all_tiers: bool = False,
        max_cells: int | None = None,
    ) -> None:
        self._store = store
        self._recorder = recorder
        self._solver = solver or PathSolver()
        self._max_workers = max_workers
        self._retention = retention
        self._require_all_tiers = require_all_tiers
        self._max_cells = max_cells
        self._executor: ThreadPoolExecutor | None = None
        self._tasks: dict[int, asyncio.Task] = {}

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def running(self) -> bool:
        return self._executor is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Create the worker pool. Idempotent."""
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="solve-worker",
            )
            logger.info("Solve worker pool started with %d workers", self._max_workers)

    async def shutdown(self) -> None:
        """Cancel unfinished jobs, wait for their tasks, and stop the pool."""
        tasks = dict(self._tasks)
        for job_id in tasks:
            try:
                self._store.request_cancel(job_id)
            except JobNotFoundError:
                continue
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            logger.info("Solve worker pool stopped")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit(self, request: SolveRequest) -> int:
        """Validate ``request``, store a Pending job, and schedule it.

        Never blocks on the solve itself. Must be called from a running
        event loop.

        Returns:
            The new job id.

        Raises:
            GridValidationError: If the grid is invalid (no job is created).
            RuntimeError: If the orchestrator has not been started.
        """
        grid = Grid(
            n=request.n, m=request.m, p=request.p, values=request.matrix,
            require_all_tiers=self._require_all_tiers,
            max_cells=self._max_cells,
        )
        if self._executor is None:
            msg = "JobOrchestrator is not running; call start() first."
            raise RuntimeError(msg)

        if self._retention is not None:
            self._store.prune(self._retention)

        job = self._store.create(request)
        task = asyncio.get_running_loop().create_task(
            self.execute(job.job_id, grid), name=str(job.job_id),
        )
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.job_id, None))

        logger.info("Submitted solve %s (%dx%d, p=%d)", job.job_id, request.n, request.m, request.p)
        return job.job_id

    async def execute(self, job_id: int, grid: Grid) -> SolveJob | None:
        """Run one job to a terminal state.

        Returns:
            The terminal job record, or None if the job vanished from the store.
        """
        try:
            return await self._execute(job_id, grid)
        except JobNotFoundError:
            logger.warning("Solve %s disappeared from the job store mid-execution", job_id)
            return None

    def get_status(self, job_id: int) -> SolveJob:
        """Current record of ``job_id``.

        Raises:
            JobNotFoundError: If the id is unknown.
        """
        return self._store.get(job_id)

    def cancel(self, job_id: int) -> bool:
        """Request cancellation; returns whether it was accepted.

        Raises:
            JobNotFoundError: If the id is unknown.
        """
        accepted = self._store.request_cancel(job_id)
        if accepted:
            logger.info("Cancellation requested for solve %s", job_id)
        return accepted

    async def wait_for(
        self,
        job_id: int,
        *,
        timeout: float | None = None,
        poll_interval: float = 0.01,
    ) -> SolveJob:
        """Poll until ``job_id`` reaches a terminal state.

        HTTP clients poll solve-status instead; this is for in-process
        callers such as tests and scripts that drive the orchestrator directly.

        Raises:
            TimeoutError: If ``timeout`` seconds pass first.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            job = self._store.get(job_id)
            if job.is_terminal:
                return job
            if deadline is not None and loop.time() >= deadline:
                msg = f"Solve {job_id} still {job.status} after {timeout}s."
                raise TimeoutError(msg)
            await asyncio.sleep(poll_interval)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _execute(self, job_id: int, grid: Grid) -> SolveJob:
        token = self._store.token(job_id)
        loop = asyncio.get_running_loop()

        try:
            solution = await loop.run_in_executor(
                self._executor, self._run_solver, job_id, grid, token,
            )
        except SolveCancelled:
            logger.info("Solve %s cancelled during execution", job_id)
            return self._store.mark_cancelled(job_id)
        except Exception as exc:
            logger.exception("Solve %s failed: %s", job_id, exc)
            return self._store.fail(job_id, f"Solver failed: {exc}")

        if solution is None:
            logger.info("Solve %s cancelled before it started", job_id)
            return self._store.get(job_id)

        if not self._store.seal(job_id):
            logger.info("Solve %s cancelled after its last checkpoint; result discarded", job_id)
            return self._store.mark_cancelled(job_id)

        history_id: int | None = None
        if self._recorder is not None:
            try:
                history_id = await self._recorder.record(self._store.get(job_id), solution)
            except Exception as exc:
                logger.exception("Solve %s could not be recorded: %s", job_id, exc)
                return self._store.fail(job_id, f"Failed to persist solve history: {exc}")

        job = self._store.complete(job_id, solution, history_id=history_id)
        logger.info(
            "Solve %s completed: fuel=%.5f over %d tiers",
            job_id, solution.total_fuel, len(solution.path),
        )
        return job

    def _run_solver(self, job_id: int, grid: Grid, token: CancellationToken) -> Solution | None:
        """Worker-thread body. Returns None if the job was cancelled while queued."""
        if self._store.mark_in_progress(job_id) is None:
            return None
        logger.info("Solve %s started on %s", job_id, threading.current_thread().name)
        token.raise_if_cancelled()
        index = TierIndex.from_grid(grid)
        return self._solver.solve(index, cancel_token=token)

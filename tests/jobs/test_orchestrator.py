"""Tests for the solve job orchestrator.

Covers: submit validation, the full Pending → InProgress → Completed path
with history recording, cancellation while queued and while running,
solver and recorder faults, retention pruning and shutdown.
"""

import asyncio
import math
import threading
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from treasure_hunt.engine.errors import GridValidationError, JobNotFoundError
from treasure_hunt.engine.grid import TierIndex
from treasure_hunt.engine.path_solver import PathSolver
from treasure_hunt.jobs.history import HistoryRecorder
from treasure_hunt.jobs.orchestrator import JobOrchestrator
from treasure_hunt.jobs.store import JobStore
from treasure_hunt.models.common import SolveStatus
from treasure_hunt.models.solve import Solution, SolveJob, SolveRequest
from treasure_hunt.repositories.history import HistoryRepository


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class BlockingSolver(PathSolver):
    """Parks inside solve() until released, then honours the token."""

    def __init__(self) -> None:
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def solve(self, index: TierIndex, *, cancel_token=None) -> Solution:
        self.started.set()
        self.release.wait(timeout=5)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return super().solve(index, cancel_token=cancel_token)


class ExplodingSolver(PathSolver):
    def solve(self, index: TierIndex, *, cancel_token=None) -> Solution:
        raise RuntimeError("boom")


class FailingRecorder(HistoryRecorder):
    def __init__(self) -> None:
        pass

    async def record(self, job: SolveJob, solution: Solution) -> int:
        raise RuntimeError("database unavailable")


SCENARIO = SolveRequest(
    n=3, m=3, p=3,
    matrix=((3, 2, 2), (2, 2, 2), (2, 2, 1)),
)


def _started(**kwargs) -> JobOrchestrator:
    kwargs.setdefault("store", JobStore())
    orch = JobOrchestrator(**kwargs)
    orch.start()
    return orch


async def _wait_started(solver: BlockingSolver) -> None:
    assert await asyncio.to_thread(solver.started.wait, 5)


# ===================================================================
# Submit
# ===================================================================


class TestSubmit:
    @pytest.mark.anyio
    async def test_invalid_grid_creates_no_job(self) -> None:
        orch = _started()
        try:
            bad = SolveRequest(n=2, m=2, p=5, matrix=((1, 2), (3, 4)))
            with pytest.raises(GridValidationError):
                orch.submit(bad)
            assert len(orch.store) == 0
        finally:
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_missing_tiers_rejected_when_required(self) -> None:
        orch = _started(require_all_tiers=True)
        try:
            with pytest.raises(GridValidationError, match="every tier"):
                orch.submit(SolveRequest(n=1, m=3, p=3, matrix=((1, 3, 3),)))
        finally:
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_not_started(self) -> None:
        orch = JobOrchestrator(store=JobStore())
        with pytest.raises(RuntimeError, match="not running"):
            orch.submit(SCENARIO)
        assert orch.running is False

    @pytest.mark.anyio
    async def test_ids_are_distinct(self) -> None:
        orch = _started()
        try:
            ids = [orch.submit(SCENARIO) for _ in range(5)]
            assert len(set(ids)) == 5
            for job_id in ids:
                job = await orch.wait_for(job_id, timeout=5)
                assert job.status == SolveStatus.COMPLETED
        finally:
            await orch.shutdown()


# ===================================================================
# Completion and history
# ===================================================================


class TestCompletion:
    @pytest.mark.anyio
    async def test_completed_job_has_result_and_history(
        self, session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        orch = _started(recorder=HistoryRecorder(session_factory))
        try:
            job_id = orch.submit(SCENARIO)
            job = await orch.wait_for(job_id, timeout=5)
        finally:
            await orch.shutdown()

        assert job.status == SolveStatus.COMPLETED
        assert job.result is not None
        assert job.result.total_fuel == pytest.approx(2 * math.sqrt(2))
        assert job.started_at is not None
        assert job.completed_at is not None
        assert job.history_id is not None

        async with session_factory() as session:
            row = await HistoryRepository(session).get(job.history_id)
        assert row is not None
        assert row.solve_id == job_id
        assert row.matrix == [[3, 2, 2], [2, 2, 2], [2, 2, 1]]
        assert row.min_fuel == pytest.approx(job.result.total_fuel)
        assert [step["value"] for step in row.path] == [1, 2, 3]

    @pytest.mark.anyio
    async def test_without_recorder(self) -> None:
        orch = _started()
        try:
            job = await orch.wait_for(orch.submit(SCENARIO), timeout=5)
        finally:
            await orch.shutdown()
        assert job.status == SolveStatus.COMPLETED
        assert job.history_id is None

    @pytest.mark.anyio
    async def test_pollers_never_see_completed_without_result(self) -> None:
        orch = _started()
        try:
            job_id = orch.submit(SolveRequest(
                n=3, m=4, p=12,
                matrix=((1, 2, 3, 4), (5, 6, 7, 8), (9, 10, 11, 12)),
            ))
            while True:
                job = orch.get_status(job_id)
                if job.status == SolveStatus.COMPLETED:
                    assert job.result is not None
                    break
                assert job.result is None
                await asyncio.sleep(0)
        finally:
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_cancel_after_completion_is_a_no_op(self) -> None:
        orch = _started()
        try:
            job_id = orch.submit(SCENARIO)
            done = await orch.wait_for(job_id, timeout=5)
            assert orch.cancel(job_id) is False
            assert orch.cancel(job_id) is False
            assert orch.get_status(job_id) == done
        finally:
            await orch.shutdown()


# ===================================================================
# Cancellation
# ===================================================================


class TestCancellation:
    @pytest.mark.anyio
    async def test_cancel_while_in_progress(
        self, session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        solver = BlockingSolver()
        orch = _started(solver=solver, recorder=HistoryRecorder(session_factory))
        try:
            job_id = orch.submit(SCENARIO)
            await _wait_started(solver)
            assert orch.get_status(job_id).status == SolveStatus.IN_PROGRESS

            assert orch.cancel(job_id) is True
            solver.release.set()
            job = await orch.wait_for(job_id, timeout=5)
        finally:
            solver.release.set()
            await orch.shutdown()

        assert job.status == SolveStatus.CANCELLED
        assert job.result is None
        async with session_factory() as session:
            assert await HistoryRepository(session).count() == 0

    @pytest.mark.anyio
    async def test_cancel_while_queued(self) -> None:
        solver = BlockingSolver()
        orch = _started(solver=solver, max_workers=1)
        try:
            first = orch.submit(SCENARIO)
            await _wait_started(solver)
            second = orch.submit(SCENARIO)
            assert orch.get_status(second).status == SolveStatus.PENDING

            assert orch.cancel(second) is True
            assert orch.get_status(second).status == SolveStatus.CANCELLED

            solver.release.set()
            assert (await orch.wait_for(first, timeout=5)).status == SolveStatus.COMPLETED
            # Let the queued task drain, then confirm it never started.
            await asyncio.sleep(0.05)
            cancelled = orch.get_status(second)
            assert cancelled.status == SolveStatus.CANCELLED
            assert cancelled.started_at is None
        finally:
            solver.release.set()
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_unknown_id(self) -> None:
        orch = _started()
        try:
            with pytest.raises(JobNotFoundError):
                orch.cancel(999)
            with pytest.raises(JobNotFoundError):
                orch.get_status(999)
        finally:
            await orch.shutdown()


# ===================================================================
# Faults
# ===================================================================


class TestFaults:
    @pytest.mark.anyio
    async def test_solver_fault_marks_failed(self) -> None:
        orch = _started(solver=ExplodingSolver())
        try:
            job = await orch.wait_for(orch.submit(SCENARIO), timeout=5)
        finally:
            await orch.shutdown()
        assert job.status == SolveStatus.FAILED
        assert job.error_message == "Solver failed: boom"
        assert job.result is None

    @pytest.mark.anyio
    async def test_pool_survives_a_solver_fault(self) -> None:
        orch = _started(solver=ExplodingSolver(), max_workers=1)
        try:
            await orch.wait_for(orch.submit(SCENARIO), timeout=5)
            second = await orch.wait_for(orch.submit(SCENARIO), timeout=5)
            assert second.status == SolveStatus.FAILED
            assert orch.running is True
        finally:
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_recorder_fault_marks_failed(self) -> None:
        orch = _started(recorder=FailingRecorder())
        try:
            job = await orch.wait_for(orch.submit(SCENARIO), timeout=5)
        finally:
            await orch.shutdown()
        assert job.status == SolveStatus.FAILED
        assert job.error_message is not None
        assert "Failed to persist solve history" in job.error_message


# ===================================================================
# Waiting, retention, lifecycle
# ===================================================================


class TestLifecycle:
    @pytest.mark.anyio
    async def test_wait_for_times_out(self) -> None:
        solver = BlockingSolver()
        orch = _started(solver=solver)
        try:
            job_id = orch.submit(SCENARIO)
            with pytest.raises(TimeoutError):
                await orch.wait_for(job_id, timeout=0.05)
        finally:
            solver.release.set()
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_retention_prunes_finished_jobs_on_submit(self) -> None:
        orch = _started(retention=timedelta(0))
        try:
            first = orch.submit(SCENARIO)
            await orch.wait_for(first, timeout=5)
            await asyncio.sleep(0.01)
            second = orch.submit(SCENARIO)
            with pytest.raises(JobNotFoundError):
                orch.get_status(first)
            await orch.wait_for(second, timeout=5)
        finally:
            await orch.shutdown()

    @pytest.mark.anyio
    async def test_shutdown_cancels_running_jobs(self) -> None:
        solver = BlockingSolver()
        orch = _started(solver=solver)
        job_id = orch.submit(SCENARIO)
        await _wait_started(solver)

        stopping = asyncio.create_task(orch.shutdown())
        await asyncio.sleep(0.05)
        solver.release.set()
        await stopping

        assert orch.running is False
        assert orch.get_status(job_id).status == SolveStatus.CANCELLED

    @pytest.mark.anyio
    async def test_start_is_idempotent(self) -> None:
        orch = _started()
        orch.start()
        assert orch.running is True
        await orch.shutdown()
        assert orch.running is False

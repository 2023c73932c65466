"""History recorder - persists one durable record per completed solve.

Runs inside the orchestrator, outside any HTTP request, so it opens and
commits its own session rather than relying on the request Unit-of-Work.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from treasure_hunt.models.solve import Solution, SolveJob
from treasure_hunt.repositories.history import HistoryRepository

logger = logging.getLogger(__name__)


class HistoryRecorder:
    """Writes completed solves through HistoryRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, job: SolveJob, solution: Solution) -> int:
        """Persist request + result + path for ``job``.

        Returns:
            The id of the new history record.
        """
        request = job.request
        async with self._session_factory() as session:
            try:
                repo = HistoryRepository(session)
                row = await repo.create(
                    solve_id=job.job_id,
                    n=request.n,
                    m=request.m,
                    p=request.p,
                    matrix=[list(row) for row in request.matrix],
                    min_fuel=solution.total_fuel,
                    path=[step.model_dump() for step in solution.path],
                )
                record_id = row.id
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info("Recorded solve %s as history item %s", job.job_id, record_id)
        return record_id

"""FastAPI dependency injection factories.

Repositories take AsyncSession via Depends(get_async_session). The job
orchestrator is created once per application in the lifespan handler and
read back from ``app.state``.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.db.session import get_async_session
from treasure_hunt.jobs.orchestrator import JobOrchestrator
from treasure_hunt.repositories.history import HistoryRepository

# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def get_history_repo(
    session: AsyncSession = Depends(get_async_session),
) -> HistoryRepository:
    return HistoryRepository(session)


# ---------------------------------------------------------------------------
# Solve jobs
# ---------------------------------------------------------------------------


def get_orchestrator(request: Request) -> JobOrchestrator:
    orchestrator: JobOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None or not orchestrator.running:
        raise HTTPException(status_code=503, detail="Solve worker pool is not running.")
    return orchestrator

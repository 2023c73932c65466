"""FastAPI solve endpoints - asynchronous solve with polling and cancellation.

POST /api/treasure-hunt/solve-async              - submit a grid, returns solveId
GET  /api/treasure-hunt/solve-status/{solve_id}  - poll status / result
POST /api/treasure-hunt/cancel-solve/{solve_id}  - request cancellation

Clients poll the status endpoint every pollIntervalSeconds until a terminal
status (Completed, Cancelled, Failed) is returned.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import StrictInt

from treasure_hunt.api.dependencies import get_orchestrator
from treasure_hunt.config.settings import Settings, get_settings
from treasure_hunt.engine.errors import GridValidationError, JobNotFoundError
from treasure_hunt.jobs.orchestrator import JobOrchestrator
from treasure_hunt.models.common import SolveStatus, TreasureHuntBase
from treasure_hunt.models.solve import PathStep, SolveJob, SolveRequest

router = APIRouter(prefix="/api/treasure-hunt", tags=["solve"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------


class TreasureHuntRequestPayload(TreasureHuntBase):
    n: int
    m: int
    p: int
    matrix: list[list[StrictInt]]


class SolveAsyncRequest(TreasureHuntBase):
    treasure_hunt_request: TreasureHuntRequestPayload


class SolveAsyncResponse(TreasureHuntBase):
    solve_id: int
    status: SolveStatus
    poll_interval_seconds: float


class SolveResultResponse(TreasureHuntBase):
    min_fuel: float
    path: list[PathStep]


class SolveStatusResponse(TreasureHuntBase):
    solve_id: int
    status: SolveStatus
    result: SolveResultResponse | None = None
    error_message: str | None = None
    history_id: int | None = None
    created_at: datetime
    completed_at: datetime | None = None


class CancelSolveResponse(TreasureHuntBase):
    solve_id: int
    accepted: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: SolveJob) -> SolveStatusResponse:
    """Result and error message are only exposed once the job is terminal."""
    result = None
    if job.is_terminal and job.result is not None:
        result = SolveResultResponse(
            min_fuel=job.result.total_fuel,
            path=list(job.result.path),
        )
    return SolveStatusResponse(
        solve_id=job.job_id,
        status=job.status,
        result=result,
        error_message=job.error_message if job.is_terminal else None,
        history_id=job.history_id,
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/solve-async", status_code=202, response_model=SolveAsyncResponse)
async def solve_async(
    body: SolveAsyncRequest,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
    settings: Settings = Depends(get_settings),
) -> SolveAsyncResponse:
    """Submit a grid for solving. Returns immediately with the job id."""
    payload = body.treasure_hunt_request
    request = SolveRequest(
        n=payload.n,
        m=payload.m,
        p=payload.p,
        matrix=tuple(tuple(row) for row in payload.matrix),
    )
    try:
        solve_id = orchestrator.submit(request)
    except GridValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    return SolveAsyncResponse(
        solve_id=solve_id,
        status=orchestrator.get_status(solve_id).status,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
    )


@router.get("/solve-status/{solve_id}", response_model=SolveStatusResponse)
async def get_solve_status(
    solve_id: int,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> SolveStatusResponse:
    """Poll the status of a solve job."""
    try:
        job = orchestrator.get_status(solve_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _job_to_response(job)


@router.post("/cancel-solve/{solve_id}", response_model=CancelSolveResponse)
async def cancel_solve(
    solve_id: int,
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
) -> CancelSolveResponse:
    """Request cancellation. ``accepted`` is false when the job already finished."""
    try:
        accepted = orchestrator.cancel(solve_id)
    except JobNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return CancelSolveResponse(solve_id=solve_id, accepted=accepted)

"""FastAPI history endpoints - read projections over completed solves.

GET /api/treasure-hunts?page=&pageSize=   - paginated list, newest first
GET /api/treasure-hunt/{record_id}        - full record incl. matrix and path
"""

import math
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query

from treasure_hunt.api.dependencies import get_history_repo
from treasure_hunt.config.settings import Settings, get_settings
from treasure_hunt.db.tables import TreasureHuntResultRow
from treasure_hunt.models.common import TreasureHuntBase
from treasure_hunt.models.solve import PathStep
from treasure_hunt.repositories.history import HistoryRepository

router = APIRouter(prefix="/api", tags=["history"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HistoryItemResponse(TreasureHuntBase):
    id: int
    solve_id: int
    n: int
    m: int
    p: int
    min_fuel: float
    created_at: datetime


class HistoryDetailResponse(HistoryItemResponse):
    matrix: list[list[int]]
    path: list[PathStep]


class HistoryPageResponse(TreasureHuntBase):
    data: list[HistoryItemResponse]
    page: int
    page_size: int
    total_pages: int
    total_count: int


def _row_to_item(row: TreasureHuntResultRow) -> HistoryItemResponse:
    return HistoryItemResponse(
        id=row.id, solve_id=row.solve_id,
        n=row.n, m=row.m, p=row.p,
        min_fuel=row.min_fuel, created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/treasure-hunts", response_model=HistoryPageResponse)
async def list_history(
    page: int = Query(1, ge=1),
    page_size: int | None = Query(None, alias="pageSize", ge=1),
    repo: HistoryRepository = Depends(get_history_repo),
    settings: Settings = Depends(get_settings),
) -> HistoryPageResponse:
    """List completed solves. Page size is capped at HISTORY_MAX_PAGE_SIZE."""
    size = min(page_size or settings.HISTORY_PAGE_SIZE, settings.HISTORY_MAX_PAGE_SIZE)
    total_count = await repo.count()
    rows = await repo.list_page(page=page, page_size=size)
    return HistoryPageResponse(
        data=[_row_to_item(r) for r in rows],
        page=page,
        page_size=size,
        total_pages=math.ceil(total_count / size),
        total_count=total_count,
    )


@router.get("/treasure-hunt/{record_id}", response_model=HistoryDetailResponse)
async def get_history_item(
    record_id: int,
    repo: HistoryRepository = Depends(get_history_repo),
) -> HistoryDetailResponse:
    """Fetch one history record with its matrix and path."""
    row = await repo.get(record_id)
    if row is None:
        raise HTTPException(status_code=404, detail=f"Treasure hunt {record_id} not found.")

    return HistoryDetailResponse(
        **_row_to_item(row).model_dump(),
        matrix=row.matrix,
        path=[PathStep(**step) for step in row.path],
    )

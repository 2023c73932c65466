"""FastAPI random grid endpoint.

GET /api/generate-random-data?n=&m=&p=   - random valid grid
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from treasure_hunt.config.settings import Settings, get_settings
from treasure_hunt.engine.errors import GridValidationError
from treasure_hunt.engine.generator import generate_grid
from treasure_hunt.models.common import TreasureHuntBase

router = APIRouter(prefix="/api", tags=["generator"])


class RandomGridResponse(TreasureHuntBase):
    n: int
    m: int
    p: int
    matrix: list[list[int]]


@router.get("/generate-random-data", response_model=RandomGridResponse)
async def generate_random_data(
    n: int = Query(...),
    m: int = Query(...),
    p: int = Query(...),
    seed: int | None = Query(None),
    settings: Settings = Depends(get_settings),
) -> RandomGridResponse:
    """Generate a random grid in which every value 1..p occurs at least once."""
    try:
        grid = generate_grid(n, m, p, seed=seed, max_cells=settings.MAX_GRID_CELLS)
    except GridValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return RandomGridResponse(n=grid.n, m=grid.m, p=grid.p, matrix=grid.to_lists())

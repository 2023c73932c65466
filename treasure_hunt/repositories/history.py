"""Solve history repository - durable records of completed solves."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from treasure_hunt.db.tables import TreasureHuntResultRow
from treasure_hunt.models.common import utc_now


class HistoryRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, *, solve_id: int, n: int, m: int, p: int,
                     matrix: list, min_fuel: float, path: list) -> TreasureHuntResultRow:
        row = TreasureHuntResultRow(
            solve_id=solve_id, n=n, m=m, p=p,
            matrix=matrix, min_fuel=min_fuel, path=path,
            created_at=utc_now(),
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, record_id: int) -> TreasureHuntResultRow | None:
        return await self._session.get(TreasureHuntResultRow, record_id)

    async def count(self) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(TreasureHuntResultRow)
        )
        return int(result.scalar_one())

    async def list_page(self, *, page: int, page_size: int) -> list[TreasureHuntResultRow]:
        """Newest first; ``page`` is 1-based."""
        result = await self._session.execute(
            select(TreasureHuntResultRow)
            .order_by(TreasureHuntResultRow.created_at.desc(), TreasureHuntResultRow.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all())

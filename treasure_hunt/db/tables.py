"""SQLAlchemy ORM table models for the treasure hunt service.

Uses FlexJSON (JSONB on Postgres, JSON on SQLite) for the matrix and path.

Categories:
- IMMUTABLE: TreasureHuntResult (one append-only row per completed solve)
"""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from treasure_hunt.db.session import Base

# JSONB on PostgreSQL, plain JSON on SQLite (for tests)
FlexJSON = JSONB().with_variant(JSON(), "sqlite")


class TreasureHuntResultRow(Base):
    """Immutable durable record of a completed solve."""

    __tablename__ = "treasure_hunt_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    solve_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    n: Mapped[int] = mapped_column(Integer, nullable=False)
    m: Mapped[int] = mapped_column(Integer, nullable=False)
    p: Mapped[int] = mapped_column(Integer, nullable=False)
    matrix: Mapped[list] = mapped_column(FlexJSON, nullable=False)
    min_fuel: Mapped[float] = mapped_column(Float, nullable=False)
    path: Mapped[list] = mapped_column(FlexJSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

"""Initial schema - solve history.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # -- History (IMMUTABLE) --
    op.create_table(
        "treasure_hunt_results",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("solve_id", sa.Integer, nullable=False),
        sa.Column("n", sa.Integer, nullable=False),
        sa.Column("m", sa.Integer, nullable=False),
        sa.Column("p", sa.Integer, nullable=False),
        sa.Column("matrix", JSONB, nullable=False),
        sa.Column("min_fuel", sa.Float, nullable=False),
        sa.Column("path", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_treasure_hunt_results_solve_id", "treasure_hunt_results", ["solve_id"])
    op.create_index("ix_treasure_hunt_results_created_at", "treasure_hunt_results", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_treasure_hunt_results_created_at", table_name="treasure_hunt_results")
    op.drop_index("ix_treasure_hunt_results_solve_id", table_name="treasure_hunt_results")
    op.drop_table("treasure_hunt_results")

"""Solve models - SolveRequest, PathStep, Solution (immutable), SolveJob."""

from typing import Any

from pydantic import Field, StrictInt

from treasure_hunt.engine.errors import InvalidTransitionError
from treasure_hunt.models.common import (
    TERMINAL_STATUSES,
    SolveStatus,
    TreasureHuntBase,
    UTCTimestamp,
    utc_now,
)

# ---------------------------------------------------------------------------
# Valid solve job status transitions (state machine)
# ---------------------------------------------------------------------------

VALID_SOLVE_TRANSITIONS: dict[SolveStatus, frozenset[SolveStatus]] = {
    SolveStatus.PENDING: frozenset({
        SolveStatus.IN_PROGRESS,
        SolveStatus.CANCELLED,
    }),
    SolveStatus.IN_PROGRESS: frozenset({
        SolveStatus.COMPLETED,
        SolveStatus.CANCELLED,
        SolveStatus.FAILED,
    }),
    SolveStatus.COMPLETED: frozenset(),
    SolveStatus.CANCELLED: frozenset(),
    SolveStatus.FAILED: frozenset(),
}


class SolveRequest(TreasureHuntBase, frozen=True):
    """Originating parameters of a solve: grid shape, treasure count, cells.

    Cells must be JSON integers (no booleans or numeric strings). Shape and
    range checks happen when the Grid is built, so a request can carry an
    invalid matrix until it is submitted.
    """

    n: int
    m: int
    p: int
    matrix: tuple[tuple[StrictInt, ...], ...]


class PathStep(TreasureHuntBase, frozen=True):
    """One visited cell, in tier order."""

    row: int = Field(..., ge=0)
    col: int = Field(..., ge=0)
    value: int = Field(..., ge=1)


class Solution(TreasureHuntBase, frozen=True):
    """Minimum-fuel route: one step per non-empty tier plus the total cost."""

    path: tuple[PathStep, ...] = Field(..., min_length=1)
    total_fuel: float = Field(..., ge=0.0)


class SolveJob(TreasureHuntBase, frozen=True):
    """One asynchronous execution of the solver, tracked by id and status.

    Records are immutable snapshots; every status change produces a new
    record via ``transition``.
    """

    job_id: int = Field(..., ge=1)
    request: SolveRequest
    status: SolveStatus = Field(default=SolveStatus.PENDING)
    result: Solution | None = None
    error_message: str | None = None
    history_id: int | None = None
    created_at: UTCTimestamp = Field(default_factory=utc_now)
    started_at: UTCTimestamp | None = None
    completed_at: UTCTimestamp | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(self, new_status: SolveStatus, **updates: Any) -> "SolveJob":
        """Return a copy of this job moved to ``new_status``.

        Raises:
            InvalidTransitionError: If the state machine does not allow it.
        """
        allowed = VALID_SOLVE_TRANSITIONS.get(self.status, frozenset())
        if new_status not in allowed:
            msg = f"Cannot transition solve {self.job_id} from {self.status} to {new_status}."
            raise InvalidTransitionError(msg)

        now = utc_now()
        changes: dict[str, Any] = {"status": new_status, **updates}
        if new_status == SolveStatus.IN_PROGRESS:
            changes["started_at"] = now
        if new_status in TERMINAL_STATUSES:
            changes["completed_at"] = now
        return self.model_copy(update=changes)

"""Tiered minimum-fuel path solver.

Dynamic programming over the ascending tiers of a TierIndex: the cost of
reaching a cell of tier i is the cheapest (cost of a tier i-1 cell +
Euclidean hop). Any tier 1 cell may start the route at zero cost.

Pure deterministic - given the same grid, ALWAYS returns the same route.
"""

import numpy as np

from treasure_hunt.engine.cancellation import CancellationToken
from treasure_hunt.engine.errors import InternalInvariantViolation
from treasure_hunt.engine.grid import Tier, TierIndex
from treasure_hunt.models.solve import PathStep, Solution

# Upper bound on pairwise distances materialised at once while relaxing a tier.
DEFAULT_BLOCK_SIZE = 1_000_000


def euclidean(r1: int, c1: int, r2: int, c2: int) -> float:
    """Movement cost between two cells."""
    return float(np.hypot(r1 - r2, c1 - c2))


def route_fuel(path: tuple[PathStep, ...] | list[PathStep]) -> float:
    """Sum of Euclidean hops between consecutive steps of a route."""
    return sum(
        (euclidean(a.row, a.col, b.row, b.col) for a, b in zip(path, path[1:])),
        0.0,
    )


class PathSolver:
    """Deterministic tiered shortest-path solver.

    Time is O(sum |T_(i-1)| * |T_i|). Only the DP costs and predecessor
    links are kept, O(sum |T_i|); each tier's distance block is evaluated
    in chunks of at most ``block_size`` entries.
    """

    def __init__(self, *, block_size: int = DEFAULT_BLOCK_SIZE) -> None:
        if block_size < 1:
            msg = f"block_size must be >= 1, got {block_size}."
            raise ValueError(msg)
        self._block_size = block_size

    def solve(
        self,
        index: TierIndex,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> Solution:
        """Compute the minimum-fuel route visiting one cell per tier.

        Args:
            index: Non-empty ascending tier index.
            cancel_token: Checked once before each tier is relaxed.

        Returns:
            Solution with one PathStep per tier and the total fuel.

        Raises:
            InternalInvariantViolation: If the index has no tiers.
            SolveCancelled: If cancellation is observed at a tier boundary.
        """
        tiers = index.tiers
        if not tiers:
            msg = "tier index is empty; a valid grid always has at least one tier."
            raise InternalInvariantViolation(msg)

        best = np.zeros(len(tiers[0]), dtype=np.float64)
        predecessors: list[np.ndarray] = []

        for prev, curr in zip(tiers, tiers[1:]):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            best, pred = self._relax(prev, curr, best)
            predecessors.append(pred)

        # argmin returns the first minimum, i.e. the earliest cell in tier order.
        chosen = [int(np.argmin(best))]
        total_fuel = float(best[chosen[0]])
        for pred in reversed(predecessors):
            chosen.append(int(pred[chosen[-1]]))
        chosen.reverse()

        path = tuple(
            PathStep(
                row=int(tier.rows[i]),
                col=int(tier.cols[i]),
                value=tier.value,
            )
            for tier, i in zip(tiers, chosen)
        )
        return Solution(path=path, total_fuel=total_fuel)

    def _relax(
        self,
        prev: Tier,
        curr: Tier,
        prev_best: np.ndarray,
    ) -> tuple[np.ndarray, np.ndarray]:
        """Best cost and predecessor index for every cell of ``curr``."""
        best = np.empty(len(curr), dtype=np.float64)
        pred = np.empty(len(curr), dtype=np.int64)
        chunk = max(1, self._block_size // len(prev))

        for start in range(0, len(curr), chunk):
            stop = min(start + chunk, len(curr))
            dr = curr.rows[start:stop, np.newaxis] - prev.rows[np.newaxis, :]
            dc = curr.cols[start:stop, np.newaxis] - prev.cols[np.newaxis, :]
            cost = prev_best[np.newaxis, :] + np.hypot(dr, dc)
            arg = np.argmin(cost, axis=1)
            pred[start:stop] = arg
            best[start:stop] = cost[np.arange(stop - start), arg]

        return best, pred

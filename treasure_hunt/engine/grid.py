"""Grid value object and tier index.

A Grid is an immutable n×m matrix of treasure values in [1, p]. The
TierIndex groups its cells by value into the ascending sequence of
non-empty tiers the path solver walks through.

Deterministic - no I/O, no side effects.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from treasure_hunt.engine.errors import GridValidationError


def check_dimensions(n: int, m: int, p: int, *, max_cells: int | None = None) -> None:
    """Validate grid parameters before any cell is looked at.

    Raises:
        GridValidationError: On non-positive dimensions, p > n*m, or a
            grid larger than ``max_cells``.
    """
    if n < 1:
        msg = f"n (rows) must be >= 1, got {n}."
        raise GridValidationError(msg)
    if m < 1:
        msg = f"m (columns) must be >= 1, got {m}."
        raise GridValidationError(msg)
    if p < 1:
        msg = f"p (treasure value) must be >= 1, got {p}."
        raise GridValidationError(msg)
    if p > n * m:
        msg = f"p = {p} cannot exceed the number of cells n × m = {n * m}."
        raise GridValidationError(msg)
    if max_cells is not None and n * m > max_cells:
        msg = f"grid has {n * m} cells, limit is {max_cells}."
        raise GridValidationError(msg)


class Grid:
    """Immutable treasure grid.

    Validates on construction:
    - n, m, p >= 1 and p <= n*m
    - the matrix is exactly n rows of m integers
    - every value lies in [1, p] and p occurs at least once
    - optionally, every value in 1..p occurs (``require_all_tiers``)
    """

    def __init__(
        self,
        *,
        n: int,
        m: int,
        p: int,
        values: Sequence[Sequence[int]],
        require_all_tiers: bool = False,
        max_cells: int | None = None,
    ) -> None:
        check_dimensions(n, m, p, max_cells=max_cells)

        if len(values) != n:
            msg = f"matrix has {len(values)} rows, expected n = {n}."
            raise GridValidationError(msg)
        for r, row in enumerate(values):
            if len(row) != m:
                msg = f"row {r} has {len(row)} columns, expected m = {m}."
                raise GridValidationError(msg)
            for c, value in enumerate(row):
                if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
                    msg = f"cell ({r}, {c}) must be an integer, got {value!r}."
                    raise GridValidationError(msg)

        cells = np.array(values, dtype=np.int64).reshape(n, m)

        out_of_range = np.argwhere((cells < 1) | (cells > p))
        if len(out_of_range) > 0:
            r, c = (int(v) for v in out_of_range[0])
            msg = f"cell ({r}, {c}) = {int(cells[r, c])} is outside [1, {p}]."
            raise GridValidationError(msg)

        if not np.any(cells == p):
            msg = f"treasure chest with value {p} must exist in the matrix."
            raise GridValidationError(msg)

        if require_all_tiers:
            missing = np.setdiff1d(np.arange(1, p + 1), cells)
            if len(missing) > 0:
                msg = f"values {missing.tolist()} never occur; every tier 1..{p} is required."
                raise GridValidationError(msg)

        cells.flags.writeable = False
        self._n = n
        self._m = m
        self._p = p
        self._cells = cells

    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def p(self) -> int:
        return self._p

    @property
    def cells(self) -> np.ndarray:
        """Read-only n×m int64 matrix."""
        return self._cells

    def value_at(self, row: int, col: int) -> int:
        return int(self._cells[row, col])

    def to_lists(self) -> list[list[int]]:
        return self._cells.tolist()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Grid):
            return NotImplemented
        return self._p == other._p and np.array_equal(self._cells, other._cells)

    def __hash__(self) -> int:
        return hash((self._n, self._m, self._p, self._cells.tobytes()))

    def __repr__(self) -> str:
        return f"Grid(n={self._n}, m={self._m}, p={self._p})"


@dataclass(frozen=True, eq=False)
class Tier:
    """Cells sharing one treasure value, in row-major discovery order."""

    value: int
    rows: np.ndarray
    cols: np.ndarray

    def __len__(self) -> int:
        return len(self.rows)

    def coordinates(self) -> list[tuple[int, int]]:
        return list(zip(self.rows.tolist(), self.cols.tolist()))


@dataclass(frozen=True, eq=False)
class TierIndex:
    """Ascending sequence of non-empty tiers.

    Values in [1, p] with no cells are skipped, so consecutive tiers may
    differ by more than one.
    """

    tiers: tuple[Tier, ...]

    @classmethod
    def from_grid(cls, grid: Grid) -> "TierIndex":
        """Bucket every cell by value in one pass.

        A stable sort of the flattened row-major values keeps each tier's
        cells in row-major order, so solver tie-breaks are reproducible.
        """
        flat = grid.cells.ravel()
        order = np.argsort(flat, kind="stable")
        values, starts = np.unique(flat[order], return_index=True)
        bounds = [*starts.tolist(), len(order)]

        tiers: list[Tier] = []
        for i, value in enumerate(values.tolist()):
            positions = order[bounds[i]:bounds[i + 1]]
            rows, cols = np.divmod(positions, grid.m)
            rows.flags.writeable = False
            cols.flags.writeable = False
            tiers.append(Tier(value=int(value), rows=rows, cols=cols))
        return cls(tiers=tuple(tiers))

    def __len__(self) -> int:
        return len(self.tiers)

    @property
    def values(self) -> list[int]:
        return [tier.value for tier in self.tiers]

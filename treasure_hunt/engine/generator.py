"""Random treasure grid generation."""

import numpy as np

from treasure_hunt.engine.grid import Grid, check_dimensions


def generate_grid(
    n: int,
    m: int,
    p: int,
    *,
    seed: int | None = None,
    max_cells: int | None = None,
) -> Grid:
    """Generate a valid n×m grid in which every value 1..p occurs.

    Each value 1..p is planted on its own randomly chosen cell; the
    remaining cells are drawn uniformly from [1, p]. A fixed ``seed``
    reproduces the same grid.

    Raises:
        GridValidationError: If the dimensions are invalid.
    """
    check_dimensions(n, m, p, max_cells=max_cells)

    rng = np.random.default_rng(seed)
    cells = rng.integers(1, p + 1, size=n * m, dtype=np.int64)
    planted = rng.permutation(n * m)[:p]
    cells[planted] = np.arange(1, p + 1)

    return Grid(n=n, m=m, p=p, values=cells.reshape(n, m).tolist())

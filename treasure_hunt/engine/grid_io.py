"""Plain-text grid format.

Layout::

    n m p
    v11 v12 ... v1m
    ...
    vn1 vn2 ... vnm

Values are whitespace separated. Lines after the n-th matrix row are ignored.
"""

from pathlib import Path

from treasure_hunt.engine.errors import GridValidationError
from treasure_hunt.engine.grid import Grid


def _parse_ints(line: str, what: str) -> list[int]:
    try:
        return [int(token) for token in line.split()]
    except ValueError as exc:
        msg = f"{what} must contain only integers: {line.strip()!r}."
        raise GridValidationError(msg) from exc


def parse_grid_text(text: str, **grid_options: object) -> Grid:
    """Parse the text format into a validated Grid.

    Extra keyword arguments are passed through to ``Grid``.

    Raises:
        GridValidationError: On a malformed header or matrix, or any Grid
            validation failure.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        msg = "grid text is empty."
        raise GridValidationError(msg)

    header = _parse_ints(lines[0], "header")
    if len(header) != 3:
        msg = f"header must be 'n m p', got {lines[0].strip()!r}."
        raise GridValidationError(msg)
    n, m, p = header
    if n < 1:
        msg = f"n (rows) must be >= 1, got {n}."
        raise GridValidationError(msg)

    rows = [_parse_ints(line, f"row {i}") for i, line in enumerate(lines[1:n + 1])]
    if len(rows) != n:
        msg = f"expected {n} matrix rows, found {len(rows)}."
        raise GridValidationError(msg)

    return Grid(n=n, m=m, p=p, values=rows, **grid_options)


def format_grid_text(grid: Grid) -> str:
    """Render a Grid in the text format (trailing newline included)."""
    lines = [f"{grid.n} {grid.m} {grid.p}"]
    lines.extend(" ".join(str(v) for v in row) for row in grid.to_lists())
    return "\n".join(lines) + "\n"


def read_grid_file(path: Path, **grid_options: object) -> Grid:
    return parse_grid_text(path.read_text(encoding="utf-8"), **grid_options)


def write_grid_file(path: Path, grid: Grid) -> None:
    path.write_text(format_grid_text(grid), encoding="utf-8")

"""Standalone treasure hunt solver.

Solves a grid from a text file (first line ``n m p``, then n rows of m
values) or a freshly generated random grid, and prints the route.

Usage:
    python -m scripts.solve_grid grids/example.txt
    python -m scripts.solve_grid --random 3 4 12 --seed 7
    python -m scripts.solve_grid --random 50 50 20 --export grid.txt
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from treasure_hunt.engine.errors import GridValidationError
from treasure_hunt.engine.generator import generate_grid
from treasure_hunt.engine.grid import Grid, TierIndex
from treasure_hunt.engine.grid_io import read_grid_file, write_grid_file
from treasure_hunt.engine.path_solver import PathSolver
from treasure_hunt.models.solve import Solution


def format_fuel(fuel: float) -> str:
    """Whole numbers without decimals, everything else to 5 places."""
    return str(int(fuel)) if float(fuel).is_integer() else f"{fuel:.5f}"


def _print_solution(grid: Grid, solution: Solution) -> None:
    """Print grid summary and route."""
    w = 60
    print("=" * w)
    print("  Treasure Hunt Solver")
    print(f"  Grid: {grid.n} x {grid.m}, p = {grid.p}")
    print("=" * w)
    print(f"  Minimum fuel: {format_fuel(solution.total_fuel)}")
    print()
    print(f"  {'Step':>4} {'Value':>6} {'Row':>5} {'Col':>5}")
    print(f"  {'----':>4} {'------':>6} {'-----':>5} {'-----':>5}")
    for i, step in enumerate(solution.path, start=1):
        print(f"  {i:>4} {step.value:>6} {step.row:>5} {step.col:>5}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute the minimum-fuel treasure hunt route for a grid",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("grid_path", nargs="?", type=Path, help="Path to grid text file")
    source.add_argument(
        "--random", nargs=3, type=int, metavar=("N", "M", "P"),
        help="Generate a random N x M grid with treasure values 1..P",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for --random")
    parser.add_argument(
        "--export", type=Path, default=None,
        help="Write the solved grid to this path in text format",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the solver CLI. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        if args.random is not None:
            n, m, p = args.random
            grid = generate_grid(n, m, p, seed=args.seed)
        else:
            grid = read_grid_file(args.grid_path)
    except GridValidationError as exc:
        print(f"Invalid grid: {exc}", file=sys.stderr)
        return 2
    except OSError as exc:
        print(f"Cannot read grid file: {exc}", file=sys.stderr)
        return 2

    solution = PathSolver().solve(TierIndex.from_grid(grid))
    _print_solution(grid, solution)

    if args.export is not None:
        write_grid_file(args.export, grid)
        print()
        print(f"  Grid written to {args.export}")

    return 0


if __name__ == "__main__":
    sys.exit(main())

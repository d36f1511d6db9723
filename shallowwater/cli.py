"""Command-line entry point for running shallow water simulations."""

from __future__ import annotations

import argparse
import sys

from .swe import SWESolver

_CASE_NAMES = {1: "water_drops", 2: "analytical_tsunami"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="shallowwater",
        description="Solve the shallow water equations and optionally write XDMF/HDF5 output.",
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--case",
        type=int,
        choices=(1, 2),
        default=1,
        help="built-in test case: 1 = water drops in a box, 2 = analytical tsunami (default 1)",
    )
    source.add_argument("--hdf5", metavar="FILE", help="read initial data and topography from an HDF5 file")
    parser.add_argument("--size", type=float, default=500.0, help="domain size in km for --hdf5 (default 500)")
    parser.add_argument("--t-end", type=float, help="simulation time in hours (default 1.0, or 0.2 with --hdf5)")
    parser.add_argument("--nx", type=int, default=1000, help="cells along x for built-in cases (default 1000)")
    parser.add_argument("--ny", type=int, default=1000, help="cells along y for built-in cases (default 1000)")
    parser.add_argument("--output-n", type=int, help="write a solution every N steps, 0 for none")
    parser.add_argument("--output", metavar="PREFIX", help="file name prefix of written solutions")
    parser.add_argument("--full-log", action="store_true", help="log every time step on its own line")
    return parser


def main(argv=None) -> int:
    """Run a simulation as configured on the command line."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    from_file = args.hdf5 is not None
    t_end = args.t_end if args.t_end is not None else (0.2 if from_file else 1.0)
    output_n = args.output_n if args.output_n is not None else (0 if from_file else 10)
    if output_n < 0:
        parser.error("--output-n must not be negative")
    prefix = args.output or ("tsunami" if from_file else _CASE_NAMES[args.case])

    try:
        if from_file:
            solver = SWESolver.from_hdf5(args.hdf5, args.size, args.size)
        else:
            solver = SWESolver(args.case, args.nx, args.ny)
    except (OSError, KeyError, ValueError) as exc:
        print(f"shallowwater: cannot set up the simulation: {exc}", file=sys.stderr)
        return 1

    solver.solve(t_end, args.full_log, output_n, prefix)
    return 0


if __name__ == "__main__":
    sys.exit(main())
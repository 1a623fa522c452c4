"""Command-line entry point: `pimc-ring init` and `pimc-ring run`."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from pimc_ring.config import RunConfig, load_run_config
from pimc_ring.errors import PIMCError
from pimc_ring.experiment import run_simulation
from pimc_ring.io import INPUT_TAG, ConfigurationStore
from pimc_ring.lattice import initial_ring_polymers
from pimc_ring.utils import make_rng

LOGGER = logging.getLogger("pimc_ring")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pimc-ring",
        description="Path-integral Monte Carlo of ring polymers in a periodic box.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init", help="Write fcc starting configurations.")
    init.add_argument("--n", type=int, default=108, help="Number of particles (4*nc**3).")
    init.add_argument("--density", type=float, default=0.75, help="Number density.")
    init.add_argument("--p", type=int, default=4, help="Number of beads per ring.")
    init.add_argument("--jitter", type=float, default=0.0, help="Random bead displacement.")
    init.add_argument("--seed", type=int, default=12345, help="Seed for the jitter.")
    init.add_argument("--workdir", type=Path, default=Path("."), help="Output directory.")

    run = sub.add_parser("run", help="Run a simulation from cnfKK.inp files.")
    run.add_argument("params", nargs="?", type=Path, help="JSON parameter file.")
    run.add_argument("--workdir", type=Path, default=Path("."), help="Working directory.")
    run.add_argument("--seed", type=int, default=None, help="Override the RNG seed.")
    run.add_argument("--progress", action="store_true", help="Show a progress bar.")
    run.add_argument("--plot", action="store_true", help="Save block-average figure.")
    run.add_argument(
        "--no-strict",
        action="store_true",
        help="Warn instead of failing on an end-of-run energy mismatch.",
    )
    return parser


def _init(args: argparse.Namespace) -> int:
    rng = make_rng(args.seed) if args.jitter > 0.0 else None
    box, positions = initial_ring_polymers(
        args.n,
        args.density,
        args.p,
        jitter=args.jitter,
        rng=rng,
    )
    paths = ConfigurationStore(args.workdir).write_ring_polymers(positions, box, INPUT_TAG)
    LOGGER.info("Wrote %d configuration files to %s", len(paths), args.workdir)
    return 0


def _run(args: argparse.Namespace) -> int:
    if args.params is None:
        config = RunConfig.from_dict({})
    else:
        config = load_run_config(args.params)

    sampler = config.sampler
    if args.seed is not None:
        sampler = replace(sampler, seed=args.seed)
    if args.no_strict:
        sampler = replace(sampler, strict_consistency=False)
    config = replace(config, sampler=sampler)

    output = run_simulation(
        config,
        args.workdir,
        progress=args.progress,
        plot=args.plot,
    )
    LOGGER.info("Run summary written to %s", output["paths"]["run_summary_path"])
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
    )

    try:
        if args.command == "init":
            return _init(args)
        return _run(args)
    except (PIMCError, FileNotFoundError) as exc:
        print(f"[pimc-ring] error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"[pimc-ring] invalid input: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""CLI entry point for chart generation."""

import argparse
import dataclasses
import sys
from pathlib import Path

from retirement_sim.charts import plot_mc_fan, plot_trajectory
from retirement_sim.cli import check_scenario
from retirement_sim.config import build_scenario, parse_args
from retirement_sim.projection import simulate_scenario


def _add_args(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--output", type=Path, default=Path("reports/charts"),
        help="output directory (default: reports/charts)",
    )
    parser.add_argument(
        "--no-mc", action="store_true",
        help="skip the Monte Carlo fan chart (deterministic only, faster)",
    )
    parser.add_argument(
        "--workers", type=int, default=1,
        help="processes for Monte Carlo runs (default: 1)",
    )
    parser.add_argument(
        "--name", type=str, default="",
        help="output filename suffix (e.g. 30 → trajectory-30.png)",
    )


def main():
    r, args = parse_args("Retirement projection charts", _add_args)
    scenario = build_scenario(r)
    # The fan chart always needs Monte Carlo runs unless --no-mc is given
    scenario = dataclasses.replace(
        scenario,
        monte_carlo=dataclasses.replace(scenario.monte_carlo, enabled=not args.no_mc),
    )
    if not check_scenario(scenario):
        raise SystemExit(1)

    print(f"Projecting age {scenario.current_age} → {scenario.max_age} ...", file=sys.stderr)
    result = simulate_scenario(scenario, workers=args.workers, quiet=False)
    timeline = result.deterministic.timeline

    path = plot_trajectory(timeline, args.output, name=args.name, retirement_age=scenario.retirement_age)
    print(f"  → {path}", file=sys.stderr)

    if result.monte_carlo is not None:
        path = plot_mc_fan(result.monte_carlo, timeline, args.output, name=args.name)
        print(f"  → {path}", file=sys.stderr)

    print("Done", file=sys.stderr)


if __name__ == "__main__":
    main()

"""CLI entry point for the required-savings search."""

import argparse
import sys

from retirement_sim.cli import check_scenario, fmt_money, print_header, print_summary
from retirement_sim.config import build_scenario, parse_args
from retirement_sim.solver import (
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    DEFAULT_UPPER_BOUND,
    PAYOUT_FOREVER,
    PAYOUT_MODES,
    PAYOUT_UNTIL_AGE,
    TARGET_MODES,
    TARGET_REAL,
    find_required_savings,
)


def _add_args(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--target", type=float, required=True,
        help="target net monthly income in retirement",
    )
    parser.add_argument(
        "--target-mode", type=str, default=TARGET_REAL, choices=TARGET_MODES,
        help="real = today's money, indexed to the retirement date (default: real)",
    )
    parser.add_argument(
        "--payout-mode", type=str, default=PAYOUT_FOREVER, choices=PAYOUT_MODES,
        help="forever = perpetual payout at retirement, untilAge = must last until --end-age (default: forever)",
    )
    parser.add_argument(
        "--end-age", type=int, default=None,
        help="age the withdrawals must last until (untilAge, default: --max-age)",
    )
    parser.add_argument(
        "--upper-bound", type=float, default=DEFAULT_UPPER_BOUND,
        help=f"largest monthly contribution to consider (default: {DEFAULT_UPPER_BOUND})",
    )
    parser.add_argument(
        "--tolerance", type=float, default=DEFAULT_TOLERANCE,
        help=f"bisection stops below this bracket width (default: {DEFAULT_TOLERANCE})",
    )
    parser.add_argument(
        "--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
        help=f"bisection iteration cap (default: {DEFAULT_MAX_ITERATIONS})",
    )


def main():
    r, args = parse_args("Required monthly savings for a retirement income target", _add_args)
    scenario = build_scenario(r)
    if not check_scenario(scenario):
        raise SystemExit(1)
    if args.payout_mode == PAYOUT_UNTIL_AGE and args.end_age is not None and args.end_age <= scenario.retirement_age:
        print(f"  ✗ End age {args.end_age} must be after retirement age {scenario.retirement_age}", file=sys.stderr)
        raise SystemExit(1)

    print_header(scenario)
    print(f"Searching 0-{fmt_money(args.upper_bound)}/month ...", file=sys.stderr)
    result = find_required_savings(
        scenario,
        target_net_monthly=args.target,
        target_mode=args.target_mode,
        payout_mode=args.payout_mode,
        end_age=args.end_age,
        upper_bound=args.upper_bound,
        tolerance=args.tolerance,
        max_iterations=args.max_iterations,
    )

    print("\n[Required savings]")
    print("-" * 60)
    print(f"  Target: {fmt_money(result.target_real)}/month ({args.target_mode})"
          f" = {fmt_money(result.target_nominal)}/month nominal at retirement")
    if not result.feasible:
        print(f"  Not reachable with up to {fmt_money(result.upper_bound)}/month")
    elif result.required_savings == 0:
        print("  Already reached without further contributions")
    else:
        print(f"  Required savings: {result.required_savings:,.2f}/month ({result.iterations} iterations)")
    print("-" * 60)

    if result.feasible and result.results is not None:
        print_summary(result.results.deterministic)


if __name__ == "__main__":
    main()

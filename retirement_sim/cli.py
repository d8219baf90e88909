"""CLI entry point for a single scenario projection."""

import argparse
import sys

from retirement_sim.config import build_scenario, parse_args
from retirement_sim.crisis import get_recovery_preset
from retirement_sim.monte_carlo import MonteCarloResult
from retirement_sim.params import WITHDRAWAL_INTEREST_ONLY, WITHDRAWAL_TARGET_NET, Scenario
from retirement_sim.projection import DeterministicResult, simulate_scenario
from retirement_sim.simulation import validate_scenario


def fmt_money(v: float) -> str:
    return f"{v:,.0f}"


def fmt_pct(v: float) -> str:
    return f"{v * 100:.2f}%"


def check_scenario(scenario: Scenario) -> bool:
    """Print validation messages to stderr. Returns False if there are errors."""
    errors, warnings = validate_scenario(scenario)
    for w in warnings:
        print(f"  warning: {w}", file=sys.stderr)
    for e in errors:
        print(f"  ✗ {e}", file=sys.stderr)
    return not errors


def print_header(scenario: Scenario):
    years = scenario.max_age - scenario.current_age
    print("=" * 80)
    print(f"Retirement projection (age {scenario.current_age}-{scenario.max_age}, {years} years)")
    print(
        f"  Start capital: {fmt_money(scenario.start_capital)}"
        f" (unrealized gain {scenario.start_gain_fraction:.0%})"
        f" / savings: {fmt_money(scenario.monthly_savings)}/month"
    )
    if scenario.savings_increase_annual:
        cap = f", cap {fmt_money(scenario.savings_cap)}" if scenario.savings_cap is not None else ""
        print(f"  Savings increase: {fmt_pct(scenario.savings_increase_annual)}/year{cap}")
    if scenario.stop_investing_after_years:
        print(f"  Contributions stop after {scenario.stop_investing_after_years:g} years")
    print(
        f"  Return: {fmt_pct(scenario.annual_return_pre)} before / "
        f"{fmt_pct(scenario.post_retirement_return)} after retirement at {scenario.retirement_age}"
    )
    print(f"  Inflation: {fmt_pct(scenario.inflation_annual)} / tax on gains: {fmt_pct(scenario.tax_rate)}")
    if scenario.withdrawal_mode == WITHDRAWAL_TARGET_NET:
        print(f"  Withdrawals: {fmt_money(scenario.target_net_withdrawal)}/month net")
    elif scenario.withdrawal_mode == WITHDRAWAL_INTEREST_ONLY:
        print("  Withdrawals: expected interest only")
    else:
        print("  Withdrawals: off")
    crisis = scenario.crisis
    if crisis.enabled:
        preset = get_recovery_preset(crisis.recovery_profile)
        print(
            f"  Crisis: after {crisis.after_years:g} years, drawdown {crisis.max_drawdown:.0%},"
            f" recovery {preset.label}"
        )
    mc = scenario.monte_carlo
    if mc.enabled:
        print(f"  Monte Carlo: N={mc.runs:,} / σ={mc.sigma_annual:.0%} / seed={mc.seed}")
    print("=" * 80)


def print_summary(det: DeterministicResult):
    s = det.summary
    print("\n[Deterministic summary]")
    print("-" * 60)
    print(f"{'':<28}{'nominal':>16}{'real':>16}")
    print("-" * 60)
    print(f"{'Value at ' + format(s.retirement_age, '.1f'):<28}{fmt_money(s.retirement_value_nominal):>16}{fmt_money(s.retirement_value_real):>16}")
    print(f"{'Forever payout gross/month':<28}{fmt_money(s.forever_gross_monthly):>16}{fmt_money(s.forever_gross_monthly_real):>16}")
    print(f"{'Forever payout net/month':<28}{fmt_money(s.forever_net_monthly):>16}{fmt_money(s.forever_net_monthly_real):>16}")
    print(f"{'Ending value':<28}{fmt_money(s.ending_value_nominal):>16}{fmt_money(s.ending_value_real):>16}")
    print("-" * 60)
    if s.depletion_age is not None:
        print(f"  ⚠ Portfolio depleted at age {s.depletion_age:.1f}")


def print_yearly(det: DeterministicResult, step: int = 1):
    print(f"\n[Yearly table (every {step} year{'s' if step > 1 else ''})]")
    print("-" * 100)
    print(
        f"{'Age':<7}{'Value':>14}{'Real value':>14}{'Contrib.':>12}"
        f"{'Withdr. gross':>15}{'Withdr. net':>14}{'Tax':>12}{'Return':>10}"
    )
    print("-" * 100)
    for i, row in enumerate(det.yearly):
        if i % step != 0 and i != len(det.yearly) - 1:
            continue
        print(
            f"{row.age:<7.1f}"
            f"{fmt_money(row.value_nominal):>14}"
            f"{fmt_money(row.value_real):>14}"
            f"{fmt_money(row.contribution):>12}"
            f"{fmt_money(row.withdraw_gross):>15}"
            f"{fmt_money(row.withdraw_net):>14}"
            f"{fmt_money(row.tax_paid):>12}"
            f"{fmt_pct(row.return_applied):>10}"
        )
    print("-" * 100)


def print_monte_carlo(mc: MonteCarloResult, step: int = 5):
    lo, mid, hi = mc.quantiles[0], mc.quantiles[len(mc.quantiles) // 2], mc.quantiles[-1]
    sq = mc.summary_quantiles
    print(f"\n[Monte Carlo (N={mc.n_simulations:,})]")
    p_lo, p_mid, p_hi = (f"P{q * 100:.0f}" for q in (lo, mid, hi))
    print("-" * 60)
    print(f"{'':<20}{p_lo:>13}{p_mid:>13}{p_hi:>13}")
    print("-" * 60)
    for label, q in (("Retirement nominal", sq.retirement_nominal), ("Retirement real", sq.retirement_real)):
        print(f"{label:<20}{fmt_money(q[lo]):>13}{fmt_money(q[mid]):>13}{fmt_money(q[hi]):>13}")
    print("-" * 60)
    print(f"  Depletion probability: {mc.depletion_probability:.1%}")

    print(
        f"\n{'Age':<7}{'End value ' + p_lo:>18}{p_mid:>14}{p_hi:>14}"
        f"{'Net withdr. ' + p_mid:>20}{'Tax ' + p_mid:>12}"
    )
    print("-" * 85)
    for i, yq in enumerate(mc.yearly_quantiles):
        if i % step != 0 and i != len(mc.yearly_quantiles) - 1:
            continue
        print(
            f"{yq.age:<7.1f}"
            f"{fmt_money(yq.end_value_nominal[lo]):>18}"
            f"{fmt_money(yq.end_value_nominal[mid]):>14}"
            f"{fmt_money(yq.end_value_nominal[hi]):>14}"
            f"{fmt_money(yq.withdrawals_net_nominal[mid]):>20}"
            f"{fmt_money(yq.tax_paid_nominal[mid]):>12}"
        )
    print("-" * 85)


def _add_args(parser: argparse.ArgumentParser):
    parser.add_argument("--workers", type=int, default=1, help="processes for Monte Carlo runs (default: 1)")
    parser.add_argument("--step", type=int, default=1, help="print every N-th year of the yearly table (default: 1)")


def main():
    r, args = parse_args("Retirement savings projection", _add_args)
    scenario = build_scenario(r)
    if not check_scenario(scenario):
        raise SystemExit(1)

    print_header(scenario)
    result = simulate_scenario(scenario, workers=args.workers, quiet=False)
    print_summary(result.deterministic)
    print_yearly(result.deterministic, step=max(1, args.step))
    if result.monte_carlo is not None:
        print_monte_carlo(result.monte_carlo, step=max(1, args.step))


if __name__ == "__main__":
    main()

"""Core monthly path simulator."""

import math
from dataclasses import dataclass
from random import Random

from retirement_sim.crisis import CrisisOverlay, RecoveryEntry
from retirement_sim.params import (
    MAX_MC_RUNS,
    WITHDRAWAL_INTEREST_ONLY,
    WITHDRAWAL_MODES,
    WITHDRAWAL_OFF,
    WITHDRAWAL_TARGET_NET,
    Scenario,
    monthly_rate,
)
from retirement_sim.tax import apply_withdrawal, gain_ratio

EPS = 1e-8  # depletion threshold and gross-up denominator floor


@dataclass(frozen=True)
class TimelineRow:
    """Portfolio state at the end of one simulated month."""

    month: int
    age: float
    cpi: float
    value_nominal: float
    value_real: float
    basis_nominal: float
    basis_real: float
    contribution: float = 0.0
    withdraw_gross: float = 0.0
    withdraw_net: float = 0.0
    tax_paid: float = 0.0
    return_applied: float = 0.0
    is_retired: bool = False
    is_crisis_month: bool = False
    is_recovery_month: bool = False
    is_depleted: bool = False


def validate_scenario(scenario: Scenario) -> tuple[list[str], list[str]]:
    """Check scenario consistency. Returns (errors, warnings)."""
    errors = []
    warnings = []

    if scenario.current_age >= scenario.retirement_age:
        errors.append(
            f"Current age {scenario.current_age} must be less than "
            f"retirement age {scenario.retirement_age}"
        )
    if scenario.retirement_age > scenario.max_age:
        errors.append(
            f"Retirement age {scenario.retirement_age} exceeds "
            f"terminal age {scenario.max_age}"
        )
    if not 0 <= scenario.start_gain_fraction <= 1:
        errors.append("Unrealized gain share must be between 0% and 100%")
    if not 0 <= scenario.tax_rate <= 1:
        errors.append("Tax rate must be between 0% and 100%")
    if scenario.savings_cap is not None and scenario.savings_cap < scenario.monthly_savings:
        errors.append(
            f"Savings cap {scenario.savings_cap:,.0f} is below the starting "
            f"monthly savings {scenario.monthly_savings:,.0f}"
        )
    if scenario.stop_investing_after_years is not None and scenario.stop_investing_after_years < 0:
        errors.append("Stop investing after years must be zero or greater")
    if scenario.withdrawal_mode not in WITHDRAWAL_MODES:
        errors.append(
            f"Unknown withdrawal mode {scenario.withdrawal_mode!r} "
            f"(expected one of {', '.join(WITHDRAWAL_MODES)})"
        )
    mc = scenario.monte_carlo
    if mc.enabled and not 1 <= mc.runs <= MAX_MC_RUNS:
        errors.append(f"Monte Carlo runs must be between 1 and {MAX_MC_RUNS:,}")
    if mc.sigma_annual < 0:
        errors.append("Volatility must be zero or greater")
    if scenario.withdrawal_mode == WITHDRAWAL_TARGET_NET and scenario.target_net_withdrawal < 0:
        errors.append("Target net withdrawal must be zero or greater")

    if scenario.annual_return_pre < 0:
        warnings.append("Annual return is negative")
    if scenario.inflation_annual < 0:
        warnings.append("Inflation is negative")
    horizon_years = scenario.max_age - scenario.current_age
    if scenario.crisis.enabled and scenario.crisis.after_years > horizon_years:
        warnings.append("Crisis year is beyond the simulation horizon; crisis will be ignored")

    return errors, warnings


def _standard_normal(rng: Random) -> float:
    """Box-Muller transform over two non-zero uniform draws."""
    u = 0.0
    v = 0.0
    while u == 0:
        u = rng.random()
    while v == 0:
        v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def expected_monthly_return(annual_return: float, recovery_entry: RecoveryEntry | None) -> float:
    """Expected monthly return including any decaying recovery premium."""
    base = monthly_rate(annual_return)
    if recovery_entry is None:
        return base
    return base + monthly_rate(recovery_entry.premium_annual) * recovery_entry.decay


def draw_monthly_return(expected_monthly: float, sigma_annual: float, rng: Random | None) -> float:
    """Realized monthly return. rng=None returns the expected return exactly.

    Stochastic draws are log-normal around ln(1 + expected) with
    σ_monthly = σ_annual / √12.
    """
    if rng is None:
        return expected_monthly
    sigma_monthly = sigma_annual / math.sqrt(12)
    mu_monthly = math.log(1 + expected_monthly)
    return math.exp(mu_monthly + _standard_normal(rng) * sigma_monthly) - 1


def _withdrawal_gross(
    scenario: Scenario,
    value_before_growth: float,
    value: float,
    basis: float,
    expected_monthly: float,
) -> float:
    if scenario.withdrawal_mode == WITHDRAWAL_INTEREST_ONLY:
        # Expected, not realized, interest: realized gains would over-withdraw in volatile paths
        interest = max(value_before_growth * expected_monthly, 0.0)
        return min(interest, value)
    # Gross up so that net after gains tax hits the target
    denom = max(1 - scenario.tax_rate * gain_ratio(value, basis), EPS)
    return min(scenario.target_net_withdrawal / denom, value)


def simulate_path(
    scenario: Scenario,
    cpi_timeline: list[float],
    crisis_overlay: CrisisOverlay,
    recovery_schedule: dict[int, RecoveryEntry],
    rng: Random | None = None,
) -> list[TimelineRow]:
    """Run the monthly state machine from current_age to max_age.

    rng: None for the deterministic path, a dedicated Random for a stochastic one.
    Each month: escalate savings, contribute, pick the return, apply the crisis,
    grow, withdraw, record. Returns months + 1 rows (row 0 = starting state).
    """
    months = scenario.total_months
    post_return = scenario.post_retirement_return
    sigma_annual = scenario.monte_carlo.sigma_annual
    stop_month = scenario.stop_month

    value = scenario.start_capital
    basis = scenario.start_capital * (1 - scenario.start_gain_fraction)
    monthly_savings = scenario.monthly_savings
    depleted = False

    cpi = cpi_timeline[0]
    timeline = [
        TimelineRow(
            month=0,
            age=float(scenario.current_age),
            cpi=cpi,
            value_nominal=value,
            value_real=value / cpi,
            basis_nominal=basis,
            basis_real=basis / cpi,
            is_retired=scenario.current_age >= scenario.retirement_age,
        )
    ]

    for t in range(1, months + 1):
        age = scenario.current_age + t / 12

        # Annual escalation on the first month of each later year
        if t % 12 == 1 and t > 1 and scenario.savings_increase_annual != 0:
            monthly_savings *= 1 + scenario.savings_increase_annual
            if scenario.savings_cap is not None:
                monthly_savings = min(monthly_savings, scenario.savings_cap)

        is_retired = age >= scenario.retirement_age
        still_investing = not stop_month or t <= stop_month
        contribution = monthly_savings if not depleted and not is_retired and still_investing else 0.0
        value += contribution
        basis += contribution

        annual_return = post_return if is_retired else scenario.annual_return_pre
        recovery_entry = recovery_schedule.get(t)
        expected = expected_monthly_return(annual_return, recovery_entry)
        base_return = draw_monthly_return(expected, sigma_annual, rng)

        crisis_return = crisis_overlay.return_at(t)
        is_crisis_month = crisis_return is not None
        if is_crisis_month:
            return_applied = (1 + base_return) * (1 + crisis_return) - 1
        else:
            return_applied = base_return

        value_before_growth = value
        value *= 1 + return_applied

        withdraw_gross = 0.0
        withdraw_net = 0.0
        tax_paid = 0.0
        if not depleted and is_retired and scenario.withdrawal_mode != WITHDRAWAL_OFF:
            withdraw_gross = _withdrawal_gross(scenario, value_before_growth, value, basis, expected)
            result = apply_withdrawal(value, basis, withdraw_gross, scenario.tax_rate)
            value = result.value
            basis = result.basis
            tax_paid = result.tax
            withdraw_net = result.net
            if value <= EPS and withdraw_gross > 0:
                depleted = True

        cpi = cpi_timeline[t]
        timeline.append(
            TimelineRow(
                month=t,
                age=age,
                cpi=cpi,
                value_nominal=value,
                value_real=value / cpi,
                basis_nominal=basis,
                basis_real=basis / cpi,
                contribution=contribution,
                withdraw_gross=withdraw_gross,
                withdraw_net=withdraw_net,
                tax_paid=tax_paid,
                return_applied=return_applied,
                is_retired=is_retired,
                is_crisis_month=is_crisis_month,
                is_recovery_month=recovery_entry is not None,
                is_depleted=depleted,
            )
        )

    return timeline

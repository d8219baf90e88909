"""Required-savings search by bisection over the deterministic projection."""

import dataclasses
from dataclasses import dataclass

from retirement_sim.params import (
    WITHDRAWAL_OFF,
    WITHDRAWAL_TARGET_NET,
    Scenario,
    monthly_rate,
    round_half_up,
)
from retirement_sim.projection import ScenarioResult, simulate_scenario
from retirement_sim.simulation import EPS

TARGET_NOMINAL = "nominal"
TARGET_REAL = "real"
TARGET_MODES = (TARGET_NOMINAL, TARGET_REAL)

PAYOUT_FOREVER = "forever"    # perpetual payout from the retirement value
PAYOUT_UNTIL_AGE = "untilAge"  # target withdrawals must last until end_age
PAYOUT_MODES = (PAYOUT_FOREVER, PAYOUT_UNTIL_AGE)

DEFAULT_UPPER_BOUND = 50000
DEFAULT_TOLERANCE = 0.1
DEFAULT_MAX_ITERATIONS = 30


@dataclass
class SearchResult:
    feasible: bool
    required_savings: float | None
    target_nominal: float
    target_real: float
    iterations: int
    upper_bound: float
    results: ScenarioResult | None = None


def compute_cpi_at_retirement(inflation_annual: float, current_age: float, retirement_age: float) -> float:
    """Cumulative price index at the retirement month."""
    months_to_retirement = max(0, round_half_up((retirement_age - current_age) * 12))
    return (1 + monthly_rate(inflation_annual)) ** months_to_retirement


def compute_target_nominal(
    target_net_monthly: float,
    target_mode: str,
    inflation_annual: float,
    current_age: float,
    retirement_age: float,
) -> float:
    """Nominal monthly target at retirement. Real targets are in today's money."""
    if target_mode != TARGET_REAL:
        return target_net_monthly
    return target_net_monthly * compute_cpi_at_retirement(
        inflation_annual, current_age, retirement_age,
    )


def _oracle_scenario(
    base: Scenario,
    monthly_savings: float,
    payout_mode: str,
    target_nominal: float,
    end_age: int | None,
) -> Scenario:
    until_age = payout_mode == PAYOUT_UNTIL_AGE
    return dataclasses.replace(
        base,
        monthly_savings=monthly_savings,
        withdrawal_mode=WITHDRAWAL_TARGET_NET if until_age else WITHDRAWAL_OFF,
        target_net_withdrawal=target_nominal if until_age else 0.0,
        max_age=end_age if until_age and end_age is not None else base.max_age,
        monte_carlo=dataclasses.replace(base.monte_carlo, enabled=False),
    )


def _is_sufficient(
    base: Scenario,
    monthly_savings: float,
    target_nominal: float,
    target_real: float,
    target_mode: str,
    payout_mode: str,
    end_age: int | None,
) -> tuple[bool, ScenarioResult]:
    scenario = _oracle_scenario(base, monthly_savings, payout_mode, target_nominal, end_age)
    results = simulate_scenario(scenario)
    deterministic = results.deterministic
    if payout_mode == PAYOUT_FOREVER:
        summary = deterministic.summary
        if target_mode == TARGET_REAL:
            return summary.forever_net_monthly_real >= target_real, results
        return summary.forever_net_monthly >= target_nominal, results
    # An empty portfolio withdraws nothing without flagging depletion
    short = any(
        row.is_depleted or (row.is_retired and row.withdraw_net < target_nominal - EPS)
        for row in deterministic.timeline[1:]
    )
    return not short, results


def find_required_savings(
    base_scenario: Scenario,
    target_net_monthly: float,
    target_mode: str = TARGET_NOMINAL,
    payout_mode: str = PAYOUT_FOREVER,
    end_age: int | None = None,
    upper_bound: float = DEFAULT_UPPER_BOUND,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> SearchResult:
    """Find the smallest monthly contribution that meets a net income target.

    payout_mode "forever": the perpetual payout at retirement must reach the
    target. "untilAge": withdrawing the target every month must not deplete
    the portfolio before end_age.
    Always evaluates the deterministic path, even if the base scenario has
    Monte Carlo enabled. Bisection assumes feasibility is monotonic in the
    contribution amount.
    """
    target_nominal = compute_target_nominal(
        target_net_monthly,
        target_mode,
        base_scenario.inflation_annual,
        base_scenario.current_age,
        base_scenario.retirement_age,
    )
    target_real = target_net_monthly

    def check(monthly_savings: float) -> tuple[bool, ScenarioResult]:
        return _is_sufficient(
            base_scenario, monthly_savings, target_nominal, target_real,
            target_mode, payout_mode, end_age,
        )

    ok, results = check(0.0)
    if ok:
        return SearchResult(
            feasible=True,
            required_savings=0.0,
            target_nominal=target_nominal,
            target_real=target_real,
            iterations=0,
            upper_bound=upper_bound,
            results=results,
        )

    ok, results = check(upper_bound)
    if not ok:
        return SearchResult(
            feasible=False,
            required_savings=None,
            target_nominal=target_nominal,
            target_real=target_real,
            iterations=0,
            upper_bound=upper_bound,
            results=results,
        )

    low = 0.0
    high = float(upper_bound)
    best = results
    iterations = 0
    while iterations < max_iterations and high - low > tolerance:
        mid = (low + high) / 2
        ok, results = check(mid)
        if ok:
            high = mid
            best = results
        else:
            low = mid
        iterations += 1

    return SearchResult(
        feasible=True,
        required_savings=high,
        target_nominal=target_nominal,
        target_real=target_real,
        iterations=iterations,
        upper_bound=upper_bound,
        results=best,
    )

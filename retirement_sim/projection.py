"""Scenario projection: deterministic path plus optional Monte Carlo."""

from dataclasses import dataclass

from retirement_sim.aggregate import (
    SummaryMetrics,
    YearlyRow,
    build_summary,
    build_yearly_table,
    find_retirement_index,
)
from retirement_sim.crisis import build_crisis_overlay, build_recovery_schedule
from retirement_sim.monte_carlo import MonteCarloResult, run_monte_carlo
from retirement_sim.params import Scenario, build_cpi_timeline
from retirement_sim.simulation import TimelineRow, simulate_path


@dataclass
class DeterministicResult:
    timeline: list[TimelineRow]
    summary: SummaryMetrics
    yearly: list[YearlyRow]


@dataclass
class ScenarioResult:
    deterministic: DeterministicResult
    monte_carlo: MonteCarloResult | None = None


def simulate_scenario(scenario: Scenario, workers: int = 1, quiet: bool = True) -> ScenarioResult:
    """Project a scenario forward month by month.

    CPI timeline, crisis overlay and recovery schedule are built once and
    shared by the deterministic path and every Monte Carlo run.
    """
    months = scenario.total_months
    cpi_timeline = build_cpi_timeline(months, scenario.inflation_annual)
    crisis_overlay = build_crisis_overlay(scenario.crisis, months)
    recovery_schedule = build_recovery_schedule(
        scenario.crisis, scenario.annual_return_pre, months,
    )

    timeline = simulate_path(scenario, cpi_timeline, crisis_overlay, recovery_schedule)
    deterministic = DeterministicResult(
        timeline=timeline,
        summary=build_summary(timeline, scenario),
        yearly=build_yearly_table(timeline),
    )

    monte_carlo = None
    if scenario.monte_carlo.enabled:
        monte_carlo = run_monte_carlo(
            scenario,
            cpi_timeline,
            crisis_overlay,
            recovery_schedule,
            retirement_index=find_retirement_index(timeline, scenario.retirement_age),
            workers=workers,
            quiet=quiet,
        )

    return ScenarioResult(deterministic=deterministic, monte_carlo=monte_carlo)

"""Retirement Savings and Withdrawal Projection Package."""

from retirement_sim.params import (
    Scenario,
    MonteCarloConfig,
    CrisisConfig,
    WITHDRAWAL_OFF,
    WITHDRAWAL_INTEREST_ONLY,
    WITHDRAWAL_TARGET_NET,
    MAX_MC_RUNS,
    build_cpi_timeline,
    monthly_rate,
)
from retirement_sim.tax import WithdrawalResult, apply_withdrawal, gain_ratio
from retirement_sim.crisis import (
    CrisisOverlay,
    RecoveryEntry,
    RECOVERY_PRESETS,
    build_crisis_overlay,
    build_recovery_schedule,
)
from retirement_sim.simulation import TimelineRow, simulate_path, validate_scenario
from retirement_sim.aggregate import SummaryMetrics, YearlyRow, build_summary, build_yearly_table
from retirement_sim.monte_carlo import MonteCarloResult, run_monte_carlo
from retirement_sim.projection import DeterministicResult, ScenarioResult, simulate_scenario
from retirement_sim.solver import SearchResult, find_required_savings

__all__ = [
    "Scenario",
    "MonteCarloConfig",
    "CrisisConfig",
    "WITHDRAWAL_OFF",
    "WITHDRAWAL_INTEREST_ONLY",
    "WITHDRAWAL_TARGET_NET",
    "MAX_MC_RUNS",
    "build_cpi_timeline",
    "monthly_rate",
    "WithdrawalResult",
    "apply_withdrawal",
    "gain_ratio",
    "CrisisOverlay",
    "RecoveryEntry",
    "RECOVERY_PRESETS",
    "build_crisis_overlay",
    "build_recovery_schedule",
    "TimelineRow",
    "simulate_path",
    "validate_scenario",
    "SummaryMetrics",
    "YearlyRow",
    "build_summary",
    "build_yearly_table",
    "MonteCarloResult",
    "run_monte_carlo",
    "DeterministicResult",
    "ScenarioResult",
    "simulate_scenario",
    "SearchResult",
    "find_required_savings",
]

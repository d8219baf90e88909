"""Scenario parameters and return/inflation helpers."""

import math
from dataclasses import dataclass, field

# Withdrawal policies once retired
WITHDRAWAL_OFF = "off"
WITHDRAWAL_INTEREST_ONLY = "interestOnly"
WITHDRAWAL_TARGET_NET = "targetNet"
WITHDRAWAL_MODES = (WITHDRAWAL_OFF, WITHDRAWAL_INTEREST_ONLY, WITHDRAWAL_TARGET_NET)

MAX_MC_RUNS = 10000  # upper bound on stochastic paths per scenario


def monthly_rate(annual_rate: float) -> float:
    """Convert an annual rate to the equivalent compounded monthly rate."""
    return (1 + annual_rate) ** (1 / 12) - 1


def round_half_up(x: float) -> int:
    """Round to the nearest integer, .5 away from zero for positive x."""
    return math.floor(x + 0.5)


def build_cpi_timeline(months: int, inflation_annual: float) -> list[float]:
    """Cumulative price index for months 0..months (index 0 = 1.0)."""
    inflation_monthly = monthly_rate(inflation_annual)
    cpi = [1.0]
    for t in range(1, months + 1):
        cpi.append(cpi[t - 1] * (1 + inflation_monthly))
    return cpi


@dataclass(frozen=True)
class MonteCarloConfig:
    """Configuration for Monte Carlo return uncertainty."""

    enabled: bool = False
    runs: int = 100
    sigma_annual: float = 0.15
    seed: int | None = 42


@dataclass(frozen=True)
class CrisisConfig:
    """One shaped market crisis and its recovery profile."""

    enabled: bool = False
    after_years: float = 20
    max_drawdown: float = 0.40
    recovery_profile: str = "typical"


@dataclass(frozen=True)
class Scenario:

    # Portfolio
    start_capital: float = 50000
    start_gain_fraction: float = 0.20  # unrealized gain share of start capital

    # Economic parameters
    annual_return_pre: float = 0.065
    annual_return_post: float | None = None  # None = same as pre-retirement
    inflation_annual: float = 0.02
    tax_rate: float = 0.26375  # flat capital gains tax incl. surcharge

    # Ages
    current_age: int = 30
    retirement_age: int = 67
    max_age: int = 95

    # Savings plan
    monthly_savings: float = 500
    savings_increase_annual: float = 0.0
    savings_cap: float | None = None
    stop_investing_after_years: float | None = None

    # Withdrawals
    withdrawal_mode: str = WITHDRAWAL_OFF
    target_net_withdrawal: float = 1500

    monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
    crisis: CrisisConfig = field(default_factory=CrisisConfig)

    @property
    def post_retirement_return(self) -> float:
        if self.annual_return_post is None:
            return self.annual_return_pre
        return self.annual_return_post

    @property
    def total_months(self) -> int:
        return (self.max_age - self.current_age) * 12

    @property
    def stop_month(self) -> int | None:
        """Last month with contributions, or None when investing never stops.

        A cutoff of zero years counts as unset.
        """
        if not self.stop_investing_after_years:
            return None
        return round_half_up(self.stop_investing_after_years * 12)

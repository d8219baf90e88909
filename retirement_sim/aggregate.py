"""Per-run summary metrics and yearly rollups."""

from dataclasses import dataclass

from retirement_sim.params import Scenario
from retirement_sim.simulation import TimelineRow
from retirement_sim.tax import gain_ratio


@dataclass(frozen=True)
class SummaryMetrics:
    retirement_age: float
    retirement_value_nominal: float
    retirement_value_real: float
    forever_gross_annual: float
    forever_net_annual: float
    forever_gross_annual_real: float
    forever_net_annual_real: float
    forever_gross_monthly: float
    forever_net_monthly: float
    forever_gross_monthly_real: float
    forever_net_monthly_real: float
    depletion_age: float | None
    ending_value_nominal: float
    ending_value_real: float


@dataclass(frozen=True)
class YearlyRow:
    age: float
    value_nominal: float
    value_real: float
    contribution: float
    withdraw_gross: float
    withdraw_net: float
    withdraw_gross_real: float
    withdraw_net_real: float
    tax_paid: float
    return_applied: float


def find_retirement_index(timeline: list[TimelineRow], retirement_age: float) -> int:
    """Index of the first row at or past retirement age, -1 if never reached."""
    for i, row in enumerate(timeline):
        if row.age >= retirement_age:
            return i
    return -1


def build_summary(timeline: list[TimelineRow], scenario: Scenario) -> SummaryMetrics:
    """Summarize one timeline at its retirement crossing point.

    The "forever" payout treats the retirement value as a perpetuity paying
    the post-retirement return, taxed at the gain ratio of that moment.
    Falls back to the last row if retirement age is never reached.
    """
    idx = find_retirement_index(timeline, scenario.retirement_age)
    point = timeline[idx]
    ratio = gain_ratio(point.value_nominal, point.basis_nominal)
    net_factor = 1 - scenario.tax_rate * ratio
    annual_return = scenario.post_retirement_return

    gross_annual = point.value_nominal * annual_return
    gross_annual_real = point.value_real * annual_return
    net_annual = gross_annual * net_factor
    net_annual_real = gross_annual_real * net_factor

    depletion_age = next((row.age for row in timeline if row.is_depleted), None)
    last = timeline[-1]

    return SummaryMetrics(
        retirement_age=point.age,
        retirement_value_nominal=point.value_nominal,
        retirement_value_real=point.value_real,
        forever_gross_annual=gross_annual,
        forever_net_annual=net_annual,
        forever_gross_annual_real=gross_annual_real,
        forever_net_annual_real=net_annual_real,
        forever_gross_monthly=gross_annual / 12,
        forever_net_monthly=net_annual / 12,
        forever_gross_monthly_real=gross_annual_real / 12,
        forever_net_monthly_real=net_annual_real / 12,
        depletion_age=depletion_age,
        ending_value_nominal=last.value_nominal,
        ending_value_real=last.value_real,
    )


def build_yearly_table(timeline: list[TimelineRow]) -> list[YearlyRow]:
    """Roll the monthly timeline up into 12-month blocks.

    Flows are summed over the block; values are the block's last row.
    Real withdrawals deflate each month by its own CPI.
    """
    yearly = []
    for i in range(12, len(timeline), 12):
        block = timeline[i - 11:i + 1]
        end = timeline[i]
        yearly.append(
            YearlyRow(
                age=round(end.age, 1),
                value_nominal=end.value_nominal,
                value_real=end.value_real,
                contribution=sum(row.contribution for row in block),
                withdraw_gross=sum(row.withdraw_gross for row in block),
                withdraw_net=sum(row.withdraw_net for row in block),
                withdraw_gross_real=sum(row.withdraw_gross / (row.cpi or 1) for row in block),
                withdraw_net_real=sum(row.withdraw_net / (row.cpi or 1) for row in block),
                tax_paid=sum(row.tax_paid for row in block),
                return_applied=end.return_applied,
            )
        )
    return yearly

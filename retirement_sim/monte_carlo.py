"""Monte Carlo simulation engine."""

import multiprocessing as mp
import sys
from dataclasses import dataclass, field
from random import Random

from retirement_sim.aggregate import YearlyRow, build_yearly_table
from retirement_sim.crisis import CrisisOverlay, RecoveryEntry
from retirement_sim.params import MAX_MC_RUNS, Scenario
from retirement_sim.simulation import simulate_path


MC_QUANTILES = (0.1, 0.5, 0.9)


@dataclass
class TimestepQuantiles:
    """Cross-run quantiles at one month index."""

    nominal: dict[float, float]
    real: dict[float, float]
    basis_nominal: dict[float, float]
    basis_real: dict[float, float]


@dataclass
class YearlyQuantiles:
    age: float
    end_value_nominal: dict[float, float]
    end_value_real: dict[float, float]
    withdrawals_net_nominal: dict[float, float]
    withdrawals_net_real: dict[float, float]
    tax_paid_nominal: dict[float, float]


@dataclass
class SummaryQuantiles:
    retirement_nominal: dict[float, float]
    retirement_real: dict[float, float]


@dataclass
class MonteCarloResult:
    """Results from Monte Carlo simulation for a single scenario."""

    n_simulations: int
    quantiles: tuple[float, ...] = MC_QUANTILES
    quantiles_timeline: list[TimestepQuantiles] = field(default_factory=list)
    summary_quantiles: SummaryQuantiles | None = None
    yearly_quantiles: list[YearlyQuantiles] = field(default_factory=list)
    depleted_count: int = 0
    depletion_probability: float = 0.0


@dataclass
class _RunOutcome:
    values: list[float]
    basis: list[float]
    yearly: list[YearlyRow]
    depleted: bool


def quantile(sorted_values: list[float], q: float) -> float:
    """Linearly interpolated quantile of a pre-sorted list (0 when empty)."""
    if not sorted_values:
        return 0.0
    pos = (len(sorted_values) - 1) * q
    base = int(pos)
    rest = pos - base
    if base + 1 < len(sorted_values):
        return sorted_values[base] + rest * (sorted_values[base + 1] - sorted_values[base])
    return sorted_values[base]


def compute_quantiles(
    matrix: list[list[float]],
    quantiles: tuple[float, ...] = MC_QUANTILES,
) -> list[dict[float, float]]:
    """Quantiles of each column of a runs × time matrix."""
    if not matrix:
        return []
    n_columns = len(matrix[0])
    results = []
    for t in range(n_columns):
        column = sorted(row[t] for row in matrix)
        results.append({q: quantile(column, q) for q in quantiles})
    return results


def _deflate(row: dict[float, float], cpi: float) -> dict[float, float]:
    return {q: v / cpi for q, v in row.items()}


def _simulate_run(
    task: tuple[Scenario, list[float], CrisisOverlay, dict[int, RecoveryEntry], int],
) -> _RunOutcome:
    scenario, cpi_timeline, crisis_overlay, recovery_schedule, run_seed = task
    timeline = simulate_path(
        scenario, cpi_timeline, crisis_overlay, recovery_schedule, rng=Random(run_seed),
    )
    return _RunOutcome(
        values=[row.value_nominal for row in timeline],
        basis=[row.basis_nominal for row in timeline],
        yearly=build_yearly_table(timeline),
        depleted=timeline[-1].is_depleted,
    )


def _iter_outcomes(tasks: list, workers: int):
    if workers <= 1:
        for task in tasks:
            yield _simulate_run(task)
        return
    chunksize = max(1, len(tasks) // (workers * 4))
    with mp.Pool(workers) as pool:
        # imap keeps run order, so results do not depend on the worker count
        yield from pool.imap(_simulate_run, tasks, chunksize=chunksize)


def run_monte_carlo(
    scenario: Scenario,
    cpi_timeline: list[float],
    crisis_overlay: CrisisOverlay,
    recovery_schedule: dict[int, RecoveryEntry],
    retirement_index: int,
    quantiles: tuple[float, ...] = MC_QUANTILES,
    workers: int = 1,
    quiet: bool = True,
) -> MonteCarloResult:
    """Run N stochastic paths of one scenario and reduce them to quantiles.

    Every run draws from its own Random, seeded from a master generator
    (scenario.monte_carlo.seed), so a fixed seed reproduces the same result
    for any worker count.

    retirement_index: month index of the deterministic retirement crossing;
    retirement quantiles are read at this index for every run.
    Real quantiles are the nominal quantiles deflated by the CPI timeline,
    not quantiles of the deflated distribution.
    """
    config = scenario.monte_carlo
    n = config.runs
    if not 1 <= n <= MAX_MC_RUNS:
        raise ValueError(f"Monte Carlo runs {n} out of range (1-{MAX_MC_RUNS})")

    master = Random(config.seed)
    tasks = [
        (scenario, cpi_timeline, crisis_overlay, recovery_schedule, master.getrandbits(64))
        for _ in range(n)
    ]

    values_matrix: list[list[float]] = []
    basis_matrix: list[list[float]] = []
    yearly_end_nominal: list[list[float]] = []
    yearly_end_real: list[list[float]] = []
    yearly_withdraw_net: list[list[float]] = []
    yearly_withdraw_net_real: list[list[float]] = []
    yearly_tax_paid: list[list[float]] = []
    yearly_ages: list[float] | None = None
    depleted_count = 0

    for i, outcome in enumerate(_iter_outcomes(tasks, workers)):
        values_matrix.append(outcome.values)
        basis_matrix.append(outcome.basis)
        if yearly_ages is None:
            yearly_ages = [row.age for row in outcome.yearly]
        yearly_end_nominal.append([row.value_nominal for row in outcome.yearly])
        yearly_end_real.append([row.value_real for row in outcome.yearly])
        yearly_withdraw_net.append([row.withdraw_net for row in outcome.yearly])
        yearly_withdraw_net_real.append([row.withdraw_net_real for row in outcome.yearly])
        yearly_tax_paid.append([row.tax_paid for row in outcome.yearly])
        if outcome.depleted:
            depleted_count += 1

        if not quiet and (i + 1) % 100 == 0:
            print(f"\r  Monte Carlo: {i + 1}/{n}", end="", file=sys.stderr)

    if not quiet and n >= 100:
        print(file=sys.stderr)

    value_q = compute_quantiles(values_matrix, quantiles)
    basis_q = compute_quantiles(basis_matrix, quantiles)
    quantiles_timeline = [
        TimestepQuantiles(
            nominal=value_q[t],
            real=_deflate(value_q[t], cpi_timeline[t]),
            basis_nominal=basis_q[t],
            basis_real=_deflate(basis_q[t], cpi_timeline[t]),
        )
        for t in range(len(value_q))
    ]

    at_retirement = quantiles_timeline[max(retirement_index, 0)]
    summary_quantiles = SummaryQuantiles(
        retirement_nominal=at_retirement.nominal,
        retirement_real=at_retirement.real,
    )

    end_nominal_q = compute_quantiles(yearly_end_nominal, quantiles)
    end_real_q = compute_quantiles(yearly_end_real, quantiles)
    withdraw_net_q = compute_quantiles(yearly_withdraw_net, quantiles)
    withdraw_net_real_q = compute_quantiles(yearly_withdraw_net_real, quantiles)
    tax_paid_q = compute_quantiles(yearly_tax_paid, quantiles)
    yearly_quantiles = [
        YearlyQuantiles(
            age=age,
            end_value_nominal=end_nominal_q[k],
            end_value_real=end_real_q[k],
            withdrawals_net_nominal=withdraw_net_q[k],
            withdrawals_net_real=withdraw_net_real_q[k],
            tax_paid_nominal=tax_paid_q[k],
        )
        for k, age in enumerate(yearly_ages or [])
    ]

    return MonteCarloResult(
        n_simulations=n,
        quantiles=tuple(quantiles),
        quantiles_timeline=quantiles_timeline,
        summary_quantiles=summary_quantiles,
        yearly_quantiles=yearly_quantiles,
        depleted_count=depleted_count,
        depletion_probability=depleted_count / n,
    )

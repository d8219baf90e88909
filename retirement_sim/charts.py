"""Chart generation for projection results."""

from pathlib import Path

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import matplotlib.ticker as ticker

from retirement_sim.monte_carlo import MonteCarloResult
from retirement_sim.simulation import TimelineRow

COLOR_NOMINAL = "#1f77b4"  # blue
COLOR_REAL = "#2ca02c"     # green
COLOR_CRISIS = "#d62728"   # red
COLOR_RETIRE = "#7f7f7f"


def _format_money_axis(ax: plt.Axes):
    """Thousands separators on the left axis, millions on the right."""
    ax.yaxis.set_major_formatter(
        ticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    )
    ax_right = ax.secondary_yaxis("right")
    ax_right.yaxis.set_major_formatter(
        ticker.FuncFormatter(lambda x, _: f"{x / 1e6:.1f}M" if x != 0 else "0")
    )


def _save(fig, output_path: Path, stem: str, name: str) -> Path:
    output_path.mkdir(parents=True, exist_ok=True)
    suffix = f"-{name}" if name else ""
    filepath = output_path / f"{stem}{suffix}.png"
    fig.tight_layout()
    fig.savefig(filepath, dpi=150)
    plt.close(fig)
    return filepath


def plot_trajectory(
    timeline: list[TimelineRow],
    output_path: Path,
    name: str = "",
    retirement_age: float | None = None,
) -> Path:
    """Line chart of the deterministic portfolio value, nominal and real.

    Crisis months are shaded; an optional vertical line marks retirement.

    Returns:
        Path to the generated PNG file.
    """
    fig, ax = plt.subplots(figsize=(14, 8))

    ages = [row.age for row in timeline]
    ax.plot(ages, [row.value_nominal for row in timeline], label="Nominal", color=COLOR_NOMINAL, linewidth=2)
    ax.plot(ages, [row.value_real for row in timeline], label="Real (today's money)", color=COLOR_REAL, linewidth=2)
    ax.plot(
        ages, [row.basis_nominal for row in timeline],
        label="Cost basis", color=COLOR_NOMINAL, linewidth=1, linestyle="--", alpha=0.6,
    )

    crisis_ages = [row.age for row in timeline if row.is_crisis_month]
    if crisis_ages:
        ax.axvspan(crisis_ages[0] - 1 / 12, crisis_ages[-1], color=COLOR_CRISIS, alpha=0.12, label="Crisis")

    if retirement_age is not None:
        ax.axvline(retirement_age, color=COLOR_RETIRE, linewidth=1, linestyle=":")

    depleted = next((row for row in timeline if row.is_depleted), None)
    if depleted is not None:
        ax.axvline(depleted.age, color=COLOR_CRISIS, linewidth=2, linestyle=":")
        ax.annotate(
            f"Depleted at {depleted.age:.1f}",
            xy=(depleted.age, ax.get_ylim()[1] * 0.85),
            fontsize=11, fontweight="bold", color=COLOR_CRISIS, ha="right",
            bbox=dict(boxstyle="round,pad=0.3", fc="white", ec=COLOR_CRISIS, alpha=0.9),
        )

    ax.set_xlabel("Age")
    ax.set_ylabel("Portfolio value")
    ax.set_title("Portfolio projection (deterministic)")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    _format_money_axis(ax)

    return _save(fig, output_path, "trajectory", name)


def plot_mc_fan(
    mc_result: MonteCarloResult,
    timeline: list[TimelineRow],
    output_path: Path,
    name: str = "",
) -> Path:
    """Fan chart (outer quantile band + median) for nominal and real values.

    Args:
        mc_result: MonteCarloResult with quantiles_timeline populated.
        timeline: deterministic timeline, drawn for reference and used for the age axis.

    Returns:
        Path to the generated PNG file.
    """
    if not mc_result.quantiles_timeline:
        raise ValueError("MonteCarloResult has no quantiles_timeline")

    qs = mc_result.quantiles
    lo, mid, hi = qs[0], qs[len(qs) // 2], qs[-1]
    ages = [row.age for row in timeline]

    fig, axes = plt.subplots(1, 2, figsize=(16, 7))
    panels = (
        ("Nominal", "nominal", [row.value_nominal for row in timeline], COLOR_NOMINAL),
        ("Real (today's money)", "real", [row.value_real for row in timeline], COLOR_REAL),
    )
    for ax, (title, attr, deterministic, color) in zip(axes, panels):
        rows = [getattr(q, attr) for q in mc_result.quantiles_timeline]
        ax.fill_between(
            ages, [r[lo] for r in rows], [r[hi] for r in rows],
            alpha=0.2, color=color, label=f"P{lo * 100:.0f}–P{hi * 100:.0f}",
        )
        ax.plot(ages, [r[mid] for r in rows], color=color, linewidth=2, label=f"P{mid * 100:.0f} (median)")
        ax.plot(ages, deterministic, color="black", linewidth=1, linestyle="--", label="Deterministic")
        ax.set_title(title)
        ax.set_xlabel("Age")
        ax.set_ylabel("Portfolio value")
        ax.legend(loc="upper left", fontsize=9)
        ax.grid(True, alpha=0.3)
        _format_money_axis(ax)

    fig.suptitle(f"Monte Carlo fan chart (N={mc_result.n_simulations:,})", fontsize=14)
    return _save(fig, output_path, "mc_fan", name)

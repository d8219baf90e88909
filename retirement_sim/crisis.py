"""Market crisis drawdown overlay and post-crisis recovery premium."""

import math
from dataclasses import dataclass

from retirement_sim.params import CrisisConfig, round_half_up

# Crisis shape (policy constants, not configurable)
CRISIS_MONTHS = 12          # one simulated year
TROUGH_MONTH = 8            # month of the lowest level within the crisis year
END_RECOVERY_FRACTION = 0.35  # share of the drawdown recovered by year end
MAX_DRAWDOWN = 0.95


@dataclass(frozen=True)
class RecoveryPreset:
    years: float
    label: str


# Full-recovery horizon by profile key
RECOVERY_PRESETS: dict[str, RecoveryPreset] = {
    "off": RecoveryPreset(0, "Off"),
    "fast": RecoveryPreset(2, "Fast (2 years)"),
    "typical": RecoveryPreset(3.5, "Typical (3.5 years)"),
    "gfc": RecoveryPreset(4, "GFC-like (4 years)"),
    "lostDecade": RecoveryPreset(10, "Dotcom / Lost-decade-like (10+ years)"),
}


@dataclass(frozen=True)
class CrisisOverlay:
    """Monthly multiplicative return perturbations for the crisis year.

    start_month is None when no crisis applies.
    """

    start_month: int | None = None
    crisis_returns: tuple[float, ...] = ()

    def return_at(self, month: int) -> float | None:
        """Crisis return for an absolute month index, or None outside the window."""
        if self.start_month is None:
            return None
        idx = month - self.start_month
        if 0 <= idx < len(self.crisis_returns):
            return self.crisis_returns[idx]
        return None


@dataclass(frozen=True)
class RecoveryEntry:
    month_index: int
    premium_annual: float
    decay: float  # 1 at the start of the window, ramps linearly toward 0


def get_recovery_preset(key: str) -> RecoveryPreset:
    """Look up a recovery preset; unknown keys fall back to "off"."""
    return RECOVERY_PRESETS.get(key, RECOVERY_PRESETS["off"])


def clamp_drawdown(max_drawdown: float) -> float:
    return min(max(max_drawdown, 0.0), MAX_DRAWDOWN)


def crisis_start_month(after_years: float) -> int:
    return max(0, round_half_up(after_years * 12))


def build_crisis_overlay(crisis: CrisisConfig, total_months: int) -> CrisisOverlay:
    """Build the 12-month drawdown-and-partial-recovery curve.

    The portfolio level falls log-linearly from 1.0 to 1 - drawdown by
    TROUGH_MONTH, then climbs log-linearly back by END_RECOVERY_FRACTION
    of the drawdown by the end of the year.
    """
    if not crisis.enabled:
        return CrisisOverlay()
    start_month = crisis_start_month(crisis.after_years)
    if start_month >= total_months:
        return CrisisOverlay()

    drawdown = clamp_drawdown(crisis.max_drawdown)
    v_trough = 1 - drawdown
    v_end = v_trough + END_RECOVERY_FRACTION * (1 - v_trough)
    log_trough = math.log(v_trough)
    log_end = math.log(v_end)

    levels = [m / TROUGH_MONTH * log_trough for m in range(TROUGH_MONTH + 1)]
    recovery_months = CRISIS_MONTHS - TROUGH_MONTH
    for m in range(TROUGH_MONTH + 1, CRISIS_MONTHS + 1):
        t = (m - TROUGH_MONTH) / recovery_months
        levels.append(log_trough + t * (log_end - log_trough))

    crisis_returns = tuple(
        math.exp(levels[m + 1] - levels[m]) - 1 for m in range(CRISIS_MONTHS)
    )
    return CrisisOverlay(start_month=start_month, crisis_returns=crisis_returns)


def required_recovery_premium(drawdown: float, years: float, base_annual_return: float) -> float:
    """Excess annual return over the base needed to erase `drawdown` in `years`."""
    required_cagr = (1 / (1 - drawdown)) ** (1 / years) - 1
    return max(required_cagr - base_annual_return, 0.0)


def build_recovery_schedule(
    crisis: CrisisConfig,
    base_annual_return: float,
    total_months: int,
) -> dict[int, RecoveryEntry]:
    """Recovery premium entries keyed by month index.

    The window starts right after the crisis year and lasts for the preset
    horizon (truncated at the end of the simulation).
    """
    if not crisis.enabled:
        return {}
    preset = get_recovery_preset(crisis.recovery_profile)
    if preset.years <= 0:
        return {}

    recovery_start = crisis_start_month(crisis.after_years) + CRISIS_MONTHS
    if recovery_start >= total_months:
        return {}

    premium_annual = required_recovery_premium(
        clamp_drawdown(crisis.max_drawdown), preset.years, base_annual_return,
    )
    months = min(round_half_up(preset.years * 12), total_months - recovery_start)
    schedule: dict[int, RecoveryEntry] = {}
    for j in range(months):
        month_index = recovery_start + j
        schedule[month_index] = RecoveryEntry(
            month_index=month_index,
            premium_annual=premium_annual,
            decay=1 - j / months,
        )
    return schedule

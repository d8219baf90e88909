"""TOML config loader with CLI > config > default resolution."""

import argparse
import sys
import tomllib
from pathlib import Path
from typing import Callable

from retirement_sim.crisis import RECOVERY_PRESETS
from retirement_sim.params import WITHDRAWAL_MODES, CrisisConfig, MonteCarloConfig, Scenario

DEFAULT_CONFIG_PATH = Path("retirement.toml")

# User units: rates and shares in percent, amounts in currency, ages in years.
# "" marks an optional value that is unset.
DEFAULTS = {
    "start_capital": 50000.0,
    "annual_return_pre": 6.5,
    "annual_return_post": "",
    "inflation": 2.0,
    "monthly_savings": 500.0,
    "current_age": 30,
    "retirement_age": 67,
    "max_age": 95,
    "start_gain": 20.0,
    "tax_rate": 26.375,
    "savings_increase": 0.0,
    "savings_cap": "",
    "stop_investing_after_years": "",
    "withdrawal_mode": "off",
    "target_net_withdrawal": 1500.0,
    "mc": False,
    "mc_runs": 100,
    "volatility": 15.0,
    "seed": 42,
    "crisis": False,
    "crisis_after_years": 20.0,
    "crisis_max_drawdown": 40.0,
    "recovery_profile": "typical",
}

# [monte_carlo] / [crisis] table keys → flat keys
_TABLE_KEYS = {
    "monte_carlo": {
        "enabled": "mc",
        "runs": "mc_runs",
        "volatility": "volatility",
        "seed": "seed",
    },
    "crisis": {
        "enabled": "crisis",
        "after_years": "crisis_after_years",
        "max_drawdown": "crisis_max_drawdown",
        "recovery_profile": "recovery_profile",
    },
}


def load_config(path: Path | None = None) -> dict:
    """Load TOML config file. Returns empty dict if file doesn't exist."""
    if path is None:
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        print(f"Failed to read config file: {path}: {e}", file=sys.stderr)
        raise SystemExit(1)
    # Flatten [monte_carlo] and [crisis] tables; flat keys win over table keys
    for table, mapping in _TABLE_KEYS.items():
        v = raw.get(table)
        if not isinstance(v, dict):
            continue
        raw.pop(table)
        for key, flat_key in mapping.items():
            if key in v:
                raw.setdefault(flat_key, v[key])
    return raw


def create_parser(description: str) -> argparse.ArgumentParser:
    """Create argparse parser with shared scenario flags."""
    d = DEFAULTS
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("--config", type=Path, default=None, help=f"config file path (default: {DEFAULT_CONFIG_PATH})")
    parser.add_argument("--start-capital", type=float, default=None, help=f"starting portfolio value (default: {d['start_capital']:.0f})")
    parser.add_argument("--annual-return-pre", type=float, default=None, help=f"annual return before retirement, %% (default: {d['annual_return_pre']})")
    parser.add_argument("--annual-return-post", type=float, default=None, help="annual return after retirement, %% (default: same as before)")
    parser.add_argument("--inflation", type=float, default=None, help=f"annual inflation, %% (default: {d['inflation']})")
    parser.add_argument("--monthly-savings", type=float, default=None, help=f"monthly contribution (default: {d['monthly_savings']:.0f})")
    parser.add_argument("--current-age", type=int, default=None, help=f"current age (default: {d['current_age']})")
    parser.add_argument("--retirement-age", type=int, default=None, help=f"retirement age (default: {d['retirement_age']})")
    parser.add_argument("--max-age", type=int, default=None, help=f"end of the projection (default: {d['max_age']})")
    parser.add_argument("--start-gain", type=float, default=None, help=f"unrealized gain share of start capital, %% (default: {d['start_gain']})")
    parser.add_argument("--tax-rate", type=float, default=None, help=f"capital gains tax rate, %% (default: {d['tax_rate']})")
    parser.add_argument("--savings-increase", type=float, default=None, help=f"annual savings increase, %% (default: {d['savings_increase']})")
    parser.add_argument("--savings-cap", type=float, default=None, help="maximum monthly contribution (default: no cap)")
    parser.add_argument("--stop-investing-after-years", type=float, default=None, help="stop contributing after N years (default: until retirement)")
    parser.add_argument("--withdrawal-mode", type=str, default=None, choices=WITHDRAWAL_MODES, help=f"withdrawals once retired (default: {d['withdrawal_mode']})")
    parser.add_argument("--target-net-withdrawal", type=float, default=None, help=f"monthly net withdrawal for targetNet (default: {d['target_net_withdrawal']:.0f})")
    parser.add_argument("--mc", action="store_true", default=None, help="enable Monte Carlo return uncertainty")
    parser.add_argument("--mc-runs", type=int, default=None, help=f"number of Monte Carlo runs (default: {d['mc_runs']})")
    parser.add_argument("--volatility", type=float, default=None, help=f"annual return volatility σ, %% (default: {d['volatility']})")
    parser.add_argument("--seed", type=int, default=None, help=f"random seed (default: {d['seed']})")
    parser.add_argument("--crisis", action="store_true", default=None, help="enable a market crisis")
    parser.add_argument("--crisis-after-years", type=float, default=None, help=f"years until the crisis starts (default: {d['crisis_after_years']:.0f})")
    parser.add_argument("--crisis-max-drawdown", type=float, default=None, help=f"peak-to-trough loss, %% (default: {d['crisis_max_drawdown']:.0f})")
    parser.add_argument("--recovery-profile", type=str, default=None, choices=tuple(RECOVERY_PRESETS), help=f"post-crisis recovery (default: {d['recovery_profile']})")
    return parser


def resolve(args: argparse.Namespace, config: dict) -> dict:
    """Resolve values with priority: CLI flag > config file > hardcoded default."""
    resolved = {}
    for key, default in DEFAULTS.items():
        cli_val = getattr(args, key, None)
        resolved[key] = cli_val if cli_val is not None else config.get(key, default)
    return resolved


def _optional_float(v) -> float | None:
    if v is None or v == "":
        return None
    return float(v)


def build_scenario(r: dict) -> Scenario:
    """Build a Scenario from a resolved config dict (percent → fraction)."""
    post = _optional_float(r["annual_return_post"])
    return Scenario(
        start_capital=float(r["start_capital"]),
        start_gain_fraction=float(r["start_gain"]) / 100,
        annual_return_pre=float(r["annual_return_pre"]) / 100,
        annual_return_post=None if post is None else post / 100,
        inflation_annual=float(r["inflation"]) / 100,
        tax_rate=float(r["tax_rate"]) / 100,
        current_age=int(r["current_age"]),
        retirement_age=int(r["retirement_age"]),
        max_age=int(r["max_age"]),
        monthly_savings=float(r["monthly_savings"]),
        savings_increase_annual=float(r["savings_increase"]) / 100,
        savings_cap=_optional_float(r["savings_cap"]),
        stop_investing_after_years=_optional_float(r["stop_investing_after_years"]),
        withdrawal_mode=r["withdrawal_mode"],
        target_net_withdrawal=float(r["target_net_withdrawal"]),
        monte_carlo=MonteCarloConfig(
            enabled=bool(r["mc"]),
            runs=int(r["mc_runs"]),
            sigma_annual=float(r["volatility"]) / 100,
            seed=None if r["seed"] == "" else r["seed"],
        ),
        crisis=CrisisConfig(
            enabled=bool(r["crisis"]),
            after_years=float(r["crisis_after_years"]),
            max_drawdown=float(r["crisis_max_drawdown"]) / 100,
            recovery_profile=r["recovery_profile"],
        ),
    )


def parse_args(
    description: str,
    add_args_fn: Callable[[argparse.ArgumentParser], None] | None = None,
) -> tuple[dict, argparse.Namespace]:
    """Parse CLI args, load config, resolve values.

    Returns (resolved_dict, namespace). The namespace carries any extra
    flags added via add_args_fn.
    """
    parser = create_parser(description)
    if add_args_fn:
        add_args_fn(parser)
    args = parser.parse_args()
    config = load_config(args.config)
    return resolve(args, config), args

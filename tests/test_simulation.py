"""Tests for the monthly path simulator."""

import math
from random import Random

import pytest

from retirement_sim.crisis import CrisisOverlay, RecoveryEntry, build_crisis_overlay
from retirement_sim.params import (
    MAX_MC_RUNS,
    WITHDRAWAL_INTEREST_ONLY,
    WITHDRAWAL_TARGET_NET,
    CrisisConfig,
    MonteCarloConfig,
    Scenario,
    build_cpi_timeline,
    monthly_rate,
)
from retirement_sim.projection import simulate_scenario
from retirement_sim.simulation import (
    draw_monthly_return,
    expected_monthly_return,
    simulate_path,
    validate_scenario,
)


def _simulate(scenario: Scenario):
    months = scenario.total_months
    cpi = build_cpi_timeline(months, scenario.inflation_annual)
    overlay = build_crisis_overlay(scenario.crisis, months)
    return simulate_path(scenario, cpi, overlay, {})


def _flat(**kwargs) -> Scenario:
    """Zero return, zero inflation, no savings unless overridden."""
    base = dict(
        start_capital=0,
        start_gain_fraction=0,
        annual_return_pre=0.0,
        inflation_annual=0.0,
        monthly_savings=0,
        current_age=30,
        retirement_age=31,
        max_age=32,
    )
    base.update(kwargs)
    return Scenario(**base)


class TestGrowth:
    def _scenario(self):
        return Scenario(
            start_capital=100000,
            annual_return_pre=0.06,
            current_age=35,
            retirement_age=36,
            max_age=40,
            monthly_savings=0,
        )

    def test_row_count_and_start(self):
        timeline = _simulate(self._scenario())
        assert len(timeline) == 61
        assert timeline[0].value_nominal == 100000
        assert timeline[0].month == 0
        assert timeline[0].age == 35

    def test_monotonic_without_withdrawals(self):
        timeline = _simulate(self._scenario())
        values = [row.value_nominal for row in timeline]
        assert all(b >= a for a, b in zip(values, values[1:]))

    def test_compounds_annual_return(self):
        timeline = _simulate(self._scenario())
        assert timeline[12].value_nominal == pytest.approx(106000)
        assert timeline[-1].value_nominal == pytest.approx(100000 * 1.06 ** 5)

    def test_real_value_deflated(self):
        timeline = _simulate(self._scenario())
        row = timeline[24]
        assert row.cpi == pytest.approx(1.02 ** 2)
        assert row.value_real == pytest.approx(row.value_nominal / row.cpi)

    def test_start_basis_from_gain_share(self):
        timeline = _simulate(self._scenario())
        assert timeline[0].basis_nominal == pytest.approx(80000)

    def test_post_retirement_return(self):
        s = _flat(start_capital=1000, annual_return_pre=0.10, annual_return_post=0.0)
        timeline = _simulate(s)
        # Month 12 is the first retired month
        assert timeline[11].return_applied == pytest.approx(monthly_rate(0.10))
        assert timeline[12].return_applied == 0


class TestContributions:
    def test_stop_at_retirement(self):
        timeline = _simulate(_flat(monthly_savings=100))
        assert [row.contribution for row in timeline[1:12]] == [100] * 11
        assert timeline[12].is_retired
        assert timeline[12].contribution == 0
        assert timeline[-1].value_nominal == pytest.approx(1100)
        assert timeline[-1].basis_nominal == pytest.approx(1100)

    def test_annual_escalation(self):
        s = _flat(monthly_savings=100, savings_increase_annual=0.10, retirement_age=33, max_age=34)
        timeline = _simulate(s)
        assert timeline[12].contribution == pytest.approx(100)
        assert timeline[13].contribution == pytest.approx(110)
        assert timeline[25].contribution == pytest.approx(121)

    def test_escalation_cap(self):
        s = _flat(
            monthly_savings=100, savings_increase_annual=0.10, savings_cap=115,
            retirement_age=33, max_age=34,
        )
        timeline = _simulate(s)
        assert timeline[13].contribution == pytest.approx(110)
        assert timeline[25].contribution == pytest.approx(115)

    def test_stop_investing_after_years(self):
        s = _flat(monthly_savings=100, stop_investing_after_years=1, retirement_age=35, max_age=36)
        timeline = _simulate(s)
        assert timeline[12].contribution == 100
        assert timeline[13].contribution == 0
        assert timeline[-1].value_nominal == pytest.approx(1200)

    def test_stop_after_zero_years_is_unset(self):
        s = _flat(monthly_savings=100, stop_investing_after_years=0, retirement_age=35, max_age=36)
        timeline = _simulate(s)
        assert timeline[13].contribution == 100


class TestWithdrawals:
    def test_target_net_grossed_up_for_tax(self):
        """Gain ratio 0.5 at 25% tax → gross = 1000 / 0.875."""
        s = _flat(
            start_capital=100000, start_gain_fraction=0.5, tax_rate=0.25,
            current_age=65, retirement_age=65, max_age=66,
            withdrawal_mode=WITHDRAWAL_TARGET_NET, target_net_withdrawal=1000,
        )
        row = _simulate(s)[1]
        assert row.withdraw_gross == pytest.approx(1000 / 0.875)
        assert row.withdraw_net == pytest.approx(1000)
        assert row.tax_paid == pytest.approx(1000 / 0.875 - 1000)

    def test_depletion_is_sticky(self):
        s = _flat(
            start_capital=1000, current_age=65, retirement_age=65, max_age=67,
            withdrawal_mode=WITHDRAWAL_TARGET_NET, target_net_withdrawal=300,
        )
        timeline = _simulate(s)
        assert [row.value_nominal for row in timeline[1:4]] == pytest.approx([700, 400, 100])
        assert not timeline[3].is_depleted
        assert timeline[4].withdraw_gross == pytest.approx(100)
        assert timeline[4].value_nominal == 0
        assert all(row.is_depleted for row in timeline[4:])
        assert all(row.withdraw_gross == 0 for row in timeline[5:])

    def test_depleted_portfolio_takes_no_contributions(self):
        s = _flat(
            start_capital=100, current_age=65, retirement_age=65, max_age=66,
            withdrawal_mode=WITHDRAWAL_TARGET_NET, target_net_withdrawal=500,
        )
        timeline = _simulate(s)
        assert timeline[1].is_depleted
        assert all(row.contribution == 0 and row.value_nominal == 0 for row in timeline[1:])

    def test_interest_only_preserves_value(self):
        s = _flat(
            start_capital=120000, annual_return_pre=0.12, tax_rate=0,
            current_age=65, retirement_age=65, max_age=66,
            withdrawal_mode=WITHDRAWAL_INTEREST_ONLY,
        )
        timeline = _simulate(s)
        assert timeline[1].withdraw_gross == pytest.approx(120000 * monthly_rate(0.12))
        assert timeline[-1].value_nominal == pytest.approx(120000)
        assert not any(row.is_depleted for row in timeline)

    def test_interest_only_uses_expected_return_when_stochastic(self):
        """Realized returns swing; the withdrawal follows the expected rate."""
        s = _flat(
            start_capital=120000, annual_return_pre=0.12, tax_rate=0,
            current_age=65, retirement_age=65, max_age=66,
            withdrawal_mode=WITHDRAWAL_INTEREST_ONLY,
            monte_carlo=MonteCarloConfig(enabled=True, sigma_annual=0.30),
        )
        timeline = simulate_path(
            s, build_cpi_timeline(s.total_months, 0.0), CrisisOverlay(), {}, rng=Random(3),
        )
        row = timeline[1]
        assert row.return_applied != pytest.approx(monthly_rate(0.12))
        assert row.withdraw_gross == pytest.approx(120000 * monthly_rate(0.12))
        second = timeline[2]
        assert second.withdraw_gross == pytest.approx(
            min(timeline[1].value_nominal * monthly_rate(0.12), second.value_nominal + second.withdraw_gross)
        )

    def test_no_withdrawals_before_retirement(self):
        s = _flat(
            start_capital=10000, withdrawal_mode=WITHDRAWAL_TARGET_NET,
            target_net_withdrawal=100,
        )
        timeline = _simulate(s)
        assert all(row.withdraw_gross == 0 for row in timeline[:12])
        assert timeline[12].withdraw_gross == pytest.approx(100)


class TestCrisisPath:
    def test_crisis_months_applied(self):
        s = _flat(
            start_capital=100000, retirement_age=40, max_age=45,
            crisis=CrisisConfig(enabled=True, after_years=1, max_drawdown=0.40, recovery_profile="off"),
        )
        timeline = _simulate(s)
        assert timeline[11].value_nominal == pytest.approx(100000)
        assert timeline[19].value_nominal == pytest.approx(60000)
        assert timeline[23].value_nominal == pytest.approx(74000)
        assert [row.month for row in timeline if row.is_crisis_month] == list(range(12, 24))

    def test_recovery_months_flagged(self):
        s = _flat(
            start_capital=100000, annual_return_pre=0.05, retirement_age=60, max_age=70,
            crisis=CrisisConfig(enabled=True, after_years=1, max_drawdown=0.40, recovery_profile="typical"),
        )
        timeline = simulate_scenario(s).deterministic.timeline
        recovery = [row.month for row in timeline if row.is_recovery_month]
        assert recovery == list(range(24, 24 + 42))

    def test_recovery_premium_lifts_return(self):
        s = _flat(
            start_capital=100000, annual_return_pre=0.05, retirement_age=60, max_age=70,
            crisis=CrisisConfig(enabled=True, after_years=1, max_drawdown=0.40, recovery_profile="typical"),
        )
        timeline = simulate_scenario(s).deterministic.timeline
        assert timeline[24].return_applied > monthly_rate(0.05)
        assert timeline[70].return_applied == pytest.approx(monthly_rate(0.05))


class TestMonthlyReturn:
    def test_expected_without_recovery(self):
        assert expected_monthly_return(0.06, None) == pytest.approx(monthly_rate(0.06))

    def test_expected_with_decayed_premium(self):
        entry = RecoveryEntry(month_index=24, premium_annual=0.12, decay=0.5)
        expected = monthly_rate(0.06) + monthly_rate(0.12) * 0.5
        assert expected_monthly_return(0.06, entry) == pytest.approx(expected)

    def test_deterministic_draw(self):
        assert draw_monthly_return(0.005, 0.15, None) == 0.005

    def test_zero_sigma_draw(self):
        assert draw_monthly_return(0.005, 0.0, Random(1)) == pytest.approx(0.005)

    def test_log_mean_of_draws(self):
        rng = Random(42)
        logs = [math.log(1 + draw_monthly_return(0.005, 0.15, rng)) for _ in range(20000)]
        assert sum(logs) / len(logs) == pytest.approx(math.log(1.005), abs=0.002)

    def test_stochastic_path_reproducible(self):
        s = Scenario(current_age=30, retirement_age=40, max_age=45)
        cpi = build_cpi_timeline(s.total_months, s.inflation_annual)
        a = simulate_path(s, cpi, CrisisOverlay(), {}, rng=Random(7))
        b = simulate_path(s, cpi, CrisisOverlay(), {}, rng=Random(7))
        assert [r.value_nominal for r in a] == [r.value_nominal for r in b]


class TestValidateScenario:
    def test_defaults_valid(self):
        errors, warnings = validate_scenario(Scenario())
        assert errors == []
        assert warnings == []

    def test_retirement_before_current_age(self):
        errors, _ = validate_scenario(Scenario(current_age=70, retirement_age=67))
        assert len(errors) == 1

    def test_retirement_after_max_age(self):
        errors, _ = validate_scenario(Scenario(retirement_age=100, max_age=95))
        assert len(errors) == 1

    def test_unknown_withdrawal_mode(self):
        errors, _ = validate_scenario(Scenario(withdrawal_mode="annuity"))
        assert any("annuity" in e for e in errors)

    def test_cap_below_savings(self):
        errors, _ = validate_scenario(Scenario(monthly_savings=500, savings_cap=400))
        assert len(errors) == 1

    def test_negative_stop_after(self):
        errors, _ = validate_scenario(Scenario(stop_investing_after_years=-1))
        assert len(errors) == 1

    def test_monte_carlo_runs_range(self):
        errors, _ = validate_scenario(Scenario(monte_carlo=MonteCarloConfig(enabled=True, runs=0)))
        assert len(errors) == 1
        errors, _ = validate_scenario(Scenario(monte_carlo=MonteCarloConfig(enabled=False, runs=0)))
        assert errors == []

    def test_monte_carlo_runs_bounds(self):
        for runs in (1, 20, 5000, MAX_MC_RUNS):
            errors, _ = validate_scenario(Scenario(monte_carlo=MonteCarloConfig(enabled=True, runs=runs)))
            assert errors == [], runs
        errors, _ = validate_scenario(Scenario(monte_carlo=MonteCarloConfig(enabled=True, runs=MAX_MC_RUNS + 1)))
        assert len(errors) == 1

    def test_tax_rate_range(self):
        errors, _ = validate_scenario(Scenario(tax_rate=1.5))
        assert len(errors) == 1

    def test_negative_return_warns(self):
        errors, warnings = validate_scenario(Scenario(annual_return_pre=-0.01))
        assert errors == []
        assert len(warnings) == 1

    def test_crisis_beyond_horizon_warns(self):
        s = Scenario(crisis=CrisisConfig(enabled=True, after_years=80))
        _, warnings = validate_scenario(s)
        assert len(warnings) == 1

"""Tests for Scenario parameters and rate helpers."""

import pytest

from retirement_sim.params import (
    Scenario,
    build_cpi_timeline,
    monthly_rate,
    round_half_up,
)


class TestMonthlyRate:
    def test_compounds_back_to_annual(self):
        assert (1 + monthly_rate(0.12)) ** 12 - 1 == pytest.approx(0.12, abs=1e-4)

    def test_zero(self):
        assert monthly_rate(0) == 0

    def test_negative_rate(self):
        assert (1 + monthly_rate(-0.05)) ** 12 == pytest.approx(0.95)


class TestRoundHalfUp:
    def test_half_rounds_up(self):
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3

    def test_below_half(self):
        assert round_half_up(1.49) == 1

    def test_integer(self):
        assert round_half_up(12.0) == 12


class TestCpiTimeline:
    def test_length_and_start(self):
        cpi = build_cpi_timeline(24, 0.02)
        assert len(cpi) == 25
        assert cpi[0] == 1.0

    def test_yearly_compounding(self):
        cpi = build_cpi_timeline(24, 0.02)
        assert cpi[12] == pytest.approx(1.02)
        assert cpi[24] == pytest.approx(1.02 ** 2)

    def test_zero_inflation_is_flat(self):
        assert build_cpi_timeline(36, 0.0) == [1.0] * 37


class TestScenario:
    def test_defaults(self):
        s = Scenario()
        assert s.annual_return_pre == pytest.approx(0.065)
        assert s.tax_rate == pytest.approx(0.26375)
        assert s.monte_carlo.enabled is False
        assert s.crisis.enabled is False

    def test_post_return_falls_back_to_pre(self):
        assert Scenario(annual_return_pre=0.07).post_retirement_return == pytest.approx(0.07)

    def test_post_return_override(self):
        s = Scenario(annual_return_pre=0.07, annual_return_post=0.03)
        assert s.post_retirement_return == pytest.approx(0.03)

    def test_post_return_zero_is_not_unset(self):
        s = Scenario(annual_return_pre=0.07, annual_return_post=0.0)
        assert s.post_retirement_return == 0.0

    def test_total_months(self):
        assert Scenario(current_age=30, max_age=95).total_months == 780

    def test_stop_month_unset(self):
        assert Scenario().stop_month is None

    def test_stop_month_zero_counts_as_unset(self):
        assert Scenario(stop_investing_after_years=0).stop_month is None

    def test_stop_month_in_months(self):
        assert Scenario(stop_investing_after_years=2.5).stop_month == 30

    def test_frozen(self):
        s = Scenario()
        with pytest.raises(AttributeError):
            s.monthly_savings = 1000

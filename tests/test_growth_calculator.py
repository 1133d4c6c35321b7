"""Tests for yearly accruals and account growth."""

import os
import sys
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from model.PlanInputs import PlanInputs
from model.SimulationState import SimulationState
from calc.growth_calculator import GrowthCalculator, annuity_payment


@pytest.fixture
def inputs():
    return PlanInputs(
        first_year=2026, last_year=2035, birth_year=1956,
        note_balance=1000000, equity_balance=2000000, margin_balance=500000,
        secondary_balance=300000, retirement_primary_balance=100000,
        note_rate=0.04, dividend_yield=0.02, equity_growth_rate=0.05, margin_rate=0.05,
        retirement_growth_rate=0.04,
        benefit_primary_monthly=2000, benefit_spouse_monthly=1000, benefit_haircut=0.8,
    )


class TestAnnuityPayment:

    def test_zero_rate_is_straight_line(self):
        assert annuity_payment(100000, 0.0, 4) == pytest.approx(25000)

    def test_level_payment_empties_balance(self):
        balance = 100000
        rate = 0.05
        payment = annuity_payment(balance, rate, 10)
        for _ in range(10):
            balance = balance * (1 + rate) - payment
        assert balance == pytest.approx(0, abs=1e-6)

    def test_no_payment_without_balance_or_years(self):
        assert annuity_payment(0, 0.05, 10) == 0.0
        assert annuity_payment(100000, 0.05, 0) == 0.0


class TestAccrue:

    def test_accruals_on_opening_balances(self, inputs):
        state = SimulationState.opening(inputs)
        acc = GrowthCalculator(inputs).accrue(state, 2026)

        assert acc.note_interest == pytest.approx(40000)
        assert acc.dividends == pytest.approx(40000)
        assert acc.equity_growth == pytest.approx(100000)
        assert acc.margin_interest == pytest.approx(25000)
        assert acc.secondary_earnings == pytest.approx(300000 * 0.07)
        assert acc.retirement_primary_growth == pytest.approx(4000)

    def test_accrue_leaves_state_untouched(self, inputs):
        state = SimulationState.opening(inputs)
        before = SimulationState.opening(inputs)
        GrowthCalculator(inputs).accrue(state, 2026)
        assert state == before

    def test_benefits_start_at_start_age(self, inputs):
        state = SimulationState.opening(inputs)
        calc = GrowthCalculator(inputs)

        # Age 69 in 2025, 70 in 2026
        assert calc.accrue(state, 2025).benefits == 0.0
        acc = calc.accrue(state, 2026)
        assert acc.benefit_primary == pytest.approx(2000 * 12 * 0.8)
        assert acc.benefit_spouse == pytest.approx(1000 * 12 * 0.8)
        assert acc.cash_income == pytest.approx(40000 + 40000 + acc.benefits)

    def test_retirement_decumulation_window(self, inputs):
        inputs.retirement_growth_rate = 0.0
        inputs.retirement_withdrawal_start_age = 70
        inputs.retirement_withdrawal_years = 2
        state = SimulationState.opening(inputs)
        calc = GrowthCalculator(inputs)

        first = calc.accrue(state, 2026)
        assert first.retirement_primary_withdrawal == pytest.approx(50000)
        calc.apply(state, first)
        assert state.retirement_primary == pytest.approx(50000)

        second = calc.accrue(state, 2027)
        assert second.retirement_primary_withdrawal == pytest.approx(50000)
        calc.apply(state, second)
        assert state.retirement_primary == pytest.approx(0)

        # Window closed
        assert calc.accrue(state, 2028).retirement_withdrawal == 0.0

    def test_no_decumulation_before_start_age(self, inputs):
        inputs.retirement_withdrawal_start_age = 73
        inputs.retirement_withdrawal_years = 10
        state = SimulationState.opening(inputs)
        acc = GrowthCalculator(inputs).accrue(state, 2026)
        assert acc.retirement_withdrawal == 0.0


def test_apply_growth(inputs):
    state = SimulationState.opening(inputs)
    calc = GrowthCalculator(inputs)
    acc = calc.accrue(state, 2026)
    calc.apply(state, acc)

    # Note interest and dividends are cash; balances only take growth
    assert state.notes == pytest.approx(1000000)
    assert state.equities == pytest.approx(2100000)
    assert state.secondary == pytest.approx(321000)
    assert state.margin == pytest.approx(525000)
    assert state.retirement_primary == pytest.approx(104000)

"""Tests for the cash-flow waterfall and financing cap enforcement."""

import os
import sys
import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from model.SimulationState import SimulationState, financing_cap
from calc.waterfall_calculator import WaterfallCalculator, WaterfallResult


def make_state(notes=0.0, equities=0.0, margin=0.0, secondary=0.0):
    return SimulationState(notes=notes, equities=equities, margin=margin, secondary=secondary,
                           retirement_primary=0.0, retirement_spouse=0.0)


def test_financing_cap():
    assert financing_cap(1000000, 2000000) == pytest.approx(1900000)
    assert financing_cap(-5, 100) == pytest.approx(50)


def test_margin_share_is_clamped():
    assert WaterfallCalculator(1.5).margin_share == 1.0
    assert WaterfallCalculator(-0.2).margin_share == 0.0


class TestAllocate:

    def test_surplus_pays_margin_first(self):
        state = make_state(notes=1000000, margin=100000, secondary=5000)
        result = WaterfallCalculator(0.7).allocate(state, 150000)

        assert result.margin_paydown == pytest.approx(100000)
        assert result.surplus_to_secondary == pytest.approx(50000)
        assert state.margin == 0.0
        assert state.secondary == pytest.approx(55000)

    def test_shortfall_split_by_share(self):
        state = make_state(notes=1000000, secondary=1000000)
        result = WaterfallCalculator(0.7).allocate(state, -100000)

        assert result.margin_draw == pytest.approx(70000)
        assert result.secondary_draw == pytest.approx(30000)
        assert result.uncovered == 0.0
        assert state.margin == pytest.approx(70000)
        assert state.secondary == pytest.approx(970000)

    def test_margin_overflow_to_secondary(self):
        # Cap 900,000 leaves 20,000 of headroom
        state = make_state(notes=1000000, margin=880000, secondary=1000000)
        result = WaterfallCalculator(0.7).allocate(state, -100000)

        assert result.margin_draw == pytest.approx(20000)
        assert result.secondary_draw == pytest.approx(80000)

    def test_secondary_overflow_to_margin(self):
        state = make_state(notes=1000000, secondary=10000)
        result = WaterfallCalculator(0.3).allocate(state, -100000)

        assert result.secondary_draw == pytest.approx(10000)
        assert result.margin_draw == pytest.approx(90000)
        assert result.uncovered == 0.0

    def test_uncovered_shortfall(self):
        state = make_state(notes=1000000, margin=880000, secondary=10000)
        result = WaterfallCalculator(0.7).allocate(state, -100000)

        assert result.margin_draw == pytest.approx(20000)
        assert result.secondary_draw == pytest.approx(10000)
        assert result.uncovered == pytest.approx(70000)
        assert state.uncovered == pytest.approx(70000)
        assert state.secondary == 0.0


class TestEnforceCap:

    def test_within_cap_is_untouched(self):
        state = make_state(equities=1000000, margin=400000, secondary=50000)
        result = WaterfallCalculator(0.7).enforce_cap(state, WaterfallResult())

        assert result.cap_secondary_draw == 0.0
        assert state.margin == pytest.approx(400000)

    def test_secondary_then_equity_sale(self):
        state = make_state(equities=1000000, margin=600000, secondary=40000)
        result = WaterfallCalculator(0.7).enforce_cap(state, WaterfallResult())

        assert result.cap_secondary_draw == pytest.approx(40000)
        # Remaining excess of 60,000 needs 120,000 of equity sold
        assert result.forced_equity_sale == pytest.approx(120000)
        assert state.equities == pytest.approx(880000)
        assert state.margin == pytest.approx(state.cap)

    def test_notes_sold_when_equities_are_gone(self):
        state = make_state(notes=100000, margin=95000)
        result = WaterfallCalculator(0.7).enforce_cap(state, WaterfallResult())

        assert result.forced_equity_sale == 0.0
        assert result.forced_note_sale == pytest.approx(50000)
        assert state.notes == pytest.approx(50000)
        assert state.margin == pytest.approx(45000)
        assert state.margin == pytest.approx(state.cap)

    def test_no_collateral_left(self):
        state = make_state(margin=1000)
        WaterfallCalculator(0.7).enforce_cap(state, WaterfallResult())
        assert state.margin == pytest.approx(1000)

    @pytest.mark.parametrize("net_cash_flow", [-50000, -500000, -2000000, 10000])
    def test_cap_holds_after_allocation(self, net_cash_flow):
        state = make_state(notes=800000, equities=1200000, margin=1250000, secondary=100000)
        calc = WaterfallCalculator(0.7)
        result = calc.allocate(state, net_cash_flow)
        calc.enforce_cap(state, result)
        state.apply_floors()
        assert state.margin <= state.cap + 1e-6

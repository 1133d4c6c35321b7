"""Tests for the greedy liquidation schedule search."""

import os
import sys
import pytest
from unittest.mock import MagicMock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from model.TaxLot import TaxLot, LiquidationSchedule
from model.ProjectionData import NL
from calc.liquidation_optimizer import LiquidationOptimizer, Move, withdrawal_objective


def make_lot(lot_id):
    return TaxLot(lot_id, lot_id, '', 100000, 50000, 50000, None)


LOTS = [make_lot('A'), make_lot('B')]
YEARS = [2026, 2027, 2028]


def additive_evaluate(gains, base=1000.0, default=-100.0):
    """Withdrawal = base + the gain of each scheduled (lot, year)."""
    def evaluate(schedule):
        return base + sum(gains.get((lot_id, year), default)
                          for lot_id, year in schedule.assignments.items())
    return evaluate


def test_candidate_moves_skip_scheduled_lots():
    optimizer = LiquidationOptimizer(additive_evaluate({}), LOTS, YEARS)
    moves = optimizer.candidate_moves(LiquidationSchedule({'A': 2027}))
    assert moves == [Move('B', 2026), Move('B', 2027), Move('B', 2028)]


def test_greedy_accepts_best_move_each_round():
    gains = {('A', 2027): 500.0, ('A', 2028): 200.0, ('B', 2026): 300.0}
    result = LiquidationOptimizer(additive_evaluate(gains), LOTS, YEARS).optimize()

    assert result.schedule.assignments == {'A': 2027, 'B': 2026}
    assert result.baseline_withdrawal == pytest.approx(1000.0)
    assert result.withdrawal == pytest.approx(1800.0)
    assert result.improvement == pytest.approx(800.0)
    assert [m.move for m in result.moves] == [Move('A', 2027), Move('B', 2026)]
    assert result.rounds == 2


def test_stops_when_nothing_improves():
    result = LiquidationOptimizer(additive_evaluate({}), LOTS, YEARS).optimize()

    assert result.schedule.is_all_hold()
    assert result.moves == []
    assert result.rounds == 1
    assert result.improvement == 0.0


def test_partial_schedule_when_second_lot_hurts():
    gains = {('A', 2028): 250.0}
    result = LiquidationOptimizer(additive_evaluate(gains), LOTS, YEARS).optimize()

    assert result.schedule.assignments == {'A': 2028}
    assert result.rounds == 2


def test_ties_go_to_the_earliest_candidate():
    gains = {('A', 2028): 200.0, ('B', 2026): 200.0}
    optimizer = LiquidationOptimizer(additive_evaluate(gains, default=0.0), LOTS, YEARS)
    first = optimizer.best_move(optimizer.score(LiquidationSchedule(), optimizer.candidate_moves(
        LiquidationSchedule())), 1000.0)
    assert first.move == Move('A', 2028)


def test_min_improvement_threshold():
    gains = {('A', 2026): 0.5}
    result = LiquidationOptimizer(additive_evaluate(gains, default=0.0), LOTS, YEARS,
                                  min_improvement=1.0).optimize()
    assert result.schedule.is_all_hold()


def test_starts_from_given_schedule():
    gains = {('A', 2026): 100.0, ('B', 2027): 50.0}
    start = LiquidationSchedule({'A': 2026})
    result = LiquidationOptimizer(additive_evaluate(gains), LOTS, YEARS).optimize(start)

    assert result.baseline_withdrawal == pytest.approx(1100.0)
    assert result.schedule.assignments == {'A': 2026, 'B': 2027}


def test_withdrawal_objective_resolves_per_schedule():
    solver = MagicMock()
    solver.solve.return_value.withdrawal = 4321.0
    inputs = MagicMock()
    schedule = LiquidationSchedule({'A': 2026})

    evaluate = withdrawal_objective(solver, inputs, NL)

    assert evaluate(schedule) == 4321.0
    solver.solve.assert_called_once_with(inputs, NL, schedule)

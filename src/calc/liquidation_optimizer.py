"""Greedy search for a tax-lot liquidation schedule.

Starting from all lots held, every round scores each (held lot, year)
move by the sustainable withdrawal it produces and accepts the single
best move. The search stops when no move improves on the current best by
at least `min_improvement`. It is a hill climb: each accepted move is an
improvement, but the final schedule is not guaranteed globally optimal.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from model.TaxLot import TaxLot, LiquidationSchedule


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Move:
    lot_id: str
    year: int


@dataclass
class ScoredMove:
    move: Move
    withdrawal: float


@dataclass
class OptimizationResult:
    schedule: LiquidationSchedule
    withdrawal: float
    baseline_withdrawal: float
    moves: List[ScoredMove] = field(default_factory=list)
    rounds: int = 0

    @property
    def improvement(self) -> float:
        return self.withdrawal - self.baseline_withdrawal


class LiquidationOptimizer:
    """Hill-climbs the liquidation schedule against an `evaluate` function.

    Args:
        evaluate: Maps a schedule to the sustainable base withdrawal it allows
        lots: The lots that may be scheduled, in tie-break order
        candidate_years: Years a lot may be sold in, in tie-break order
        min_improvement: Smallest withdrawal gain that counts as an improvement
    """

    def __init__(self, evaluate: Callable[[LiquidationSchedule], float],
                 lots: Iterable[TaxLot], candidate_years: Iterable[int],
                 min_improvement: float = 1.0):
        self.evaluate = evaluate
        self.lots = list(lots)
        self.candidate_years = list(candidate_years)
        self.min_improvement = min_improvement

    def candidate_moves(self, schedule: LiquidationSchedule) -> List[Move]:
        """Every (held lot, year) pair, lot order first."""
        return [
            Move(lot.lot_id, year)
            for lot in self.lots if schedule.is_held(lot.lot_id)
            for year in self.candidate_years
        ]

    def score(self, schedule: LiquidationSchedule, moves: List[Move]) -> List[ScoredMove]:
        return [ScoredMove(m, self.evaluate(schedule.assign(m.lot_id, m.year))) for m in moves]

    def best_move(self, scored: List[ScoredMove], current: float) -> Optional[ScoredMove]:
        """Highest-scoring move that beats `current`; earliest wins ties."""
        best = None
        for candidate in scored:
            if candidate.withdrawal < current + self.min_improvement:
                continue
            if best is None or candidate.withdrawal > best.withdrawal:
                best = candidate
        return best

    def optimize(self, start: Optional[LiquidationSchedule] = None) -> OptimizationResult:
        schedule = start or LiquidationSchedule()
        baseline = self.evaluate(schedule)
        result = OptimizationResult(schedule=schedule, withdrawal=baseline, baseline_withdrawal=baseline)

        while True:
            moves = self.candidate_moves(result.schedule)
            if not moves:
                logger.debug("Optimizer stopped: every lot is scheduled")
                break
            result.rounds += 1
            chosen = self.best_move(self.score(result.schedule, moves), result.withdrawal)
            if chosen is None:
                logger.debug("Optimizer stopped after %d rounds: no improving move among %d candidates",
                             result.rounds, len(moves))
                break
            logger.debug("Selling %s in %d raises withdrawal %.2f -> %.2f",
                         chosen.move.lot_id, chosen.move.year, result.withdrawal, chosen.withdrawal)
            result.schedule = result.schedule.assign(chosen.move.lot_id, chosen.move.year)
            result.withdrawal = chosen.withdrawal
            result.moves.append(chosen)

        return result


def withdrawal_objective(solver, inputs, scenario: str) -> Callable[[LiquidationSchedule], float]:
    """Objective that re-solves the sustainable withdrawal for each schedule."""
    def evaluate(schedule: LiquidationSchedule) -> float:
        return solver.solve(inputs, scenario, schedule).withdrawal
    return evaluate

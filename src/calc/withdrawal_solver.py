"""Bisection search for the sustainable base withdrawal."""

import logging
from dataclasses import dataclass
from typing import Optional

from model.PlanInputs import PlanInputs
from model.ProjectionData import NL, check_scenario
from model.TaxLot import LiquidationSchedule
from calc.projection_calculator import ProjectionCalculator


logger = logging.getLogger(__name__)

DEFAULT_HIGH_BOUND = 2_000_000
DEFAULT_ITERATIONS = 80
DEFAULT_TOLERANCE = 10.0


@dataclass
class SolveResult:
    """Outcome of a withdrawal solve.

    When `converged` is False the iterations ran out and
    `withdrawal` is the last midpoint tested, a best-effort estimate.
    """
    withdrawal: float
    terminal_balance: float
    iterations: int
    converged: bool
    scenario: str = NL


class WithdrawalSolver:
    """Finds the base withdrawal that leaves a scenario's terminal balance near zero.

    Higher constant withdrawals never raise the terminal balance, so the
    search halves the bracket [0, high_bound] on the sign of the terminal
    balance at the midpoint.
    """

    def __init__(self, calculator: ProjectionCalculator,
                 high_bound: float = DEFAULT_HIGH_BOUND,
                 iterations: int = DEFAULT_ITERATIONS,
                 tolerance: float = DEFAULT_TOLERANCE):
        self.calculator = calculator
        self.high_bound = high_bound
        self.iterations = iterations
        self.tolerance = tolerance

    def solve(self, inputs: PlanInputs, scenario: str = NL,
              schedule: Optional[LiquidationSchedule] = None) -> SolveResult:
        scenario = check_scenario(scenario)
        low = 0.0
        high = self.high_bound
        mid = 0.0
        terminal = 0.0
        for i in range(1, self.iterations + 1):
            mid = (low + high) / 2
            terminal = self.calculator.terminal_balance(inputs, mid, scenario, schedule)
            if abs(terminal) < self.tolerance:
                logger.debug("Solved %s withdrawal %.2f after %d iterations (terminal %.2f)",
                             scenario, mid, i, terminal)
                return SolveResult(mid, terminal, i, True, scenario)
            if terminal > 0:
                low = mid
            else:
                high = mid

        logger.warning("Withdrawal solve for %s did not reach tolerance %.2f in %d iterations; "
                       "best estimate %.2f leaves %.2f", scenario, self.tolerance,
                       self.iterations, mid, terminal)
        return SolveResult(mid, terminal, self.iterations, False, scenario)

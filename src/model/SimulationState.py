"""Mutable account state for a single projection run."""

from dataclasses import dataclass

from model.PlanInputs import PlanInputs


NOTE_CAP_FRACTION = 0.9
EQUITY_CAP_FRACTION = 0.5


def financing_cap(notes: float, equities: float) -> float:
    """Maximum margin balance the notes and equities can carry."""
    return NOTE_CAP_FRACTION * max(0.0, notes) + EQUITY_CAP_FRACTION * max(0.0, equities)


@dataclass
class SimulationState:
    """Balances carried from one simulated year to the next.

    Created fresh at the start of every run and owned by the projection
    calculator. `margin` is the loan magnitude (a liability).
    `uncovered` accumulates withdrawals that neither the margin facility
    nor the secondary account could fund.
    """
    notes: float
    equities: float
    margin: float
    secondary: float
    retirement_primary: float
    retirement_spouse: float
    nl_loss_carryforward: float = 0.0
    uncovered: float = 0.0

    @classmethod
    def opening(cls, inputs: PlanInputs) -> 'SimulationState':
        return cls(
            notes=inputs.note_balance,
            equities=inputs.equity_balance,
            margin=inputs.margin_balance,
            secondary=inputs.secondary_balance,
            retirement_primary=inputs.retirement_primary_balance,
            retirement_spouse=inputs.retirement_spouse_balance,
        )

    @property
    def cap(self) -> float:
        return financing_cap(self.notes, self.equities)

    @property
    def headroom(self) -> float:
        return max(0.0, self.cap - self.margin)

    @property
    def retirement_total(self) -> float:
        return self.retirement_primary + self.retirement_spouse

    @property
    def total_assets(self) -> float:
        return self.notes + self.equities + self.secondary + self.retirement_total

    @property
    def ending_balance(self) -> float:
        """Net worth after the margin loan and any unfunded withdrawals."""
        return self.total_assets - self.margin - self.uncovered

    def apply_floors(self) -> None:
        self.notes = max(0.0, self.notes)
        self.equities = max(0.0, self.equities)
        self.secondary = max(0.0, self.secondary)
        self.retirement_primary = max(0.0, self.retirement_primary)
        self.retirement_spouse = max(0.0, self.retirement_spouse)
        self.margin = max(0.0, self.margin)

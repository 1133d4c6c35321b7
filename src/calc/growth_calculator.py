"""Per-year growth and income accruals for every account.

- Notes pay interest as cash; the note balance itself does not grow.
- Equities pay dividends as cash; capital growth is added to the balance.
- Margin interest capitalizes onto the loan.
- The secondary account reinvests its whole return.
- Retirement accounts compound, and inside the decumulation window pay
  out a level annuity sized to empty the account at the end of the window.
"""

from dataclasses import dataclass

from model.PlanInputs import PlanInputs
from model.SimulationState import SimulationState


def annuity_payment(balance: float, rate: float, years: int) -> float:
    """Level end-of-year payment that draws `balance` to zero over `years`.

    payment = balance x r(1+r)^n / ((1+r)^n - 1); straight-line division
    when the rate is zero.
    """
    if years <= 0 or balance <= 0:
        return 0.0
    if rate == 0:
        return balance / years
    factor = (1 + rate) ** years
    denominator = factor - 1
    if denominator == 0:
        return balance / years
    return balance * rate * factor / denominator


@dataclass
class YearAccruals:
    """Income and growth figures for one year, computed on opening balances."""
    note_interest: float = 0.0
    dividends: float = 0.0
    equity_growth: float = 0.0
    margin_interest: float = 0.0
    secondary_earnings: float = 0.0
    retirement_primary_growth: float = 0.0
    retirement_spouse_growth: float = 0.0
    retirement_primary_withdrawal: float = 0.0
    retirement_spouse_withdrawal: float = 0.0
    benefit_primary: float = 0.0
    benefit_spouse: float = 0.0

    @property
    def retirement_growth(self) -> float:
        return self.retirement_primary_growth + self.retirement_spouse_growth

    @property
    def retirement_withdrawal(self) -> float:
        return self.retirement_primary_withdrawal + self.retirement_spouse_withdrawal

    @property
    def benefits(self) -> float:
        return self.benefit_primary + self.benefit_spouse

    @property
    def cash_income(self) -> float:
        """Cash that arrives during the year before taxes and withdrawals."""
        return self.note_interest + self.dividends + self.benefits + self.retirement_withdrawal


class GrowthCalculator:
    """Computes and applies one year of account growth."""

    def __init__(self, inputs: PlanInputs):
        self.inputs = inputs
        self.secondary_rate = inputs.secondary_rate()

    def _decumulation_years_left(self, age: int) -> int:
        start = self.inputs.retirement_withdrawal_start_age
        years = self.inputs.retirement_withdrawal_years
        if years <= 0 or age < start or age >= start + years:
            return 0
        return start + years - age

    def _retirement_withdrawal(self, balance: float, growth: float, years_left: int) -> float:
        if years_left <= 0:
            return 0.0
        payment = annuity_payment(balance, self.inputs.retirement_growth_rate, years_left)
        return min(payment, max(0.0, balance + growth))

    def accrue(self, state: SimulationState, year: int) -> YearAccruals:
        """Compute the year's accruals without touching the state."""
        inputs = self.inputs
        age = inputs.age_in(year)

        acc = YearAccruals(
            note_interest=state.notes * inputs.note_rate,
            dividends=state.equities * inputs.dividend_yield,
            equity_growth=state.equities * inputs.equity_growth_rate,
            margin_interest=state.margin * inputs.margin_rate,
            secondary_earnings=state.secondary * self.secondary_rate,
            retirement_primary_growth=state.retirement_primary * inputs.retirement_growth_rate,
            retirement_spouse_growth=state.retirement_spouse * inputs.retirement_growth_rate,
        )

        years_left = self._decumulation_years_left(age)
        acc.retirement_primary_withdrawal = self._retirement_withdrawal(
            state.retirement_primary, acc.retirement_primary_growth, years_left)
        acc.retirement_spouse_withdrawal = self._retirement_withdrawal(
            state.retirement_spouse, acc.retirement_spouse_growth, years_left)

        if age >= inputs.benefit_start_age:
            acc.benefit_primary = inputs.benefit_primary_monthly * 12 * inputs.benefit_haircut
            acc.benefit_spouse = inputs.benefit_spouse_monthly * 12 * inputs.benefit_haircut

        return acc

    def apply(self, state: SimulationState, acc: YearAccruals) -> None:
        """Add growth to balances and capitalize margin interest."""
        state.equities += acc.equity_growth
        state.secondary += acc.secondary_earnings
        state.retirement_primary = max(
            0.0, state.retirement_primary + acc.retirement_primary_growth - acc.retirement_primary_withdrawal)
        state.retirement_spouse = max(
            0.0, state.retirement_spouse + acc.retirement_spouse_growth - acc.retirement_spouse_withdrawal)
        state.margin += acc.margin_interest

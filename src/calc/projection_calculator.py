"""Scenario runner that projects household net worth year by year.

Two trajectories are advanced in lockstep from the same opening state:

1. Netherlands - Box 3 tax every year.
2. Relocation - Box 3 tax until the move year, Zurich wealth and
   investment-income tax from the move year onward. Without a move year
   this trajectory is identical to the Netherlands one.

Each trajectory funds its own tax through its own waterfall. A year is
processed as: scheduled lot sales, accruals and taxes on the opening
balances, growth, the cash-flow waterfall, and finally the cap
enforcement pass.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from model.PlanInputs import PlanInputs
from model.ProjectionData import ProjectionData, YearRow, NL, CH, check_scenario
from model.SimulationState import SimulationState
from model.TaxLot import TaxLot, LiquidationSchedule, LiquidationEvent, EQUITY, FIXED_INCOME
from model.TaxResult import NetherlandsResult, SwissResult
from tax.NetherlandsDetails import NetherlandsDetails
from tax.SwissDetails import SwissDetails
from tax.CapitalGainsDetails import CapitalGainsDetails
from calc.growth_calculator import GrowthCalculator, YearAccruals
from calc.waterfall_calculator import WaterfallCalculator, WaterfallResult
from calc.liquidation_scheduler import LiquidationScheduler


@dataclass
class YearStep:
    """One trajectory's figures for one year, with closing balances."""
    year: int
    age: int
    withdrawal: float
    curve_multiplier: float
    accruals: YearAccruals
    nl: NetherlandsResult
    ch: SwissResult
    ch_applies: bool
    tax_paid: float
    event: Optional[LiquidationEvent]
    waterfall: WaterfallResult
    notes: float
    equities: float
    margin: float
    secondary: float
    retirement_primary: float
    retirement_spouse: float
    financing_cap: float
    ending_balance: float


class Trajectory:
    """Year stepper for one scenario, owning its SimulationState."""

    def __init__(self, scenario: str, inputs: PlanInputs, netherlands: NetherlandsDetails,
                 swiss: SwissDetails, events: Dict[int, LiquidationEvent],
                 scheduler: Optional[LiquidationScheduler]):
        self.scenario = scenario
        self.inputs = inputs
        self.netherlands = netherlands
        self.swiss = swiss
        self.events = events
        self.scheduler = scheduler
        self.state = SimulationState.opening(inputs)
        self.growth = GrowthCalculator(inputs)
        self.waterfall = WaterfallCalculator(inputs.margin_withdrawal_share)

    def swiss_applies(self, year: int) -> bool:
        move_year = self.inputs.move_year
        return self.scenario == CH and move_year is not None and year >= move_year

    def _liquidate(self, year: int) -> tuple:
        """Settle the year's lot sales. Returns (event, cash for the waterfall)."""
        event = self.events.get(year)
        if event is None:
            return None, 0.0
        state = self.state
        event = self.scheduler.settle(event, state.notes, state.equities)
        state.equities -= event.proceeds_by_kind(EQUITY)
        state.notes -= event.proceeds_by_kind(FIXED_INCOME)

        net = event.net_proceeds
        if not self.inputs.liquidation_pays_margin:
            return event, net
        paydown = min(max(0.0, net), state.margin)
        state.margin -= paydown
        state.secondary += net - paydown
        return event, 0.0

    def step(self, year: int, base_withdrawal: float) -> YearStep:
        inputs = self.inputs
        state = self.state
        age = inputs.age_in(year)

        event, liquidation_cash = self._liquidate(year)
        acc = self.growth.accrue(state, year)

        nl = self.netherlands.taxBurden(
            year, state.notes, state.equities, state.margin,
            acc.note_interest, acc.dividends, acc.equity_growth, acc.margin_interest,
            loss_carryforward=state.nl_loss_carryforward,
            use_carryforward=inputs.nl_loss_carryforward,
        )
        state.nl_loss_carryforward = nl.loss_carryforward

        ch_applies = self.swiss_applies(year)
        ch = self.swiss.taxBurden(
            state.total_assets, state.margin, inputs.usd_chf, inputs.municipal_multiplier,
            acc.note_interest, acc.dividends, acc.margin_interest,
            deduct_margin_interest=inputs.ch_deduct_margin_interest,
        )
        tax_paid = ch.total_tax if ch_applies else nl.tax

        multiplier = inputs.curve_multiplier(age)
        withdrawal = base_withdrawal * multiplier

        self.growth.apply(state, acc)
        net_cash_flow = acc.cash_income + liquidation_cash - tax_paid - withdrawal
        waterfall = self.waterfall.allocate(state, net_cash_flow)
        self.waterfall.enforce_cap(state, waterfall)
        state.apply_floors()

        return YearStep(
            year=year,
            age=age,
            withdrawal=withdrawal,
            curve_multiplier=multiplier,
            accruals=acc,
            nl=nl,
            ch=ch,
            ch_applies=ch_applies,
            tax_paid=tax_paid,
            event=event,
            waterfall=waterfall,
            notes=state.notes,
            equities=state.equities,
            margin=state.margin,
            secondary=state.secondary,
            retirement_primary=state.retirement_primary,
            retirement_spouse=state.retirement_spouse,
            financing_cap=state.cap,
            ending_balance=state.ending_balance,
        )


def build_row(target: YearStep, nl_step: YearStep, ch_step: YearStep) -> YearRow:
    acc = target.accruals
    event = target.event
    wf = target.waterfall
    nl = nl_step.nl
    ch = ch_step.ch
    applies = ch_step.ch_applies
    return YearRow(
        age=target.age,
        year=target.year,
        benefit_primary=acc.benefit_primary,
        benefit_spouse=acc.benefit_spouse,
        retirement_primary_balance=target.retirement_primary,
        retirement_spouse_balance=target.retirement_spouse,
        retirement_growth=acc.retirement_growth,
        retirement_withdrawal=acc.retirement_withdrawal,
        note_balance=target.notes,
        note_interest=acc.note_interest,
        equity_balance=target.equities,
        dividends=acc.dividends,
        equity_growth=acc.equity_growth,
        margin_balance=target.margin,
        margin_interest=acc.margin_interest,
        secondary_balance=target.secondary,
        secondary_earnings=acc.secondary_earnings,
        liquidation_proceeds=event.proceeds if event else 0.0,
        liquidation_gain=event.gain if event else 0.0,
        capital_gains_tax=event.tax if event else 0.0,
        lots_sold=len(event.sales) if event else 0,
        tax_paid=target.tax_paid,
        net_cash_flow=wf.net_cash_flow,
        margin_paydown=wf.margin_paydown,
        surplus_to_secondary=wf.surplus_to_secondary,
        margin_draw=wf.margin_draw,
        secondary_draw=wf.secondary_draw,
        uncovered_shortfall=wf.uncovered,
        financing_cap=target.financing_cap,
        cap_secondary_draw=wf.cap_secondary_draw,
        forced_equity_sale=wf.forced_equity_sale,
        forced_note_sale=wf.forced_note_sale,
        nl_deemed_or_actual=nl.deemed_or_actual,
        nl_margin_deduction=nl.margin_deduction,
        nl_allowance=nl.allowance,
        nl_taxable=nl.taxable,
        nl_tax_rate=nl.tax_rate,
        nl_tax=nl.tax,
        nl_ftc_credit=nl.tax,
        nl_loss_carryforward=nl.loss_carryforward,
        ch_applies=applies,
        ch_net_wealth_usd=ch.net_wealth_usd,
        ch_net_wealth_chf=ch.net_wealth_chf,
        ch_cantonal_basic_tax=ch.cantonal_basic_tax,
        ch_municipal_tax=ch.municipal_tax,
        ch_total_wealth_tax_chf=ch.total_wealth_tax_chf,
        ch_wealth_tax_usd=ch.wealth_tax_usd if applies else 0.0,
        ch_investment_income=ch.investment_income,
        ch_income_tax=ch.income_tax if applies else 0.0,
        ch_total_tax=ch_step.tax_paid,
        total_income=(acc.note_interest + acc.dividends - acc.margin_interest
                      + acc.benefits + acc.retirement_withdrawal),
        curve_multiplier=target.curve_multiplier,
        withdrawal=target.withdrawal,
        ending_balance_nl=nl_step.ending_balance,
        ending_balance_ch=ch_step.ending_balance,
    )


class ProjectionCalculator:
    """Projects the household's accounts for a candidate base withdrawal.

    The calculator holds only read-only collaborators, so `simulate` is a
    pure function of (inputs, base withdrawal, scenario, schedule).
    """

    def __init__(self,
                 netherlands: NetherlandsDetails,
                 swiss: SwissDetails,
                 capital_gains: Optional[CapitalGainsDetails] = None,
                 lots: Optional[Iterable[TaxLot]] = None):
        self.netherlands = netherlands
        self.swiss = swiss
        self.capital_gains = capital_gains if capital_gains is not None else CapitalGainsDetails()
        self.lots: List[TaxLot] = list(lots or [])

    def scheduler(self, inputs: PlanInputs) -> Optional[LiquidationScheduler]:
        """Liquidation scheduler for these inputs, or None when liquidation is off."""
        if not inputs.liquidation_enabled or not self.lots:
            return None
        capital_gains = self.capital_gains
        extra_classes = set(inputs.zero_basis_classes) - capital_gains.zero_basis_classes
        if extra_classes:
            capital_gains = CapitalGainsDetails(
                capital_gains.ltcg_rate, capital_gains.zero_basis_classes | extra_classes
            )
        return LiquidationScheduler(
            self.lots, capital_gains, inputs.first_year, inputs.last_year, inputs.equity_growth_rate
        )

    def _trajectory(self, scenario: str, inputs: PlanInputs,
                    schedule: Optional[LiquidationSchedule]) -> Trajectory:
        scheduler = self.scheduler(inputs) if schedule is not None else None
        events = scheduler.events(schedule) if scheduler else {}
        return Trajectory(scenario, inputs, self.netherlands, self.swiss, events, scheduler)

    @staticmethod
    def _clean_withdrawal(base_withdrawal: float) -> float:
        if base_withdrawal is None or not math.isfinite(base_withdrawal):
            return 0.0
        return max(0.0, base_withdrawal)

    def simulate(self, inputs: PlanInputs, base_withdrawal: float, scenario: str = NL,
                 schedule: Optional[LiquidationSchedule] = None) -> ProjectionData:
        """Run the full projection and return every year's row.

        Args:
            inputs: Household inputs (non-finite values are coerced to zero)
            base_withdrawal: Annual withdrawal before the age-curve multiplier
            scenario: 'NL' or 'CH'; selects whose account detail fills the rows
            schedule: Optional lot liquidation schedule

        Returns:
            ProjectionData with rows oldest first and lifetime aggregates
        """
        scenario = check_scenario(scenario)
        inputs = inputs.sanitized()
        base = self._clean_withdrawal(base_withdrawal)

        nl_path = self._trajectory(NL, inputs, schedule)
        ch_path = self._trajectory(CH, inputs, schedule)

        rows = []
        for year in inputs.years:
            nl_step = nl_path.step(year, base)
            ch_step = ch_path.step(year, base)
            target = nl_step if scenario == NL else ch_step
            rows.append(build_row(target, nl_step, ch_step))

        return ProjectionData(
            scenario=scenario,
            base_withdrawal=base,
            first_year=inputs.first_year,
            last_year=inputs.last_year,
            rows=rows,
        )

    def terminal_balance(self, inputs: PlanInputs, base_withdrawal: float, scenario: str = NL,
                         schedule: Optional[LiquidationSchedule] = None) -> float:
        """Final-year ending balance of one scenario, stepping only that trajectory."""
        scenario = check_scenario(scenario)
        inputs = inputs.sanitized()
        base = self._clean_withdrawal(base_withdrawal)
        path = self._trajectory(scenario, inputs, schedule)
        ending = 0.0
        for year in inputs.years:
            ending = path.step(year, base).ending_balance
        return ending

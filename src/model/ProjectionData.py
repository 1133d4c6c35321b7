"""Projection results organized by year.

A projection run produces one `YearRow` per simulated year, oldest
first. `ProjectionData` wraps that sequence together with the lifetime
aggregates the renderers, shell and MCP tools read.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from model.PlanInputs import WithdrawalBand


NL = 'NL'
CH = 'CH'
SCENARIOS = (NL, CH)


def check_scenario(scenario: str) -> str:
    tag = (scenario or '').upper()
    if tag not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{scenario}'. Expected one of {list(SCENARIOS)}")
    return tag


@dataclass
class YearRow:
    """Everything calculated for one simulated year.

    Account, income and waterfall fields describe the target scenario's
    trajectory. The nl_* fields are the Box 3 figures of the Netherlands
    trajectory and the ch_* fields the taxes of the relocation
    trajectory; the two ending balances come from each trajectory.
    """
    age: int
    year: int

    # Social insurance and retirement accounts
    benefit_primary: float = 0.0
    benefit_spouse: float = 0.0
    retirement_primary_balance: float = 0.0
    retirement_spouse_balance: float = 0.0
    retirement_growth: float = 0.0
    retirement_withdrawal: float = 0.0

    # Notes, equities, margin, secondary account
    note_balance: float = 0.0
    note_interest: float = 0.0
    equity_balance: float = 0.0
    dividends: float = 0.0
    equity_growth: float = 0.0
    margin_balance: float = 0.0
    margin_interest: float = 0.0
    secondary_balance: float = 0.0
    secondary_earnings: float = 0.0

    # Liquidation
    liquidation_proceeds: float = 0.0
    liquidation_gain: float = 0.0
    capital_gains_tax: float = 0.0
    lots_sold: int = 0

    # Waterfall
    tax_paid: float = 0.0
    net_cash_flow: float = 0.0
    margin_paydown: float = 0.0
    surplus_to_secondary: float = 0.0
    margin_draw: float = 0.0
    secondary_draw: float = 0.0
    uncovered_shortfall: float = 0.0
    financing_cap: float = 0.0
    cap_secondary_draw: float = 0.0
    forced_equity_sale: float = 0.0
    forced_note_sale: float = 0.0

    # Netherlands Box 3
    nl_deemed_or_actual: float = 0.0
    nl_margin_deduction: float = 0.0
    nl_allowance: float = 0.0
    nl_taxable: float = 0.0
    nl_tax_rate: float = 0.0
    nl_tax: float = 0.0
    nl_ftc_credit: float = 0.0
    nl_loss_carryforward: float = 0.0

    # Switzerland (Zurich)
    ch_applies: bool = False
    ch_net_wealth_usd: float = 0.0
    ch_net_wealth_chf: float = 0.0
    ch_cantonal_basic_tax: float = 0.0
    ch_municipal_tax: float = 0.0
    ch_total_wealth_tax_chf: float = 0.0
    ch_wealth_tax_usd: float = 0.0
    ch_investment_income: float = 0.0
    ch_income_tax: float = 0.0
    ch_total_tax: float = 0.0

    # Totals
    total_income: float = 0.0
    curve_multiplier: float = 1.0
    withdrawal: float = 0.0
    ending_balance_nl: float = 0.0
    ending_balance_ch: float = 0.0

    def ending_balance(self, scenario: str) -> float:
        return self.ending_balance_nl if check_scenario(scenario) == NL else self.ending_balance_ch

    def health(self, previous: Optional['YearRow'] = None) -> str:
        """Classify the year as 'healthy', 'declining' or 'depleted'.

        'declining' means the worse of the two ending balances fell
        compared with `previous`.
        """
        worst = min(self.ending_balance_nl, self.ending_balance_ch)
        if worst <= 0 or worst < self.withdrawal * 2:
            return 'depleted'
        if previous is not None and worst < min(previous.ending_balance_nl, previous.ending_balance_ch):
            return 'declining'
        return 'healthy'


@dataclass
class BandSummary:
    """Totals for the years falling in one withdrawal-curve band."""
    label: str
    start_year: int
    end_year: int
    total_income: float = 0.0
    total_tax_nl: float = 0.0
    total_tax_ch: float = 0.0
    total_withdrawal: float = 0.0
    average_withdrawal: float = 0.0
    ending_nl: float = 0.0
    ending_ch: float = 0.0


@dataclass
class ProjectionData:
    """Complete projection for one scenario and base withdrawal."""
    scenario: str
    base_withdrawal: float
    first_year: int
    last_year: int
    rows: List[YearRow] = field(default_factory=list)

    # Lifetime totals
    total_income: float = 0.0
    total_tax_nl: float = 0.0
    total_tax_ch: float = 0.0
    total_capital_gains_tax: float = 0.0
    total_withdrawal: float = 0.0
    average_withdrawal: float = 0.0
    total_uncovered: float = 0.0

    # Terminal figures
    ending_nl: float = 0.0
    ending_ch: float = 0.0
    depletion_year_nl: Optional[int] = None
    depletion_year_ch: Optional[int] = None

    def __post_init__(self):
        self._index: Dict[int, YearRow] = {}
        if self.rows:
            self.finalize()

    def finalize(self) -> None:
        """Recompute the index and all aggregate scalars from `rows`."""
        rows = self.rows
        self._index = {r.year: r for r in rows}
        self.total_income = sum(r.total_income for r in rows)
        self.total_tax_nl = sum(r.nl_tax for r in rows)
        self.total_tax_ch = sum(r.ch_total_tax for r in rows)
        self.total_capital_gains_tax = sum(r.capital_gains_tax for r in rows)
        self.total_withdrawal = sum(r.withdrawal for r in rows)
        self.average_withdrawal = self.total_withdrawal / max(1, len(rows))
        self.total_uncovered = sum(r.uncovered_shortfall for r in rows)
        self.ending_nl = rows[-1].ending_balance_nl if rows else 0.0
        self.ending_ch = rows[-1].ending_balance_ch if rows else 0.0
        self.depletion_year_nl = next((r.year for r in rows if r.ending_balance_nl <= 0), None)
        self.depletion_year_ch = next((r.year for r in rows if r.ending_balance_ch <= 0), None)

    def get_year(self, year: int) -> Optional[YearRow]:
        """Get the row for a specific year."""
        return self._index.get(year)

    def terminal_balance(self, scenario: Optional[str] = None) -> float:
        scenario = check_scenario(scenario or self.scenario)
        return self.ending_nl if scenario == NL else self.ending_ch

    def depletion_year(self, scenario: Optional[str] = None) -> Optional[int]:
        scenario = check_scenario(scenario or self.scenario)
        return self.depletion_year_nl if scenario == NL else self.depletion_year_ch

    def band_summaries(self, curve: List[WithdrawalBand], birth_year: int) -> List[BandSummary]:
        """Group rows by withdrawal-curve band."""
        summaries = []
        for band in curve:
            start = max(self.first_year, birth_year + band.min_age)
            end = min(self.last_year, birth_year + band.max_age)
            if start > end:
                continue
            rows = [r for r in self.rows if start <= r.year <= end]
            summary = BandSummary(
                label=f"{start}-{end} (ages {band.min_age}-{band.max_age}, x{band.multiplier:g})",
                start_year=start,
                end_year=end,
            )
            if rows:
                summary.total_income = sum(r.total_income for r in rows)
                summary.total_tax_nl = sum(r.nl_tax for r in rows)
                summary.total_tax_ch = sum(r.ch_total_tax for r in rows)
                summary.total_withdrawal = sum(r.withdrawal for r in rows)
                summary.average_withdrawal = summary.total_withdrawal / len(rows)
                summary.ending_nl = rows[-1].ending_balance_nl
                summary.ending_ch = rows[-1].ending_balance_ch
            summaries.append(summary)
        return summaries

"""Renderer classes for displaying net-worth projection results.

This module contains renderer classes that handle the presentation logic
for different views of a projection. Each renderer takes the
ProjectionData of one run and extracts the fields it needs.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from model.ProjectionData import ProjectionData, YearRow
from model.field_metadata import get_short_name, wrap_header


HEALTH_MARKERS = {
    'healthy': '',
    'declining': 'v',
    'depleted': '!!',
}


def format_multiline_headers(columns: List[tuple], year_width: int = 6) -> tuple[List[str], str]:
    """Format column headers with multi-line wrapping support.

    Args:
        columns: List of (header_text, width) tuples for each column
        year_width: Width of the Year column (default 6)

    Returns:
        Tuple of (list of header lines, separator line)
    """
    wrapped_headers = []
    for header, width in columns:
        lines = wrap_header(header, width)
        wrapped_headers.append((lines, width))

    max_lines = max(len(lines) for lines, _ in wrapped_headers) if wrapped_headers else 1

    # Pad at the top so the last line of every header lines up
    for lines, _ in wrapped_headers:
        while len(lines) < max_lines:
            lines.insert(0, "")

    header_lines = []
    for line_idx in range(max_lines):
        if line_idx == max_lines - 1:
            header_line = f"  {'Year':<{year_width}}"
        else:
            header_line = f"  {'':<{year_width}}"

        for lines, width in wrapped_headers:
            header_line += f" {lines[line_idx]:>{width}}"
        header_lines.append(header_line)

    sep_line = f"  {'-' * year_width}"
    for _, width in wrapped_headers:
        sep_line += f" {'-' * width}"

    return header_lines, sep_line


def parse_year_range(year_range: str, data: ProjectionData) -> tuple:
    """Parse a year range string into start and end years.

    Args:
        year_range: String in format 'startYear-endYear', 'startYear-', or '-endYear'
        data: ProjectionData to get default years from

    Returns:
        Tuple of (start_year, end_year)
    """
    if '-' not in year_range:
        year = int(year_range)
        return (year, year)

    parts = year_range.split('-')
    start_year = int(parts[0]) if parts[0] else data.first_year
    end_year = int(parts[1]) if parts[1] else data.last_year
    return (start_year, end_year)


def health_marks(data: ProjectionData) -> dict:
    """Map each year to its health classification."""
    marks = {}
    previous = None
    for row in data.rows:
        marks[row.year] = row.health(previous)
        previous = row
    return marks


class BaseRenderer(ABC):
    """Abstract base class for all renderers.

    Args:
        start_year: First year to display (defaults to the projection's first year)
        end_year: Last year to display (defaults to the projection's last year)
        program: Optional loaded program, for renderers that need its inputs
    """

    def __init__(self, start_year: int = None, end_year: int = None, program=None):
        self.start_year = start_year
        self.end_year = end_year
        self.program = program

    def rows_in_range(self, data: ProjectionData) -> List[YearRow]:
        start = self.start_year if self.start_year is not None else data.first_year
        end = self.end_year if self.end_year is not None else data.last_year
        return [r for r in data.rows if start <= r.year <= end]

    @abstractmethod
    def render(self, data: ProjectionData) -> None:
        """Render the data to output.

        Args:
            data: The ProjectionData containing every simulated year
        """
        pass


class SummaryRenderer(BaseRenderer):
    """Year-by-year withdrawal, tax and ending balances for both jurisdictions."""

    def render(self, data: ProjectionData) -> None:
        width = 118
        print()
        print("=" * width)
        print(f"{'NET WORTH PROJECTION (' + data.scenario + ')':^{width}}")
        print("=" * width)
        print(f"  Base withdrawal: ${data.base_withdrawal:,.2f}")
        print()

        columns = [
            (get_short_name("age"), 5),
            (get_short_name("curve_multiplier"), 7),
            (get_short_name("withdrawal"), 14),
            (get_short_name("total_income"), 14),
            (get_short_name("nl_tax"), 12),
            (get_short_name("ch_total_tax"), 12),
            (get_short_name("ending_balance_nl"), 16),
            (get_short_name("ending_balance_ch"), 16),
        ]
        header_lines, sep_line = format_multiline_headers(columns)
        for line in header_lines:
            print(line)
        print(sep_line)

        marks = health_marks(data)
        rows = self.rows_in_range(data)
        for r in rows:
            mark = HEALTH_MARKERS[marks[r.year]]
            print(f"  {r.year:<6} {r.age:>5} {r.curve_multiplier:>7.3f} ${r.withdrawal:>12,.0f} "
                  f"${r.total_income:>12,.0f} ${r.nl_tax:>10,.0f} ${r.ch_total_tax:>10,.0f} "
                  f"${r.ending_balance_nl:>14,.0f} ${r.ending_balance_ch:>14,.0f} {mark}")

        print(sep_line)
        total_withdrawal = sum(r.withdrawal for r in rows)
        total_income = sum(r.total_income for r in rows)
        total_nl = sum(r.nl_tax for r in rows)
        total_ch = sum(r.ch_total_tax for r in rows)
        print(f"  {'TOTAL':<6} {'':>5} {'':>7} ${total_withdrawal:>12,.0f} ${total_income:>12,.0f} "
              f"${total_nl:>10,.0f} ${total_ch:>10,.0f}")
        print()
        print(f"  {'Ending balance NL:':<40} ${data.ending_nl:>18,.2f}")
        print(f"  {'Ending balance CH:':<40} ${data.ending_ch:>18,.2f}")
        if data.depletion_year_nl is not None:
            print(f"  {'NL balance depleted in:':<40} {data.depletion_year_nl:>19}")
        if data.depletion_year_ch is not None:
            print(f"  {'CH balance depleted in:':<40} {data.depletion_year_ch:>19}")
        if data.total_uncovered > 0:
            print(f"  {'Uncovered shortfall:':<40} ${data.total_uncovered:>18,.2f}")
        print("=" * width)
        print()


class CustomRenderer(BaseRenderer):
    """A generalized renderer that displays a table of specified fields.

    This renderer can be configured with a title and list of YearRow
    fields, making it easy to create views of the projection.
    """

    # Maximum width for a column header before wrapping
    MAX_HEADER_WIDTH = 14

    NON_SUMMABLE = ('year', 'age', 'curve_multiplier', 'ch_applies', 'financing_cap')
    BALANCE_SUFFIXES = ('_balance', '_balance_nl', '_balance_ch', '_carryforward')

    def __init__(self, title: str, fields: List[str], start_year: int = None, end_year: int = None,
                 program=None, show_totals: bool = True):
        super().__init__(start_year, end_year, program)
        self.title = title
        self.fields = fields
        self.show_totals = show_totals

    def _get_column_width(self, field: str) -> int:
        short_name = get_short_name(field)
        if len(short_name) > self.MAX_HEADER_WIDTH:
            wrapped = wrap_header(short_name, self.MAX_HEADER_WIDTH)
            return max(max(len(line) for line in wrapped), 12)
        return max(len(short_name) + 2, 12)

    def _is_summable(self, field: str) -> bool:
        if field in self.NON_SUMMABLE or 'rate' in field:
            return False
        return not any(field.endswith(suffix) for suffix in self.BALANCE_SUFFIXES)

    def _format_value(self, value: Any, field: str, width: int) -> str:
        """Format a value for display based on its type."""
        if value is None:
            return f"{'N/A':>{width}}"
        elif isinstance(value, bool):
            return f"{'Yes' if value else 'No':>{width}}"
        elif isinstance(value, float):
            if 'rate' in field:
                return f"{value:>{width-1}.1%}"
            if field == 'curve_multiplier':
                return f"{value:>{width}.3f}"
            return f"${value:>{width-2},.0f}"
        elif isinstance(value, int):
            return f"{value:>{width},}"
        else:
            return f"{str(value):>{width}}"

    def render(self, data: ProjectionData) -> None:
        col_widths = {field: self._get_column_width(field) for field in self.fields}
        year_width = 6
        total_width = year_width + 2 + sum(col_widths.values()) + len(self.fields) * 2
        total_width = max(total_width, len(self.title) + 10)

        print()
        print("=" * total_width)
        print(f"{self.title.upper():^{total_width}}")
        print("=" * total_width)
        print()

        header_lines, sep = format_multiline_headers(
            [(get_short_name(f), col_widths[f]) for f in self.fields], year_width
        )
        for line in header_lines:
            print(line)
        print(sep)

        marks = health_marks(data)
        totals = {field: 0.0 for field in self.fields}
        rows = self.rows_in_range(data)
        for r in rows:
            line = f"  {r.year:<{year_width}}"
            for field in self.fields:
                value = getattr(r, field, None)
                line += f" {self._format_value(value, field, col_widths[field])}"
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    totals[field] += value
            mark = HEALTH_MARKERS[marks[r.year]]
            print(f"{line} {mark}".rstrip())

        if self.show_totals and rows:
            print(sep)
            total_row = f"  {'TOTAL':<{year_width}}"
            for field in self.fields:
                width = col_widths[field]
                if self._is_summable(field):
                    total_row += f" ${totals[field]:>{width-2},.0f}"
                else:
                    total_row += f" {'':>{width}}"
            print(total_row.rstrip())

        print()
        print("=" * total_width)
        print()


DETAIL_FIELDS = [
    'age', 'note_balance', 'equity_balance', 'margin_balance', 'secondary_balance',
    'financing_cap', 'net_cash_flow', 'margin_paydown', 'margin_draw', 'secondary_draw',
    'uncovered_shortfall', 'forced_equity_sale', 'withdrawal', 'ending_balance_nl', 'ending_balance_ch',
]


class DetailRenderer(CustomRenderer):
    """Account balances and the cash-flow waterfall of the target trajectory."""

    def __init__(self, start_year: int = None, end_year: int = None, program=None):
        super().__init__("Accounts and Cash Flow", DETAIL_FIELDS, start_year, end_year, program)


class TaxesRenderer(BaseRenderer):
    """Netherlands and Switzerland taxes side by side.

    A single year prints the full breakdown of both regimes; a range
    prints one line per year.
    """

    def render(self, data: ProjectionData) -> None:
        rows = self.rows_in_range(data)
        if not rows:
            print(f"No data available for years {self.start_year}-{self.end_year}")
            return
        if len(rows) == 1:
            self._render_year(rows[0])
        else:
            self._render_table(rows)

    def _render_year(self, r: YearRow) -> None:
        print()
        print("=" * 60)
        print(f"{'TAX COMPARISON FOR ' + str(r.year):^60}")
        print("=" * 60)

        print()
        print("-" * 60)
        print("NETHERLANDS BOX 3")
        print("-" * 60)
        print(f"  {'Deemed/Actual Return:':<40} ${r.nl_deemed_or_actual:>14,.2f}")
        print(f"  {'Margin Deduction:':<40} ${r.nl_margin_deduction:>14,.2f}")
        print(f"  {'Allowance:':<40} ${r.nl_allowance:>14,.2f}")
        print(f"  {'Taxable:':<40} ${r.nl_taxable:>14,.2f}")
        print(f"  {'Rate:':<40} {r.nl_tax_rate:>15.2%}")
        print(f"  {'-' * 40}")
        print(f"  {'NL Tax:':<40} ${r.nl_tax:>14,.2f}")
        print(f"  {'Foreign Tax Credit:':<40} ${r.nl_ftc_credit:>14,.2f}")
        if r.nl_loss_carryforward > 0:
            print(f"  {'Loss Carried Forward:':<40} ${r.nl_loss_carryforward:>14,.2f}")

        print()
        print("-" * 60)
        print("SWITZERLAND (ZURICH)" + ("" if r.ch_applies else "  - not yet resident"))
        print("-" * 60)
        print(f"  {'Net Wealth (USD):':<40} ${r.ch_net_wealth_usd:>14,.2f}")
        print(f"  {'Net Wealth (CHF):':<40} {r.ch_net_wealth_chf:>15,.2f}")
        print(f"  {'Cantonal Basic Tax (CHF):':<40} {r.ch_cantonal_basic_tax:>15,.2f}")
        print(f"  {'Municipal Tax (CHF):':<40} {r.ch_municipal_tax:>15,.2f}")
        print(f"  {'Wealth Tax (USD):':<40} ${r.ch_wealth_tax_usd:>14,.2f}")
        print(f"  {'Investment Income:':<40} ${r.ch_investment_income:>14,.2f}")
        print(f"  {'Income Tax:':<40} ${r.ch_income_tax:>14,.2f}")
        print(f"  {'-' * 40}")
        print(f"  {'Tax Paid (relocation path):':<40} ${r.ch_total_tax:>14,.2f}")

        if r.capital_gains_tax > 0:
            print()
            print("-" * 60)
            print("LOT SALES")
            print("-" * 60)
            print(f"  {'Proceeds:':<40} ${r.liquidation_proceeds:>14,.2f}")
            print(f"  {'Realized Gain:':<40} ${r.liquidation_gain:>14,.2f}")
            print(f"  {'Capital Gains Tax:':<40} ${r.capital_gains_tax:>14,.2f}")
        print("=" * 60)
        print()

    def _render_table(self, rows: List[YearRow]) -> None:
        print()
        print("=" * 100)
        print(f"{'NETHERLANDS VS SWITZERLAND TAX':^100}")
        print("=" * 100)
        print()
        columns = [
            (get_short_name("nl_taxable"), 14),
            (get_short_name("nl_tax"), 12),
            (get_short_name("ch_wealth_tax_usd"), 12),
            (get_short_name("ch_income_tax"), 12),
            (get_short_name("ch_total_tax"), 12),
            (get_short_name("capital_gains_tax"), 12),
            ("Resident", 8),
        ]
        header_lines, sep_line = format_multiline_headers(columns)
        for line in header_lines:
            print(line)
        print(sep_line)
        for r in rows:
            resident = 'CH' if r.ch_applies else 'NL'
            print(f"  {r.year:<6} ${r.nl_taxable:>12,.0f} ${r.nl_tax:>10,.0f} ${r.ch_wealth_tax_usd:>10,.0f} "
                  f"${r.ch_income_tax:>10,.0f} ${r.ch_total_tax:>10,.0f} ${r.capital_gains_tax:>10,.0f} {resident:>8}")
        print(sep_line)
        print(f"  {'TOTAL':<6} {'':>14} ${sum(r.nl_tax for r in rows):>10,.0f} "
              f"${sum(r.ch_wealth_tax_usd for r in rows):>10,.0f} ${sum(r.ch_income_tax for r in rows):>10,.0f} "
              f"${sum(r.ch_total_tax for r in rows):>10,.0f} ${sum(r.capital_gains_tax for r in rows):>10,.0f}")
        print("=" * 100)
        print()


class BandsRenderer(BaseRenderer):
    """Projection totals grouped by withdrawal-curve band."""

    def render(self, data: ProjectionData) -> None:
        if self.program is None:
            print("Bands view needs the program's withdrawal curve")
            return
        inputs = self.program.inputs
        summaries = data.band_summaries(inputs.withdrawal_curve, inputs.birth_year)

        print()
        print("=" * 120)
        print(f"{'WITHDRAWAL BANDS':^120}")
        print("=" * 120)
        print()
        print(f"  {'Band':<40} {'Income':>13} {'NL Tax':>12} {'CH Tax':>12} {'Withdrawal':>14} "
              f"{'Avg/Year':>12} {'Ending NL':>15} {'Ending CH':>15}")
        print(f"  {'-' * 40} {'-' * 13} {'-' * 12} {'-' * 12} {'-' * 14} {'-' * 12} {'-' * 15} {'-' * 15}")
        for s in summaries:
            print(f"  {s.label:<40} ${s.total_income:>12,.0f} ${s.total_tax_nl:>11,.0f} ${s.total_tax_ch:>11,.0f} "
                  f"${s.total_withdrawal:>13,.0f} ${s.average_withdrawal:>11,.0f} "
                  f"${s.ending_nl:>14,.0f} ${s.ending_ch:>14,.0f}")
        print("=" * 120)
        print()


class LiquidationRenderer(BaseRenderer):
    """Tax lots with their scheduled sale year, then the years with sales."""

    def render(self, data: ProjectionData) -> None:
        print()
        print("=" * 100)
        print(f"{'TAX LOT LIQUIDATION':^100}")
        print("=" * 100)

        if self.program is not None and self.program.lots:
            schedule = self.program.schedule
            print()
            print(f"  {'Lot':<14} {'Ticker':<8} {'Kind':<13} {'Fair Value':>15} {'Cost Basis':>15} {'Sell In':>8}")
            print(f"  {'-' * 14} {'-' * 8} {'-' * 13} {'-' * 15} {'-' * 15} {'-' * 8}")
            for lot in self.program.lots:
                year = schedule.year_for(lot.lot_id)
                when = str(year) if year is not None else 'hold'
                print(f"  {lot.lot_id:<14} {lot.ticker:<8} {lot.kind:<13} ${lot.fair_value:>14,.0f} "
                      f"${lot.cost_basis:>14,.0f} {when:>8}")

        sale_rows = [r for r in self.rows_in_range(data) if r.lots_sold > 0]
        print()
        if not sale_rows:
            print("  No lot sales in this projection.")
        else:
            columns = [
                (get_short_name("lots_sold"), 10),
                (get_short_name("liquidation_proceeds"), 15),
                (get_short_name("liquidation_gain"), 15),
                (get_short_name("capital_gains_tax"), 13),
            ]
            header_lines, sep_line = format_multiline_headers(columns)
            for line in header_lines:
                print(line)
            print(sep_line)
            for r in sale_rows:
                print(f"  {r.year:<6} {r.lots_sold:>10} ${r.liquidation_proceeds:>13,.0f} "
                      f"${r.liquidation_gain:>13,.0f} ${r.capital_gains_tax:>11,.0f}")
        print("=" * 100)
        print()


RENDERER_REGISTRY = {
    'Summary': SummaryRenderer,
    'Detail': DetailRenderer,
    'Taxes': TaxesRenderer,
    'Bands': BandsRenderer,
    'Liquidation': LiquidationRenderer,
}

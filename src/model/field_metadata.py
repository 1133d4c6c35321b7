"""Field metadata for YearRow fields.

This module provides descriptions and short names for all YearRow fields.
Short names are used as column headers in tables and the shell 'get' command.
"""

from dataclasses import dataclass
from typing import Dict


@dataclass
class FieldInfo:
    """Metadata for a single field."""
    short_name: str  # Column header (unique, concise)
    description: str  # Full description of the field


# Field metadata dictionary mapping field names to their info
FIELD_METADATA: Dict[str, FieldInfo] = {
    # Year Info
    "age": FieldInfo("Age", "Age of the primary person (year - birth year)"),
    "year": FieldInfo("Year", "Calendar year"),

    # Benefits and retirement accounts
    "benefit_primary": FieldInfo("Benefit Primary", "Social-insurance benefit of the primary person"),
    "benefit_spouse": FieldInfo("Benefit Spouse", "Social-insurance benefit of the spouse"),
    "retirement_primary_balance": FieldInfo("Retirement Primary", "Primary retirement account end-of-year balance"),
    "retirement_spouse_balance": FieldInfo("Retirement Spouse", "Spouse retirement account end-of-year balance"),
    "retirement_growth": FieldInfo("Retirement Growth", "Growth credited to both retirement accounts"),
    "retirement_withdrawal": FieldInfo("Retirement Withdrawal", "Scheduled decumulation from both retirement accounts"),

    # Accounts
    "note_balance": FieldInfo("Notes", "Fixed-income note balance at year end"),
    "note_interest": FieldInfo("Note Interest", "Interest paid on the opening note balance"),
    "equity_balance": FieldInfo("Equities", "Equity balance at year end"),
    "dividends": FieldInfo("Dividends", "Dividends paid on the opening equity balance"),
    "equity_growth": FieldInfo("Equity Growth", "Unrealized equity appreciation for the year"),
    "margin_balance": FieldInfo("Margin", "Margin loan balance at year end"),
    "margin_interest": FieldInfo("Margin Interest", "Interest capitalized onto the margin loan"),
    "secondary_balance": FieldInfo("Secondary", "Secondary (cash reserve) account balance at year end"),
    "secondary_earnings": FieldInfo("Secondary Earnings", "Earnings credited to the secondary account"),

    # Liquidation
    "liquidation_proceeds": FieldInfo("Lot Proceeds", "Gross proceeds of scheduled tax-lot sales"),
    "liquidation_gain": FieldInfo("Lot Gain", "Realized gain on scheduled tax-lot sales"),
    "capital_gains_tax": FieldInfo("CG Tax", "Capital gains tax on scheduled tax-lot sales"),
    "lots_sold": FieldInfo("Lots Sold", "Number of tax lots sold in the year"),

    # Waterfall
    "tax_paid": FieldInfo("Tax Paid", "Tax paid by this trajectory (NL or CH regime)"),
    "net_cash_flow": FieldInfo("Net Cash Flow", "Cash income plus lot proceeds minus tax and withdrawal"),
    "margin_paydown": FieldInfo("Margin Paydown", "Surplus applied to the margin loan"),
    "surplus_to_secondary": FieldInfo("Surplus Saved", "Surplus beyond the margin balance deposited in secondary"),
    "margin_draw": FieldInfo("Margin Draw", "Shortfall funded by new margin borrowing"),
    "secondary_draw": FieldInfo("Secondary Draw", "Shortfall funded from the secondary account"),
    "uncovered_shortfall": FieldInfo("Uncovered", "Shortfall neither margin nor secondary could fund"),
    "financing_cap": FieldInfo("Financing Cap", "Maximum margin: 90% of notes plus 50% of equities"),
    "cap_secondary_draw": FieldInfo("Cap Secondary", "Secondary balance used to bring margin under the cap"),
    "forced_equity_sale": FieldInfo("Forced Equity Sale", "Equities sold to bring margin under the cap"),
    "forced_note_sale": FieldInfo("Forced Note Sale", "Notes sold to bring margin under the cap"),

    # Netherlands Box 3
    "nl_deemed_or_actual": FieldInfo("NL Return", "Box 3 deemed return (before transition) or actual return"),
    "nl_margin_deduction": FieldInfo("NL Debt Deduction", "Deemed or actual margin cost deducted in Box 3"),
    "nl_allowance": FieldInfo("NL Allowance", "Box 3 tax-free allowance"),
    "nl_taxable": FieldInfo("NL Taxable", "Box 3 taxable base after allowance and loss offset"),
    "nl_tax_rate": FieldInfo("NL Rate", "Box 3 flat tax rate"),
    "nl_tax": FieldInfo("NL Tax", "Netherlands Box 3 tax"),
    "nl_ftc_credit": FieldInfo("NL FTC", "Box 3 tax reported as a creditable foreign tax"),
    "nl_loss_carryforward": FieldInfo("NL Loss Carry", "Box 3 loss carried into the next year"),

    # Switzerland (Zurich)
    "ch_applies": FieldInfo("CH Applies", "True once the relocation trajectory pays Swiss tax"),
    "ch_net_wealth_usd": FieldInfo("CH Net Wealth USD", "Assets minus margin, floored at zero, in USD"),
    "ch_net_wealth_chf": FieldInfo("CH Net Wealth CHF", "Net wealth converted to CHF"),
    "ch_cantonal_basic_tax": FieldInfo("CH Basic Tax", "Cantonal basic wealth tax in CHF"),
    "ch_municipal_tax": FieldInfo("CH Municipal", "Municipal surcharge on the basic wealth tax in CHF"),
    "ch_total_wealth_tax_chf": FieldInfo("CH Wealth Tax CHF", "Total wealth tax in CHF"),
    "ch_wealth_tax_usd": FieldInfo("CH Wealth Tax", "Wealth tax in USD (zero before the move year)"),
    "ch_investment_income": FieldInfo("CH Inv Income", "Investment income subject to Swiss income tax"),
    "ch_income_tax": FieldInfo("CH Income Tax", "Swiss investment-income tax (zero before the move year)"),
    "ch_total_tax": FieldInfo("CH Tax Paid", "Tax paid by the relocation trajectory"),

    # Totals
    "total_income": FieldInfo("Total Income", "Interest + dividends - margin interest + benefits + retirement withdrawals"),
    "curve_multiplier": FieldInfo("Curve", "Withdrawal-curve multiplier for the age"),
    "withdrawal": FieldInfo("Withdrawal", "Base withdrawal scaled by the curve multiplier"),
    "ending_balance_nl": FieldInfo("Ending NL", "Netherlands trajectory net worth at year end"),
    "ending_balance_ch": FieldInfo("Ending CH", "Relocation trajectory net worth at year end"),
}


def get_short_name(field_name: str) -> str:
    """Get the short name for a field, or the field name if not found."""
    info = FIELD_METADATA.get(field_name)
    return info.short_name if info else field_name


def get_description(field_name: str) -> str:
    """Get the description for a field, or empty string if not found."""
    info = FIELD_METADATA.get(field_name)
    return info.description if info else ""


def get_field_info(field_name: str) -> FieldInfo | None:
    """Get the full FieldInfo for a field, or None if not found."""
    return FIELD_METADATA.get(field_name)


def wrap_header(text: str, max_width: int) -> list[str]:
    """Wrap a header text into multiple lines to fit within max_width.

    Words are split on spaces and distributed across lines, never
    splitting a word.
    """
    if len(text) <= max_width:
        return [text]

    lines = []
    current_line = ""
    for word in text.split():
        if not current_line:
            current_line = word
        elif len(current_line) + 1 + len(word) <= max_width:
            current_line += " " + word
        else:
            lines.append(current_line)
            current_line = word

    if current_line:
        lines.append(current_line)

    return lines

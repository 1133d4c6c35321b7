import json
import math
import os
from typing import Optional

from model.TaxResult import SwissResult


class SwissDetails:
    """Zurich cantonal/municipal wealth tax plus a flat investment-income tax.

    The wealth tax is a marginal-bracket schedule in CHF producing the
    cantonal "basic" tax; the municipal multiplier scales it to the total
    (municipal share = basic x (multiplier - 1)). Investment income
    (interest + dividends) is taxed at a flat rate.
    """

    def __init__(self, reference: Optional[dict] = None):
        if reference is None:
            ref_path = os.path.join(os.path.dirname(__file__), '../../reference/zurich-wealth-tax.json')
            with open(ref_path, 'r') as f:
                reference = json.load(f)

        brackets = reference.get('wealthBrackets', [])
        if not brackets:
            raise ValueError("zurich-wealth-tax.json must contain a 'wealthBrackets' array with at least one entry")

        self.brackets = []
        for b in brackets:
            up_to = b.get('upTo')
            rate = b['rate']
            if rate > 1:
                rate = rate / 100.0
            self.brackets.append({
                'upTo': math.inf if up_to is None else float(up_to),
                'rate': rate,
            })
        self.brackets.sort(key=lambda b: b['upTo'])
        if not math.isinf(self.brackets[-1]['upTo']):
            raise ValueError("The last wealth bracket must be open-ended (upTo: null)")

        self.investment_income_rate = float(reference.get('investmentIncomeRate', 0.0))
        self.fx_epsilon = float(reference.get('fxEpsilon', 0.0001))

    def basicWealthTax(self, wealth_chf: float) -> float:
        """Cantonal basic tax on net wealth in CHF."""
        basic = 0.0
        prev = 0.0
        for b in self.brackets:
            taxable_slice = max(0.0, min(wealth_chf, b['upTo']) - prev)
            basic += taxable_slice * b['rate']
            prev = b['upTo']
            if wealth_chf <= b['upTo']:
                break
        return basic

    def wealthTax(self, wealth_chf: float, municipal_multiplier: float) -> tuple:
        """Return (basic, municipal, total) wealth tax in CHF."""
        basic = self.basicWealthTax(wealth_chf)
        municipal = basic * (municipal_multiplier - 1)
        return basic, municipal, max(0.0, basic + municipal)

    def investmentIncome(self, note_interest: float, dividends: float,
                         margin_interest: float = 0.0, deduct_margin_interest: bool = False) -> float:
        income = note_interest + dividends
        if deduct_margin_interest:
            income -= margin_interest
        return max(0.0, income)

    def taxBurden(self, total_assets_usd: float, margin: float, usd_chf: float,
                  municipal_multiplier: float, note_interest: float, dividends: float,
                  margin_interest: float = 0.0, deduct_margin_interest: bool = False) -> SwissResult:
        """Wealth + investment-income tax for one year, in the base currency."""
        net_wealth_usd = max(0.0, total_assets_usd - margin)
        net_wealth_chf = net_wealth_usd * usd_chf
        basic, municipal, total_chf = self.wealthTax(net_wealth_chf, municipal_multiplier)
        wealth_tax_usd = total_chf / max(usd_chf, self.fx_epsilon)

        investment_income = self.investmentIncome(
            note_interest, dividends, margin_interest, deduct_margin_interest
        )
        return SwissResult(
            net_wealth_usd=net_wealth_usd,
            net_wealth_chf=net_wealth_chf,
            cantonal_basic_tax=basic,
            municipal_tax=municipal,
            total_wealth_tax_chf=total_chf,
            wealth_tax_usd=wealth_tax_usd,
            investment_income=investment_income,
            income_tax=investment_income * self.investment_income_rate,
        )

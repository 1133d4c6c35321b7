import json
import os
from typing import Optional

from model.TaxResult import NetherlandsResult


REQUIRED_KEYS = ('transitionYear', 'deemedAssetRate', 'deemedDebtRate', 'allowance', 'taxRate')


class NetherlandsDetails:
    """Netherlands Box 3 tax on savings and investments.

    Two regimes are split by `transitionYear`:
    - before it, a deemed return is taxed: assets x deemed asset rate minus
      debt x deemed debt rate;
    - from it onward, the actual return is taxed: note interest +
      dividends + equity growth minus margin interest.
    The allowance is subtracted in both regimes. A negative result is
    banked as a loss carryforward and offsets the next year's base.
    """

    def __init__(self, reference: Optional[dict] = None):
        """
        reference: parsed netherlands-box3.json; loaded from the reference
                   directory when omitted.
        """
        if reference is None:
            ref_path = os.path.join(os.path.dirname(__file__), '../../reference/netherlands-box3.json')
            with open(ref_path, 'r') as f:
                reference = json.load(f)
        missing = [k for k in REQUIRED_KEYS if k not in reference]
        if missing:
            raise ValueError(f"netherlands-box3.json is missing required keys: {missing}")
        self.transition_year = int(reference['transitionYear'])
        self.deemed_asset_rate = float(reference['deemedAssetRate'])
        self.deemed_debt_rate = float(reference['deemedDebtRate'])
        self.allowance = float(reference['allowance'])
        self.tax_rate = float(reference['taxRate'])

    def is_deemed_regime(self, year: int) -> bool:
        return year < self.transition_year

    def taxBurden(self, year: int, notes: float, equities: float, margin: float,
                  note_interest: float, dividends: float, equity_growth: float,
                  margin_interest: float, loss_carryforward: float = 0.0,
                  use_carryforward: bool = True) -> NetherlandsResult:
        """Box 3 tax for one year.

        Balances are the opening balances of the year; the income figures
        are the year's accruals. `loss_carryforward` is the positive
        magnitude banked by earlier years.
        """
        deemed = self.is_deemed_regime(year)
        if deemed:
            deemed_or_actual = (notes + equities) * self.deemed_asset_rate
            margin_deduction = margin * self.deemed_debt_rate
        else:
            deemed_or_actual = note_interest + dividends + equity_growth
            margin_deduction = margin_interest

        taxable_before_loss = deemed_or_actual - margin_deduction - self.allowance
        carried_in = loss_carryforward if use_carryforward else 0.0
        net_after_loss = taxable_before_loss - carried_in
        taxable = max(0.0, net_after_loss)
        carried_out = max(0.0, -net_after_loss) if use_carryforward else 0.0

        return NetherlandsResult(
            deemed_or_actual=deemed_or_actual,
            margin_deduction=margin_deduction,
            allowance=self.allowance,
            taxable_before_loss=taxable_before_loss,
            taxable=taxable,
            tax_rate=self.tax_rate,
            tax=taxable * self.tax_rate,
            loss_carryforward=carried_out,
            deemed_regime=deemed,
        )

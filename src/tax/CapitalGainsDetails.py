import json
import os
from typing import Iterable, Optional

from model.TaxLot import TaxLot


class CapitalGainsDetails:
    """Long-term capital gains tax on liquidated tax lots.

    The rate comes from `reference/capital-gains.json` as `longTermRate`.
    Lots whose instrument class is listed in `zero_basis_classes` are sold
    with a zero basis (basis step-down election).
    """

    def __init__(self, ltcg_rate: Optional[float] = None, zero_basis_classes: Iterable[str] = ()):
        if ltcg_rate is None:
            ref_path = os.path.join(os.path.dirname(__file__), '../../reference/capital-gains.json')
            with open(ref_path, 'r') as f:
                ltcg_rate = json.load(f).get('longTermRate', 0)
        if ltcg_rate > 1:
            ltcg_rate = ltcg_rate / 100.0
        self.ltcg_rate = ltcg_rate
        self.zero_basis_classes = frozenset(zero_basis_classes)

    def sale_value(self, lot: TaxLot, sale_year: int, first_year: int, equity_growth_rate: float) -> float:
        """Value of the lot when sold.

        Equity lots compound at the equity growth rate from the first
        projection year to the sale year; fixed-income lots sell at fair value.
        """
        if not lot.is_equity:
            return lot.fair_value
        years = max(0, sale_year - first_year)
        return lot.fair_value * ((1 + equity_growth_rate) ** years)

    def basis(self, lot: TaxLot) -> float:
        if lot.instrument_class and lot.instrument_class in self.zero_basis_classes:
            return 0.0
        return lot.cost_basis

    def realized_gain(self, proceeds: float, basis: float) -> float:
        return proceeds - basis

    def tax(self, gain: float) -> float:
        return max(0.0, gain) * self.ltcg_rate

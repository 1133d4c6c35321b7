from dataclasses import dataclass


@dataclass
class NetherlandsResult:
    """Box 3 breakdown for one year."""
    deemed_or_actual: float
    margin_deduction: float
    allowance: float
    taxable_before_loss: float  # after allowance, before the carried loss
    taxable: float
    tax_rate: float
    tax: float
    loss_carryforward: float  # balance carried into next year
    deemed_regime: bool


@dataclass
class SwissResult:
    """Zurich wealth and investment-income breakdown for one year."""
    net_wealth_usd: float
    net_wealth_chf: float
    cantonal_basic_tax: float
    municipal_tax: float
    total_wealth_tax_chf: float
    wealth_tax_usd: float
    investment_income: float
    income_tax: float

    @property
    def total_tax(self) -> float:
        return self.wealth_tax_usd + self.income_tax

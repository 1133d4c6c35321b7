"""Household inputs for a net worth projection.

`PlanInputs` holds everything a single projection run reads: opening
balances, rate assumptions, benefit amounts, the withdrawal curve and the
regime switches that select between the modelled tax variants. It is
built once from a program spec and never mutated while a run is in
progress.
"""

import math
from dataclasses import dataclass, field, fields, replace
from typing import List, Optional, Tuple


@dataclass
class WithdrawalBand:
    """An inclusive age band with its withdrawal multiplier."""
    min_age: int
    max_age: int
    multiplier: float

    def contains(self, age: int) -> bool:
        return self.min_age <= age <= self.max_age


DEFAULT_WITHDRAWAL_CURVE = [
    WithdrawalBand(58, 69, 1.0),
    WithdrawalBand(70, 79, 0.9),
    WithdrawalBand(80, 90, 1.026),
]


def safe_float(value, default: float = 0.0) -> float:
    """Coerce a spec value to a finite float.

    None falls back to `default`; anything that is not a finite number
    (NaN, infinity, unparsable strings) becomes 0.0.
    """
    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _optional_year(value) -> Optional[int]:
    if value is None or value == "never":
        return None
    number = safe_float(value)
    return int(number) if number > 0 else None


@dataclass
class PlanInputs:
    """Opening balances and assumptions for one projection run.

    Rates are fractions (0.0434 for 4.34%). `move_year` of None means the
    household never relocates, so the Swiss tax path is never selected.
    """
    first_year: int = 2026
    last_year: int = 2058
    birth_year: int = 1967

    # Opening balances
    note_balance: float = 0.0
    equity_balance: float = 0.0
    margin_balance: float = 0.0
    secondary_balance: float = 0.0
    retirement_primary_balance: float = 0.0
    retirement_spouse_balance: float = 0.0

    # Rate assumptions
    note_rate: float = 0.0
    dividend_yield: float = 0.0
    equity_growth_rate: float = 0.0
    margin_rate: float = 0.0
    secondary_return_rate: Optional[float] = None  # None: dividend yield + equity growth
    retirement_growth_rate: float = 0.0

    # Social insurance
    benefit_primary_monthly: float = 0.0
    benefit_spouse_monthly: float = 0.0
    benefit_haircut: float = 1.0
    benefit_start_age: int = 70

    # Withdrawals
    margin_withdrawal_share: float = 0.7
    withdrawal_curve: List[WithdrawalBand] = field(default_factory=lambda: list(DEFAULT_WITHDRAWAL_CURVE))

    # Relocation
    move_year: Optional[int] = None
    usd_chf: float = 0.9
    municipal_multiplier: float = 1.19

    # Scheduled retirement account decumulation
    retirement_withdrawal_start_age: int = 73
    retirement_withdrawal_years: int = 0

    # Regime switches
    nl_loss_carryforward: bool = True
    ch_deduct_margin_interest: bool = False
    liquidation_pays_margin: bool = False
    liquidation_enabled: bool = True
    zero_basis_classes: Tuple[str, ...] = ()

    @property
    def years(self) -> List[int]:
        return list(range(self.first_year, self.last_year + 1))

    def age_in(self, year: int) -> int:
        return year - self.birth_year

    def secondary_rate(self) -> float:
        if self.secondary_return_rate is None:
            return self.dividend_yield + self.equity_growth_rate
        return self.secondary_return_rate

    def curve_multiplier(self, age: int) -> float:
        """Multiplier of the first band containing `age`, 1.0 outside all bands."""
        for band in self.withdrawal_curve:
            if band.contains(age):
                return band.multiplier
        return 1.0

    def sanitized(self) -> 'PlanInputs':
        """Return a copy with every non-finite float field coerced to zero."""
        changes = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, float) and not math.isfinite(value):
                changes[f.name] = 0.0
        curve = [
            WithdrawalBand(b.min_age, b.max_age, safe_float(b.multiplier, 1.0))
            for b in self.withdrawal_curve
        ]
        return replace(self, withdrawal_curve=curve, **changes)

    @classmethod
    def from_spec(cls, spec: dict) -> 'PlanInputs':
        """Build inputs from a program spec dictionary.

        Missing sections and keys fall back to the dataclass defaults.
        """
        accounts = spec.get('accounts', {})
        rates = spec.get('rates', {})
        benefits = spec.get('benefits', {})
        withdrawal = spec.get('withdrawal', {})
        relocation = spec.get('relocation', {})
        decumulation = spec.get('retirementDecumulation', {})
        regime = spec.get('regime', {})

        first_year = int(safe_float(spec.get('firstYear'), 2026))
        last_year = int(safe_float(spec.get('lastPlanningYear'), first_year + 32))

        curve_spec = withdrawal.get('curve')
        if curve_spec is None:
            curve = list(DEFAULT_WITHDRAWAL_CURVE)
        else:
            curve = [
                WithdrawalBand(
                    min_age=int(safe_float(b.get('minAge'))),
                    max_age=int(safe_float(b.get('maxAge'))),
                    multiplier=safe_float(b.get('multiplier'), 1.0),
                )
                for b in curve_spec
            ]

        secondary_rate = rates.get('secondaryReturnRate')

        return cls(
            first_year=first_year,
            last_year=last_year,
            birth_year=int(safe_float(spec.get('birthYear'), first_year - 59)),
            note_balance=safe_float(accounts.get('noteBalance')),
            equity_balance=safe_float(accounts.get('equityBalance')),
            margin_balance=safe_float(accounts.get('marginBalance')),
            secondary_balance=safe_float(accounts.get('secondaryBalance')),
            retirement_primary_balance=safe_float(accounts.get('retirementPrimaryBalance')),
            retirement_spouse_balance=safe_float(accounts.get('retirementSpouseBalance')),
            note_rate=safe_float(rates.get('noteRate')),
            dividend_yield=safe_float(rates.get('dividendYield')),
            equity_growth_rate=safe_float(rates.get('equityGrowthRate')),
            margin_rate=safe_float(rates.get('marginRate')),
            secondary_return_rate=None if secondary_rate is None else safe_float(secondary_rate),
            retirement_growth_rate=safe_float(rates.get('retirementGrowthRate')),
            benefit_primary_monthly=safe_float(benefits.get('primaryMonthly')),
            benefit_spouse_monthly=safe_float(benefits.get('spouseMonthly')),
            benefit_haircut=safe_float(benefits.get('haircut'), 1.0),
            benefit_start_age=int(safe_float(benefits.get('startAge'), 70)),
            margin_withdrawal_share=safe_float(withdrawal.get('marginShare'), 0.7),
            withdrawal_curve=curve,
            move_year=_optional_year(relocation.get('moveYear')),
            usd_chf=safe_float(relocation.get('usdChf'), 0.9),
            municipal_multiplier=safe_float(relocation.get('municipalMultiplier'), 1.19),
            retirement_withdrawal_start_age=int(safe_float(decumulation.get('startAge'), 73)),
            retirement_withdrawal_years=int(safe_float(decumulation.get('years'), 0)),
            nl_loss_carryforward=bool(regime.get('nlLossCarryforward', True)),
            ch_deduct_margin_interest=bool(regime.get('chDeductMarginInterest', False)),
            liquidation_pays_margin=bool(regime.get('liquidationPaysMargin', False)),
            liquidation_enabled=bool(regime.get('liquidationEnabled', True)),
            zero_basis_classes=tuple(spec.get('zeroBasisClasses', [])),
        )

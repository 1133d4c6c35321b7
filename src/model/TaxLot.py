"""Tax lots and the schedule that decides when each one is sold."""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from model.PlanInputs import safe_float


EQUITY = 'equity'
FIXED_INCOME = 'fixed_income'
HOLD = 'hold'


@dataclass(frozen=True)
class TaxLot:
    """A purchased block of one instrument. Read-only reference data."""
    lot_id: str
    ticker: str
    description: str
    fair_value: float
    cost_basis: float
    unrealized_gain: float
    acquired: Optional[date]
    kind: str = EQUITY
    instrument_class: str = ''

    @property
    def is_equity(self) -> bool:
        return self.kind == EQUITY

    @classmethod
    def from_spec(cls, entry: dict) -> 'TaxLot':
        kind = entry.get('kind', EQUITY)
        if kind not in (EQUITY, FIXED_INCOME):
            raise ValueError(f"Lot '{entry.get('id')}' has unknown kind '{kind}'")
        fair_value = safe_float(entry.get('fairValue'))
        cost_basis = safe_float(entry.get('costBasis'))
        acquired = entry.get('acquired')
        return cls(
            lot_id=str(entry['id']),
            ticker=entry.get('ticker', ''),
            description=entry.get('description', ''),
            fair_value=fair_value,
            cost_basis=cost_basis,
            unrealized_gain=safe_float(entry.get('unrealizedGain'), fair_value - cost_basis),
            acquired=date.fromisoformat(acquired) if acquired else None,
            kind=kind,
            instrument_class=entry.get('instrumentClass', ''),
        )


def load_lots(entries: Iterable[dict]) -> List[TaxLot]:
    lots = [TaxLot.from_spec(e) for e in entries]
    ids = [lot.lot_id for lot in lots]
    if len(ids) != len(set(ids)):
        raise ValueError(f"Duplicate tax lot ids: {ids}")
    return lots


@dataclass(frozen=True)
class LiquidationSchedule:
    """Maps lot ids to the calendar year they are sold in.

    Lots that are absent are held for the whole horizon. Instances are
    immutable; `assign` returns a new schedule.
    """
    assignments: Dict[str, int] = field(default_factory=dict)

    def year_for(self, lot_id: str) -> Optional[int]:
        return self.assignments.get(lot_id)

    def is_held(self, lot_id: str) -> bool:
        return lot_id not in self.assignments

    def is_all_hold(self) -> bool:
        return not self.assignments

    def assign(self, lot_id: str, year: int) -> 'LiquidationSchedule':
        updated = dict(self.assignments)
        updated[lot_id] = year
        return LiquidationSchedule(updated)

    def to_spec(self, lots: Iterable[TaxLot]) -> Dict[str, object]:
        return {lot.lot_id: self.assignments.get(lot.lot_id, HOLD) for lot in lots}

    @classmethod
    def from_spec(cls, entries: Optional[dict]) -> 'LiquidationSchedule':
        assignments = {}
        for lot_id, value in (entries or {}).items():
            if value is None or value == HOLD:
                continue
            assignments[str(lot_id)] = int(value)
        return cls(assignments)


@dataclass
class LotSale:
    """One lot sold in one year."""
    lot_id: str
    kind: str
    proceeds: float
    basis: float
    gain: float
    tax: float

    @property
    def net_proceeds(self) -> float:
        return self.proceeds - self.tax


@dataclass
class LiquidationEvent:
    """All lot sales that settle in a single year."""
    year: int
    sales: List[LotSale] = field(default_factory=list)

    @property
    def proceeds(self) -> float:
        return sum(s.proceeds for s in self.sales)

    @property
    def gain(self) -> float:
        return sum(s.gain for s in self.sales)

    @property
    def tax(self) -> float:
        return sum(s.tax for s in self.sales)

    @property
    def net_proceeds(self) -> float:
        return self.proceeds - self.tax

    def proceeds_by_kind(self, kind: str) -> float:
        return sum(s.proceeds for s in self.sales if s.kind == kind)

"""Turns lot assignments into per-year liquidation cash events."""

from typing import Dict, Iterable, List

from model.TaxLot import TaxLot, LiquidationSchedule, LiquidationEvent, LotSale, EQUITY, FIXED_INCOME
from tax.CapitalGainsDetails import CapitalGainsDetails


class LiquidationScheduler:
    """Maps a liquidation schedule to the lot sales of each year.

    Scheduling is a pure function of the schedule: it never looks at
    account balances. `settle` scales a year's event down when the owning
    account holds less than the scheduled sale value.
    """

    def __init__(self, lots: Iterable[TaxLot], capital_gains: CapitalGainsDetails,
                 first_year: int, last_year: int, equity_growth_rate: float):
        self.lots: List[TaxLot] = list(lots)
        self.lots_by_id: Dict[str, TaxLot] = {lot.lot_id: lot for lot in self.lots}
        self.capital_gains = capital_gains
        self.first_year = first_year
        self.last_year = last_year
        self.equity_growth_rate = equity_growth_rate

    def validate(self, schedule: LiquidationSchedule) -> None:
        for lot_id, year in schedule.assignments.items():
            if lot_id not in self.lots_by_id:
                raise ValueError(f"Liquidation schedule references unknown lot '{lot_id}'")
            if year < self.first_year or year > self.last_year:
                raise ValueError(
                    f"Lot '{lot_id}' is scheduled for {year}, outside {self.first_year}-{self.last_year}"
                )

    def sale(self, lot: TaxLot, year: int) -> LotSale:
        proceeds = self.capital_gains.sale_value(lot, year, self.first_year, self.equity_growth_rate)
        basis = self.capital_gains.basis(lot)
        gain = self.capital_gains.realized_gain(proceeds, basis)
        return LotSale(
            lot_id=lot.lot_id,
            kind=lot.kind,
            proceeds=proceeds,
            basis=basis,
            gain=gain,
            tax=self.capital_gains.tax(gain),
        )

    def events(self, schedule: LiquidationSchedule) -> Dict[int, LiquidationEvent]:
        """Liquidation events keyed by year. An all-hold schedule yields none."""
        self.validate(schedule)
        events: Dict[int, LiquidationEvent] = {}
        for lot in self.lots:
            year = schedule.year_for(lot.lot_id)
            if year is None:
                continue
            events.setdefault(year, LiquidationEvent(year)).sales.append(self.sale(lot, year))
        return events

    def settle(self, event: LiquidationEvent, notes: float, equities: float) -> LiquidationEvent:
        """Cap the event at what the owning accounts actually hold.

        Sales of one kind are scaled pro rata (proceeds and basis together)
        when the account balance is below their combined proceeds.
        """
        scales = {}
        for kind, balance in ((EQUITY, equities), (FIXED_INCOME, notes)):
            scheduled = event.proceeds_by_kind(kind)
            if scheduled > balance:
                scales[kind] = max(0.0, balance) / scheduled
        if not scales:
            return event

        settled = LiquidationEvent(event.year)
        for s in event.sales:
            scale = scales.get(s.kind, 1.0)
            proceeds = s.proceeds * scale
            basis = s.basis * scale
            gain = self.capital_gains.realized_gain(proceeds, basis)
            settled.sales.append(LotSale(
                lot_id=s.lot_id,
                kind=s.kind,
                proceeds=proceeds,
                basis=basis,
                gain=gain,
                tax=self.capital_gains.tax(gain),
            ))
        return settled

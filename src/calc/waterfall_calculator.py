"""Cash-flow waterfall across the margin facility and the secondary account."""

import logging
from dataclasses import dataclass

from model.SimulationState import (
    SimulationState, financing_cap, NOTE_CAP_FRACTION, EQUITY_CAP_FRACTION,
)


logger = logging.getLogger(__name__)

CAP_TOLERANCE = 1e-6


@dataclass
class WaterfallResult:
    """How one year's net cash flow was absorbed."""
    net_cash_flow: float = 0.0
    margin_paydown: float = 0.0
    surplus_to_secondary: float = 0.0
    margin_draw: float = 0.0
    secondary_draw: float = 0.0
    uncovered: float = 0.0
    cap_secondary_draw: float = 0.0
    forced_equity_sale: float = 0.0
    forced_note_sale: float = 0.0


class WaterfallCalculator:
    """Allocates a year's surplus or shortfall and enforces the financing cap.

    A surplus repays margin; what is left after the loan is cleared goes
    to the secondary account. A shortfall is split by `margin_share`
    between a margin draw (limited by the cap headroom) and a secondary
    draw (limited by the account balance), each overflowing into the
    other. Whatever neither source can fund is recorded as uncovered.
    """

    def __init__(self, margin_share: float):
        self.margin_share = min(1.0, max(0.0, margin_share))

    def allocate(self, state: SimulationState, net_cash_flow: float) -> WaterfallResult:
        result = WaterfallResult(net_cash_flow=net_cash_flow)

        if net_cash_flow >= 0:
            paydown = min(net_cash_flow, state.margin)
            state.margin -= paydown
            result.margin_paydown = paydown
            result.surplus_to_secondary = net_cash_flow - paydown
            state.secondary += result.surplus_to_secondary
            return result

        shortfall = -net_cash_flow
        margin_draw = shortfall * self.margin_share
        secondary_draw = shortfall - margin_draw

        headroom = state.headroom
        if margin_draw > headroom:
            secondary_draw += margin_draw - headroom
            margin_draw = headroom

        available = max(0.0, state.secondary)
        uncovered = 0.0
        if secondary_draw > available:
            excess = secondary_draw - available
            secondary_draw = available
            extra_margin = min(excess, max(0.0, headroom - margin_draw))
            margin_draw += extra_margin
            uncovered = excess - extra_margin

        state.margin += margin_draw
        state.secondary -= secondary_draw
        state.uncovered += uncovered

        result.margin_draw = margin_draw
        result.secondary_draw = secondary_draw
        result.uncovered = uncovered
        return result

    def enforce_cap(self, state: SimulationState, result: WaterfallResult) -> WaterfallResult:
        """Bring margin back under the financing cap.

        The secondary account repays first. Equities are then sold by
        2 x the excess, since each dollar sold lowers the loan by one and
        the cap by 0.5. Notes are sold only once equities are gone.
        """
        excess = state.margin - state.cap
        if excess <= CAP_TOLERANCE:
            return result

        draw = min(max(0.0, state.secondary), excess)
        state.secondary -= draw
        state.margin -= draw
        result.cap_secondary_draw = draw
        excess -= draw

        if excess > CAP_TOLERANCE and state.equities > 0:
            sold = min(excess / (1 - EQUITY_CAP_FRACTION), state.equities)
            state.equities -= sold
            state.margin -= sold
            result.forced_equity_sale = sold
            excess = state.margin - state.cap

        if excess > CAP_TOLERANCE and state.notes > 0:
            sold = min(excess / (1 - NOTE_CAP_FRACTION), state.notes)
            state.notes -= sold
            state.margin -= sold
            result.forced_note_sale = sold
            excess = state.margin - state.cap

        if excess > CAP_TOLERANCE:
            logger.debug(
                "Margin %.2f exceeds cap %.2f with no collateral left to sell",
                state.margin, financing_cap(state.notes, state.equities),
            )
        return result

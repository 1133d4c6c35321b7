"""Render module for net-worth projection output display."""

from render.renderers import (
    BaseRenderer,
    SummaryRenderer,
    DetailRenderer,
    TaxesRenderer,
    BandsRenderer,
    LiquidationRenderer,
    CustomRenderer,
    RENDERER_REGISTRY,
)

__all__ = [
    'BaseRenderer',
    'SummaryRenderer',
    'DetailRenderer',
    'TaxesRenderer',
    'BandsRenderer',
    'LiquidationRenderer',
    'CustomRenderer',
    'RENDERER_REGISTRY',
]

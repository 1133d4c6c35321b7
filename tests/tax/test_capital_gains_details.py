import os
import sys
import pytest
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../../src')))
from tax.CapitalGainsDetails import CapitalGainsDetails
from model.TaxLot import TaxLot, EQUITY, FIXED_INCOME


def make_lot(kind=EQUITY, fair_value=100000, cost_basis=40000, instrument_class='etf'):
    return TaxLot('L1', 'VTI', '', fair_value, cost_basis, fair_value - cost_basis, None,
                  kind=kind, instrument_class=instrument_class)


def test_rate_from_reference():
    assert CapitalGainsDetails().ltcg_rate == pytest.approx(0.20)


def test_percent_rate_is_normalized():
    assert CapitalGainsDetails(15).ltcg_rate == pytest.approx(0.15)


def test_equity_lot_compounds_to_sale_year():
    cg = CapitalGainsDetails(0.2)
    assert cg.sale_value(make_lot(), 2028, 2026, 0.05) == pytest.approx(100000 * 1.05 ** 2)
    assert cg.sale_value(make_lot(), 2026, 2026, 0.05) == pytest.approx(100000)


def test_fixed_income_lot_sells_at_fair_value():
    cg = CapitalGainsDetails(0.2)
    lot = make_lot(kind=FIXED_INCOME)
    assert cg.sale_value(lot, 2040, 2026, 0.05) == pytest.approx(100000)


def test_zero_basis_classes():
    cg = CapitalGainsDetails(0.2, zero_basis_classes=['etf'])
    assert cg.basis(make_lot()) == 0.0
    assert cg.basis(make_lot(instrument_class='note')) == pytest.approx(40000)


def test_losses_are_not_taxed():
    cg = CapitalGainsDetails(0.2)
    assert cg.tax(cg.realized_gain(30000, 40000)) == 0.0
    assert cg.tax(cg.realized_gain(100000, 40000)) == pytest.approx(12000)

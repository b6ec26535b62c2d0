import itertools

import pytest

from prepline.config import EngineConfig
from prepline.services.unit_conversion import ConversionEngine, unit_tools

from .conftest import EXTENDED_UNITS


@pytest.fixture
def engine():
    return ConversionEngine(EngineConfig())


@pytest.fixture
def wide_engine():
    return ConversionEngine(EngineConfig(allowed_units=EXTENDED_UNITS))


def test_legacy_gram_is_rejected_and_suggested_as_kg(engine):
    assert engine.is_unit_allowed('g') is False
    assert engine.convert(1000, 'g', 'kg') is None

    suggestion = engine.suggest_better_unit(1000, 'g')
    assert suggestion['shouldChange'] is True
    assert suggestion['suggestedUnit'] == 'kg'
    assert suggestion['suggestedQuantity'] == pytest.approx(1.0)


def test_suggestions_follow_dimension(engine):
    assert engine.suggest_better_unit(500, 'ml')['suggestedUnit'] == 'l'
    assert engine.suggest_better_unit(2, 'gam')['suggestedUnit'] == 'kg'
    # unknown and count-like legacy units fall back to kg without a quantity
    cup = engine.suggest_better_unit(3, 'cup')
    assert cup['suggestedUnit'] == 'kg'
    assert 'suggestedQuantity' not in cup
    assert engine.suggest_better_unit(1, 'kg') == {
        'shouldChange': False,
        'reason': 'Unit is appropriate for the quantity',
    }


def test_canonical_units_are_allowed(engine):
    for unit in ('kg', 'l', 'piece', ' KG '):
        assert engine.is_unit_allowed(unit)
    assert not engine.is_unit_allowed('')
    assert not engine.is_unit_allowed(None)


def test_cross_dimension_pairs_are_incompatible(wide_engine):
    assert wide_engine.are_units_compatible('kg', 'g')
    assert not wide_engine.are_units_compatible('kg', 'l')
    assert not wide_engine.are_units_compatible('piece', 'ml')
    assert wide_engine.convert(1, 'kg', 'l') is None


def test_convert_applies_linear_factors(wide_engine):
    assert wide_engine.convert(1500, 'g', 'kg') == pytest.approx(1.5)
    assert wide_engine.convert(2, 'l', 'ml') == pytest.approx(2000)
    assert wide_engine.convert(3, 'dozen', 'piece') == pytest.approx(36)
    assert wide_engine.convert(1, 'lb', 'oz') == pytest.approx(16)
    assert wide_engine.convert('abc', 'g', 'kg') is None


@pytest.mark.parametrize('quantity', [0.0, 0.001, 1.0, 7.5, 1234.5678])
def test_round_trip_for_every_compatible_pair(wide_engine, quantity):
    for unit_a, unit_b in itertools.permutations(EXTENDED_UNITS, 2):
        if not wide_engine.are_units_compatible(unit_a, unit_b):
            continue
        there = wide_engine.convert(quantity, unit_a, unit_b)
        back = wide_engine.convert(there, unit_b, unit_a)
        assert back == pytest.approx(quantity, rel=1e-9, abs=1e-12), (unit_a, unit_b)


def test_availability_reports_shortfall_in_stock_unit(wide_engine):
    result = wide_engine.check_ingredient_availability(2, 'kg', 4500, 'g')
    assert result.comparable
    assert not result.sufficient
    assert result.required == pytest.approx(4.5)
    assert result.shortfall == pytest.approx(2.5)
    assert result.unit == 'kg'


def test_availability_with_incompatible_units_does_not_raise(engine):
    result = engine.check_ingredient_availability(10, 'kg', 1, 'l')
    assert result.comparable is False
    assert result.sufficient is False
    assert 'incompatible' in result.reason


def test_availability_same_unit_outside_vocabulary(engine):
    result = engine.check_ingredient_availability(5, 'gam', 3, 'gam')
    assert result.comparable and result.sufficient
    assert result.shortfall == 0.0


def test_unit_tools_payloads(engine):
    listing = unit_tools.list_allowed_units(engine)
    assert listing['allowedUnits'] == ['kg', 'l', 'piece']
    assert listing['byDimension'] == {'mass': ['kg'], 'volume': ['l'], 'count': ['piece']}

    invalid = unit_tools.validate_unit(engine, 'g', 1000)
    assert invalid['isAllowed'] is False
    assert invalid['suggestion']['suggestedUnit'] == 'kg'
    assert unit_tools.validate_unit(engine, '')['error'] == 'unit_required'

    assert unit_tools.convert_quantity(engine, -1, 'kg', 'kg')['error'] == 'invalid_quantity'
    assert unit_tools.convert_quantity(engine, 1000, 'g', 'kg')['error'] == 'conversion_failed'
    assert unit_tools.convert_quantity(engine, 2, 'kg', 'kg')['convertedQuantity'] == 2.0

    compatibility = unit_tools.check_compatibility(engine, 'kg', 'l')
    assert compatibility['compatible'] is False
    assert compatibility['dimensions'] == {'unitA': 'mass', 'unitB': 'volume'}

    mismatch = unit_tools.check_availability(engine, 10, 'kg', 1, 'l')
    assert mismatch['success'] is False
    assert mismatch['error'] == 'unit_incompatible'
    ok = unit_tools.check_availability(engine, 10, 'kg', 4, 'kg')
    assert ok['success'] is True and ok['sufficient'] is True

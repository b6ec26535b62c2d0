from datetime import timedelta

import pytest

from prepline.models import CompositeProductHistory
from prepline.services.composite_product import _stock_ops
from prepline.services.composite_product.errors import (
    InsufficientStockError,
    InvalidQuantityToDiscardError,
)
from prepline.utils.timezone_utils import TimezoneUtils


def test_waste_removes_requested_servings(service, kitchen, operator):
    service.prepare(kitchen.soup, 1, operator)

    result = service.discard(kitchen.soup, 'waste', operator, quantity=5, notes='Dropped a pot')

    assert result.remaining_stock == 45
    assert result.estimated_loss == pytest.approx(5 * 0.75)
    record = CompositeProductHistory.query.filter_by(action='waste').one()
    assert (record.stock_before, record.stock_after, record.notes) == (50, 45, 'Dropped a pot')


def test_expire_without_quantity_clears_stock(service, kitchen, operator):
    service.prepare(kitchen.soup, 1, operator)

    result = service.discard(kitchen.soup, 'expire', operator)

    assert result.quantity == 50
    assert kitchen.soup.current_stock == 0


def test_discard_validation(service, kitchen, operator):
    with pytest.raises(InsufficientStockError):
        service.discard(kitchen.soup, 'expire', operator)

    service.prepare(kitchen.soup, 1, operator)
    with pytest.raises(InvalidQuantityToDiscardError):
        service.discard(kitchen.soup, 'waste', operator)
    with pytest.raises(InvalidQuantityToDiscardError):
        service.discard(kitchen.soup, 'waste', operator, quantity=0)
    with pytest.raises(InsufficientStockError):
        service.discard(kitchen.soup, 'waste', operator, quantity=51)
    with pytest.raises(ValueError):
        service.discard(kitchen.soup, 'serve', operator, quantity=1)
    assert kitchen.soup.current_stock == 50


def test_sweep_expires_only_stale_composites(service, make_kitchen, operator):
    now = TimezoneUtils.utc_now()
    stale = make_kitchen(product_code='STALE')
    fresh = make_kitchen(product_code='FRESH', store_id='store-2')
    service.prepare(stale.soup, 1, operator, now=now - timedelta(hours=26))
    service.prepare(fresh.soup, 1, operator, now=now - timedelta(hours=1))

    result = service.clean_expired_composites(now=now)

    assert result['cleanedCount'] == 1
    expired = result['expiredProducts'][0]
    assert expired['productId'] == stale.soup.id
    assert expired['expiredStock'] == 50
    assert expired['hoursOverdue'] == pytest.approx(2.0)
    assert stale.soup.current_stock == 0
    assert fresh.soup.current_stock == 50

    record = CompositeProductHistory.query.filter_by(action='expire').one()
    assert record.operator_user_id == 'system'


def test_sweep_can_be_limited_to_a_store(service, make_kitchen, operator):
    now = TimezoneUtils.utc_now()
    kitchen = make_kitchen(store_id='store-9')
    service.prepare(kitchen.soup, 1, operator, now=now - timedelta(hours=48))

    assert service.clean_expired_composites(store_id='store-1', now=now)['cleanedCount'] == 0
    assert service.clean_expired_composites(store_id='store-9', now=now)['cleanedCount'] == 1


def test_sweep_keeps_going_when_one_product_loses_a_race(service, make_kitchen, operator, monkeypatch):
    now = TimezoneUtils.utc_now()
    first = make_kitchen(product_code='FIRST')
    second = make_kitchen(product_code='SECOND', store_id='store-2')
    service.prepare(first.soup, 1, operator, now=now - timedelta(hours=30))
    service.prepare(second.soup, 1, operator, now=now - timedelta(hours=30))

    contested_id = first.soup.id
    decrease = _stock_ops.decrease_composite_stock

    def contested_decrease(product, servings):
        if product.id == contested_id:
            raise _stock_ops.StockConflict('composite', product.id, servings)
        return decrease(product, servings)

    monkeypatch.setattr(_stock_ops, 'decrease_composite_stock', contested_decrease)

    result = service.clean_expired_composites(now=now)

    assert result['cleanedCount'] == 1
    assert result['expiredProducts'][0]['productId'] == second.soup.id
    assert first.soup.current_stock == 50
    assert second.soup.current_stock == 0
    assert CompositeProductHistory.query.filter_by(action='expire').count() == 1

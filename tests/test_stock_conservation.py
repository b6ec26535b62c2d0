import pytest

from prepline.models import CompositeProductHistory
from prepline.services.composite_product.errors import CompositeProductError


def test_stock_equals_signed_sum_of_history(service, kitchen, operator):
    soup = kitchen.soup
    service.prepare(soup, 1, operator)
    service.serve(soup, 10, operator)
    service.prepare(soup, 2, operator)
    service.serve(soup, 30, operator)
    service.discard(soup, 'waste', operator, quantity=5)

    assert soup.current_stock == 105

    records = service.history_for_product(soup.id, limit=None)
    assert len(records) == 5
    signed = sum(r.quantity if r.is_positive_action else -r.quantity for r in records)
    assert signed == soup.current_stock
    for record in records:
        assert record.stock_after == record.stock_before + (
            record.quantity if record.is_positive_action else -record.quantity
        )
        assert record.stock_before >= 0 and record.stock_after >= 0


def test_rejected_calls_leave_no_trace(service, kitchen, operator):
    soup = kitchen.soup
    service.prepare(soup, 1, operator)
    attempts = [
        lambda: service.serve(soup, 100, operator),
        lambda: service.serve(soup, 0, operator),
        lambda: service.discard(soup, 'waste', operator, quantity=51),
        lambda: service.prepare(soup, 50, operator),
    ]
    for attempt in attempts:
        with pytest.raises(CompositeProductError):
            attempt()

    assert soup.current_stock == 50
    assert CompositeProductHistory.query.count() == 1
    assert kitchen.rice.stock_quantity == pytest.approx(92.5)


def test_ingredient_draw_down_matches_history(service, kitchen, operator):
    service.prepare(kitchen.soup, 2, operator)
    service.prepare(kitchen.soup, 1, operator)

    drawn = {}
    for record in CompositeProductHistory.query.filter_by(action='prepare'):
        for item in record.ingredients_used:
            drawn[item['name']] = drawn.get(item['name'], 0.0) + item['quantity']

    assert drawn['rice'] == pytest.approx(100 - kitchen.rice.stock_quantity)
    assert drawn['meat'] == pytest.approx(50 - kitchen.meat.stock_quantity)
    assert drawn['water'] == pytest.approx(100 - kitchen.water.stock_quantity)

import pytest

from prepline.extensions import db
from prepline.models import CompositeChildProduct, Ingredient, Product, Recipe, RecipeIngredient
from prepline.services.composite_product.errors import (
    ChildProductNotFoundError,
    InsufficientIngredientsError,
    InvalidChildProductStructureError,
    UnitIncompatibleError,
)

STORE = 'store-1'


def _simple_product(code, name, unit, stock, cost=1.0, ingredient=None):
    product = Product(
        store_id=STORE,
        product_code=code,
        name=name,
        unit=unit,
        stock_quantity=stock,
        cost_price=cost,
        ingredient=ingredient,
    )
    db.session.add(product)
    return product


def _burger(children, recipe=None, capacity=10):
    burger = Product(
        store_id=STORE,
        product_code='BURGER',
        name='Burger tray',
        is_composite=True,
        capacity_quantity=capacity,
        recipe=recipe,
        retail_price=4.0,
        child_products=children,
    )
    db.session.add(burger)
    db.session.commit()
    return burger


@pytest.fixture
def beef(app_context):
    return _simple_product('BEEF', 'beef', 'kg', 10.0, cost=5.0)


@pytest.fixture
def bun(app_context):
    return _simple_product('BUN', 'bun', 'piece', 100.0, cost=0.2)


def test_child_products_drive_preparation_without_recipe(service, beef, bun, operator):
    burger = _burger([
        CompositeChildProduct(product=beef, position=0, quantity_per_serving=0.2, unit='kg'),
        CompositeChildProduct(product=bun, position=1),
    ])

    plan = service.check_availability(burger, 2)
    requirements = {req['name']: req for req in plan.to_dict()['requirements']}
    assert requirements['beef']['source'] == 'legacy'
    assert requirements['beef']['needed'] == pytest.approx(4.0)
    assert requirements['beef']['isLegacyData'] is False
    # missing quantity/unit falls back to 1 per serving in the product's own unit
    assert requirements['bun']['needed'] == pytest.approx(20)
    assert requirements['bun']['unit'] == 'piece'
    assert requirements['bun']['isLegacyData'] is True

    result = service.prepare(burger, 2, operator)
    assert result.total_servings_prepared == 20
    assert result.recipe_batches_made == 2
    assert beef.stock_quantity == pytest.approx(6.0)
    assert bun.stock_quantity == pytest.approx(80.0)
    assert burger.current_stock == 20
    assert result.to_dict()['requiredIngredients'][str(bun.id)]['isLegacyData'] is True


def test_legacy_shortfall_is_flagged(service, beef, operator):
    burger = _burger([CompositeChildProduct(product=beef, position=0)], capacity=20)

    with pytest.raises(InsufficientIngredientsError) as excinfo:
        service.prepare(burger, 1, operator)

    assert excinfo.value.details == [{
        'name': 'beef',
        'needed': 20.0,
        'available': 10.0,
        'unit': 'kg',
        'shortfall': 10.0,
        'isLegacyData': True,
    }]
    assert beef.stock_quantity == 10.0


def test_stored_unit_reconciles_to_recipe_unit(service, operator, app_context):
    meat = Ingredient(store_id=STORE, name='meat', unit='kg', stock_quantity=5.0, cost_per_unit=8.0)
    retired = Recipe(
        store_id=STORE,
        dish_name='Old burger',
        yield_quantity=10,
        deleted=True,
        ingredients=[RecipeIngredient(ingredient=meat, amount_used=1.0, unit='kg', position=0)],
    )
    patty = _simple_product('PATTY', 'patty', 'kg', 10.0, ingredient=meat)
    burger = _burger(
        [CompositeChildProduct(product=patty, position=0, quantity_per_serving=0.5, unit='gam')],
        recipe=retired,
    )

    plan = service.check_availability(burger, 1)
    requirement = plan.requirements[0]
    assert requirement.source == 'legacy'
    assert requirement.unit == 'kg'
    assert requirement.stored_unit == 'gam'
    assert requirement.needed == pytest.approx(5.0)


def test_unreconcilable_stored_unit_is_surfaced(service, beef, operator):
    burger = _burger([CompositeChildProduct(product=beef, position=0, quantity_per_serving=0.5, unit='gam')])

    with pytest.raises(UnitIncompatibleError):
        service.prepare(burger, 1, operator)
    assert beef.stock_quantity == 10.0


def test_missing_child_product(service, operator, app_context):
    burger = _burger([CompositeChildProduct(product_id=None, name='ghost', position=0)])

    with pytest.raises(ChildProductNotFoundError) as excinfo:
        service.prepare(burger, 1, operator)
    assert excinfo.value.details[0]['name'] == 'ghost'


def test_composite_cannot_be_a_child(service, operator, app_context):
    inner = Product(store_id=STORE, product_code='INNER', name='inner', is_composite=True, capacity_quantity=1)
    db.session.add(inner)
    burger = _burger([CompositeChildProduct(product=inner, position=0, quantity_per_serving=1, unit='piece')])

    with pytest.raises(InvalidChildProductStructureError):
        service.prepare(burger, 1, operator)

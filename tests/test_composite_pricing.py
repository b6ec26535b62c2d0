import pytest

from prepline.config import EngineConfig
from prepline.extensions import db
from prepline.models import CompositeChildProduct, Product
from prepline.services.composite_product import CompositeProductService
from prepline.services.composite_product.errors import (
    ChildProductNotFoundError,
    InvalidChildProductStructureError,
    InvalidCompositeStructureError,
    RecipeNotFoundError,
)

COST_PER_PORTION = 15.03 / 20


class TestCreateComposite:

    def test_prices_come_from_recipe_cost(self, service, kitchen):
        product = service.create_composite('STEW-01', 'Stew', 'store-1', 50, kitchen.recipe.id)

        assert product.is_composite
        assert product.cost_price == pytest.approx(COST_PER_PORTION)
        assert product.price == pytest.approx(COST_PER_PORTION * 1.3)
        assert product.retail_price == pytest.approx(COST_PER_PORTION * 1.5)
        assert product.total_recipe_cost == pytest.approx(15.03)
        assert product.capacity == {'quantity': 50.0, 'unit': 'serving'}
        assert product.current_stock == 0
        assert product.last_prepared_at is None
        assert product.expiry_hours == kitchen.recipe.expiry_hours

    def test_explicit_prices_and_markups_from_config(self, kitchen):
        service = CompositeProductService(EngineConfig(wholesale_markup=2.0, retail_markup=3.0))
        product = service.create_composite(
            'STEW-02', 'Stew', 'store-1', {'quantity': 10, 'unit': 'bowl'}, kitchen.recipe.id, price=9.0
        )

        assert product.price == 9.0
        assert product.retail_price == pytest.approx(COST_PER_PORTION * 3.0)
        assert product.capacity_unit == 'bowl'

    @pytest.mark.parametrize('capacity', [0, -5, 0.5, 2.5, None])
    def test_capacity_must_be_whole_servings(self, service, kitchen, capacity):
        with pytest.raises(InvalidCompositeStructureError):
            service.create_composite('STEW', 'Stew', 'store-1', capacity, kitchen.recipe.id)

    def test_recipe_must_exist_in_store(self, service, kitchen):
        with pytest.raises(RecipeNotFoundError):
            service.create_composite('STEW', 'Stew', 'store-1', 10, 9999)
        with pytest.raises(RecipeNotFoundError):
            service.create_composite('STEW', 'Stew', 'store-2', 10, kitchen.recipe.id)

        kitchen.recipe.deleted = True
        db.session.commit()
        with pytest.raises(RecipeNotFoundError):
            service.create_composite('STEW', 'Stew', 'store-1', 10, kitchen.recipe.id)
        assert Product.query.filter_by(product_code='STEW').count() == 0

    def test_child_products_are_validated(self, service, kitchen):
        bun = Product(store_id='store-1', product_code='BUN', name='bun', cost_price=0.2, price=0.3, retail_price=0.5)
        db.session.add(bun)
        db.session.commit()

        with pytest.raises(InvalidChildProductStructureError) as excinfo:
            service.create_composite(
                'STEW', 'Stew', 'store-1', 10, kitchen.recipe.id,
                child_products=[{'productId': bun.id, 'quantityPerServing': 1}],
            )
        assert excinfo.value.details[0]['invalidFields'] == ['unit']

        with pytest.raises(ChildProductNotFoundError):
            service.create_composite(
                'STEW', 'Stew', 'store-1', 10, kitchen.recipe.id,
                child_products=[{'productId': 4242, 'quantityPerServing': 1, 'unit': 'piece'}],
            )

        product = service.create_composite(
            'STEW', 'Stew', 'store-1', 10, kitchen.recipe.id,
            child_products=[{'productId': bun.id, 'quantityPerServing': 2, 'unit': 'piece'}],
        )
        child = product.child_products[0]
        assert (child.name, child.quantity_per_serving, child.retail_price) == ('bun', 2.0, 0.5)


def test_price_from_recipe(service, kitchen):
    quote = service.price_from_recipe(kitchen.recipe.id, 50)

    assert quote['costPerServing'] == pytest.approx(COST_PER_PORTION)
    assert quote['totalRecipeCost'] == pytest.approx(37.575)
    assert quote['suggestedPrice'] == pytest.approx(37.575 * 1.3)
    assert quote['suggestedRetailPrice'] == pytest.approx(37.575 * 1.5)
    assert quote['recipeInfo']['totalRecipeCost'] == pytest.approx(15.03)
    assert len(quote['recipeInfo']['costBreakdown']) == 3

    with pytest.raises(InvalidCompositeStructureError):
        service.price_from_recipe(kitchen.recipe.id, 0)


def test_recalculate_cost_follows_ingredient_prices(service, kitchen):
    product = service.create_composite('STEW', 'Stew', 'store-1', 10, kitchen.recipe.id)
    kitchen.meat.cost_per_unit = 10.0
    db.session.commit()

    service.recalculate_cost(product)

    # 2.5 * 1.2 + 1.5 * 10 + 3 * 0.01
    assert product.total_recipe_cost == pytest.approx(18.03)
    assert product.cost_price == pytest.approx(18.03 / 20)


def test_child_price_roll_up(service, app_context):
    beef = Product(store_id='store-1', product_code='BEEF', name='beef', unit='kg', cost_price=5.0)
    bun = Product(store_id='store-1', product_code='BUN', name='bun', cost_price=0.2)
    burger = Product(
        store_id='store-1',
        product_code='BURGER',
        name='Burger',
        is_composite=True,
        capacity_quantity=10,
        child_products=[
            CompositeChildProduct(product=beef, position=0, quantity_per_serving=0.2, unit='kg',
                                  selling_price=1.0, retail_price=1.5),
            CompositeChildProduct(product=bun, position=1, selling_price=0.3, retail_price=0.5),
        ],
    )
    db.session.add(burger)
    db.session.commit()

    service.update_child_prices(burger, [
        {'productId': beef.id, 'retailPrice': 2.0},
        {'productId': 9999, 'retailPrice': 100.0},
    ])

    assert burger.price == pytest.approx(1.3)
    assert burger.retail_price == pytest.approx(2.5)
    # legacy bun entry counts one per serving
    assert service.child_cost(burger) == pytest.approx(5.0 * 0.2 + 0.2)

    with pytest.raises(InvalidChildProductStructureError):
        service.update_child_prices(burger, [{'productId': bun.id, 'sellingPrice': -1}])

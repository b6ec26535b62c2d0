"""
Pytest configuration and shared fixtures for prepline tests.
"""
from types import SimpleNamespace

import pytest

from prepline import create_app
from prepline.config import EngineConfig
from prepline.extensions import db
from prepline.models import Ingredient, Product, Recipe, RecipeIngredient
from prepline.services.composite_product import CompositeProductService, Operator

STORE_ID = 'store-1'

# Allowed units widened with legacy ones so conversions have something to convert
EXTENDED_UNITS = ('kg', 'g', 'lb', 'oz', 'l', 'ml', 'dl', 'piece', 'dozen')


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance for each test."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SECRET_KEY': 'test-secret-key',
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app_context(app):
    """Provide an application context for tests that need it."""
    with app.app_context():
        yield


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def service(app):
    return CompositeProductService.for_app(app)


@pytest.fixture
def extended_config():
    return EngineConfig(allowed_units=EXTENDED_UNITS)


@pytest.fixture
def operator():
    return Operator(user_id='u-1', username='chef', full_name='Head Chef', role='manager')


def _ingredient(name, unit, stock, cost, store_id=STORE_ID):
    ingredient = Ingredient(
        store_id=store_id,
        name=name,
        unit=unit,
        stock_quantity=stock,
        cost_per_unit=cost,
    )
    db.session.add(ingredient)
    return ingredient


@pytest.fixture
def make_kitchen(app_context):
    """Build the beef rice soup kitchen.

    The recipe yields 20 portions from 2.5 kg rice, 1.5 kg meat and 3 l water;
    the composite serves 50 portions per batch.
    """

    def _make(rice=100.0, meat=50.0, water=100.0, capacity=50, expiry_hours=24,
              product_code='SOUP-01', store_id=STORE_ID):
        kitchen = SimpleNamespace()
        kitchen.rice = _ingredient('rice', 'kg', rice, 1.2, store_id)
        kitchen.meat = _ingredient('meat', 'kg', meat, 8.0, store_id)
        kitchen.water = _ingredient('water', 'l', water, 0.01, store_id)

        kitchen.recipe = Recipe(
            store_id=store_id,
            dish_name='Beef rice soup',
            yield_quantity=20,
            yield_unit='portion',
            expiry_hours=expiry_hours,
            ingredients=[
                RecipeIngredient(ingredient=kitchen.rice, amount_used=2.5, unit='kg', position=0),
                RecipeIngredient(ingredient=kitchen.meat, amount_used=1.5, unit='kg', position=1),
                RecipeIngredient(ingredient=kitchen.water, amount_used=3.0, unit='l', position=2),
            ],
        )
        kitchen.soup = Product(
            store_id=store_id,
            product_code=product_code,
            name='Beef rice soup',
            is_composite=True,
            capacity_quantity=capacity,
            capacity_unit='portion',
            recipe=kitchen.recipe,
            cost_price=0.75,
            price=1.0,
            retail_price=2.5,
            expiry_hours=expiry_hours,
        )
        db.session.add_all([kitchen.recipe, kitchen.soup])
        db.session.commit()
        return kitchen

    return _make


@pytest.fixture
def kitchen(make_kitchen):
    return make_kitchen()

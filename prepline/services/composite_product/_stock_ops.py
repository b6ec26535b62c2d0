"""
Conditional stock writes.

Every stock mutation the composite engines perform goes through this module
as a single ``UPDATE ... WHERE stock >= :amount`` statement. A zero rowcount
means another writer consumed the stock between the availability pass and
the write; callers roll back the whole unit of work.
"""

import logging

from sqlalchemy import update

from ...models import db, Ingredient, Product
from ...utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)


class StockConflict(Exception):
    """Raised when a conditional write matched no row."""

    def __init__(self, kind, entity_id, amount):
        super().__init__(f"{kind} {entity_id}: conditional write of {amount} matched no row")
        self.kind = kind
        self.entity_id = entity_id
        self.amount = amount


def _execute(statement, target, attributes, kind, amount):
    result = db.session.execute(statement.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        logger.warning(f"STOCK_OPS: {kind} {target.id} lost the race for {amount}")
        raise StockConflict(kind, target.id, amount)
    # reload the written columns on next access
    db.session.expire(target, attributes)


def deduct_ingredient(ingredient, amount):
    _execute(
        update(Ingredient)
        .where(Ingredient.id == ingredient.id, Ingredient.stock_quantity >= amount)
        .values(stock_quantity=Ingredient.stock_quantity - amount),
        ingredient,
        ['stock_quantity'],
        'ingredient',
        amount,
    )


def deduct_child_product(child, amount):
    _execute(
        update(Product)
        .where(Product.id == child.id, Product.stock_quantity >= amount)
        .values(stock_quantity=Product.stock_quantity - amount),
        child,
        ['stock_quantity'],
        'child_product',
        amount,
    )


def increase_composite_stock(product, servings, prepared_at=None):
    """Add ``servings`` and stamp the preparation time."""
    _execute(
        update(Product)
        .where(Product.id == product.id, Product.is_composite.is_(True))
        .values(
            current_stock=Product.current_stock + servings,
            last_prepared_at=prepared_at or TimezoneUtils.utc_now(),
        ),
        product,
        ['current_stock', 'last_prepared_at'],
        'composite',
        servings,
    )


def decrease_composite_stock(product, servings):
    _execute(
        update(Product)
        .where(Product.id == product.id, Product.current_stock >= servings)
        .values(current_stock=Product.current_stock - servings),
        product,
        ['current_stock'],
        'composite',
        servings,
    )

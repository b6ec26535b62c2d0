"""
Composite creation and price roll-ups.

Recipe composites are priced from the recipe's cost per yield unit with the
configured markups; recipe-less composites roll their prices up from their
child products.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...models import db, CompositeChildProduct, Product, Recipe
from ..recipe_cost_service import RecipeCostService
from ._requirements import is_whole_capacity
from .errors import (
    ChildProductNotFoundError,
    CompositeProductError,
    InvalidChildProductStructureError,
    InvalidCompositeStructureError,
    RecipeNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY_UNIT = 'serving'


def _capacity_parts(capacity) -> tuple:
    if isinstance(capacity, Mapping):
        return capacity.get('quantity'), capacity.get('unit') or DEFAULT_CAPACITY_UNIT
    return capacity, DEFAULT_CAPACITY_UNIT


def _non_negative(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


class PricingService:

    def __init__(self, recipe_costs: RecipeCostService, config):
        self.recipe_costs = recipe_costs
        self.config = config

    def _load_recipe(self, recipe_id, store_id=None) -> Recipe:
        recipe = db.session.get(Recipe, recipe_id) if recipe_id is not None else None
        if recipe is None or recipe.deleted:
            raise RecipeNotFoundError(recipeId=recipe_id)
        if store_id is not None and recipe.store_id != str(store_id):
            raise RecipeNotFoundError("Recipe does not belong to this store", recipeId=recipe_id)
        return recipe

    def price_from_recipe(self, recipe_id, capacity) -> Dict[str, Any]:
        quantity, unit = _capacity_parts(capacity)
        if not isinstance(quantity, (int, float)) or quantity <= 0:
            raise InvalidCompositeStructureError("Capacity quantity must be greater than zero")

        recipe = self._load_recipe(recipe_id)
        cost = self.recipe_costs.cost_of(recipe)
        total_capacity_cost = cost.cost_per_yield_unit * quantity
        return {
            'costPerServing': cost.cost_per_yield_unit,
            'totalRecipeCost': total_capacity_cost,
            'recipeYield': {'quantity': recipe.yield_quantity, 'unit': recipe.yield_unit},
            'capacity': {'quantity': quantity, 'unit': unit},
            'suggestedPrice': total_capacity_cost * self.config.wholesale_markup,
            'suggestedRetailPrice': total_capacity_cost * self.config.retail_markup,
            'recipeInfo': {
                'id': recipe.id,
                'name': recipe.dish_name,
                'description': recipe.description,
                'yield': {'quantity': recipe.yield_quantity, 'unit': recipe.yield_unit},
                'totalRecipeCost': cost.total_cost,
                'costBreakdown': [line.to_dict() for line in cost.lines],
            },
        }

    def create_composite(
        self,
        product_code,
        name,
        store_id,
        capacity,
        recipe_id,
        child_products: Optional[Iterable[Mapping[str, Any]]] = None,
        price=None,
        retail_price=None,
        min_stock=1,
        description=None,
    ) -> Product:
        quantity, capacity_unit = _capacity_parts(capacity)
        if not is_whole_capacity(quantity):
            raise InvalidCompositeStructureError(
                "Capacity quantity must be a whole number of servings, at least 1", capacity=quantity
            )

        recipe = self._load_recipe(recipe_id, store_id)
        cost = self.recipe_costs.cost_of(recipe)
        if cost.cost_per_yield_unit <= 0:
            raise InvalidCompositeStructureError(
                "Recipe cost must be greater than zero", recipeId=recipe.id
            )

        children = self._build_children(store_id, child_products or [])
        cost_per_serving = cost.cost_per_yield_unit
        product = Product(
            product_code=product_code,
            name=name,
            description=description,
            store_id=str(store_id),
            unit='piece',
            price=price if price else cost_per_serving * self.config.wholesale_markup,
            retail_price=retail_price if retail_price else cost_per_serving * self.config.retail_markup,
            cost_price=cost_per_serving,
            min_stock=min_stock or 1,
            status='active',
            is_composite=True,
            capacity_quantity=float(quantity),
            capacity_unit=capacity_unit,
            recipe_id=recipe.id,
            recipe_cost=cost_per_serving,
            total_recipe_cost=cost.total_cost,
            expiry_hours=recipe.expiry_hours or self.config.default_expiry_hours,
            child_products=children,
        )
        db.session.add(product)
        try:
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Failed to create composite %s", product_code)
            raise CompositeProductError("Failed to create composite product") from exc

        logger.info(
            "Created composite %s (%s) from recipe %s: cost/serving=%.4f capacity=%s",
            product.id,
            product_code,
            recipe.id,
            cost_per_serving,
            quantity,
        )
        return product

    def _build_children(self, store_id, entries) -> List[CompositeChildProduct]:
        children = []
        for position, entry in enumerate(entries):
            product_id = entry.get('productId') or entry.get('product_id')
            child = db.session.get(Product, product_id) if product_id is not None else None
            if child is None or child.deleted or child.store_id != str(store_id):
                raise ChildProductNotFoundError(details=[{'position': position, 'productId': product_id}])
            if child.is_composite:
                raise InvalidChildProductStructureError(
                    "A composite product cannot be used as a child product",
                    details=[{'position': position, 'productId': product_id}],
                )

            per_serving = entry.get('quantityPerServing', entry.get('quantity_per_serving'))
            unit = entry.get('unit')
            prices = {
                'cost_price': entry.get('costPrice', entry.get('cost_price', child.cost_price)),
                'selling_price': entry.get('sellingPrice', entry.get('selling_price', child.price)),
                'retail_price': entry.get('retailPrice', entry.get('retail_price', child.retail_price)),
            }
            missing = [
                field for field, value in [('quantityPerServing', per_serving), *prices.items()]
                if not _non_negative(value)
            ]
            if not unit:
                missing.append('unit')
            if missing:
                raise InvalidChildProductStructureError(
                    details=[{'position': position, 'productId': product_id, 'invalidFields': missing}]
                )

            children.append(
                CompositeChildProduct(
                    product_id=child.id,
                    position=position,
                    name=entry.get('name') or child.name,
                    quantity_per_serving=float(per_serving),
                    unit=unit,
                    **prices,
                )
            )
        return children

    def recalculate_cost(self, product) -> Product:
        """Refresh the cost fields of a recipe composite from its recipe."""
        recipe = self._load_recipe(product.recipe_id)
        cost = self.recipe_costs.cost_of(recipe)
        product.cost_price = cost.cost_per_yield_unit
        product.recipe_cost = cost.cost_per_yield_unit
        product.total_recipe_cost = cost.total_cost
        db.session.commit()
        logger.info("Recalculated cost of composite %s: %.4f per serving", product.id, product.cost_price)
        return product

    def update_child_prices(self, product, updates: Iterable[Mapping[str, Any]]) -> Product:
        """Apply child price updates and re-aggregate the composite's prices."""
        if not product.is_composite:
            raise InvalidCompositeStructureError("Product is not a composite product", productId=product.id)

        by_product_id = {str(child.product_id): child for child in product.child_products}
        for update in updates:
            child = by_product_id.get(str(update.get('productId', update.get('product_id'))))
            if child is None:
                continue
            for key, attribute in (('sellingPrice', 'selling_price'), ('retailPrice', 'retail_price')):
                value = update.get(key, update.get(attribute))
                if value is None:
                    continue
                if not _non_negative(value):
                    raise InvalidChildProductStructureError(
                        details=[{'productId': child.product_id, 'invalidFields': [key]}]
                    )
                setattr(child, attribute, float(value))

        product.price = sum(float(child.selling_price or 0.0) for child in product.child_products)
        product.retail_price = sum(float(child.retail_price or 0.0) for child in product.child_products)
        db.session.commit()
        return product

    @staticmethod
    def child_cost(product) -> float:
        """Per-serving cost of a composite built from child products."""
        total = 0.0
        for child in product.child_products:
            per_serving = 1.0 if child.quantity_per_serving is None else child.quantity_per_serving
            unit_cost = child.product.cost_price if child.product is not None else child.cost_price
            total += float(unit_cost or 0.0) * per_serving
        return total

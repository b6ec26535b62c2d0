"""
Requirement Resolution

Turns a composite product and a batch count into tagged ingredient
requirements. A live recipe link is authoritative; child products are only
consulted when no recipe is usable.
"""

import logging
import math
from typing import Dict, List

from ...models import Product
from ..recipe_cost_service import RecipeCostService
from ..unit_conversion import ConversionEngine, normalize_unit
from .errors import (
    ChildProductNotFoundError,
    InvalidChildProductStructureError,
    InvalidCompositeStructureError,
    InvalidQuantityToPrepareError,
    RecipeNotFoundError,
    UnitIncompatibleError,
)
from .types import (
    LegacySourcedRequirement,
    PreparationPlan,
    RecipeSourcedRequirement,
    Shortfall,
)

logger = logging.getLogger(__name__)

QUANTITY_DECIMALS = 6


def is_whole_capacity(value) -> bool:
    """Capacity is counted in whole servings; 50.0 is fine, 2.5 is not."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value >= 1
        and float(value).is_integer()
    )


def validate_capacity(product) -> int:
    if not product.is_composite:
        raise InvalidCompositeStructureError(
            "Product is not a composite product", productId=product.id
        )
    capacity = product.capacity_quantity
    if not is_whole_capacity(capacity):
        raise InvalidCompositeStructureError(
            "Composite product capacity must be a whole number of servings greater than zero",
            productId=product.id,
            capacity=capacity,
        )
    return int(capacity)


def validate_quantity_to_prepare(quantity, max_batches: int) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= max_batches:
        raise InvalidQuantityToPrepareError(
            f"Quantity to prepare must be an integer between 1 and {max_batches}",
            min=1,
            max=max_batches,
        )
    return quantity


def usable_recipe(product):
    """The linked recipe when it can drive preparation, else ``None``."""
    recipe = product.recipe
    if recipe is None or recipe.deleted:
        return None
    return recipe


def recipe_batches_needed(capacity: float, quantity_to_prepare: int, yield_quantity: float) -> int:
    return math.ceil(capacity * quantity_to_prepare / yield_quantity)


def recipe_unit_map(recipe) -> Dict[int, str]:
    """ingredient id -> canonical unit for every resolvable line of ``recipe``"""
    if recipe is None:
        return {}
    return {
        line.ingredient.id: line.ingredient.unit
        for line in recipe.ingredients
        if line.ingredient is not None
    }


class RequirementResolver:
    """Builds preparation plans without mutating anything."""

    def __init__(self, conversion: ConversionEngine, recipe_costs: RecipeCostService, max_batches: int):
        self.conversion = conversion
        self.recipe_costs = recipe_costs
        self.max_batches = max_batches

    def plan(self, product, quantity_to_prepare) -> PreparationPlan:
        capacity = validate_capacity(product)
        quantity = validate_quantity_to_prepare(quantity_to_prepare, self.max_batches)
        servings = capacity * quantity

        recipe = usable_recipe(product)
        if recipe is not None:
            batches = recipe_batches_needed(capacity, quantity, float(recipe.yield_quantity))
            requirements = self._recipe_requirements(recipe, batches)
            recipe_id = recipe.id
        elif product.child_products:
            batches = quantity
            requirements = self._legacy_requirements(product, capacity, quantity)
            recipe_id = None
        elif product.recipe_id is not None:
            raise RecipeNotFoundError(
                "Linked recipe no longer exists", productId=product.id, recipeId=product.recipe_id
            )
        else:
            raise InvalidCompositeStructureError(
                "Composite product has neither a recipe nor child products",
                productId=product.id,
            )

        shortfalls = self._shortfalls(requirements)
        return PreparationPlan(
            product_id=product.id,
            quantity_to_prepare=quantity,
            servings=servings,
            recipe_batches_needed=batches,
            requirements=requirements,
            shortfalls=shortfalls,
            recipe_id=recipe_id,
        )

    def _recipe_requirements(self, recipe, batches: int) -> List[RecipeSourcedRequirement]:
        requirements = []
        for need in self.recipe_costs.required_ingredients(recipe, batches):
            requirements.append(
                RecipeSourcedRequirement(
                    ingredient_id=need.ingredient_id,
                    name=need.name,
                    needed=ConversionEngine.round_value(need.amount_needed, QUANTITY_DECIMALS),
                    unit=need.unit,
                    available=need.available,
                    cost_per_unit=need.cost_per_unit,
                    recipe_batches_needed=batches,
                )
            )
        return requirements

    def _legacy_requirements(self, product, capacity: int, quantity: int) -> List[LegacySourcedRequirement]:
        # A soft-deleted recipe still knows the canonical units of its ingredients
        unit_map = recipe_unit_map(product.recipe)
        requirements = []
        for entry in product.child_products:
            child = self._resolve_child(product, entry)
            is_legacy = entry.is_legacy
            per_serving = 1.0 if entry.quantity_per_serving is None else float(entry.quantity_per_serving)
            if per_serving < 0:
                raise InvalidChildProductStructureError(
                    "Child product quantity per serving cannot be negative",
                    details=[{'position': entry.position, 'productId': entry.product_id}],
                )

            stored_unit = (entry.unit or '').strip() or None
            unit = unit_map.get(child.ingredient_id) or stored_unit or child.unit
            if is_legacy:
                logger.warning(
                    "Composite %s child %s is missing quantity/unit; using quantity_per_serving=%s unit=%s",
                    product.id,
                    child.id,
                    per_serving,
                    unit,
                )
            elif stored_unit and normalize_unit(stored_unit) != normalize_unit(unit):
                logger.warning(
                    "Composite %s child %s stores unit %r; reconciled to %r",
                    product.id,
                    child.id,
                    stored_unit,
                    unit,
                )

            needed = per_serving * capacity * quantity
            if normalize_unit(unit) != normalize_unit(child.unit):
                converted = self.conversion.convert(needed, unit, child.unit)
                if converted is None:
                    raise UnitIncompatibleError(
                        f"Cannot convert {unit} to {child.unit} for {child.name}",
                        details=[{
                            'productId': child.id,
                            'name': child.name,
                            'unit': unit,
                            'stockUnit': child.unit,
                        }],
                    )
                needed = converted
                unit = child.unit

            requirements.append(
                LegacySourcedRequirement(
                    product_id=child.id,
                    name=child.name,
                    needed=ConversionEngine.round_value(needed, QUANTITY_DECIMALS),
                    unit=unit,
                    available=float(child.stock_quantity or 0.0),
                    stored_unit=stored_unit,
                    quantity_per_serving=per_serving,
                    cost_per_unit=float(child.cost_price or 0.0),
                    is_legacy_data=is_legacy,
                )
            )
        return requirements

    @staticmethod
    def _resolve_child(product, entry) -> Product:
        child = entry.product
        if entry.product_id is None or child is None or child.deleted:
            raise ChildProductNotFoundError(
                details=[{'position': entry.position, 'productId': entry.product_id, 'name': entry.name}],
                productId=product.id,
            )
        if child.is_composite:
            raise InvalidChildProductStructureError(
                "A composite product cannot be used as a child product",
                details=[{'position': entry.position, 'productId': child.id, 'name': child.name}],
            )
        return child

    def _shortfalls(self, requirements) -> List[Shortfall]:
        shortfalls = []
        for req in requirements:
            check = self.conversion.check_ingredient_availability(req.available, req.unit, req.needed, req.unit)
            if check.sufficient:
                continue
            shortfalls.append(
                Shortfall(
                    name=req.name,
                    needed=req.needed,
                    available=req.available,
                    unit=req.unit,
                    shortfall=ConversionEngine.round_value(check.shortfall, QUANTITY_DECIMALS),
                    is_legacy_data=req.is_legacy_data,
                )
            )
        return shortfalls

"""Recipe costing and ingredient requirements with unit conversion.

Synopsis:
Convert each recipe line into its ingredient's canonical unit before pricing
it with ``cost_per_unit`` or scaling it to a number of recipe batches.

Glossary:
- Recipe unit: Unit written on the recipe line (e.g., kg).
- Canonical unit: Unit the ingredient's stock and ``cost_per_unit`` are kept in.
- Recipe batch: One execution of the recipe at its declared yield.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import EngineConfig
from .composite_product.errors import (
    InvalidCompositeStructureError,
    RecipeNotFoundError,
    UnitIncompatibleError,
)
from .unit_conversion import ConversionEngine, normalize_unit

logger = logging.getLogger(__name__)


@dataclass
class RecipeLineCost:
    ingredient_id: int
    name: str
    amount_used: float
    recipe_unit: str
    amount_in_ingredient_unit: float
    unit: str
    cost_per_unit: float
    line_cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ingredientId': self.ingredient_id,
            'name': self.name,
            'amountUsed': self.amount_used,
            'recipeUnit': self.recipe_unit,
            'amount': self.amount_in_ingredient_unit,
            'unit': self.unit,
            'costPerUnit': self.cost_per_unit,
            'lineCost': self.line_cost,
        }


@dataclass
class RecipeCost:
    recipe_id: Optional[int]
    total_cost: float
    cost_per_yield_unit: float
    yield_quantity: float
    yield_unit: str
    lines: List[RecipeLineCost] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'recipeId': self.recipe_id,
            'totalCost': self.total_cost,
            'costPerUnit': self.cost_per_yield_unit,
            'yield': {'quantity': self.yield_quantity, 'unit': self.yield_unit},
            'costBreakdown': [line.to_dict() for line in self.lines],
        }


@dataclass
class IngredientNeed:
    """Amount of one ingredient needed for N recipe batches, in its canonical unit."""
    ingredient_id: int
    name: str
    amount_per_batch: float
    amount_needed: float
    unit: str
    available: float
    cost_per_unit: float

    @property
    def estimated_cost(self) -> float:
        return self.amount_needed * self.cost_per_unit


@dataclass
class RecipeAvailability:
    can_prepare: bool
    recipe_batches: int
    missing_ingredients: List[Dict[str, Any]] = field(default_factory=list)
    needs: List[IngredientNeed] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'canPrepare': self.can_prepare,
            'missingIngredients': list(self.missing_ingredients),
        }


class RecipeCostService:
    """Computes recipe cost and per-batch ingredient requirements."""

    def __init__(self, config: Optional[EngineConfig] = None, conversion_engine: Optional[ConversionEngine] = None):
        self.config = config or EngineConfig()
        self.conversion = conversion_engine or ConversionEngine(self.config)

    def validate_recipe(self, recipe) -> None:
        if recipe is None:
            raise RecipeNotFoundError()
        if not recipe.yield_quantity or recipe.yield_quantity <= 0:
            raise InvalidCompositeStructureError(
                "Recipe yield quantity must be greater than zero",
                recipeId=recipe.id,
            )
        if not recipe.ingredients:
            raise InvalidCompositeStructureError(
                "Recipe must have ingredients to prepare composite product",
                recipeId=recipe.id,
            )

    def amount_in_ingredient_unit(self, line) -> float:
        """Convert a recipe line into its ingredient's canonical unit."""
        ingredient = line.ingredient
        if ingredient is None:
            raise InvalidCompositeStructureError(
                "One or more ingredients in the recipe are no longer available",
                recipeId=line.recipe_id,
                details=[{'position': line.position, 'ingredientId': line.ingredient_id}],
            )

        amount = float(line.amount_used or 0.0)
        if normalize_unit(line.unit) == normalize_unit(ingredient.unit):
            return amount

        converted = self.conversion.convert(amount, line.unit, ingredient.unit)
        if converted is None:
            logger.warning(
                "Failed to convert recipe quantity: recipe_id=%s ingredient_id=%s from=%s to=%s qty=%s",
                line.recipe_id,
                ingredient.id,
                line.unit,
                ingredient.unit,
                amount,
            )
            raise UnitIncompatibleError(
                f"Cannot convert {line.unit} to {ingredient.unit} for {ingredient.name}",
                details=[{
                    'ingredientId': ingredient.id,
                    'name': ingredient.name,
                    'recipeUnit': line.unit,
                    'ingredientUnit': ingredient.unit,
                }],
            )
        return converted

    def cost_of(self, recipe) -> RecipeCost:
        self.validate_recipe(recipe)

        lines: List[RecipeLineCost] = []
        for line in recipe.ingredients:
            amount = self.amount_in_ingredient_unit(line)
            ingredient = line.ingredient
            cost_per_unit = float(ingredient.cost_per_unit or 0.0)
            lines.append(
                RecipeLineCost(
                    ingredient_id=ingredient.id,
                    name=ingredient.name,
                    amount_used=float(line.amount_used or 0.0),
                    recipe_unit=line.unit,
                    amount_in_ingredient_unit=amount,
                    unit=ingredient.unit,
                    cost_per_unit=cost_per_unit,
                    line_cost=amount * cost_per_unit,
                )
            )

        total_cost = sum(line.line_cost for line in lines)
        yield_quantity = float(recipe.yield_quantity)
        return RecipeCost(
            recipe_id=recipe.id,
            total_cost=total_cost,
            cost_per_yield_unit=total_cost / yield_quantity,
            yield_quantity=yield_quantity,
            yield_unit=recipe.yield_unit,
            lines=lines,
        )

    def required_ingredients(self, recipe, recipe_batches: int) -> List[IngredientNeed]:
        """Ingredient amounts for ``recipe_batches`` batches, one canonical unit per ingredient."""
        self.validate_recipe(recipe)
        if recipe_batches < 1:
            raise InvalidCompositeStructureError(
                "Recipe batches must be at least 1", recipeId=recipe.id
            )

        needs: Dict[int, IngredientNeed] = {}
        for line in recipe.ingredients:
            per_batch = self.amount_in_ingredient_unit(line)
            ingredient = line.ingredient
            existing = needs.get(ingredient.id)
            if existing:
                # same ingredient listed twice; merge so the availability pass sees one total
                existing.amount_per_batch += per_batch
                existing.amount_needed = existing.amount_per_batch * recipe_batches
                continue
            needs[ingredient.id] = IngredientNeed(
                ingredient_id=ingredient.id,
                name=ingredient.name,
                amount_per_batch=per_batch,
                amount_needed=per_batch * recipe_batches,
                unit=ingredient.unit,
                available=float(ingredient.stock_quantity or 0.0),
                cost_per_unit=float(ingredient.cost_per_unit or 0.0),
            )
        return list(needs.values())

    def availability(self, recipe, recipe_batches: int) -> RecipeAvailability:
        needs = self.required_ingredients(recipe, recipe_batches)
        missing: List[Dict[str, Any]] = []
        for need in needs:
            check = self.conversion.check_ingredient_availability(
                need.available, need.unit, need.amount_needed, need.unit
            )
            if not check.sufficient:
                missing.append({
                    'ingredientId': need.ingredient_id,
                    'name': need.name,
                    'needed': need.amount_needed,
                    'available': need.available,
                    'unit': need.unit,
                    'shortfall': check.shortfall,
                })

        return RecipeAvailability(
            can_prepare=not missing,
            recipe_batches=recipe_batches,
            missing_ingredients=missing,
            needs=needs,
        )

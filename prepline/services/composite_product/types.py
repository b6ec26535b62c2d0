"""
Composite Product Types

Data structures passed between the composite engines and returned to callers.
``to_dict`` produces the payload an HTTP layer hands back unchanged.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Union

RECIPE_SOURCE = 'recipe'
LEGACY_SOURCE = 'legacy'


@dataclass
class Operator:
    """Who performed an action; identity comes from the caller."""
    user_id: str
    username: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[str] = None

    def __post_init__(self):
        if self.user_id is None or not str(self.user_id).strip():
            raise ValueError("Operator user_id is required")
        self.user_id = str(self.user_id)

    @classmethod
    def coerce(cls, value: Union['Operator', Mapping[str, Any], str, int]) -> 'Operator':
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                user_id=value.get('user_id') or value.get('userId') or value.get('id'),
                username=value.get('username'),
                full_name=value.get('full_name') or value.get('fullName'),
                role=value.get('role'),
            )
        return cls(user_id=value)

    @classmethod
    def system(cls) -> 'Operator':
        return cls(user_id='system', username='system', full_name='System', role='system')


@dataclass
class RecipeSourcedRequirement:
    """Ingredient requirement resolved from the linked recipe, in the ingredient's unit."""
    ingredient_id: int
    name: str
    needed: float
    unit: str
    available: float
    cost_per_unit: float = 0.0
    recipe_batches_needed: int = 1
    source: str = field(default=RECIPE_SOURCE, init=False)
    is_legacy_data: bool = field(default=False, init=False)

    @property
    def key(self) -> str:
        return str(self.ingredient_id)

    @property
    def estimated_cost(self) -> float:
        return self.needed * self.cost_per_unit

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'ingredientId': self.ingredient_id,
            'name': self.name,
            'needed': self.needed,
            'unit': self.unit,
            'available': self.available,
            'recipeBatchesNeeded': self.recipe_batches_needed,
            'isLegacyData': self.is_legacy_data,
        }


@dataclass
class LegacySourcedRequirement:
    """Child-product requirement for composites without a recipe.

    ``unit`` is the reconciled unit the comparison runs in; ``stored_unit`` is
    whatever the child entry carried, kept for reporting.
    """
    product_id: int
    name: str
    needed: float
    unit: str
    available: float
    stored_unit: Optional[str] = None
    quantity_per_serving: float = 1.0
    cost_per_unit: float = 0.0
    is_legacy_data: bool = False
    source: str = field(default=LEGACY_SOURCE, init=False)

    @property
    def key(self) -> str:
        return str(self.product_id)

    @property
    def estimated_cost(self) -> float:
        return self.needed * self.cost_per_unit

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'productId': self.product_id,
            'name': self.name,
            'needed': self.needed,
            'unit': self.unit,
            'storedUnit': self.stored_unit,
            'available': self.available,
            'quantityPerServing': self.quantity_per_serving,
            'isLegacyData': self.is_legacy_data,
        }


IngredientRequirement = Union[RecipeSourcedRequirement, LegacySourcedRequirement]


@dataclass
class Shortfall:
    name: str
    needed: float
    available: float
    unit: str
    shortfall: float
    is_legacy_data: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            'name': self.name,
            'needed': self.needed,
            'available': self.available,
            'unit': self.unit,
            'shortfall': self.shortfall,
        }
        if self.is_legacy_data:
            payload['isLegacyData'] = True
        return payload


@dataclass
class PreparationPlan:
    """Everything a prepare call needs, computed without touching stock."""
    product_id: int
    quantity_to_prepare: int
    servings: int
    recipe_batches_needed: int
    requirements: List[IngredientRequirement] = field(default_factory=list)
    shortfalls: List[Shortfall] = field(default_factory=list)
    recipe_id: Optional[int] = None

    @property
    def can_prepare(self) -> bool:
        return not self.shortfalls

    @property
    def uses_legacy_data(self) -> bool:
        return any(req.is_legacy_data for req in self.requirements)

    @property
    def estimated_cost(self) -> float:
        return sum(req.estimated_cost for req in self.requirements)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'canPrepare': self.can_prepare,
            'missingIngredients': [item.to_dict() for item in self.shortfalls],
            'recipeBatchesNeeded': self.recipe_batches_needed,
            'totalServings': self.servings,
            'requirements': [req.to_dict() for req in self.requirements],
        }


@dataclass
class PreparationResult:
    product_id: int
    total_servings_prepared: int
    recipe_batches_made: int
    stock_before: int
    new_stock: int
    batch_number: Optional[str]
    expiry_time: Optional[datetime]
    requirements: List[IngredientRequirement] = field(default_factory=list)
    total_cost: float = 0.0
    history_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        required = {}
        for req in self.requirements:
            entry = {
                'name': req.name,
                'needed': req.needed,
                'unit': req.unit,
                'available': req.available,
                'recipeBatchesNeeded': self.recipe_batches_made,
            }
            if req.is_legacy_data:
                entry['isLegacyData'] = True
            required[req.key] = entry
        return {
            'totalServingsPrepared': self.total_servings_prepared,
            'recipeBatchesMade': self.recipe_batches_made,
            'preparationDetails': {
                'previousStock': self.stock_before,
                'newStock': self.new_stock,
                'batchNumber': self.batch_number,
                'expiryTime': self.expiry_time.isoformat() if self.expiry_time else None,
                'totalCost': self.total_cost,
            },
            'requiredIngredients': required,
        }


@dataclass
class ServingResult:
    product_id: int
    quantity_served: int
    stock_before: int
    remaining_stock: int
    revenue_generated: float
    history_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quantityServed': self.quantity_served,
            'remainingStock': self.remaining_stock,
            'revenueGenerated': self.revenue_generated,
        }


@dataclass
class DiscardResult:
    product_id: int
    action: str
    quantity: int
    stock_before: int
    remaining_stock: int
    estimated_loss: float
    history_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'quantity': self.quantity,
            'remainingStock': self.remaining_stock,
            'estimatedLoss': self.estimated_loss,
        }

"""
Composite Product Service Package

Handles the lifecycle of batch-prepared composite products:
- Preparation from a recipe (or legacy child products) with ingredient deduction
- Serving, expiry and waste of prepared stock
- Cost and price roll-ups
- Stock/freshness reporting and the recipe unit audit
"""

from .errors import (
    CompositeProductError,
    InsufficientIngredientsError,
    InsufficientStockError,
    ProductExpiredError,
)
from .types import (
    DiscardResult,
    Operator,
    PreparationPlan,
    PreparationResult,
    ServingResult,
)
from .service import CompositeProductService

__all__ = [
    'CompositeProductService',
    'CompositeProductError',
    'InsufficientIngredientsError',
    'InsufficientStockError',
    'ProductExpiredError',
    'Operator',
    'PreparationPlan',
    'PreparationResult',
    'ServingResult',
    'DiscardResult',
]

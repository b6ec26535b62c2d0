"""Models package - imports all models for the application"""
from ..extensions import db
from .mixins import StoreScopedMixin, TimestampMixin

# Import in dependency order for table creation
from .ingredient import Ingredient
from .recipe import Recipe, RecipeIngredient
from .product import Product, CompositeChildProduct
from .composite_history import (
    CompositeProductHistory,
    HISTORY_ACTIONS,
    NEGATIVE_ACTIONS,
    POSITIVE_ACTIONS,
)

__all__ = [
    'db',
    'StoreScopedMixin',
    'TimestampMixin',
    'Ingredient',
    'Recipe',
    'RecipeIngredient',
    'Product',
    'CompositeChildProduct',
    'CompositeProductHistory',
    'HISTORY_ACTIONS',
    'NEGATIVE_ACTIONS',
    'POSITIVE_ACTIONS',
]

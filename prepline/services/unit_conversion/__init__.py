
"""
Unit Conversion Service Package

Validates the closed unit vocabulary and converts quantities between compatible units.
"""

from .unit_conversion import ConversionEngine, IngredientAvailability, UNIT_DEFINITIONS, normalize_unit
from . import unit_tools

__all__ = ['ConversionEngine', 'IngredientAvailability', 'UNIT_DEFINITIONS', 'normalize_unit', 'unit_tools']

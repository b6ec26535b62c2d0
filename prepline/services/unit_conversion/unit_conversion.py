from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional, Tuple

from ...config import EngineConfig

logger = logging.getLogger(__name__)

MASS = "mass"
VOLUME = "volume"
COUNT = "count"

# unit -> (dimension, factor to the dimension's canonical unit)
UNIT_DEFINITIONS: Dict[str, Tuple[str, float]] = {
    "kg": (MASS, 1.0),
    "g": (MASS, 0.001),
    "gram": (MASS, 0.001),
    "gam": (MASS, 0.001),
    "mg": (MASS, 0.000001),
    "lb": (MASS, 0.45359237),
    "oz": (MASS, 0.028349523125),
    "l": (VOLUME, 1.0),
    "liter": (VOLUME, 1.0),
    "litre": (VOLUME, 1.0),
    "dl": (VOLUME, 0.1),
    "cl": (VOLUME, 0.01),
    "ml": (VOLUME, 0.001),
    "piece": (COUNT, 1.0),
    "pice": (COUNT, 1.0),
    "pcs": (COUNT, 1.0),
    "dozen": (COUNT, 12.0),
}

CANONICAL_UNITS = {MASS: "kg", VOLUME: "l", COUNT: "piece"}
# Legacy units outside mass and volume still get a mass suggestion
FALLBACK_SUGGESTION = "kg"


def normalize_unit(unit: Any) -> str:
    return str(unit or "").strip().lower()


@dataclass
class IngredientAvailability:
    """Outcome of comparing stock against a requirement, in the stock unit."""
    comparable: bool
    sufficient: bool
    available: Optional[float]
    required: Optional[float]
    shortfall: float
    unit: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "comparable": self.comparable,
            "available": self.available,
            "sufficient": self.sufficient,
            "required": self.required,
            "shortfall": self.shortfall,
            "unit": self.unit,
            "reason": self.reason,
        }


class ConversionEngine:
    """
    Unit conversion over a closed vocabulary of allowed units.

    Only units in ``EngineConfig.allowed_units`` take part in conversions; any
    other unit (including legacy ones the factor table knows about) is
    reported as unknown and only ever receives an advisory suggestion.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._allowed = {normalize_unit(unit) for unit in self.config.allowed_units}

    @staticmethod
    def round_value(value, decimals=3):
        """Round value with protection against floating point precision issues"""
        if value is None:
            return None
        decimal_value = Decimal(str(value))
        rounded_decimal = decimal_value.quantize(Decimal('0.' + '0' * decimals), rounding=ROUND_HALF_UP)
        return float(rounded_decimal)

    @property
    def allowed_units(self) -> Tuple[str, ...]:
        return tuple(self.config.allowed_units)

    def is_unit_allowed(self, unit: Any) -> bool:
        return bool(normalize_unit(unit)) and normalize_unit(unit) in self._allowed

    @staticmethod
    def dimension_of(unit: Any) -> Optional[str]:
        definition = UNIT_DEFINITIONS.get(normalize_unit(unit))
        return definition[0] if definition else None

    def allowed_units_by_dimension(self) -> Dict[str, list]:
        grouped: Dict[str, list] = {MASS: [], VOLUME: [], COUNT: []}
        for unit in self.config.allowed_units:
            dimension = self.dimension_of(unit)
            if dimension:
                grouped[dimension].append(unit)
        return grouped

    def are_units_compatible(self, unit_a: Any, unit_b: Any) -> bool:
        if not (self.is_unit_allowed(unit_a) and self.is_unit_allowed(unit_b)):
            return False
        dimension_a = self.dimension_of(unit_a)
        return dimension_a is not None and dimension_a == self.dimension_of(unit_b)

    def convert(self, quantity: Any, from_unit: Any, to_unit: Any) -> Optional[float]:
        """Convert ``quantity``; ``None`` means the conversion failed."""
        try:
            amount = float(quantity)
        except (TypeError, ValueError):
            logger.warning("Conversion rejected non-numeric quantity %r", quantity)
            return None

        if not self.are_units_compatible(from_unit, to_unit):
            logger.debug("Conversion %s -> %s not possible", from_unit, to_unit)
            return None

        if normalize_unit(from_unit) == normalize_unit(to_unit):
            return amount
        return _convert_with_table(amount, from_unit, to_unit)

    def check_ingredient_availability(
        self,
        stock_quantity: Any,
        stock_unit: Any,
        required_quantity: Any,
        required_unit: Any,
    ) -> IngredientAvailability:
        """Compare stock with a requirement after moving the requirement into the stock unit."""
        stock_value = float(stock_quantity or 0.0)
        unit_label = str(stock_unit or "")
        same_unit = bool(normalize_unit(stock_unit)) and normalize_unit(stock_unit) == normalize_unit(required_unit)

        if not same_unit and not self.are_units_compatible(stock_unit, required_unit):
            return IngredientAvailability(
                comparable=False,
                sufficient=False,
                available=None,
                required=None,
                shortfall=0.0,
                unit=unit_label,
                reason=f"Cannot compare {stock_unit} with {required_unit} - incompatible unit types",
            )

        if same_unit:
            required_in_stock_unit = float(required_quantity)
        else:
            required_in_stock_unit = self.convert(required_quantity, required_unit, stock_unit)
        if required_in_stock_unit is None:
            return IngredientAvailability(
                comparable=False,
                sufficient=False,
                available=None,
                required=None,
                shortfall=0.0,
                unit=unit_label,
                reason=f"Failed to convert {required_unit} to {stock_unit}",
            )

        sufficient = stock_value >= required_in_stock_unit
        shortfall = 0.0 if sufficient else required_in_stock_unit - stock_value
        if sufficient:
            reason = (
                f"Sufficient stock: {stock_value} {unit_label} available, "
                f"{required_in_stock_unit} {unit_label} required"
            )
        else:
            reason = (
                f"Insufficient stock: {stock_value} {unit_label} available, "
                f"{required_in_stock_unit} {unit_label} required"
            )
        return IngredientAvailability(
            comparable=True,
            sufficient=sufficient,
            available=stock_value,
            required=required_in_stock_unit,
            shortfall=shortfall,
            unit=unit_label,
            reason=reason,
        )

    def suggest_better_unit(self, quantity: Any, current_unit: Any) -> Dict[str, Any]:
        """Advisory suggestion for a unit outside the allowed vocabulary.

        Never mutates anything; callers decide whether to act on it.
        """
        if self.is_unit_allowed(current_unit):
            return {
                "shouldChange": False,
                "reason": "Unit is appropriate for the quantity",
            }

        dimension = self.dimension_of(current_unit)
        suggested_unit = CANONICAL_UNITS.get(dimension) if dimension in (MASS, VOLUME) else FALLBACK_SUGGESTION
        suggestion: Dict[str, Any] = {
            "shouldChange": True,
            "suggestedUnit": suggested_unit,
            "reason": f"Unit '{current_unit}' is not allowed",
        }
        if dimension in (MASS, VOLUME) and isinstance(quantity, (int, float)):
            suggestion["suggestedQuantity"] = _convert_with_table(float(quantity), current_unit, suggested_unit)
        return suggestion


def _convert_with_table(amount: float, from_unit: Any, to_unit: Any) -> Optional[float]:
    from_definition = UNIT_DEFINITIONS.get(normalize_unit(from_unit))
    to_definition = UNIT_DEFINITIONS.get(normalize_unit(to_unit))
    if not from_definition or not to_definition or from_definition[0] != to_definition[0]:
        return None
    return amount * from_definition[1] / to_definition[1]

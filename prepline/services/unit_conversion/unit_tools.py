"""
Stateless unit utility payloads.

Each function is a pure wrapper over a ``ConversionEngine`` returning the
JSON-ready dict an HTTP layer hands back unchanged.
"""

from __future__ import annotations

from typing import Any, Dict

from .unit_conversion import ConversionEngine


def _as_number(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def list_allowed_units(engine: ConversionEngine) -> Dict[str, Any]:
    return {
        "success": True,
        "allowedUnits": list(engine.allowed_units),
        "byDimension": engine.allowed_units_by_dimension(),
    }


def validate_unit(engine: ConversionEngine, unit: Any, quantity: Any = None) -> Dict[str, Any]:
    if not unit:
        return {"success": False, "error": "unit_required", "message": "Unit is required"}

    is_allowed = engine.is_unit_allowed(unit)
    payload: Dict[str, Any] = {"success": True, "unit": unit, "isAllowed": is_allowed}
    if not is_allowed:
        payload["allowedUnits"] = list(engine.allowed_units)
        payload["suggestion"] = engine.suggest_better_unit(_as_number(quantity) or 1.0, unit)
    return payload


def convert_quantity(engine: ConversionEngine, quantity: Any, from_unit: Any, to_unit: Any) -> Dict[str, Any]:
    amount = _as_number(quantity)
    if amount is None or amount < 0:
        return {
            "success": False,
            "error": "invalid_quantity",
            "message": "Quantity must be a non-negative number",
        }

    converted = engine.convert(amount, from_unit, to_unit)
    if converted is None:
        return {
            "success": False,
            "error": "conversion_failed",
            "message": f"Cannot convert {from_unit} to {to_unit}",
            "from": from_unit,
            "to": to_unit,
        }
    return {
        "success": True,
        "quantity": amount,
        "from": from_unit,
        "to": to_unit,
        "convertedQuantity": converted,
    }


def check_compatibility(engine: ConversionEngine, unit_a: Any, unit_b: Any) -> Dict[str, Any]:
    return {
        "success": True,
        "unitA": unit_a,
        "unitB": unit_b,
        "compatible": engine.are_units_compatible(unit_a, unit_b),
        "dimensions": {
            "unitA": engine.dimension_of(unit_a) if engine.is_unit_allowed(unit_a) else None,
            "unitB": engine.dimension_of(unit_b) if engine.is_unit_allowed(unit_b) else None,
        },
    }


def check_availability(
    engine: ConversionEngine,
    stock_quantity: Any,
    stock_unit: Any,
    required_quantity: Any,
    required_unit: Any,
) -> Dict[str, Any]:
    stock_value = _as_number(stock_quantity)
    required_value = _as_number(required_quantity)
    if stock_value is None or required_value is None or stock_value < 0 or required_value < 0:
        return {
            "success": False,
            "error": "invalid_quantity",
            "message": "Stock and required quantities must be non-negative numbers",
        }

    result = engine.check_ingredient_availability(stock_value, stock_unit, required_value, required_unit)
    payload = result.to_dict()
    payload["success"] = result.comparable
    if not result.comparable:
        payload["error"] = "unit_incompatible"
    return payload

"""
Composite Product Errors

Every failure the composite engines can report, keyed by a stable machine
code. Business-rule errors are raised before any write; the ``failed_to_*``
errors wrap infrastructure faults from the commit step.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class CompositeProductError(RuntimeError):
    """Base class; ``code`` is what API consumers switch on."""

    code = "composite_product_error"
    status_code = 400
    default_message = "Composite product operation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[List[Dict[str, Any]]] = None,
        **context: Any,
    ):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = list(details) if details else []
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        payload.update(self.context)
        return payload


class InvalidCompositeStructureError(CompositeProductError):
    code = "invalid_composite_structure"
    default_message = "Composite product has an invalid capacity or recipe configuration"


class RecipeNotFoundError(CompositeProductError):
    code = "recipe_not_found"
    status_code = 404
    default_message = "Recipe not found"


class InvalidQuantityToPrepareError(CompositeProductError):
    code = "invalid_quantity_to_prepare"
    default_message = "Quantity to prepare is out of range"


class InvalidQuantityToServeError(CompositeProductError):
    code = "invalid_quantity_to_serve"
    default_message = "Quantity to serve must be a positive integer"


class InvalidQuantityToDiscardError(CompositeProductError):
    code = "invalid_quantity_to_discard"
    default_message = "Quantity to discard must be a positive integer"


class InsufficientIngredientsError(CompositeProductError):
    code = "insufficient_ingredients"
    default_message = "Not enough ingredients to prepare the requested quantity"


class InsufficientStockError(CompositeProductError):
    code = "insufficient_stock"
    default_message = "Not enough prepared stock"


class UnitIncompatibleError(CompositeProductError):
    code = "unit_incompatible"
    default_message = "Units cannot be compared"


class ConversionFailedError(CompositeProductError):
    code = "conversion_failed"
    default_message = "Unit conversion failed"


class ChildProductNotFoundError(CompositeProductError):
    code = "child_product_not_found"
    status_code = 404
    default_message = "A child product of this composite no longer exists"


class InvalidChildProductStructureError(CompositeProductError):
    code = "invalid_child_product_structure"
    default_message = "Child product data is incomplete or invalid"


class ProductExpiredError(CompositeProductError):
    code = "product_expired"
    default_message = "Prepared stock has expired and cannot be served"


class CompositePreparationFailedError(CompositeProductError):
    code = "failed_to_prepare_composite_product"
    status_code = 500
    default_message = "Unexpected error while preparing composite product"


class CompositeServingFailedError(CompositeProductError):
    code = "failed_to_serve_composite_product"
    status_code = 500
    default_message = "Unexpected error while serving composite product"


class CompositeDiscardFailedError(CompositeProductError):
    code = "failed_to_discard_composite_product"
    status_code = 500
    default_message = "Unexpected error while discarding composite stock"


class HistoryImmutableError(CompositeProductError):
    code = "history_is_append_only"
    status_code = 409
    default_message = "History records cannot be modified or deleted"

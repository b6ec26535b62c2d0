"""
Preparation Engine

Turns a number of batches into composite stock. Every business rule is
checked against a plan built without writes; only then are the deductions,
the stock increase and the history row applied in one transaction.
"""

import logging
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError

from ...models import db, Ingredient, Product
from ...utils.timezone_utils import TimezoneUtils
from ..freshness_service import FreshnessService
from ..history_logger import HistoryLogger
from . import _stock_ops
from ._requirements import RequirementResolver
from .errors import CompositePreparationFailedError, InsufficientIngredientsError, ProductExpiredError
from .types import (
    Operator,
    PreparationPlan,
    PreparationResult,
    RecipeSourcedRequirement,
    Shortfall,
)

logger = logging.getLogger(__name__)


class PreparationEngine:

    def __init__(self, resolver: RequirementResolver, freshness: FreshnessService, config):
        self.resolver = resolver
        self.freshness = freshness
        self.config = config

    def check_availability(self, product, quantity_to_prepare) -> PreparationPlan:
        """Dry run of prepare: validation, requirements and shortfalls, no writes."""
        return self.resolver.plan(product, quantity_to_prepare)

    def prepare(self, product, quantity_to_prepare, operator, notes=None, now=None) -> PreparationResult:
        operator = Operator.coerce(operator)
        plan = self.resolver.plan(product, quantity_to_prepare)
        moment = now or TimezoneUtils.utc_now()

        # last_prepared_at covers the whole pool, so expired leftovers must be discarded first
        freshness = self.freshness.status_of(product, moment)
        if freshness.is_expired and (product.current_stock or 0) > 0:
            logger.warning(
                "PREPARE: composite %s still holds %s expired servings; refusing to prepare",
                product.id,
                product.current_stock,
            )
            raise ProductExpiredError(
                "Expired stock must be discarded before preparing a new batch",
                productId=product.id,
                expiredStock=product.current_stock,
                hoursElapsed=freshness.hours_elapsed,
                expiryHours=freshness.expiry_hours,
            )

        if plan.shortfalls:
            logger.warning(
                "PREPARE: composite %s x%s rejected, %s ingredient(s) short",
                product.id,
                plan.quantity_to_prepare,
                len(plan.shortfalls),
            )
            raise InsufficientIngredientsError(
                details=[item.to_dict() for item in plan.shortfalls],
                productId=product.id,
            )

        expiry_hours = product.expiry_hours or self.config.default_expiry_hours
        total_cost = plan.estimated_cost
        product_id = product.id

        try:
            for requirement in plan.requirements:
                self._deduct(requirement)
            _stock_ops.increase_composite_stock(product, plan.servings, moment)

            stock_after = product.current_stock
            stock_before = stock_after - plan.servings
            history = HistoryLogger.record(
                'prepare',
                product,
                quantity=plan.servings,
                stock_before=stock_before,
                stock_after=stock_after,
                operator=operator,
                unit_cost=total_cost / plan.servings if plan.servings else 0.0,
                total_cost=total_cost,
                estimated_revenue=plan.servings * float(product.retail_price or 0.0),
                notes=notes or f"Prepared {plan.quantity_to_prepare} batch(es)",
                batch_expiry_time=moment + timedelta(hours=expiry_hours),
                recipe_id=plan.recipe_id,
                ingredients_used=[_ingredient_used(req) for req in plan.requirements],
                action_time=moment,
            )
            db.session.commit()
        except _stock_ops.StockConflict as conflict:
            db.session.rollback()
            details = self._conflict_details(plan, conflict)
            logger.warning("PREPARE: composite %s lost a stock race: %s", product_id, conflict)
            raise InsufficientIngredientsError(details=details, productId=product_id) from conflict
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("PREPARE: failed to prepare composite %s", product_id)
            raise CompositePreparationFailedError(productId=product_id) from exc

        logger.info(
            "PREPARE: composite %s +%s servings (%s recipe batches), stock %s -> %s",
            product_id,
            plan.servings,
            plan.recipe_batches_needed,
            stock_before,
            stock_after,
        )
        return PreparationResult(
            product_id=product_id,
            total_servings_prepared=plan.servings,
            recipe_batches_made=plan.recipe_batches_needed,
            stock_before=stock_before,
            new_stock=stock_after,
            batch_number=history.batch_number,
            expiry_time=history.batch_expiry_time,
            requirements=plan.requirements,
            total_cost=total_cost,
            history_id=history.id,
        )

    @staticmethod
    def _deduct(requirement):
        if isinstance(requirement, RecipeSourcedRequirement):
            _stock_ops.deduct_ingredient(db.session.get(Ingredient, requirement.ingredient_id), requirement.needed)
        else:
            _stock_ops.deduct_child_product(db.session.get(Product, requirement.product_id), requirement.needed)

    @staticmethod
    def _conflict_details(plan, conflict):
        for requirement in plan.requirements:
            from_recipe = isinstance(requirement, RecipeSourcedRequirement)
            kind = 'ingredient' if from_recipe else 'child_product'
            if conflict.kind != kind or str(conflict.entity_id) != requirement.key:
                continue
            entity = db.session.get(Ingredient if from_recipe else Product, conflict.entity_id)
            available = float(entity.stock_quantity or 0.0) if entity else 0.0
            return [
                Shortfall(
                    name=requirement.name,
                    needed=requirement.needed,
                    available=available,
                    unit=requirement.unit,
                    shortfall=max(0.0, requirement.needed - available),
                    is_legacy_data=requirement.is_legacy_data,
                ).to_dict()
            ]
        return []


def _ingredient_used(requirement):
    entry = requirement.to_dict()
    entry['quantity'] = requirement.needed
    entry['costPerUnit'] = requirement.cost_per_unit
    entry['totalCost'] = requirement.estimated_cost
    return entry

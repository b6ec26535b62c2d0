"""
Serving Engine

Sells servings out of prepared composite stock. Validation runs in the order
quantity, freshness, stock; expired stock can only leave through disposal.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from ...models import db
from ...utils.timezone_utils import TimezoneUtils
from ..freshness_service import FreshnessService
from ..history_logger import HistoryLogger
from . import _stock_ops
from .errors import (
    CompositeServingFailedError,
    InsufficientStockError,
    InvalidCompositeStructureError,
    InvalidQuantityToServeError,
    ProductExpiredError,
)
from .types import Operator, ServingResult

logger = logging.getLogger(__name__)


def is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ServingEngine:

    def __init__(self, freshness: FreshnessService):
        self.freshness = freshness

    def serve(self, product, quantity_to_serve, operator, notes=None, now=None) -> ServingResult:
        operator = Operator.coerce(operator)
        if not product.is_composite:
            raise InvalidCompositeStructureError("Product is not a composite product", productId=product.id)
        if not is_positive_int(quantity_to_serve):
            raise InvalidQuantityToServeError(productId=product.id)

        moment = now or TimezoneUtils.utc_now()
        freshness = self.freshness.status_of(product, moment)
        if freshness.is_expired:
            logger.warning(
                "SERVE: composite %s expired %.2fh ago; refusing to serve",
                product.id,
                freshness.hours_overdue,
            )
            raise ProductExpiredError(
                productId=product.id,
                hoursElapsed=freshness.hours_elapsed,
                expiryHours=freshness.expiry_hours,
            )

        available = product.current_stock or 0
        if quantity_to_serve > available:
            logger.warning(
                "SERVE: composite %s has %s servings, %s requested", product.id, available, quantity_to_serve
            )
            raise InsufficientStockError(
                productId=product.id, available=available, requested=quantity_to_serve
            )

        product_id = product.id
        unit_cost = float(product.cost_price or 0.0)
        revenue = quantity_to_serve * float(product.retail_price or 0.0)
        try:
            _stock_ops.decrease_composite_stock(product, quantity_to_serve)
            remaining = product.current_stock
            history = HistoryLogger.record(
                'serve',
                product,
                quantity=quantity_to_serve,
                stock_before=remaining + quantity_to_serve,
                stock_after=remaining,
                operator=operator,
                unit_cost=unit_cost,
                total_cost=unit_cost * quantity_to_serve,
                estimated_revenue=revenue,
                notes=notes or f"Served {quantity_to_serve} serving(s)",
                action_time=moment,
            )
            db.session.commit()
        except _stock_ops.StockConflict as conflict:
            db.session.rollback()
            logger.warning("SERVE: composite %s lost a stock race: %s", product_id, conflict)
            raise InsufficientStockError(
                productId=product_id, available=product.current_stock, requested=quantity_to_serve
            ) from conflict
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("SERVE: failed to serve composite %s", product_id)
            raise CompositeServingFailedError(productId=product_id) from exc

        logger.info(
            "SERVE: composite %s -%s servings, stock %s -> %s",
            product_id,
            quantity_to_serve,
            remaining + quantity_to_serve,
            remaining,
        )
        return ServingResult(
            product_id=product_id,
            quantity_served=quantity_to_serve,
            stock_before=remaining + quantity_to_serve,
            remaining_stock=remaining,
            revenue_generated=revenue,
            history_id=history.id,
        )

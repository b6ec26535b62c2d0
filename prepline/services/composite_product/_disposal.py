"""
Disposal of composite stock: explicit expire/waste and the expired sweep.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from ...models import db, Product
from ...utils.timezone_utils import TimezoneUtils
from ..freshness_service import FreshnessService
from ..history_logger import HistoryLogger
from . import _stock_ops
from ._serving import is_positive_int
from .errors import (
    CompositeDiscardFailedError,
    CompositeProductError,
    InsufficientStockError,
    InvalidCompositeStructureError,
    InvalidQuantityToDiscardError,
)
from .types import DiscardResult, Operator

logger = logging.getLogger(__name__)

DISCARD_ACTIONS = ('expire', 'waste')


class DisposalEngine:

    def __init__(self, freshness: FreshnessService):
        self.freshness = freshness

    def discard(self, product, action, operator, quantity=None, notes=None, now=None) -> DiscardResult:
        if action not in DISCARD_ACTIONS:
            raise ValueError(f"Unsupported discard action: {action}")
        operator = Operator.coerce(operator)
        if not product.is_composite:
            raise InvalidCompositeStructureError("Product is not a composite product", productId=product.id)

        available = product.current_stock or 0
        if quantity is None and action == 'expire':
            quantity = available
            if quantity == 0:
                raise InsufficientStockError("No prepared stock to expire", productId=product.id, available=0)
        if not is_positive_int(quantity):
            raise InvalidQuantityToDiscardError(productId=product.id)
        if quantity > available:
            raise InsufficientStockError(productId=product.id, available=available, requested=quantity)

        moment = now or TimezoneUtils.utc_now()
        product_id = product.id
        unit_cost = float(product.cost_price or 0.0)
        loss = unit_cost * quantity
        try:
            _stock_ops.decrease_composite_stock(product, quantity)
            remaining = product.current_stock
            history = HistoryLogger.record(
                action,
                product,
                quantity=quantity,
                stock_before=remaining + quantity,
                stock_after=remaining,
                operator=operator,
                unit_cost=unit_cost,
                total_cost=loss,
                notes=notes or f"{action.capitalize()}d {quantity} serving(s)",
                action_time=moment,
            )
            db.session.commit()
        except _stock_ops.StockConflict as conflict:
            db.session.rollback()
            raise InsufficientStockError(
                productId=product_id, available=product.current_stock, requested=quantity
            ) from conflict
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("DISCARD: failed to %s composite %s", action, product_id)
            raise CompositeDiscardFailedError(productId=product_id) from exc

        logger.info(
            "DISCARD: composite %s %s %s servings, stock %s -> %s",
            product_id,
            action,
            quantity,
            remaining + quantity,
            remaining,
        )
        return DiscardResult(
            product_id=product_id,
            action=action,
            quantity=quantity,
            stock_before=remaining + quantity,
            remaining_stock=remaining,
            estimated_loss=loss,
            history_id=history.id,
        )

    def clean_expired_composites(self, store_id=None, operator=None, now=None):
        """Expire all remaining stock of every composite past its shelf life."""
        operator = Operator.coerce(operator) if operator is not None else Operator.system()
        moment = now or TimezoneUtils.utc_now()

        query = Product.query.filter(
            Product.is_composite.is_(True),
            Product.deleted.is_(False),
            Product.current_stock > 0,
            Product.last_prepared_at.isnot(None),
        )
        if store_id is not None:
            query = query.filter(Product.store_id == str(store_id))

        expired = []
        for product in query.order_by(Product.id).all():
            freshness = self.freshness.status_of(product, moment)
            if not freshness.is_expired:
                continue
            try:
                result = self.discard(
                    product,
                    'expire',
                    operator,
                    notes=f"Expired after {freshness.hours_elapsed:.1f}h (shelf life {freshness.expiry_hours:g}h)",
                    now=moment,
                )
            except CompositeProductError as exc:
                logger.warning("EXPIRE_SWEEP: skipped composite %s: %s", product.id, exc.to_dict())
                continue
            expired.append({
                'productId': result.product_id,
                'productName': product.name,
                'expiredStock': result.quantity,
                'hoursOverdue': freshness.hours_overdue,
            })

        if expired:
            logger.info("EXPIRE_SWEEP: expired %s composite(s) in store %s", len(expired), store_id or '*')
        return {'cleanedCount': len(expired), 'expiredProducts': expired}

from datetime import datetime
from typing import List, Optional

from ..models import db, CompositeProductHistory, HISTORY_ACTIONS
from ..utils.timezone_utils import TimezoneUtils


class HistoryLogger:
    """Append-only ledger for composite product stock movements.

    Records are added to the current session and committed together with the
    stock mutation they describe; there is no update or delete path.
    """

    @staticmethod
    def record(
        action,
        product,
        quantity,
        stock_before,
        stock_after,
        operator,
        unit='serving',
        unit_cost=0.0,
        total_cost=0.0,
        estimated_revenue=0.0,
        notes=None,
        batch_number=None,
        batch_expiry_time=None,
        recipe_id=None,
        ingredients_used=None,
        action_time=None,
    ):
        """Add one history row for ``product`` to the session"""
        if action not in HISTORY_ACTIONS:
            raise ValueError(f"Unknown history action: {action}")

        moment = action_time or TimezoneUtils.utc_now()
        history = CompositeProductHistory(
            product_id=product.id,
            product_name=product.name,
            product_code=product.product_code,
            store_id=product.store_id,
            action=action,
            quantity=quantity,
            unit=unit or 'serving',
            stock_before=stock_before,
            stock_after=stock_after,
            notes=notes or '',
            unit_cost=unit_cost or 0.0,
            total_cost=total_cost or 0.0,
            estimated_revenue=estimated_revenue or 0.0,
            operator_user_id=operator.user_id,
            operator_username=operator.username,
            operator_full_name=operator.full_name,
            operator_role=operator.role,
            action_time=moment,
            created_at=moment,
            batch_number=batch_number,
            batch_expiry_time=batch_expiry_time,
            recipe_id=recipe_id,
            ingredients_used=list(ingredients_used) if ingredients_used else [],
        )
        db.session.add(history)
        return history

    @staticmethod
    def history_for_product(product_id, action=None, limit=50) -> List[CompositeProductHistory]:
        query = CompositeProductHistory.query.filter_by(product_id=product_id)
        if action:
            query = query.filter_by(action=action)
        query = query.order_by(CompositeProductHistory.created_at.desc(), CompositeProductHistory.id.desc())
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def history_for_store(store_id, action=None, since: Optional[datetime] = None) -> List[CompositeProductHistory]:
        query = CompositeProductHistory.query.filter_by(store_id=str(store_id))
        if action:
            query = query.filter_by(action=action)
        if since is not None:
            query = query.filter(CompositeProductHistory.created_at >= since)
        return query.order_by(CompositeProductHistory.created_at.desc(), CompositeProductHistory.id.desc()).all()

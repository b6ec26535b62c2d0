from sqlalchemy import event

from ..extensions import db
from ..utils.code_generator import generate_batch_number
from ..utils.timezone_utils import TimezoneUtils

HISTORY_ACTIONS = ('prepare', 'serve', 'expire', 'waste')
POSITIVE_ACTIONS = ('prepare',)
NEGATIVE_ACTIONS = ('serve', 'waste', 'expire')


class CompositeProductHistory(db.Model):
    """Append-only audit row written once per composite engine call."""
    __tablename__ = 'composite_product_history'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    product_name = db.Column(db.String(128), nullable=False)
    product_code = db.Column(db.String(64), nullable=False)
    store_id = db.Column(db.String(64), nullable=False)

    action = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(32), nullable=False, default='serving')
    stock_before = db.Column(db.Float, nullable=False)
    stock_after = db.Column(db.Float, nullable=False)
    notes = db.Column(db.Text, nullable=False, default='')

    # Cost info
    unit_cost = db.Column(db.Float, nullable=False, default=0.0)
    total_cost = db.Column(db.Float, nullable=False, default=0.0)
    estimated_revenue = db.Column(db.Float, nullable=False, default=0.0)

    # Operator
    operator_user_id = db.Column(db.String(64), nullable=False)
    operator_username = db.Column(db.String(128), nullable=True)
    operator_full_name = db.Column(db.String(128), nullable=True)
    operator_role = db.Column(db.String(64), nullable=True)

    action_time = db.Column(db.DateTime(timezone=True), nullable=False, default=TimezoneUtils.utc_now)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=TimezoneUtils.utc_now)

    # Batch info (prepare only)
    batch_number = db.Column(db.String(64), nullable=True, index=True)
    batch_expiry_time = db.Column(db.DateTime(timezone=True), nullable=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=True)
    ingredients_used = db.Column(db.JSON, nullable=True)

    product = db.relationship('Product')

    __table_args__ = (
        db.CheckConstraint(
            "action IN ('prepare', 'serve', 'expire', 'waste')", name='ck_history_action'
        ),
        db.CheckConstraint('quantity >= 0', name='ck_history_quantity_non_negative'),
        db.CheckConstraint('stock_before >= 0 AND stock_after >= 0', name='ck_history_stock_non_negative'),
        db.Index('idx_history_product_created', 'product_id', 'created_at'),
        db.Index('idx_history_store_action_created', 'store_id', 'action', 'created_at'),
    )

    @property
    def stock_change(self):
        return self.stock_after - self.stock_before

    @property
    def is_positive_action(self):
        return self.action in POSITIVE_ACTIONS

    @property
    def is_negative_action(self):
        return self.action in NEGATIVE_ACTIONS

    @property
    def operator_display_name(self):
        return self.operator_full_name or self.operator_username or self.operator_user_id

    def to_summary(self):
        return {
            'id': self.id,
            'action': self.action,
            'quantity': self.quantity,
            'unit': self.unit,
            'stockAfter': self.stock_after,
            'actionTime': self.action_time.isoformat() if self.action_time else None,
            'operator': self.operator_display_name,
            'notes': self.notes,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'productName': self.product_name,
            'productCode': self.product_code,
            'storeId': self.store_id,
            'action': self.action,
            'quantity': self.quantity,
            'unit': self.unit,
            'stockBefore': self.stock_before,
            'stockAfter': self.stock_after,
            'stockChange': self.stock_change,
            'notes': self.notes,
            'costInfo': {
                'unitCost': self.unit_cost,
                'totalCost': self.total_cost,
                'estimatedRevenue': self.estimated_revenue,
            },
            'operator': {
                'userId': self.operator_user_id,
                'username': self.operator_username,
                'fullName': self.operator_full_name,
                'role': self.operator_role,
            },
            'actionTime': self.action_time.isoformat() if self.action_time else None,
            'batchInfo': {
                'batchNumber': self.batch_number,
                'expiryTime': self.batch_expiry_time.isoformat() if self.batch_expiry_time else None,
                'recipeUsed': self.recipe_id,
                'ingredientsUsed': list(self.ingredients_used or []),
            },
        }

    def __repr__(self):
        return f'<CompositeProductHistory {self.id} | Product {self.product_id} | {self.action}: {self.quantity}>'


@event.listens_for(CompositeProductHistory, "before_insert")
def _assign_batch_number(mapper, connection, target):
    if target.action == 'prepare' and not target.batch_number:
        target.batch_number = generate_batch_number(target.product_code, target.action_time)


@event.listens_for(CompositeProductHistory, "before_update")
def _reject_history_update(mapper, connection, target):
    from ..services.composite_product.errors import HistoryImmutableError

    raise HistoryImmutableError(f"History record {target.id} cannot be modified")


@event.listens_for(CompositeProductHistory, "before_delete")
def _reject_history_delete(mapper, connection, target):
    from ..services.composite_product.errors import HistoryImmutableError

    raise HistoryImmutableError(f"History record {target.id} cannot be deleted")

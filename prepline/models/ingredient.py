from ..extensions import db
from .mixins import StoreScopedMixin, TimestampMixin


class Ingredient(StoreScopedMixin, TimestampMixin, db.Model):
    """Raw material tracked in a single canonical unit."""
    __tablename__ = 'ingredient'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    unit = db.Column(db.String(32), nullable=False)
    stock_quantity = db.Column(db.Float, nullable=False, default=0.0)
    cost_per_unit = db.Column(db.Float, nullable=False, default=0.0)

    __table_args__ = (
        db.CheckConstraint('stock_quantity >= 0', name='ck_ingredient_stock_non_negative'),
        db.UniqueConstraint('store_id', 'name', name='_store_ingredient_name_uc'),
    )

    def __repr__(self):
        return f'<Ingredient {self.id} {self.name}: {self.stock_quantity} {self.unit}>'

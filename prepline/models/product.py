from ..extensions import db
from .mixins import StoreScopedMixin, TimestampMixin


class Product(StoreScopedMixin, TimestampMixin, db.Model):
    """Sellable product; composite products carry their batch fields inline.

    ``current_stock`` is only ever written by the composite engines (prepare
    raises it; serve, expire and waste lower it).
    """
    __tablename__ = 'product'

    id = db.Column(db.Integer, primary_key=True)
    product_code = db.Column(db.String(64), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    unit = db.Column(db.String(32), nullable=False, default='piece')
    price = db.Column(db.Float, nullable=False, default=0.0)
    retail_price = db.Column(db.Float, nullable=False, default=0.0)
    cost_price = db.Column(db.Float, nullable=False, default=0.0)
    min_stock = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(16), nullable=False, default='active')
    deleted = db.Column(db.Boolean, nullable=False, default=False)

    # Stock of simple (non-composite) products, in ``unit``
    stock_quantity = db.Column(db.Float, nullable=False, default=0.0)
    # Raw ingredient a simple product is stocked as, when there is one
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=True)

    is_composite = db.Column(db.Boolean, nullable=False, default=False, index=True)
    capacity_quantity = db.Column(db.Float, nullable=True)
    capacity_unit = db.Column(db.String(32), nullable=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=True)
    recipe_cost = db.Column(db.Float, nullable=True)
    total_recipe_cost = db.Column(db.Float, nullable=True)
    current_stock = db.Column(db.Integer, nullable=False, default=0)
    expiry_hours = db.Column(db.Integer, nullable=False, default=24)
    last_prepared_at = db.Column(db.DateTime(timezone=True), nullable=True)

    recipe = db.relationship('Recipe')
    ingredient = db.relationship('Ingredient')
    child_products = db.relationship(
        'CompositeChildProduct',
        back_populates='composite',
        foreign_keys='CompositeChildProduct.composite_id',
        order_by='CompositeChildProduct.position',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.CheckConstraint('current_stock >= 0', name='ck_product_current_stock_non_negative'),
        db.CheckConstraint('stock_quantity >= 0', name='ck_product_stock_non_negative'),
        db.Index('ix_product_store_composite', 'store_id', 'is_composite', 'deleted'),
    )

    @property
    def capacity(self):
        return {'quantity': self.capacity_quantity, 'unit': self.capacity_unit}

    def composite_info(self):
        return {
            'capacity': self.capacity,
            'recipeId': self.recipe_id,
            'recipeCost': self.recipe_cost,
            'totalRecipeCost': self.total_recipe_cost,
            'childProducts': [child.to_dict() for child in self.child_products],
            'currentStock': self.current_stock,
            'expiryHours': self.expiry_hours,
            'lastPreparedAt': self.last_prepared_at.isoformat() if self.last_prepared_at else None,
        }

    def to_dict(self):
        data = {
            'id': self.id,
            'storeId': self.store_id,
            'productCode': self.product_code,
            'name': self.name,
            'description': self.description,
            'unit': self.unit,
            'price': self.price,
            'retailPrice': self.retail_price,
            'costPrice': self.cost_price,
            'minStock': self.min_stock,
            'status': self.status,
            'isComposite': self.is_composite,
        }
        if self.is_composite:
            data['compositeInfo'] = self.composite_info()
        else:
            data['stockQuantity'] = self.stock_quantity
        return data

    def __repr__(self):
        return f'<Product {self.id} {self.product_code} composite={self.is_composite}>'


class CompositeChildProduct(db.Model):
    """Child product entry of a composite.

    Rows written before ``quantity_per_serving`` and ``unit`` existed leave
    them NULL; readers must go through the legacy fallback.
    """
    __tablename__ = 'composite_child_product'

    id = db.Column(db.Integer, primary_key=True)
    composite_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    name = db.Column(db.String(128), nullable=True)
    quantity_per_serving = db.Column(db.Float, nullable=True)
    unit = db.Column(db.String(32), nullable=True)
    cost_price = db.Column(db.Float, nullable=False, default=0.0)
    selling_price = db.Column(db.Float, nullable=False, default=0.0)
    retail_price = db.Column(db.Float, nullable=False, default=0.0)

    composite = db.relationship('Product', foreign_keys=[composite_id], back_populates='child_products')
    product = db.relationship('Product', foreign_keys=[product_id])

    @property
    def is_legacy(self):
        return self.quantity_per_serving is None or not (self.unit or '').strip()

    def to_dict(self):
        return {
            'productId': self.product_id,
            'name': self.name,
            'quantityPerServing': self.quantity_per_serving,
            'unit': self.unit,
            'costPrice': self.cost_price,
            'sellingPrice': self.selling_price,
            'retailPrice': self.retail_price,
        }

from ..extensions import db
from .mixins import StoreScopedMixin, TimestampMixin


class Recipe(StoreScopedMixin, TimestampMixin, db.Model):
    __tablename__ = 'recipe'

    id = db.Column(db.Integer, primary_key=True)
    dish_name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    yield_quantity = db.Column(db.Float, nullable=False, default=1.0)
    yield_unit = db.Column(db.String(32), nullable=False, default='piece')
    expiry_hours = db.Column(db.Integer, nullable=False, default=24)
    cost_per_unit = db.Column(db.Float, nullable=True)
    deleted = db.Column(db.Boolean, nullable=False, default=False)

    ingredients = db.relationship(
        'RecipeIngredient',
        back_populates='recipe',
        order_by='RecipeIngredient.position',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.CheckConstraint('yield_quantity > 0', name='ck_recipe_yield_positive'),
    )

    def __repr__(self):
        return f'<Recipe {self.id} {self.dish_name} yields {self.yield_quantity} {self.yield_unit}>'


class RecipeIngredient(db.Model):
    """One ordered ingredient line of a recipe."""
    __tablename__ = 'recipe_ingredient'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=True)
    amount_used = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    recipe = db.relationship('Recipe', back_populates='ingredients')
    ingredient = db.relationship('Ingredient')

    __table_args__ = (
        db.CheckConstraint('amount_used >= 0', name='ck_recipe_ingredient_amount_non_negative'),
    )

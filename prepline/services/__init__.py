# composite_product must load before recipe_cost_service, which imports its errors
from .composite_product import CompositeProductService  # noqa: F401

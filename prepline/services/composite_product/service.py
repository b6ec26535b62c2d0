from typing import Optional

from ...config import EngineConfig
from ..freshness_service import FreshnessService
from ..history_logger import HistoryLogger
from ..recipe_cost_service import RecipeCostService
from ..unit_conversion import ConversionEngine
from ._disposal import DisposalEngine
from ._preparation import PreparationEngine
from ._pricing import PricingService
from ._reporting import ReportingService
from ._serving import ServingEngine
from ._requirements import RequirementResolver


class CompositeProductService:
    """Entry point for everything that touches composite product stock.

    All engines share one ``EngineConfig``; build one per app with
    ``CompositeProductService.for_app()`` or pass a policy explicitly.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.conversion = ConversionEngine(self.config)
        self.freshness = FreshnessService(self.config)
        self.recipe_costs = RecipeCostService(self.config, self.conversion)
        self.resolver = RequirementResolver(self.conversion, self.recipe_costs, self.config.max_batches_per_prepare)

        self._preparation = PreparationEngine(self.resolver, self.freshness, self.config)
        self._serving = ServingEngine(self.freshness)
        self._disposal = DisposalEngine(self.freshness)
        self._pricing = PricingService(self.recipe_costs, self.config)
        self._reporting = ReportingService(self.freshness, self.conversion)

    @classmethod
    def for_app(cls, app=None) -> "CompositeProductService":
        from ... import get_engine_config

        return cls(get_engine_config(app))

    # Stock movements

    def prepare(self, product, quantity_to_prepare, operator, notes=None, now=None):
        return self._preparation.prepare(product, quantity_to_prepare, operator, notes=notes, now=now)

    def check_availability(self, product, quantity_to_prepare):
        return self._preparation.check_availability(product, quantity_to_prepare)

    def serve(self, product, quantity_to_serve, operator, notes=None, now=None):
        return self._serving.serve(product, quantity_to_serve, operator, notes=notes, now=now)

    def discard(self, product, action, operator, quantity=None, notes=None, now=None):
        return self._disposal.discard(product, action, operator, quantity=quantity, notes=notes, now=now)

    def clean_expired_composites(self, store_id=None, operator=None, now=None):
        return self._disposal.clean_expired_composites(store_id=store_id, operator=operator, now=now)

    # Pricing

    def create_composite(self, product_code, name, store_id, capacity, recipe_id, **kwargs):
        return self._pricing.create_composite(product_code, name, store_id, capacity, recipe_id, **kwargs)

    def price_from_recipe(self, recipe_id, capacity):
        return self._pricing.price_from_recipe(recipe_id, capacity)

    def recalculate_cost(self, product):
        return self._pricing.recalculate_cost(product)

    def update_child_prices(self, product, updates):
        return self._pricing.update_child_prices(product, updates)

    def child_cost(self, product):
        return self._pricing.child_cost(product)

    # Reporting

    def status(self, product, now=None):
        return self.freshness.status_of(product, now)

    def product_status(self, product, now=None):
        return self._reporting.product_status(product, now)

    def composite_stats(self, store_id=None, now=None):
        return self._reporting.composite_stats(store_id=store_id, now=now)

    def audit_recipe_units(self, recipes=None):
        return self._reporting.audit_recipe_units(recipes)

    @staticmethod
    def history_for_product(product_id, action=None, limit=50):
        return HistoryLogger.history_for_product(product_id, action=action, limit=limit)

    @staticmethod
    def history_for_store(store_id, action=None, since=None):
        return HistoryLogger.history_for_store(store_id, action=action, since=since)

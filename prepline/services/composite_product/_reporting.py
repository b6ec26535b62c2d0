"""
Read-only reporting: stock/freshness stats, per-product status and the
recipe unit audit. Nothing here writes.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from ...models import Product, Recipe
from ...utils.timezone_utils import TimezoneUtils
from ..freshness_service import EXPIRED, EXPIRING_SOON, FreshnessService
from ..unit_conversion import ConversionEngine, normalize_unit

logger = logging.getLogger(__name__)

CRITICAL = 'CRITICAL'
WARNING = 'WARNING'


class ReportingService:

    def __init__(self, freshness: FreshnessService, conversion: ConversionEngine):
        self.freshness = freshness
        self.conversion = conversion

    def composite_stats(self, store_id=None, now=None) -> Dict[str, Any]:
        moment = now or TimezoneUtils.utc_now()
        query = Product.query.filter(Product.is_composite.is_(True), Product.deleted.is_(False))
        if store_id is not None:
            query = query.filter(Product.store_id == str(store_id))

        stats = {
            'totalProducts': 0,
            'activeProducts': 0,
            'expiringSoonProducts': 0,
            'expiredProducts': 0,
            'totalStock': 0,
        }
        for product in query.all():
            stats['totalProducts'] += 1
            stock = product.current_stock or 0
            stats['totalStock'] += stock
            if stock <= 0:
                continue
            status = self.freshness.status_of(product, moment).status
            if status == EXPIRED:
                stats['expiredProducts'] += 1
            elif status == EXPIRING_SOON:
                stats['expiringSoonProducts'] += 1
            else:
                stats['activeProducts'] += 1

        total = stats['totalProducts']
        stats['averageStockPerProduct'] = stats['totalStock'] / total if total else 0
        return stats

    def product_status(self, product, now=None) -> Dict[str, Any]:
        payload = product.to_dict()
        payload['statusInfo'] = self.freshness.status_of(product, now).to_dict()
        return payload

    def audit_recipe_units(self, recipes: Optional[Iterable[Recipe]] = None) -> Dict[str, Any]:
        """Report recipe lines whose units disagree with their ingredients. Advisory only."""
        if recipes is None:
            recipes = Recipe.query.filter_by(deleted=False).order_by(Recipe.id).all()

        summary = {'critical': 0, 'warnings': 0, 'valid': 0}
        results = []
        for recipe in recipes:
            issues = []
            for line in recipe.ingredients:
                issues.extend(self._line_issues(line))

            if any(issue['severity'] == CRITICAL for issue in issues):
                summary['critical'] += 1
            elif issues:
                summary['warnings'] += 1
            else:
                summary['valid'] += 1
            results.append({
                'recipeId': recipe.id,
                'dishName': recipe.dish_name,
                'issues': issues,
            })

        if summary['critical']:
            logger.warning("Recipe unit audit: %s recipe(s) with critical unit issues", summary['critical'])
        return {'totalRecipes': len(results), 'summary': summary, 'recipes': results}

    def _line_issues(self, line):
        ingredient = line.ingredient
        if ingredient is None:
            return [{
                'type': 'MISSING_INGREDIENT',
                'severity': CRITICAL,
                'ingredientId': line.ingredient_id,
                'message': 'Recipe line references an ingredient that no longer exists',
            }]

        base = {
            'ingredientId': ingredient.id,
            'ingredientName': ingredient.name,
            'recipeUnit': line.unit,
            'ingredientUnit': ingredient.unit,
        }
        issues = []
        for unit in dict.fromkeys((line.unit, ingredient.unit)):
            if not self.conversion.is_unit_allowed(unit):
                issues.append(dict(
                    base,
                    type='UNIT_NOT_ALLOWED',
                    severity=WARNING,
                    unit=unit,
                    message=f"Unit '{unit}' is outside the allowed units",
                    suggestion=self.conversion.suggest_better_unit(line.amount_used, unit),
                ))

        if normalize_unit(line.unit) != normalize_unit(ingredient.unit):
            converted = self.conversion.convert(line.amount_used, line.unit, ingredient.unit)
            if converted is None:
                issues.append(dict(
                    base,
                    type='UNIT_CONVERSION_FAILED',
                    severity=CRITICAL,
                    message=f"Cannot convert {line.unit} to {ingredient.unit}",
                ))
            else:
                issues.append(dict(
                    base,
                    type='UNIT_MISMATCH',
                    severity=WARNING,
                    amountUsed=line.amount_used,
                    convertedAmount=converted,
                    message=f"Recipe uses {line.unit} while stock is kept in {ingredient.unit}",
                ))
        return issues

"""
prepline Test Suite

Tests are organized by domain:
- test_unit_conversion.py, test_freshness_service.py: pure services, no database
- test_recipe_cost_service.py: recipe costing and requirements
- test_composite_*.py: preparation, legacy child products, serving, disposal and pricing
- test_stock_conservation.py, test_history.py: stock ledger invariants
- test_reporting.py, test_cli.py, test_config.py: reporting, management commands and configuration
"""

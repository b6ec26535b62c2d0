"""
Management commands for composite stock maintenance
"""
import json

import click
from flask.cli import with_appcontext

from .extensions import db


def _service():
    from .services.composite_product import CompositeProductService

    return CompositeProductService.for_app()


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all database tables"""
    from . import models  # noqa: F401

    db.create_all()
    print("✅ Database tables created")


@click.command('expire-composites')
@click.option('--store-id', default=None, help='Only sweep this store')
@with_appcontext
def expire_composites_command(store_id):
    """Expire remaining stock of composites past their shelf life"""
    try:
        result = _service().clean_expired_composites(store_id=store_id)
    except Exception as e:
        print(f'❌ Error expiring composites: {str(e)}')
        raise

    if not result['cleanedCount']:
        print("ℹ️  No expired composite stock found.")
        return
    for item in result['expiredProducts']:
        print(
            f"🗑️  {item['productName']} (#{item['productId']}): "
            f"{item['expiredStock']} serving(s), {item['hoursOverdue']:.1f}h overdue"
        )
    print(f"✅ Expired stock of {result['cleanedCount']} composite(s).")


@click.command('composite-stats')
@click.option('--store-id', default=None, help='Only report this store')
@with_appcontext
def composite_stats_command(store_id):
    """Print the composite stock and freshness summary"""
    print(json.dumps(_service().composite_stats(store_id=store_id), indent=2))


@click.command('audit-recipe-units')
@with_appcontext
def audit_recipe_units_command():
    """Report recipe lines whose units disagree with their ingredients"""
    report = _service().audit_recipe_units()
    summary = report['summary']
    print(f"📋 Audited {report['totalRecipes']} recipe(s)")
    for recipe in report['recipes']:
        for issue in recipe['issues']:
            print(f"   [{issue['severity']}] {recipe['dishName']}: {issue['type']} - {issue['message']}")
    print(f"❌ Critical: {summary['critical']}  ⚠️  Warnings: {summary['warnings']}  ✅ Valid: {summary['valid']}")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(init_db_command)
    app.cli.add_command(expire_composites_command)
    app.cli.add_command(composite_stats_command)
    app.cli.add_command(audit_recipe_units_command)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to stockledger (PowerShell: $env:FLASK_APP="stockledger").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Outlets:
# - python -m flask outlets list [--all]
#   List outlets (use --all to include inactive).
# - python -m flask outlets create --code JKT01 --name "Jakarta Pusat"
#   Create an outlet and seed 0 stock for every active product.
#
# Products:
# - python -m flask products create --name "Teh Botol" --barcode 8991234567890 --stock 24
#   Create a product and seed 0 stock at every active outlet.
#
# Stock opname:
# - python -m flask opnames list [--status in_progress] [--limit 20]
#   List recent opnames; open sessions never expire, so review them here.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import OutletStock, StockOpname
from .services import catalog_service, opname_service, outlet_service


@click.group('system')
def system_group():
    """System maintenance commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('outlets')
def outlets_group():
    """Outlet management commands."""


@outlets_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive outlets')
@with_appcontext
def list_outlets_cli(include_inactive):
    """List outlets with the number of stocked products."""
    outlets = outlet_service.list_outlets(include_inactive=include_inactive)

    if not outlets:
        click.echo("No outlets found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<30} {'Active':<8} {'Products'}")
    click.echo("="*70)

    for outlet in outlets:
        product_count = db.session.query(OutletStock).filter_by(outlet_id=outlet.id).count()
        active_str = "Yes" if outlet.is_active else "No"
        click.echo(f"{outlet.id:<5} {outlet.code:<12} {outlet.name:<30} {active_str:<8} {product_count}")

    click.echo("="*70 + "\n")


@outlets_group.command('create')
@click.option('--code', required=True, help='Outlet code (unique)')
@click.option('--name', required=True, help='Outlet name')
@click.option('--address', help='Street address')
@click.option('--phone', help='Phone number')
@with_appcontext
def create_outlet_cli(code, name, address, phone):
    """Create an outlet."""
    result = outlet_service.create_outlet(code, name, address=address, phone=phone)
    if not result.success:
        db.session.rollback()
        click.echo(f"FAIL {result.message}")
        return

    db.session.commit()
    outlet = result.value
    click.echo(f"PASS Created outlet: {outlet.name} (ID: {outlet.id}, Code: {outlet.code})")


@click.group('products')
def products_group():
    """Product catalog commands."""


@products_group.command('create')
@click.option('--name', required=True, help='Product name')
@click.option('--barcode', help='Barcode (unique)')
@click.option('--stock', 'stock_quantity', type=int, default=0, show_default=True, help='Aggregate stock')
@click.option('--min-stock', type=int, default=0, show_default=True, help='Low stock threshold')
@with_appcontext
def create_product_cli(name, barcode, stock_quantity, min_stock):
    """Create a product."""
    result = catalog_service.create_product(
        name,
        barcode=barcode,
        stock_quantity=stock_quantity,
        min_stock=min_stock,
    )
    if not result.success:
        db.session.rollback()
        click.echo(f"FAIL {result.message}")
        return

    db.session.commit()
    product = result.value
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, Stock: {product.stock_quantity})")


@click.group('opnames')
def opnames_group():
    """Stock opname inspection commands."""


@opnames_group.command('list')
@click.option('--status', type=click.Choice(list(opname_service.OPNAME_STATUSES)), help='Filter by status')
@click.option('--limit', type=int, default=20, show_default=True)
@with_appcontext
def list_opnames_cli(status, limit):
    """List recent opnames."""
    result = opname_service.list_opnames(status=status, limit=limit)
    if not result.success:
        click.echo(f"FAIL {result.message}")
        return

    opnames: list[StockOpname] = result.value
    if not opnames:
        click.echo("No opnames found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Number':<20} {'Outlet':<8} {'Status':<12} {'Items':<7} {'Created'}")
    click.echo("="*80)

    for opname in opnames:
        outlet = str(opname.outlet_id) if opname.outlet_id else "-"
        click.echo(
            f"{opname.id:<5} {opname.opname_number:<20} {outlet:<8} {opname.status:<12} "
            f"{len(opname.items):<7} {opname.created_at}"
        )

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(outlets_group)
    app.cli.add_command(products_group)
    app.cli.add_command(opnames_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cashpoint/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default settings and an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username cashier1 --password "Password123!" --role cashier
# - python -m flask users list
#
# Inventory:
# - python -m flask products low-stock
#   List active products at or below their low-stock threshold.
# - python -m flask products adjust-stock --product-id 3 --delta 24
#   Manual restock/correction (clamped at zero).

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import User, USER_ROLES
from .services import inventory_service, settings_service, user_service


@click.group('system')
def system_group():
    """System bootstrap and maintenance."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Initial admin username')
@click.option('--admin-password', default='Password123!', help='Initial admin password')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Initialize the system (idempotent).

    Creates:
    - All tables (if missing)
    - Default settings (tax_rate, store_name, currency, receipt_footer)
    - An admin user (if no user with that username exists)
    """
    db.create_all()
    settings_service.ensure_default_settings()
    click.echo("PASS Tables and default settings ready")

    if db.session.query(User).filter_by(username=admin_username).first():
        click.echo(f"SKIP Admin user '{admin_username}' already exists")
    else:
        user_service.create_user(admin_username, admin_password, role="admin")
        click.echo(f"PASS Created admin user '{admin_username}'")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User management."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """Create a user."""
    try:
        user = user_service.create_user(username, password, role=role)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user id={user.id} username={user.username} role={user.role}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = user_service.list_users()
    if not users:
        click.echo("No users found.")
        return
    click.echo(f"{'ID':<6} {'USERNAME':<24} {'ROLE':<10}")
    for user in users:
        click.echo(f"{user.id:<6} {user.username:<24} {user.role:<10}")


@click.group('products')
def products_group():
    """Inventory inspection and adjustment."""


@products_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their low-stock threshold."""
    products = inventory_service.get_low_stock_products()
    if not products:
        click.echo("No low-stock products.")
        return
    click.echo(f"{'ID':<6} {'NAME':<32} {'STOCK':>6} {'THRESHOLD':>10}")
    for p in products:
        click.echo(f"{p.id:<6} {p.name[:32]:<32} {p.stock_quantity:>6} {p.low_stock_threshold:>10}")


@products_group.command('adjust-stock')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--delta', type=int, required=True, help='Signed quantity change')
@with_appcontext
def adjust_stock_cli(product_id, delta):
    """Manual restock/correction (results below zero are clamped)."""
    try:
        product = inventory_service.adjust_stock(product_id, delta)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Product {product.id} stock is now {product.stock_quantity}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)

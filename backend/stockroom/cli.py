# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and default admin/manager/staff users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --username admin --email admin@stockroom.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Stock inspection:
# - python -m flask stock low
#   List products at or below their reorder level, and those out of stock.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .services import reporting_service
from .services.auth_service import create_user
from .validation import ConflictError, ValidationError


DEFAULT_PASSWORD = "Password123!"
DEFAULT_USERS = (
    ("admin", "admin@stockroom.local", "admin"),
    ("manager", "manager@stockroom.local", "manager"),
    ("staff", "staff@stockroom.local", "staff"),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users.

    Users: admin, manager, staff (all with password "Password123!").

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing stockroom...")
    db.create_all()

    for username, email, role in DEFAULT_USERS:
        if db.session.query(User.id).filter_by(username=username).first():
            click.echo(f"PASS User exists: {username}")
            continue
        create_user(username, email, DEFAULT_PASSWORD, role)
        click.echo(f"PASS Created user: {username} ({role})")

    click.echo("DONE System initialized.")


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
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(username, email, password, role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("=" * 80)

    for user in users:
        active = "yes" if user.is_active else "no"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active:<8} {user.role}")

    click.echo("=" * 80 + "\n")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('low')
@with_appcontext
def low_stock_cli():
    """List low-stock and out-of-stock products."""
    low = reporting_service.low_stock()
    out = reporting_service.out_of_stock()

    if not low and not out:
        click.echo("PASS All products are above their reorder level.")
        return

    for product in out:
        click.echo(f"OUT  {product.sku:<16} {product.name:<40} qty=0 reorder={product.reorder_level}")
    for product in low:
        click.echo(
            f"LOW  {product.sku:<16} {product.name:<40} "
            f"qty={product.quantity} reorder={product.reorder_level}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)

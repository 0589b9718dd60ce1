# Overview: Flask CLI command groups for bootstrap and user provisioning.

# backend/warehouse_control/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py and JWT_SECRET to a long random string.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo [--password "Password123"]
#   Create admin/manager/viewer users and a few demo items (idempotent).
#
# User provisioning:
# - python -m flask users create --username admin --password "Password123" --role admin
#   Create a user (prompts if options are omitted).
# - python -m flask users list
#   List all users with their roles.

import click
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import Item, Role, User
from .services import auth_service, items_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including item history!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to add demo data.")


DEMO_ITEMS = [
    {"name": "Hex Bolt M8", "sku": "BOLT-M8", "quantity": 500, "price": 0.12, "category": "Fasteners", "location": "A-01"},
    {"name": "Washer M8", "sku": "WASH-M8", "quantity": 1200, "price": 0.03, "category": "Fasteners", "location": "A-02"},
    {"name": "Pallet Jack", "sku": "PJ-2500", "quantity": 3, "price": 349.0, "category": "Equipment", "location": "Dock"},
]


@system_group.command('seed-demo')
@click.option('--password', default='Password123', show_default=True, help='Password for seeded users')
@with_appcontext
def seed_demo(password):
    """Create one user per role and a handful of items. Safe to re-run."""
    for role in Role:
        username = role.value
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"SKIP User {username} already exists")
            continue
        auth_service.create_user(username, password, role)
        click.echo(f"PASS Created user {username} ({role.value})")

    for values in DEMO_ITEMS:
        if db.session.query(Item).filter_by(sku=values["sku"]).first():
            click.echo(f"SKIP Item {values['sku']} already exists")
            continue
        item = items_service.create_item(values, actor="seed")
        click.echo(f"PASS Created item {item.sku} (ID: {item.id})")


@click.group('users')
def users_group():
    """User inspection and provisioning."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, password, role):
    """Create a user account."""
    try:
        user = auth_service.create_user(username, password, role)
    except AppError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<10}")
    click.echo("=" * 40)
    for user in users:
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<10}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)

# Overview: Flask CLI command groups for bootstrap, account management and journal maintenance.

# backend/shoeclean/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "shoeclean:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--master-username owner --master-password ...]
#   Idempotent: creates tables, the default store settings row and, when
#   asked, the master superuser account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users list
# - python -m flask users create --username kasir1 --password secret1 --role cashier
#
# Change journal:
# - python -m flask changes prune [--keep 5000]
#   Delete all but the newest journal rows.

import click
from flask import current_app
from flask.cli import with_appcontext

from .catalog import DEFAULT_SETTINGS, ROLE_SUPERUSER, USER_ROLES
from .extensions import db
from .models import AppUser, StoreSettings
from .services import change_feed_service
from .services.auth_service import hash_password
from .validation import ValidationError


def _create_user(username: str, password: str, role: str, is_master: bool = False) -> AppUser:
    if db.session.query(AppUser).filter_by(username=username).first():
        raise click.ClickException(f"User {username!r} already exists")
    try:
        password_hash = hash_password(password)
    except ValidationError as e:
        raise click.ClickException(str(e)) from e
    user = AppUser(username=username, password=password_hash, role=role, is_master=is_master)
    db.session.add(user)
    db.session.commit()
    return user


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--master-username', help='Create the master superuser with this username')
@click.option('--master-password', help='Password for the master superuser')
@with_appcontext
def init_system(master_username, master_password):
    """
    Bootstrap the database.

    Safe to run more than once: existing settings and users are left alone.
    """
    db.create_all()
    click.echo("OK  Tables ready")

    if db.session.query(StoreSettings).count() == 0:
        db.session.add(StoreSettings(**dict(DEFAULT_SETTINGS)))
        db.session.commit()
        click.echo("OK  Default store settings created")
    else:
        click.echo("--  Store settings already present")

    if master_username:
        if db.session.query(AppUser).filter_by(is_master=True).first():
            click.echo("--  A master account already exists; skipping")
        else:
            if not master_password:
                master_password = click.prompt("Master password", hide_input=True, confirmation_prompt=True)
            _create_user(master_username, master_password, ROLE_SUPERUSER, is_master=True)
            click.echo(f"OK  Master superuser {master_username!r} created")


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
    db.drop_all()
    db.create_all()
    click.echo("OK  Database reset")


@click.group('users')
def users_group():
    """Dashboard account commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(USER_ROLES), prompt=True, help='Role')
@click.option('--master', is_flag=True, help='Mark as the master account (superuser only)')
@with_appcontext
def create_user_cli(username, password, role, master):
    """Create an account (bypasses dashboard role checks)."""
    if master and role != ROLE_SUPERUSER:
        raise click.ClickException("Only a superuser can be the master account")
    if master and db.session.query(AppUser).filter_by(is_master=True).first():
        raise click.ClickException("A master account already exists")
    user = _create_user(username, password, role, is_master=master)
    click.echo(f"OK  Created {user.role} {user.username!r} ({user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all accounts."""
    users = db.session.query(AppUser).order_by(AppUser.username).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<38} {'Username':<20} {'Role':<10} {'Active':<7} {'Master'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        master_str = "Yes" if user.is_master else ""
        click.echo(f"{user.id:<38} {user.username:<20} {user.role:<10} {active_str:<7} {master_str}")
    click.echo("=" * 80 + "\n")


@click.group('changes')
def changes_group():
    """Change journal maintenance."""


@changes_group.command('prune')
@click.option('--keep', type=int, help='Journal rows to keep (default: CHANGE_EVENTS_RETENTION)')
@with_appcontext
def prune_changes_cli(keep):
    if keep is None:
        keep = current_app.config["CHANGE_EVENTS_RETENTION"]
    try:
        removed = change_feed_service.prune(keep)
    except ValueError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Deleted {removed} change events, kept the newest {keep}.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(changes_group)

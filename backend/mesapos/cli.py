# Overview: Flask CLI command groups for bootstrap, user setup and session inspection.

# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that don't exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create-admin --username admin --pin 4821
#   Create the first admin (prompts if options are omitted).
# - python -m flask users list
#   List all users with role and active status.
#
# Cash sessions:
# - python -m flask sessions list --limit 20
#   List recent cash sessions with their reconciliation.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import auth_service, cash_session_service
from .services.receipt_service import format_cents
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing data is kept."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("PASS Database tables created.")
    if not auth_service.has_admin():
        click.echo("WARN No admin user yet. Run 'python -m flask users create-admin'.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask users create-admin' to add an admin.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create-admin')
@click.option('--username', prompt=True, help='Admin username')
@click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='4-6 digit PIN')
@with_appcontext
def create_admin(username, pin):
    """Create the first admin user (only allowed while no admin exists)."""
    try:
        user = auth_service.setup_admin(username, pin)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin: {user.username} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users(include_inactive=True)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Username':<24} {'Role':<10} {'Active':<8}")
    click.echo("="*60)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<24} {user.role:<10} {active_str:<8}")

    click.echo("="*60 + "\n")


@click.group('sessions')
def sessions_group():
    """Cash session inspection commands."""


@sessions_group.command('list')
@click.option('--limit', type=int, default=20, help='Number of sessions to show')
@with_appcontext
def list_sessions(limit):
    """
    List recent cash sessions, newest first.

    Example:
        flask sessions list
        flask sessions list --limit 5
    """
    sessions = cash_session_service.list_cash_sessions(limit=limit)

    if not sessions:
        click.echo("No cash sessions found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<22} {'Opened by':<16} {'Expected cash':>14} {'Difference':>12}")
    click.echo("="*90)

    for session in sessions:
        rec = cash_session_service.reconcile(session)
        status = "OPEN" if session.is_open else "CLOSED"
        opened = session.opened_at.strftime("%Y-%m-%d %H:%M:%S") if session.opened_at else "-"
        opened_by = session.opened_by.username if session.opened_by else "-"
        diff = "-" if session.is_open else format_cents(rec.diff_total_cents)
        click.echo(
            f"{session.id:<5} {status:<8} {opened:<22} {opened_by:<16} "
            f"{format_cents(rec.expected_cash_cents):>14} {diff:>12}"
        )

    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sessions_group)

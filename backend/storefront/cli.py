# Overview: Flask CLI command groups for bootstrap, scheduling, POS sync, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="storefront"). wsgi.py also
#   starts the background jobs and is for serving only.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables and seed the delivery settings from config (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Delivery scheduling:
# - python -m flask delivery generate-windows --days-ahead 4
#   Create delivery windows from the weekly templates (existing windows are skipped).
#
# Clover POS:
# - python -m flask clover sync
#   Full catalog sync (creates, updates and deletes products).
# - python -m flask clover refresh
#   Refresh stock and price of enabled products only.
#
# Carts:
# - python -m flask carts remind
#   Send abandoned-cart reminder emails now.
#
# Orders:
# - python -m flask orders expire-checkouts
#   Settle hosted checkouts left in pending_payment past HOSTED_CHECKOUT_TTL_MINUTES.
#
# Promotions:
# - python -m flask promos list [--enabled-only]
#   List promo codes with usage counts.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Setting
from .services import abandoned_cart_service, clover_sync_service, promotions_service, settings_service
from .services import order_service, windows_service
from .services.clover_client import CloverAPIError
from .services.clover_sync_service import CloverSyncError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """
    Create tables and seed runtime settings.

    Settings already present in the database are left untouched.
    """
    click.echo("BUILD  Creating tables...")
    db.create_all()

    seeded = 0
    for key, config_key in settings_service.CONFIG_FALLBACKS.items():
        if db.session.query(Setting).filter_by(key=key).first() is None:
            value = current_app.config.get(config_key)
            if value in (None, ""):
                continue
            settings_service.upsert_setting(key, str(value), commit=False)
            seeded += 1
    db.session.commit()
    click.echo(f"PASS Database ready ({seeded} settings seeded)")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to seed settings.")


@click.group('delivery')
def delivery_group():
    """Delivery window scheduling."""


@delivery_group.command('generate-windows')
@click.option('--days-ahead', type=int, default=None, help='Days after today to generate (default WINDOW_DAYS_AHEAD)')
@with_appcontext
def generate_windows(days_ahead):
    """Generate delivery windows from the weekly templates."""
    if days_ahead is None:
        days_ahead = current_app.config["WINDOW_DAYS_AHEAD"]
    result = windows_service.generate_windows_from_templates(days_ahead)
    click.echo(f"PASS Created {result.created} windows, skipped {result.skipped} existing")


@click.group('clover')
def clover_group():
    """Clover POS synchronization."""


@clover_group.command('sync')
@with_appcontext
def clover_sync():
    """Full catalog sync from Clover."""
    try:
        result = clover_sync_service.run_full_sync()
    except (CloverSyncError, CloverAPIError) as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS Synced {result.synced} products "
        f"({result.created} created, {result.updated} updated, {result.deleted} deleted, {result.errors} errors)"
    )


@clover_group.command('refresh')
@with_appcontext
def clover_refresh():
    """Refresh stock and price for enabled products."""
    result = clover_sync_service.refresh_enabled_products()
    if result.skipped:
        click.echo("WARN  A refresh is already running, skipped")
        return
    click.echo(f"PASS Refreshed {result.refreshed} products")


@click.group('carts')
def carts_group():
    """Cart maintenance."""


@carts_group.command('remind')
@with_appcontext
def carts_remind():
    """Send abandoned-cart reminders now."""
    result = abandoned_cart_service.process_abandoned_carts()
    click.echo(f"PASS Sent {result.sent} reminders ({result.errors} errors)")


@click.group('orders')
def orders_group():
    """Order maintenance."""


@orders_group.command('expire-checkouts')
@with_appcontext
def orders_expire_checkouts():
    """Settle stale pending_payment hosted checkouts now."""
    expired = order_service.expire_stale_checkouts()
    click.echo(f"PASS Expired {expired} stale checkouts")


@click.group('promos')
def promos_group():
    """Promotion inspection."""


@promos_group.command('list')
@click.option('--enabled-only', is_flag=True, help='Only enabled promo codes')
@with_appcontext
def promos_list(enabled_only):
    """List promo codes."""
    promos = promotions_service.list_promotions(enabled_only)
    if not promos:
        click.echo("No promotions found")
        return
    for p in promos:
        limit = p["max_usage_count"] if p["max_usage_count"] is not None else "unlimited"
        status = "enabled" if p["enabled"] else "disabled"
        click.echo(
            f"{p['code']:<16} {p['discount_type']:<10} {p['discount_value']:>8}  "
            f"used {p['current_usage_count']}/{limit}  {status}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(delivery_group)
    app.cli.add_command(clover_group)
    app.cli.add_command(carts_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(promos_group)

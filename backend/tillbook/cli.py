# Overview: Flask CLI command groups for bootstrap, ledger inspection, and reports.

# backend/tillbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
# - Set SCHEDULER_ENABLED=false for one-off commands so they do not arm the
#   daily report timer.
#
# Schema:
# - python -m flask db upgrade
#   Apply the Alembic migrations (or use `ledger init-db` below for a quick local setup).
#
# Ledger:
# - python -m flask ledger init-db
#   Create any missing tables (idempotent).
# - python -m flask ledger reconcile [--product-id 3]
#   Compare product stock with SUM(stock_moves.delta); exits 1 on mismatch.
#
# Reports:
# - python -m flask reports daily --date 2024-01-05 [--tz Europe/Warsaw]
#   Print the checks / revenue / profit summary for a day.
# - python -m flask reports send-now [--date 2024-01-05]
#   Send the daily summary through the configured notifier.
# - python -m flask reports schedule --hour 21 --minute 0 --tz Europe/Warsaw
#   Persist the daily report time.
#
# Config:
# - python -m flask config set currency PLN
# - python -m flask config get currency

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError, NotificationFailure
from .extensions import get_notifier, get_scheduler, get_store
from .services import config_service, inventory_service, reporting_service, scheduler_service


@click.group('ledger')
def ledger_group():
    """Ledger bootstrap and consistency commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create all ledger tables that do not exist yet."""
    get_store().create_schema()
    click.echo("PASS Ledger tables ready")


@ledger_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def reconcile(product_id):
    """Verify stock == SUM(stock_moves.delta) for every product."""
    mismatches = inventory_service.reconcile(get_store(), product_id=product_id)
    if not mismatches:
        click.echo("PASS Stock balances match the stock move ledger")
        return

    for m in mismatches:
        click.echo(
            f"FAIL product {m['product_id']} ({m['name']}): "
            f"stock={m['stock']} ledger={m['ledger_sum']} diff={m['difference']:+d}"
        )
    raise SystemExit(1)


@click.group('reports')
def reports_group():
    """Daily report commands."""


@reports_group.command('daily')
@click.option('--date', 'day', required=True, help='Local date, YYYY-MM-DD')
@click.option('--tz', 'tz_name', default=None, help='IANA timezone (defaults to report.timezone)')
@with_appcontext
def daily(day, tz_name):
    """Print the summary for one day."""
    store = get_store()
    tz_name = tz_name or config_service.get_report_timezone(store)
    try:
        report = reporting_service.daily_report(store, day, tz_name=tz_name)
    except LedgerError as e:
        raise click.ClickException(e.message)

    currency = config_service.get_currency(store, current_app.config["DEFAULT_CURRENCY"])
    click.echo(f"Date:    {report['date']} ({report['timezone']})")
    click.echo(f"Checks:  {report['checks']}")
    click.echo(f"Revenue: {reporting_service.format_money(report['revenue_cents'], currency)}")
    click.echo(f"Profit:  {reporting_service.format_money(report['profit_cents'], currency)}")


@reports_group.command('send-now')
@click.option('--date', 'day', default=None, help='Local date, YYYY-MM-DD (default: today)')
@with_appcontext
def send_now(day):
    """Send the daily summary immediately."""
    try:
        result = scheduler_service.send_report_now(
            get_store(),
            get_notifier(),
            default_currency=current_app.config["DEFAULT_CURRENCY"],
            day=day,
            logger=current_app.logger,
        )
    except NotificationFailure as e:
        raise click.ClickException(f"Report not sent: {e.message}")
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Report for {result['report']['date']} sent")


@reports_group.command('schedule')
@click.option('--hour', type=int, required=True)
@click.option('--minute', type=int, required=True)
@click.option('--tz', 'tz_name', default='UTC', show_default=True)
@with_appcontext
def schedule(hour, minute, tz_name):
    """Persist the daily report time (and re-arm the in-process timer, if any)."""
    try:
        saved = scheduler_service.set_schedule(
            get_store(), get_scheduler(), hour=hour, minute=minute, timezone_name=tz_name,
        )
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Daily report at {saved.hour:02d}:{saved.minute:02d} {saved.timezone}")


@click.group('config')
def config_group():
    """Key/value settings."""


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@with_appcontext
def config_set(key, value):
    try:
        config_service.set_config(get_store(), key, value)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {key} updated")


@config_group.command('get')
@click.argument('key')
@with_appcontext
def config_get(key):
    value = config_service.get_config(get_store(), key)
    if value is None:
        raise click.ClickException(f"{key} is not set")
    if key in config_service.SENSITIVE_KEYS:
        value = "***"
    click.echo(value)


def register_commands(app):
    app.cli.add_command(ledger_group)
    app.cli.add_command(reports_group)
    app.cli.add_command(config_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--store-name "Main Store"] [--store-code MAIN]
#   Idempotent bootstrap: creates tables, a default store and its default chart of accounts.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stores:
# - python -m flask stores list
# - python -m flask stores create --name "Second Store" --code "S2"
#
# Chart of accounts:
# - python -m flask accounts seed --store-id 1
#   Provision the default retail chart of accounts (idempotent).
# - python -m flask accounts list --store-id 1
#
# General ledger:
# - python -m flask ledger trial-balance --store-id 1 [--as-of 2026-03-31]
#
# Cash on hand:
# - python -m flask cash balance --store-id 1
# - python -m flask cash history --store-id 1 [--limit 20]
# - python -m flask cash verify --store-id 1
#   Audit the cash transaction chain; exits non-zero on breaks.
# - python -m flask cash reset --store-id 1 --yes
#   Purge the cash log and zero the balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store
from .services import chart_of_accounts_service, journal_service, cash_ledger_service
from .services.chart_of_accounts_service import AccountError
from .services.cash_ledger_service import CashLedgerError
from .time_utils import parse_iso_date


def _cents(amount: int) -> str:
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    return f"{sign}{amount // 100:,}.{amount % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--store-name', default='Main Store', help='Default store name')
@click.option('--store-code', default='MAIN', help='Default store code')
@with_appcontext
def init_system(store_name, store_code):
    """
    Initialize the ledger: tables, a default store and its chart of accounts.

    Safe to run more than once.
    """
    click.echo("START Initializing ledger...")

    db.create_all()
    click.echo("PASS Tables ready")

    store = db.session.query(Store).filter_by(code=store_code).first()
    if not store:
        store = Store(name=store_name, code=store_code, is_active=True)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created default store: {store.name} (ID: {store.id}, Code: {store.code})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    accounts = chart_of_accounts_service.seed_default_accounts(store.id)
    click.echo(f"PASS Chart of accounts: {len(accounts)} default accounts")

    cash_ledger_service.initialize(store.id)
    click.echo("PASS Cash on hand initialized")

    click.echo("\nDONE Ledger initialized.")


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


# =============================================================================
# STORES
# =============================================================================

@click.group('stores')
def stores_group():
    """Store commands."""


@stores_group.command('list')
@with_appcontext
def list_stores_cli():
    """List all stores."""
    stores = db.session.query(Store).order_by(Store.id).all()

    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active'}")
    click.echo("="*60)

    for store in stores:
        active_str = "Yes" if store.is_active else "No"
        click.echo(f"{store.id:<5} {store.name:<30} {store.code or '-':<15} {active_str}")

    click.echo("="*60 + "\n")


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--code', help='Store code (unique)')
@click.option('--seed/--no-seed', default=True, help='Seed the default chart of accounts')
@with_appcontext
def create_store_cli(name, code, seed):
    """Create a store."""
    if code and db.session.query(Store).filter_by(code=code).first():
        click.echo(f"FAIL Store with code '{code}' already exists")
        return

    store = Store(name=name, code=code, is_active=True)
    db.session.add(store)
    db.session.commit()
    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")

    if seed:
        accounts = chart_of_accounts_service.seed_default_accounts(store.id)
        click.echo(f"PASS Seeded {len(accounts)} default accounts")


# =============================================================================
# CHART OF ACCOUNTS
# =============================================================================

@click.group('accounts')
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command('seed')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def seed_accounts_cli(store_id):
    """Provision the default retail chart of accounts."""
    try:
        accounts = chart_of_accounts_service.seed_default_accounts(store_id)
    except AccountError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS {len(accounts)} default accounts present for store {store_id}")


@accounts_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive accounts too')
@with_appcontext
def list_accounts_cli(store_id, show_all):
    """List a store's accounts."""
    accounts = chart_of_accounts_service.list_accounts(store_id, include_inactive=show_all)

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<32} {'Type':<10} {'Active'}")
    click.echo("="*70)
    for account in accounts:
        active_str = "Yes" if account.is_active else "No"
        click.echo(
            f"{account.id:<5} {account.account_code or '-':<12} {account.account_name:<32} "
            f"{account.account_type:<10} {active_str}"
        )
    click.echo("="*70 + "\n")


# =============================================================================
# GENERAL LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """General ledger inspection commands."""


@ledger_group.command('trial-balance')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--as-of', 'as_of', help='Inclusive cutoff date (YYYY-MM-DD)')
@with_appcontext
def trial_balance_cli(store_id, as_of):
    """Print the trial balance of posted activity."""
    rows = journal_service.get_trial_balance(store_id, parse_iso_date(as_of))
    totals = journal_service.summarize_trial_balance(rows)

    if not rows:
        click.echo("No posted activity.")
        return

    click.echo("\n" + "="*92)
    click.echo(f"{'Code':<10} {'Account':<32} {'Type':<10} {'Debits':>12} {'Credits':>12} {'Balance':>12}")
    click.echo("="*92)
    for row in rows:
        click.echo(
            f"{row['account_code'] or '-':<10} {row['account_name']:<32} {row['account_type']:<10} "
            f"{_cents(row['total_debit_cents']):>12} {_cents(row['total_credit_cents']):>12} "
            f"{_cents(row['balance_cents']):>12}"
        )
    click.echo("="*92)
    click.echo(
        f"{'TOTAL':<54} {_cents(totals['total_debit_cents']):>12} {_cents(totals['total_credit_cents']):>12}"
    )
    click.echo(f"Balanced: {'Yes' if totals['is_balanced'] else 'NO'}\n")


# =============================================================================
# CASH ON HAND
# =============================================================================

@click.group('cash')
def cash_group():
    """Cash on hand commands."""


@cash_group.command('balance')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def cash_balance_cli(store_id):
    """Show the current cash on hand."""
    try:
        row = cash_ledger_service.get_balance(store_id)
    except CashLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(
        f"Store {store_id}: {_cents(row.current_balance_cents)} "
        f"(last #{row.last_sequence_number}, {row.last_transaction_type or '-'})"
    )


@cash_group.command('history')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--limit', type=int, default=20, help='Max transactions')
@with_appcontext
def cash_history_cli(store_id, limit):
    """List recent cash movements, newest first."""
    history = cash_ledger_service.get_transaction_history(store_id, limit=limit)

    if not history:
        click.echo("No cash transactions found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'#':<6} {'Date':<12} {'Type':<22} {'Amount':>12} {'Before':>12} {'After':>12} {'Source'}")
    click.echo("="*96)
    for txn in history:
        click.echo(
            f"{txn.sequence_number:<6} {txn.transaction_date.isoformat():<12} {txn.transaction_type:<22} "
            f"{_cents(txn.amount_cents):>12} {_cents(txn.balance_before_cents):>12} "
            f"{_cents(txn.balance_after_cents):>12} {txn.source_id or '-'}"
        )
    click.echo("="*96 + "\n")


@cash_group.command('verify')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def cash_verify_cli(store_id):
    """Audit the cash transaction chain."""
    problems = cash_ledger_service.verify_chain(store_id)
    if not problems:
        click.echo(f"PASS Cash chain for store {store_id} is consistent")
        return

    for problem in problems:
        click.echo(f"FAIL #{problem['sequence_number']}: {problem['problem']}")
    raise SystemExit(1)


@cash_group.command('reset')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def cash_reset_cli(store_id, yes):
    """
    DANGER: Purge the store's cash transaction log and zero the balance.
    """
    if not yes:
        click.confirm(f"WARN This will DELETE the cash history of store {store_id}. Are you sure?", abort=True)

    try:
        cash_ledger_service.reset_balance(store_id)
    except CashLedgerError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    click.echo(f"PASS Cash on hand reset for store {store_id}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(cash_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and payroll.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables (if missing) and write the default store settings row.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inspection:
# - python -m flask ledger stock [--low]
#   List products with total stock; --low shows only those under the low stock threshold.
# - python -m flask ledger balances suppliers
#   List party balances per currency (customers, suppliers, employees, deposit-holders).
# - python -m flask ledger edits
#   Show invoices currently open for edit.
# - python -m flask ledger cancel-edit sale
#   Drop a stale edit pointer (sale or purchase).
#
# Payroll:
# - python -m flask payroll pay --yes
#   Pay every employee monthly salary less advances and book the salary expense.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Customer, Supplier, Employee, DepositHolder
from .models.mixins import SUPPORTED_CURRENCIES
from .services import settings_service, payroll_service, inventory_service
from .services.concurrency import atomic
from .services.edit_state import current_edit, close_edit, EDIT_KIND_SALE, EDIT_KIND_PURCHASE


_PARTY_MODELS = {
    "customers": Customer,
    "suppliers": Supplier,
    "employees": Employee,
    "deposit-holders": DepositHolder,
}


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create missing tables and seed the store settings row (idempotent)."""
    click.echo("START Initializing ledger...")
    db.create_all()
    row = settings_service.seed_settings()
    click.echo(f"PASS Base currency: {row.base_currency}")
    click.echo(f"PASS Currencies: {', '.join(sorted(row.currency_configs))}")


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
    settings_service.seed_settings()
    click.echo("DONE Database reset")


@click.group('ledger')
def ledger_group():
    """Stock, balance and edit-state inspection."""


@ledger_group.command('stock')
@click.option('--low', is_flag=True, help='Only products under the low stock threshold')
@with_appcontext
def list_stock(low):
    """List products with total stock and package split."""
    row = settings_service.get_store_setting()
    threshold = row.low_stock_threshold if row else 10
    for product in inventory_service.list_products():
        total = product.total_stock
        if low and total >= threshold:
            continue
        split = inventory_service.split_packages(total, product.items_per_package)
        packages = f" ({split['packages']} pkg + {split['units']})" if split["packages"] is not None else ""
        click.echo(f"{product.id}  {product.name:<30} {total:>8}{packages}  lots={len(product.batches)}")


@ledger_group.command('balances')
@click.argument('kind', type=click.Choice(sorted(_PARTY_MODELS)))
@with_appcontext
def list_balances(kind):
    """List party balances per currency."""
    model = _PARTY_MODELS[kind]
    for party in db.session.query(model).order_by(model.name.asc()).all():
        balances = ", ".join(f"{code}={party.currency_balance(code):.2f}" for code in SUPPORTED_CURRENCIES)
        click.echo(f"{party.id}  {party.name:<30} base={party.balance:.2f}  {balances}")


@ledger_group.command('edits')
@with_appcontext
def list_edits():
    """Show invoices currently open for edit."""
    for kind in (EDIT_KIND_SALE, EDIT_KIND_PURCHASE):
        pointer = current_edit(kind)
        click.echo(f"{kind:<9} {pointer.invoice_id if pointer else '-'}")


@ledger_group.command('cancel-edit')
@click.argument('kind', type=click.Choice([EDIT_KIND_SALE, EDIT_KIND_PURCHASE]))
@with_appcontext
def cancel_edit_cli(kind):
    """Drop the edit pointer for a kind without touching the invoice."""
    closed = atomic(lambda: close_edit(kind))
    click.echo(f"PASS Closed {kind} edit" if closed else f"WARN No {kind} edit open")


@click.group('payroll')
def payroll_group():
    """Payroll commands."""


@payroll_group.command('pay')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def pay_salaries_cli(yes):
    """Pay monthly salaries less advances and zero employee balances."""
    if not yes:
        click.confirm("Pay salaries for all employees now?", abort=True)
    result = payroll_service.pay_salaries()
    for payout in result.payouts:
        click.echo(
            f"{payout['name']:<30} salary={payout['monthly_salary']:.2f} "
            f"advances={payout['advances']:.2f} paid={payout['net_payout']:.2f}"
        )
    click.echo(f"DONE {len(result.payouts)} employees, total paid {result.total_paid:.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(payroll_group)

# Overview: Flask CLI command groups for database bootstrap, caja diaria and stock inspection.

# backend/almacen/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app almacen <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app almacen system init-db
#   Create all tables (no-op for tables that already exist).
# - flask --app almacen system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Caja diaria:
# - flask --app almacen caja status
#   Show the open session with its running totals.
# - flask --app almacen caja open [--amount 1000] [--note "Turno mañana"]
#   Open a session; without --amount the last closing amount carries over.
# - flask --app almacen caja close --amount 1400 [--note "..."]
#   Close the open session and print the reconciliation.
# - flask --app almacen caja history --limit 20
#   List recent sessions.
#
# Stock ledger:
# - flask --app almacen stock movements [--product-id 1] [--type venta] [--limit 50]
#   List recent stock movements.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import STOCK_MOVEMENT_TYPES
from .services import register_service, stock_service
from .services.errors import NotFoundError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and maintenance commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


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
    click.echo("BUILD  Recreating tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('caja')
def caja_group():
    """Caja diaria (cash register session) commands."""


def _print_register(register: dict):
    click.echo(f"Register #{register['id']} [{register['status']}]")
    click.echo(f"  Opened:    {register['opened_at']}")
    click.echo(f"  Opening:   {register['opening_amount']}")
    if 'total_ingresos' in register:
        click.echo(f"  Ingresos:  {register['total_ingresos']}")
        click.echo(f"  Egresos:   {register['total_egresos']}")
    if register.get('calculated_expected') is not None:
        click.echo(f"  Expected:  {register['calculated_expected']}")
    if register['status'] == 'closed':
        click.echo(f"  Closed:    {register['closed_at']}")
        click.echo(f"  Counted:   {register['closing_amount']}")
        click.echo(f"  Expected:  {register['expected_amount']}")
        click.echo(f"  Difference:{register['difference']:>10}")


@caja_group.command('status')
@with_appcontext
def caja_status():
    """Show the open session."""
    register = register_service.get_open_register()
    if register is None:
        click.echo("No cash register is open.")
        return
    _print_register(register_service.get_register_detail(register.id))


@caja_group.command('open')
@click.option('--amount', type=str, default=None, help='Opening amount (defaults to last closing amount)')
@click.option('--note', default='', help='Session note')
@with_appcontext
def caja_open(amount, note):
    """Open a new session."""
    try:
        register = register_service.open_register(opening_amount=amount, note=note)
    except (ConflictError, ValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Opened register #{register.id} with {register.to_dict()['opening_amount']}")


@caja_group.command('close')
@click.option('--amount', type=str, required=True, help='Cash counted in the drawer')
@click.option('--note', default=None, help='Closing note')
@with_appcontext
def caja_close(amount, note):
    """Close the open session."""
    register = register_service.get_open_register()
    if register is None:
        raise click.ClickException("No cash register is open")

    try:
        closed = register_service.close_register(register.id, amount, note=note)
    except (NotFoundError, ConflictError, ValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Closed register #{closed.id}")
    _print_register(closed.to_dict())


@caja_group.command('history')
@click.option('--limit', default=20, type=int, help='Max sessions to show')
@with_appcontext
def caja_history(limit):
    """List recent sessions."""
    registers = register_service.list_registers(limit=limit)
    if not registers:
        click.echo("No cash register sessions found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Status':<8} {'Opened':<22} {'Closed':<22} {'Opening':>10} {'Counted':>10} {'Diff':>10}")
    click.echo("=" * 100)
    for r in registers:
        d = r.to_dict()
        click.echo(
            f"{d['id']:<5} {d['status']:<8} {d['opened_at']:<22} {d['closed_at'] or '-':<22} "
            f"{d['opening_amount']:>10} {str(d['closing_amount'] if d['closing_amount'] is not None else '-'):>10} "
            f"{str(d['difference'] if d['difference'] is not None else '-'):>10}"
        )
    click.echo("=" * 100 + "\n")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('movements')
@click.option('--product-id', type=int, default=None, help='Filter by product')
@click.option('--type', 'movement_type', type=click.Choice(STOCK_MOVEMENT_TYPES), default=None, help='Filter by movement type')
@click.option('--limit', default=50, type=int, help='Max movements to show')
@with_appcontext
def stock_movements(product_id, movement_type, limit):
    """List recent stock movements, newest first."""
    movements = stock_service.list_movements(product_id=product_id, movement_type=movement_type, limit=limit)
    if not movements:
        click.echo("No stock movements found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<6} {'Product':<25} {'Type':<12} {'Qty':>10} {'Before':>10} {'After':>10} {'Ref':>6}  Note")
    click.echo("=" * 100)
    for m in movements:
        d = m.to_dict()
        click.echo(
            f"{d['id']:<6} {(d['product_name'] or '-')[:25]:<25} {d['type']:<12} {d['quantity']:>10} "
            f"{d['previous_stock']:>10} {d['new_stock']:>10} {str(d['reference_id'] or '-'):>6}  {d['note']}"
        )
    click.echo("=" * 100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(caja_group)
    app.cli.add_command(stock_group)

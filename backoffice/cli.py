# cli.py
"""
Flask CLI commands for the back-office workflow service.
"""

import click
from flask.cli import with_appcontext

from backoffice.extensions import db


@click.command("init-db")
@with_appcontext
def init_db():
    """Create all database tables."""
    # Import models so every table is registered on the metadata
    from backoffice import models  # noqa: F401

    db.create_all()
    click.echo("Database tables created.")


@click.command("retry-invoices")
@click.option("--dry-run", is_flag=True, help="Show what would be done without making changes")
@with_appcontext
def retry_invoices(dry_run):
    """
    Generate invoices for approved payments that have none.

    Invoice generation runs after the approval commit and may fail on its
    own; this command is the out-of-band retry.

    Example usage:
        flask retry-invoices --dry-run   # List payments missing an invoice
        flask retry-invoices             # Generate them
    """
    from backoffice.services.invoice_service import InvoiceService

    payments = InvoiceService.pending_invoices(db.session)
    if not payments:
        click.echo("All approved payments have invoices.")
        return

    click.echo(f"Found {len(payments)} approved payments without an invoice")
    click.echo("-" * 80)
    click.echo(f"{'Payment':<38} {'Transaction':<25} {'Amount':>12}")
    click.echo("-" * 80)
    for payment in payments:
        click.echo(f"{payment.id:<38} {payment.transaction_id[:25]:<25} {payment.amount:>12}")

    if dry_run:
        click.echo("\nDRY RUN - No changes were made. Run without --dry-run to apply changes.")
        return

    generated = 0
    failures = []
    for payment in payments:
        payment_id = payment.id
        try:
            invoice = InvoiceService.create_invoice(db.session, payment_id, payment.approved_by)
            generated += 1
            click.echo(f"  {invoice['invoice_number']} -> payment {payment_id}")
        except Exception as e:
            failures.append((payment_id, str(e)))

    click.echo(f"\nGenerated {generated} invoices.")
    if failures:
        click.echo(f"{len(failures)} failures:", err=True)
        for payment_id, error in failures:
            click.echo(f"  {payment_id}: {error}", err=True)
        raise SystemExit(1)


def register_cli_commands(app):
    """Register all CLI commands with the Flask app."""
    app.cli.add_command(init_db)
    app.cli.add_command(retry_invoices)

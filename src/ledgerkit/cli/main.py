"""Main CLI entry point."""

import logging

import click

from ledgerkit.cli.commands import (
    codes,
    details,
    documents,
    fiscal_year,
    journal,
    settings,
    treasury,
)
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.config import LedgerConfig
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.logging_config import configure_logging

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides LEDGERKIT_DB_PATH environment variable)",
    envvar="LEDGERKIT_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Emit JSON log lines at this level to stderr",
    envvar="LEDGERKIT_LOG_LEVEL",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str | None):
    """ledgerkit - double-entry ledger and treasury posting.

    Maintain a chart of accounts, fiscal years and journals, register banks,
    cashboxes and checks, and post receipts and payments to the ledger.
    """
    ctx.ensure_object(dict)

    if log_level:
        configure_logging(level=getattr(logging, log_level.upper()))

    # Connect only when a command runs, not for --help
    if ctx.invoked_subcommand is not None:
        try:
            ctx.obj["config"] = LedgerConfig.from_env()
        except ValueError as e:
            handle_domain_error(ctx, e)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        # Release the session so a trailing read does not hold a SQLite lock
        ctx.call_on_close(db.disconnect)


codes.register_commands(cli)
details.register_commands(cli)
fiscal_year.register_commands(cli)
journal.register_commands(cli)
treasury.register_commands(cli)
documents.register_commands(cli)
settings.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()

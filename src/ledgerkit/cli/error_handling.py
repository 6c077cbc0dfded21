"""CLI error handling helpers."""

import click

from ledgerkit.domain.errors import ConfigurationError, DomainError, MissingCodeMappingError
from ledgerkit.logging_config import get_logger

logger = get_logger("cli")


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Print ``error`` to stderr and exit with status 1.

    Configuration problems get a hint pointing at the command that
    shows how posting slots resolve.
    """
    logger.info(
        "Command failed",
        extra={"command": ctx.command_path, "error_type": type(error).__name__},
    )
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, MissingCodeMappingError):
        click.echo("Hint: run 'ledgerkit setting check-slots' to see unmapped posting slots", err=True)
    elif isinstance(error, ConfigurationError):
        click.echo("Hint: check the LEDGERKIT_* environment variables and settings", err=True)
    ctx.exit(1)

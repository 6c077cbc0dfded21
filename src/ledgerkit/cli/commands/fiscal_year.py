"""Fiscal year commands."""

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.fiscal_year import FiscalYearService
from ledgerkit.utils.date_parser import parse_date


@click.group()
def year_group():
    """Manage fiscal years."""
    pass


@year_group.command("create")
@click.argument("name")
@click.option("--start", "start_date", required=True, help="First day (YYYY-MM-DD)")
@click.option("--end", "end_date", required=True, help="Last day (YYYY-MM-DD)")
@click.option("--open", "open_year", is_flag=True, help="Open the year after creating it")
@click.pass_context
def create_year(ctx, name: str, start_date: str, end_date: str, open_year: bool):
    """Create a fiscal year (closed unless --open is given).

    Examples:
        ledgerkit year create FY2024 --start 2024-01-01 --end 2024-12-31 --open
    """
    service = FiscalYearService(ctx.obj["db"])
    try:
        year_id = service.create(name, parse_date(start_date), parse_date(end_date))
        if open_year:
            service.open(year_id)
        click.echo(f"Created fiscal year '{name}' (ID: {year_id}){' and opened it' if open_year else ''}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@year_group.command("list")
@click.pass_context
def list_years(ctx):
    """List fiscal years."""
    service = FiscalYearService(ctx.obj["db"])
    years = service.list_years()
    if not years:
        click.echo("No fiscal years found.")
        return

    click.echo("\nFiscal years:")
    click.echo("-" * 60)
    for year in years:
        state = "OPEN" if year.is_open else "closed"
        click.echo(f"ID: {year.id:3d} | {year.name:15s} | {year.start_date} .. {year.end_date} | {state}")


@year_group.command("open")
@click.argument("year_id", type=int)
@click.pass_context
def open_year(ctx, year_id: int):
    """Open a fiscal year, closing the one currently open."""
    try:
        FiscalYearService(ctx.obj["db"]).open(year_id)
        click.echo(f"Opened fiscal year {year_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@year_group.command("close")
@click.argument("year_id", type=int)
@click.pass_context
def close_year(ctx, year_id: int):
    """Close a fiscal year."""
    try:
        FiscalYearService(ctx.obj["db"]).close(year_id)
        click.echo(f"Closed fiscal year {year_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@year_group.command("open-next")
@click.argument("year_id", type=int)
@click.option("--name", help="Name of the new year")
@click.pass_context
def open_next_year(ctx, year_id: int, name: str | None):
    """Create and open the year following a closed year."""
    service = FiscalYearService(ctx.obj["db"])
    try:
        new_id = service.open_next(year_id, name=name)
        year = service.get(new_id)
        click.echo(f"Opened fiscal year '{year.name}' {year.start_date} .. {year.end_date} (ID: {new_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@year_group.command("update")
@click.argument("year_id", type=int)
@click.option("--name", help="New name")
@click.option("--start", "start_date", help="New first day")
@click.option("--end", "end_date", help="New last day")
@click.pass_context
def update_year(ctx, year_id: int, name: str | None, start_date: str | None, end_date: str | None):
    """Rename a fiscal year or change its dates."""
    try:
        FiscalYearService(ctx.obj["db"]).update(
            year_id,
            name=name,
            start_date=parse_date(start_date) if start_date else None,
            end_date=parse_date(end_date) if end_date else None,
        )
        click.echo(f"Updated fiscal year {year_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@year_group.command("delete")
@click.argument("year_id", type=int)
@click.pass_context
def delete_year(ctx, year_id: int):
    """Delete a fiscal year without documents."""
    service = FiscalYearService(ctx.obj["db"])
    try:
        service.delete(year_id)
        click.echo(f"Deleted fiscal year {year_id}")
        open_year = service.get_open_year()
        if open_year is not None:
            click.echo(f"Open fiscal year: '{open_year.name}' (ID: {open_year.id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register fiscal year commands with main CLI."""
    cli.add_command(year_group, name="year")

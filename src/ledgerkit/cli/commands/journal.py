"""Journal commands."""

from decimal import Decimal

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.entities import JournalLine, JournalStatus
from ledgerkit.domain.fiscal_year import FiscalYearService
from ledgerkit.domain.journal import JournalService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date
from ledgerkit.utils.resolvers import resolve_code_node, resolve_detail


def parse_line_spec(catalog: CodeCatalogService, spec: str, side: str) -> JournalLine:
    """Parse ``CODE=AMOUNT`` or ``CODE=AMOUNT@DETAIL`` into a journal line.

    Raises:
        ValueError: If the spec is malformed or names an unknown code or detail
    """
    if "=" not in spec:
        raise ValueError(f"Invalid line '{spec}', expected CODE=AMOUNT[@DETAIL]")
    code, rest = spec.split("=", 1)
    amount_text, _, detail = rest.partition("@")
    amount = parse_amount(amount_text)
    return JournalLine(
        code_id=resolve_code_node(catalog, code),
        debit=amount if side == "debit" else Decimal("0"),
        credit=amount if side == "credit" else Decimal("0"),
        detail_id=resolve_detail(catalog, detail) if detail else None,
    )


def resolve_year(db, year_id: int | None) -> int:
    """Return ``year_id`` or the open fiscal year's ID."""
    if year_id is not None:
        return year_id
    open_year = FiscalYearService(db).get_open_year()
    if open_year is None:
        raise ValueError("No fiscal year is open; pass --year")
    return open_year.id


@click.group()
def journal_group():
    """Manage journals."""
    pass


@journal_group.command("create")
@click.option("--date", "entry_date", default="today", help="Journal date (default: today)")
@click.option("--year", "year_id", type=int, help="Fiscal year ID (default: the open year)")
@click.option("--debit", "debits", multiple=True, help="Debit line CODE=AMOUNT[@DETAIL] (repeatable)")
@click.option("--credit", "credits", multiple=True, help="Credit line CODE=AMOUNT[@DETAIL] (repeatable)")
@click.option("--ref", "ref_no", help="Reference number (default: next in the year)")
@click.option("--description", "-d", help="Description")
@click.option("--post", "post_now", is_flag=True, help="Post the journal immediately")
@click.pass_context
def create_journal(ctx, entry_date, year_id, debits, credits, ref_no, description, post_now):
    """Create a balanced draft journal.

    Examples:
        ledgerkit journal create --debit 110101=100 --credit 410101=100@0001
    """
    db = ctx.obj["db"]
    catalog = CodeCatalogService(db)
    service = JournalService(db, ctx.obj.get("config"))
    try:
        lines = [parse_line_spec(catalog, spec, "debit") for spec in debits]
        lines += [parse_line_spec(catalog, spec, "credit") for spec in credits]
        journal_id = service.create(
            fiscal_year_id=resolve_year(db, year_id),
            date=parse_date(entry_date),
            items=lines,
            ref_no=ref_no,
            description=description,
        )
        if post_now:
            service.post(journal_id)
        click.echo(f"Created {'posted' if post_now else 'draft'} journal {journal_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@journal_group.command("list")
@click.option("--year", "year_id", type=int, help="Only journals of this fiscal year")
@click.option("--status", type=click.Choice([s.value for s in JournalStatus]), help="Filter by status")
@click.pass_context
def list_journals(ctx, year_id: int | None, status: str | None):
    """List journals."""
    service = JournalService(ctx.obj["db"], ctx.obj.get("config"))
    journals = service.list_journals(
        fiscal_year_id=year_id, status=JournalStatus(status) if status else None
    )
    if not journals:
        click.echo("No journals found.")
        return

    click.echo("\nJournals:")
    click.echo("-" * 80)
    for journal in journals:
        click.echo(
            f"ID: {journal.id:4d} | {journal.date} | Ref: {journal.ref_no or '':10s} | "
            f"{journal.status.value:6s} | {journal.source.value:8s} | {journal.description or ''}"
        )


@journal_group.command("show")
@click.argument("journal_id", type=int)
@click.pass_context
def show_journal(ctx, journal_id: int):
    """Show a journal and its lines."""
    db = ctx.obj["db"]
    service = JournalService(db, ctx.obj.get("config"))
    journal = service.get(journal_id)
    if journal is None:
        click.echo(f"Error: Journal {journal_id} not found", err=True)
        ctx.exit(1)

    click.echo(f"Journal {journal.id} ({journal.status.value}, {journal.source.value})")
    click.echo(f"Date: {journal.date}  Ref: {journal.ref_no}  Code: {journal.code}")
    if journal.description:
        click.echo(f"Description: {journal.description}")
    click.echo("-" * 70)
    for item in service.get_items(journal_id):
        code = db.get_code_node(item.code_id)
        detail = db.get_detail(item.detail_id) if item.detail_id else None
        click.echo(
            f"{code.code:10s} | {detail.code if detail else '':4s} | "
            f"{item.debit:>14.2f} | {item.credit:>14.2f} | {item.description or ''}"
        )
    total_debit, total_credit = service.totals(journal_id)
    click.echo("-" * 70)
    click.echo(f"{'Total':17s} | {total_debit:>14.2f} | {total_credit:>14.2f}")


@journal_group.command("post")
@click.argument("journal_id", type=int)
@click.pass_context
def post_journal(ctx, journal_id: int):
    """Post a draft journal."""
    try:
        JournalService(ctx.obj["db"], ctx.obj.get("config")).post(journal_id)
        click.echo(f"Posted journal {journal_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@journal_group.command("reverse")
@click.argument("journal_id", type=int)
@click.pass_context
def reverse_journal(ctx, journal_id: int):
    """Reverse a posted journal."""
    try:
        reversal_id = JournalService(ctx.obj["db"], ctx.obj.get("config")).reverse(journal_id)
        click.echo(f"Reversed journal {journal_id} with journal {reversal_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@journal_group.command("delete")
@click.argument("journal_id", type=int)
@click.pass_context
def delete_journal(ctx, journal_id: int):
    """Delete a draft journal."""
    try:
        JournalService(ctx.obj["db"], ctx.obj.get("config")).delete(journal_id)
        click.echo(f"Deleted journal {journal_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register journal commands with main CLI."""
    cli.add_command(journal_group, name="journal")

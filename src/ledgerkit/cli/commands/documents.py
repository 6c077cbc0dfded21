"""Receipt and payment commands."""

import click

from ledgerkit.cli.commands.journal import resolve_year
from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.documents import TreasuryDocumentService
from ledgerkit.domain.entities import DocumentKind, DocumentLine, DocumentStatus, InstrumentType
from ledgerkit.domain.posting import PostingEngine
from ledgerkit.domain.settings import SettingsService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date
from ledgerkit.utils.resolvers import resolve_code_node, resolve_detail


def parse_instrument_line(spec: str, instrument: InstrumentType, kind: DocumentKind, db) -> DocumentLine:
    """Parse one ``--cash/--card/--transfer/--check/--checkin`` value.

    ``cash`` takes ``AMOUNT``; ``card`` and ``transfer`` take
    ``AMOUNT@ID`` (card reader ID for card receipts, bank account ID
    otherwise); ``check`` and ``checkin`` take a check ID and use the
    check's amount.

    Raises:
        ValueError: If the value is malformed or the check does not exist
    """
    if instrument in (InstrumentType.CHECK, InstrumentType.CHECKIN):
        try:
            check_id = int(spec)
        except ValueError:
            raise ValueError(f"Invalid check ID '{spec}'")
        check = db.get_check(check_id)
        if check is None:
            raise ValueError(f"Check {check_id} not found")
        return DocumentLine(instrument_type=instrument, amount=check.amount, check_id=check_id)

    amount_text, _, target = spec.partition("@")
    amount = parse_amount(amount_text)
    if instrument == InstrumentType.CASH:
        return DocumentLine(instrument_type=instrument, amount=amount)
    if not target.strip().isdigit():
        raise ValueError(f"Invalid {instrument.value} item '{spec}', expected AMOUNT@ID")
    target_id = int(target)
    if instrument == InstrumentType.CARD and kind == DocumentKind.RECEIPT:
        return DocumentLine(instrument_type=instrument, amount=amount, card_reader_id=target_id)
    return DocumentLine(instrument_type=instrument, amount=amount, bank_account_id=target_id)


def _build_group(kind: DocumentKind) -> click.Group:
    label = kind.value
    instruments = [InstrumentType.CASH, InstrumentType.CARD, InstrumentType.TRANSFER, InstrumentType.CHECK]
    if kind == DocumentKind.PAYMENT:
        instruments.append(InstrumentType.CHECKIN)

    @click.group(name=label, help=f"Manage {label}s.")
    def group():
        pass

    def create(ctx, detail, entry_date, year_id, cashbox_id, special_code, total, number, description, **items):
        db = ctx.obj["db"]
        catalog = CodeCatalogService(db)
        service = TreasuryDocumentService(db, ctx.obj.get("config"))
        try:
            lines = [
                parse_instrument_line(spec, instrument, kind, db)
                for instrument in instruments
                for spec in items[instrument.value]
            ]
            fields = dict(
                date=parse_date(entry_date),
                detail_id=resolve_detail(catalog, detail),
                items=lines,
                fiscal_year_id=resolve_year(db, year_id),
                cashbox_id=cashbox_id,
                special_code_id=resolve_code_node(catalog, special_code) if special_code else None,
                total_amount=parse_amount(total) if total else None,
                number=number,
                description=description,
            )
            if kind == DocumentKind.RECEIPT:
                document_id = service.create_receipt(**fields)
                document = service.get_receipt(document_id)
            else:
                document_id = service.create_payment(**fields)
                document = service.get_payment(document_id)
            click.echo(
                f"Saved {label} {document.number} (ID: {document_id}) total {document.total_amount:.2f}"
            )
        except ValueError as e:
            handle_domain_error(ctx, e)

    create.__doc__ = f"""Save a draft {label} for counterparty DETAIL.

    Examples:
        ledgerkit {label} create 0001 --cash 100 --cashbox 1
        ledgerkit {label} create 0001 --transfer 250@1
    """
    create = click.pass_context(create)
    for instrument in reversed(instruments):
        create = click.option(
            f"--{instrument.value}",
            instrument.value,
            multiple=True,
            help=f"{instrument.value} item (repeatable)",
        )(create)
    create = click.option("--description", "-d", help="Description")(create)
    create = click.option("--number", help=f"{label.capitalize()} number (default: next in the year)")(create)
    create = click.option("--total", help="Expected total; must equal the sum of items")(create)
    create = click.option("--special-code", help="Code overriding the counterparty code")(create)
    create = click.option("--cashbox", "cashbox_id", type=int, help="Cashbox ID for cash and checks")(create)
    create = click.option("--year", "year_id", type=int, help="Fiscal year ID (default: the open year)")(create)
    create = click.option("--date", "entry_date", default="today", help="Date (default: today)")(create)
    create = click.argument("detail")(create)
    group.command("create")(create)

    @group.command("list")
    @click.option("--year", "year_id", type=int, help="Only documents of this fiscal year")
    @click.option("--status", type=click.Choice([s.value for s in DocumentStatus]), help="Filter by status")
    @click.pass_context
    def list_documents(ctx, year_id, status):
        """List documents."""
        service = TreasuryDocumentService(ctx.obj["db"], ctx.obj.get("config"))
        list_fn = service.list_receipts if kind == DocumentKind.RECEIPT else service.list_payments
        documents = list_fn(fiscal_year_id=year_id, status=DocumentStatus(status) if status else None)
        if not documents:
            click.echo(f"No {label}s found.")
            return
        click.echo(f"\n{label.capitalize()}s:")
        click.echo("-" * 70)
        for document in documents:
            journal = f" | Journal: {document.journal_id}" if document.journal_id else ""
            click.echo(
                f"ID: {document.id:4d} | No. {document.number:6s} | {document.date} | "
                f"{document.total_amount:>12.2f} | {document.status.value}{journal}"
            )

    @group.command("delete")
    @click.argument("document_id", type=int)
    @click.pass_context
    def delete_document(ctx, document_id):
        """Delete a draft document and undo its check moves."""
        service = TreasuryDocumentService(ctx.obj["db"], ctx.obj.get("config"))
        try:
            if kind == DocumentKind.RECEIPT:
                service.delete_receipt(document_id)
            else:
                service.delete_payment(document_id)
            click.echo(f"Deleted {label} {document_id}")
        except ValueError as e:
            handle_domain_error(ctx, e)

    @group.command("post")
    @click.argument("document_id", type=int)
    @click.pass_context
    def post_document(ctx, document_id):
        """Post a document to the ledger as a draft journal."""
        db = ctx.obj["db"]
        engine = PostingEngine(db, ctx.obj.get("config"), SettingsService(db))
        try:
            if kind == DocumentKind.RECEIPT:
                journal_id = engine.post_receipt(document_id)
            else:
                journal_id = engine.post_payment(document_id)
            click.echo(f"Posted {label} {document_id} as journal {journal_id}")
        except ValueError as e:
            handle_domain_error(ctx, e)

    return group


receipt_group = _build_group(DocumentKind.RECEIPT)
payment_group = _build_group(DocumentKind.PAYMENT)


def register_commands(cli):
    """Register receipt and payment commands with main CLI."""
    cli.add_command(receipt_group, name="receipt")
    cli.add_command(payment_group, name="payment")

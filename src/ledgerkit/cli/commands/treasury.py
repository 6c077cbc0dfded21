"""Treasury instrument commands: banks, accounts, card readers, cashboxes,
checkbooks and checks."""

import click

from ledgerkit.cli.error_handling import handle_domain_error
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.entities import CheckStatus, CheckType
from ledgerkit.domain.treasury import TreasuryService
from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date, parse_optional_date
from ledgerkit.utils.resolvers import resolve_detail


def _service(ctx) -> TreasuryService:
    return TreasuryService(ctx.obj["db"], ctx.obj.get("config"))


def _detail_code(ctx, detail_id: int | None) -> str:
    if detail_id is None:
        return ""
    detail = ctx.obj["db"].get_detail(detail_id)
    return detail.code if detail else ""


@click.group()
def treasury_group():
    """Manage treasury instruments."""
    pass


# Banks


@treasury_group.group("bank")
def bank_group():
    """Manage banks."""
    pass


@bank_group.command("create")
@click.argument("name")
@click.option("--branch-number", help="Branch number")
@click.option("--branch-name", help="Branch name")
@click.option("--city", help="City")
@click.pass_context
def create_bank(ctx, name: str, branch_number: str | None, branch_name: str | None, city: str | None):
    """Create a bank."""
    try:
        bank_id = _service(ctx).create_bank(
            name, branch_number=branch_number, branch_name=branch_name, city=city
        )
        click.echo(f"Created bank '{name}' (ID: {bank_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@bank_group.command("list")
@click.pass_context
def list_banks(ctx):
    """List banks."""
    banks = _service(ctx).list_banks()
    if not banks:
        click.echo("No banks found.")
        return
    click.echo("\nBanks:")
    click.echo("-" * 60)
    for bank in banks:
        branch = f" | Branch: {bank.branch_name or bank.branch_number}" if (bank.branch_name or bank.branch_number) else ""
        click.echo(f"ID: {bank.id:3d} | {bank.name}{branch}")


@bank_group.command("delete")
@click.argument("bank_id", type=int)
@click.pass_context
def delete_bank(ctx, bank_id: int):
    """Delete a bank without accounts."""
    try:
        _service(ctx).delete_bank(bank_id)
        click.echo(f"Deleted bank {bank_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


# Bank accounts


@treasury_group.group("account")
def account_group():
    """Manage bank accounts."""
    pass


@account_group.command("create")
@click.argument("bank_id", type=int)
@click.argument("account_number")
@click.argument("name")
@click.option("--iban", help="IBAN")
@click.option("--card-number", help="Debit card number")
@click.option("--kind", "kind_of_account", help="Account kind (checking, savings, ...)")
@click.option("--starting-amount", default="0", help="Opening balance")
@click.option("--starting-date", help="Opening balance date")
@click.pass_context
def create_account(ctx, bank_id, account_number, name, iban, card_number, kind_of_account, starting_amount, starting_date):
    """Create a bank account and its handler detail.

    Examples:
        ledgerkit treasury account create 1 0101-55 "Operating"
    """
    service = _service(ctx)
    try:
        account_id = service.create_bank_account(
            bank_id=bank_id,
            account_number=account_number,
            name=name,
            kind_of_account=kind_of_account,
            card_number=card_number,
            iban=iban,
            starting_amount=parse_amount(starting_amount),
            starting_date=parse_optional_date(starting_date),
        )
        account = service.get_bank_account(account_id)
        click.echo(
            f"Created bank account '{name}' (ID: {account_id}, detail {_detail_code(ctx, account.handler_detail_id)})"
        )
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("list")
@click.option("--bank", "bank_id", type=int, help="Only accounts of this bank")
@click.pass_context
def list_accounts(ctx, bank_id: int | None):
    """List bank accounts."""
    accounts = _service(ctx).list_bank_accounts(bank_id=bank_id)
    if not accounts:
        click.echo("No bank accounts found.")
        return
    click.echo("\nBank accounts:")
    click.echo("-" * 70)
    for account in accounts:
        status = "" if account.is_active else " (inactive)"
        click.echo(
            f"ID: {account.id:3d} | {account.account_number:15s} | {account.name:20s} | "
            f"Detail: {_detail_code(ctx, account.handler_detail_id)}{status}"
        )


@account_group.command("update")
@click.argument("account_id", type=int)
@click.option("--name", help="New name")
@click.option("--account-number", help="New account number")
@click.option("--iban", help="New IBAN")
@click.option("--active/--inactive", default=None, help="Enable or disable the account")
@click.pass_context
def update_account(ctx, account_id, name, account_number, iban, active):
    """Update a bank account; the handler detail follows."""
    changes = {
        key: value
        for key, value in {
            "name": name,
            "account_number": account_number,
            "iban": iban,
            "is_active": active,
        }.items()
        if value is not None
    }
    try:
        _service(ctx).update_bank_account(account_id, **changes)
        click.echo(f"Updated bank account {account_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@account_group.command("delete")
@click.argument("account_id", type=int)
@click.pass_context
def delete_account(ctx, account_id: int):
    """Delete a bank account and release its handler detail."""
    try:
        _service(ctx).delete_bank_account(account_id)
        click.echo(f"Deleted bank account {account_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


# Card readers


@treasury_group.group("card-reader")
def card_reader_group():
    """Manage card readers."""
    pass


@card_reader_group.command("create")
@click.argument("bank_account_id", type=int)
@click.argument("psp_provider")
@click.argument("terminal_id")
@click.option("--merchant-id", help="Merchant ID")
@click.option("--serial", "device_serial", help="Device serial number")
@click.pass_context
def create_card_reader(ctx, bank_account_id, psp_provider, terminal_id, merchant_id, device_serial):
    """Create a card reader and its handler detail."""
    service = _service(ctx)
    try:
        reader_id = service.create_card_reader(
            bank_account_id=bank_account_id,
            psp_provider=psp_provider,
            terminal_id=terminal_id,
            merchant_id=merchant_id,
            device_serial=device_serial,
        )
        reader = service.get_card_reader(reader_id)
        click.echo(
            f"Created card reader {psp_provider} - {terminal_id} "
            f"(ID: {reader_id}, detail {_detail_code(ctx, reader.handler_detail_id)})"
        )
    except ValueError as e:
        handle_domain_error(ctx, e)


@card_reader_group.command("list")
@click.pass_context
def list_card_readers(ctx):
    """List card readers."""
    readers = _service(ctx).list_card_readers()
    if not readers:
        click.echo("No card readers found.")
        return
    click.echo("\nCard readers:")
    click.echo("-" * 70)
    for reader in readers:
        status = "" if reader.is_active else " (inactive)"
        click.echo(
            f"ID: {reader.id:3d} | {reader.psp_provider} - {reader.terminal_id} | "
            f"Account: {reader.bank_account_id} | Detail: {_detail_code(ctx, reader.handler_detail_id)}{status}"
        )


@card_reader_group.command("delete")
@click.argument("card_reader_id", type=int)
@click.pass_context
def delete_card_reader(ctx, card_reader_id: int):
    """Delete a card reader and release its handler detail."""
    try:
        _service(ctx).delete_card_reader(card_reader_id)
        click.echo(f"Deleted card reader {card_reader_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


# Cashboxes


@treasury_group.group("cashbox")
def cashbox_group():
    """Manage cashboxes."""
    pass


@cashbox_group.command("create")
@click.argument("name")
@click.option("--code", help="4-digit code (default: next in the cashbox series)")
@click.option("--starting-amount", default="0", help="Opening balance")
@click.option("--starting-date", help="Opening balance date")
@click.pass_context
def create_cashbox(ctx, name: str, code: str | None, starting_amount: str, starting_date: str | None):
    """Create a cashbox and its handler detail."""
    service = _service(ctx)
    try:
        cashbox_id = service.create_cashbox(
            name,
            code=code,
            starting_amount=parse_amount(starting_amount),
            starting_date=parse_optional_date(starting_date),
        )
        cashbox = service.get_cashbox(cashbox_id)
        click.echo(f"Created cashbox {cashbox.code} '{name}' (ID: {cashbox_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@cashbox_group.command("list")
@click.pass_context
def list_cashboxes(ctx):
    """List cashboxes."""
    cashboxes = _service(ctx).list_cashboxes()
    if not cashboxes:
        click.echo("No cashboxes found.")
        return
    click.echo("\nCashboxes:")
    click.echo("-" * 60)
    for cashbox in cashboxes:
        status = "" if cashbox.is_active else " (inactive)"
        click.echo(f"ID: {cashbox.id:3d} | {cashbox.code} | {cashbox.name}{status}")


@cashbox_group.command("update")
@click.argument("cashbox_id", type=int)
@click.option("--name", help="New name")
@click.option("--active/--inactive", default=None, help="Enable or disable the cashbox")
@click.pass_context
def update_cashbox(ctx, cashbox_id: int, name: str | None, active: bool | None):
    """Rename or enable/disable a cashbox."""
    try:
        _service(ctx).update_cashbox(cashbox_id, name=name, is_active=active)
        click.echo(f"Updated cashbox {cashbox_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@cashbox_group.command("delete")
@click.argument("cashbox_id", type=int)
@click.pass_context
def delete_cashbox(ctx, cashbox_id: int):
    """Delete a cashbox and release its handler detail."""
    try:
        _service(ctx).delete_cashbox(cashbox_id)
        click.echo(f"Deleted cashbox {cashbox_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


# Checkbooks and checks


@treasury_group.group("checkbook")
def checkbook_group():
    """Manage checkbooks."""
    pass


@checkbook_group.command("create")
@click.argument("bank_account_id", type=int)
@click.argument("start_number", type=int)
@click.argument("page_count", type=int)
@click.option("--series", help="Series printed on the checkbook")
@click.pass_context
def create_checkbook(ctx, bank_account_id: int, start_number: int, page_count: int, series: str | None):
    """Register a checkbook of PAGE_COUNT pages starting at START_NUMBER."""
    try:
        checkbook_id = _service(ctx).create_checkbook(
            bank_account_id, start_number, page_count, series=series
        )
        click.echo(
            f"Created checkbook {checkbook_id}: pages {start_number}..{start_number + page_count - 1}"
        )
    except ValueError as e:
        handle_domain_error(ctx, e)


@checkbook_group.command("list")
@click.option("--account", "bank_account_id", type=int, help="Only checkbooks of this account")
@click.pass_context
def list_checkbooks(ctx, bank_account_id: int | None):
    """List checkbooks."""
    checkbooks = _service(ctx).list_checkbooks(bank_account_id=bank_account_id)
    if not checkbooks:
        click.echo("No checkbooks found.")
        return
    click.echo("\nCheckbooks:")
    click.echo("-" * 60)
    for checkbook in checkbooks:
        click.echo(
            f"ID: {checkbook.id:3d} | Account: {checkbook.bank_account_id} | "
            f"{checkbook.start_number}..{checkbook.last_number} | {checkbook.status.value}"
        )


@checkbook_group.command("delete")
@click.argument("checkbook_id", type=int)
@click.pass_context
def delete_checkbook(ctx, checkbook_id: int):
    """Delete a checkbook with no issued checks."""
    try:
        _service(ctx).delete_checkbook(checkbook_id)
        click.echo(f"Deleted checkbook {checkbook_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


@treasury_group.group("check")
def check_group():
    """Manage checks."""
    pass


@check_group.command("issue")
@click.argument("checkbook_id", type=int)
@click.argument("number")
@click.argument("amount")
@click.option("--date", "issue_date", default="today", help="Issue date (default: today)")
@click.option("--due", "due_date", help="Due date")
@click.option("--to", "beneficiary_detail", help="Beneficiary detail code")
@click.option("--notes", help="Notes")
@click.pass_context
def issue_check(ctx, checkbook_id, number, amount, issue_date, due_date, beneficiary_detail, notes):
    """Issue an outgoing check from a checkbook page."""
    catalog = CodeCatalogService(ctx.obj["db"])
    try:
        check_id = _service(ctx).issue_check(
            checkbook_id,
            number,
            parse_amount(amount),
            parse_date(issue_date),
            due_date=parse_optional_date(due_date),
            beneficiary_detail_id=resolve_detail(catalog, beneficiary_detail) if beneficiary_detail else None,
            notes=notes,
        )
        click.echo(f"Issued check {number} (ID: {check_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@check_group.command("receive")
@click.argument("number")
@click.argument("amount")
@click.option("--date", "issue_date", default="today", help="Issue date (default: today)")
@click.option("--due", "due_date", help="Due date")
@click.option("--from", "beneficiary_detail", help="Detail of the customer handing over the check")
@click.option("--bank-name", help="Drawee bank")
@click.option("--issuer", help="Issuer name")
@click.pass_context
def receive_check(ctx, number, amount, issue_date, due_date, beneficiary_detail, bank_name, issuer):
    """Register an incoming customer check."""
    catalog = CodeCatalogService(ctx.obj["db"])
    try:
        check_id = _service(ctx).create_incoming_check(
            number,
            parse_amount(amount),
            parse_date(issue_date),
            due_date=parse_optional_date(due_date),
            beneficiary_detail_id=resolve_detail(catalog, beneficiary_detail) if beneficiary_detail else None,
            bank_name=bank_name,
            issuer=issuer,
        )
        click.echo(f"Registered incoming check {number} (ID: {check_id})")
    except ValueError as e:
        handle_domain_error(ctx, e)


@check_group.command("list")
@click.option("--type", "check_type", type=click.Choice([t.value for t in CheckType]), help="Filter by type")
@click.option("--status", type=click.Choice([s.value for s in CheckStatus]), help="Filter by status")
@click.pass_context
def list_checks(ctx, check_type: str | None, status: str | None):
    """List checks."""
    checks = _service(ctx).list_checks(
        check_type=CheckType(check_type) if check_type else None,
        status=CheckStatus(status) if status else None,
    )
    if not checks:
        click.echo("No checks found.")
        return
    click.echo("\nChecks:")
    click.echo("-" * 70)
    for check in checks:
        click.echo(
            f"ID: {check.id:3d} | {check.type.value:8s} | {check.number:10s} | "
            f"{check.amount:>12.2f} | {check.status.value}"
        )


@check_group.command("delete")
@click.argument("check_id", type=int)
@click.pass_context
def delete_check(ctx, check_id: int):
    """Delete a check that was never used."""
    try:
        _service(ctx).delete_check(check_id)
        click.echo(f"Deleted check {check_id}")
    except ValueError as e:
        handle_domain_error(ctx, e)


def register_commands(cli):
    """Register treasury commands with main CLI."""
    cli.add_command(treasury_group, name="treasury")

"""Mapper functions to convert SQLAlchemy models into domain entities.

Enumerated columns are validated here so that a row with an unexpected
status or kind is rejected at the persistence boundary instead of leaking
into service logic.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional, TypeVar

from ledgerkit.domain import entities as domain
from ledgerkit.domain.errors import ValidationError
from ledgerkit.database.models import (
    Bank as ORMBank,
    BankAccount as ORMBankAccount,
    CardReader as ORMCardReader,
    Cashbox as ORMCashbox,
    Check as ORMCheck,
    Checkbook as ORMCheckbook,
    CodeNode as ORMCodeNode,
    Detail as ORMDetail,
    DetailLink as ORMDetailLink,
    FiscalYear as ORMFiscalYear,
    Journal as ORMJournal,
    JournalItem as ORMJournalItem,
    Setting as ORMSetting,
)

E = TypeVar("E", bound=Enum)


def _enum(enum_cls: type[E], value, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unexpected {field} value {value!r} in database")


def _optional_enum(enum_cls: type[E], value, field: str) -> Optional[E]:
    if value is None:
        return None
    return _enum(enum_cls, value, field)


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(value)


def code_node_to_domain(orm_node: ORMCodeNode) -> domain.CodeNode:
    """Convert SQLAlchemy CodeNode model to domain CodeNode entity."""
    return domain.CodeNode(
        id=orm_node.id,
        code=orm_node.code,
        title=orm_node.title,
        kind=_enum(domain.CodeKind, orm_node.kind, "code kind"),
        parent_id=orm_node.parent_id,
        nature=_optional_enum(domain.Nature, orm_node.nature, "nature"),
        is_active=orm_node.is_active,
    )


def detail_to_domain(orm_detail: ORMDetail) -> domain.Detail:
    """Convert SQLAlchemy Detail model to domain Detail entity."""
    return domain.Detail(
        id=orm_detail.id,
        code=orm_detail.code,
        title=orm_detail.title,
        kind=_enum(domain.DetailKind, orm_detail.kind, "detail kind"),
        is_active=orm_detail.is_active,
    )


def detail_link_to_domain(orm_link: ORMDetailLink) -> domain.DetailLink:
    return domain.DetailLink(
        detail_id=orm_link.detail_id,
        level_id=orm_link.level_id,
        is_primary=orm_link.is_primary,
        position=orm_link.position,
    )


def fiscal_year_to_domain(orm_year: ORMFiscalYear) -> domain.FiscalYear:
    """Convert SQLAlchemy FiscalYear model to domain FiscalYear entity."""
    if orm_year.start_date > orm_year.end_date:
        raise ValidationError(f"Fiscal year {orm_year.id} has start date after end date")
    return domain.FiscalYear(
        id=orm_year.id,
        name=orm_year.name,
        start_date=orm_year.start_date,
        end_date=orm_year.end_date,
        is_closed=orm_year.is_closed,
    )


def journal_to_domain(orm_journal: ORMJournal) -> domain.Journal:
    """Convert SQLAlchemy Journal model to domain Journal entity."""
    return domain.Journal(
        id=orm_journal.id,
        fiscal_year_id=orm_journal.fiscal_year_id,
        ref_no=orm_journal.ref_no,
        code=orm_journal.code,
        date=orm_journal.date,
        description=orm_journal.description,
        status=_enum(domain.JournalStatus, orm_journal.status, "journal status"),
        source=_enum(domain.JournalSource, orm_journal.source, "journal source"),
        reversal_of_id=orm_journal.reversal_of_id,
    )


def journal_item_to_domain(orm_item: ORMJournalItem) -> domain.JournalItem:
    """Convert SQLAlchemy JournalItem model to domain JournalItem entity."""
    return domain.JournalItem(
        id=orm_item.id,
        journal_id=orm_item.journal_id,
        code_id=orm_item.code_id,
        debit=_money(orm_item.debit),
        credit=_money(orm_item.credit),
        party_id=orm_item.party_id,
        detail_id=orm_item.detail_id,
        description=orm_item.description,
    )


def bank_to_domain(orm_bank: ORMBank) -> domain.Bank:
    return domain.Bank(
        id=orm_bank.id,
        name=orm_bank.name,
        branch_number=orm_bank.branch_number,
        branch_name=orm_bank.branch_name,
        city=orm_bank.city,
    )


def bank_account_to_domain(orm_account: ORMBankAccount) -> domain.BankAccount:
    return domain.BankAccount(
        id=orm_account.id,
        bank_id=orm_account.bank_id,
        account_number=orm_account.account_number,
        name=orm_account.name,
        kind_of_account=orm_account.kind_of_account,
        card_number=orm_account.card_number,
        iban=orm_account.iban,
        is_active=orm_account.is_active,
        starting_amount=_money(orm_account.starting_amount),
        starting_date=orm_account.starting_date,
        handler_detail_id=orm_account.handler_detail_id,
    )


def card_reader_to_domain(orm_reader: ORMCardReader) -> domain.CardReader:
    return domain.CardReader(
        id=orm_reader.id,
        bank_account_id=orm_reader.bank_account_id,
        psp_provider=orm_reader.psp_provider,
        terminal_id=orm_reader.terminal_id,
        merchant_id=orm_reader.merchant_id,
        device_serial=orm_reader.device_serial,
        is_active=orm_reader.is_active,
        description=orm_reader.description,
        handler_detail_id=orm_reader.handler_detail_id,
    )


def cashbox_to_domain(orm_cashbox: ORMCashbox) -> domain.Cashbox:
    return domain.Cashbox(
        id=orm_cashbox.id,
        code=orm_cashbox.code,
        name=orm_cashbox.name,
        handler_detail_id=orm_cashbox.handler_detail_id,
        is_active=orm_cashbox.is_active,
        starting_amount=_money(orm_cashbox.starting_amount),
        starting_date=orm_cashbox.starting_date,
    )


def checkbook_to_domain(orm_checkbook: ORMCheckbook) -> domain.Checkbook:
    return domain.Checkbook(
        id=orm_checkbook.id,
        bank_account_id=orm_checkbook.bank_account_id,
        series=orm_checkbook.series,
        start_number=orm_checkbook.start_number,
        page_count=orm_checkbook.page_count,
        issue_date=orm_checkbook.issue_date,
        received_date=orm_checkbook.received_date,
        status=_enum(domain.CheckbookStatus, orm_checkbook.status, "checkbook status"),
        description=orm_checkbook.description,
    )


def check_to_domain(orm_check: ORMCheck) -> domain.Check:
    """Convert SQLAlchemy Check model to domain Check entity."""
    return domain.Check(
        id=orm_check.id,
        type=_enum(domain.CheckType, orm_check.type, "check type"),
        number=orm_check.number,
        amount=_money(orm_check.amount),
        issue_date=orm_check.issue_date,
        status=_enum(domain.CheckStatus, orm_check.status, "check status"),
        checkbook_id=orm_check.checkbook_id,
        due_date=orm_check.due_date,
        beneficiary_detail_id=orm_check.beneficiary_detail_id,
        cashbox_id=orm_check.cashbox_id,
        bank_name=orm_check.bank_name,
        issuer=orm_check.issuer,
        beneficiary=orm_check.beneficiary,
        notes=orm_check.notes,
    )


def document_item_to_domain(orm_item) -> domain.DocumentItem:
    """Convert a ReceiptItem or PaymentItem model to a domain DocumentItem."""
    return domain.DocumentItem(
        id=orm_item.id,
        document_id=orm_item.document_id,
        instrument_type=_enum(domain.InstrumentType, orm_item.instrument_type, "instrument type"),
        amount=_money(orm_item.amount),
        bank_account_id=orm_item.bank_account_id,
        card_reader_id=orm_item.card_reader_id,
        check_id=orm_item.check_id,
        reference=orm_item.reference,
        position=orm_item.position,
    )


def document_to_domain(orm_document, kind: domain.DocumentKind) -> domain.TreasuryDocument:
    """Convert a Receipt or Payment model (with its items) to a domain TreasuryDocument."""
    return domain.TreasuryDocument(
        id=orm_document.id,
        kind=kind,
        number=orm_document.number,
        status=_enum(domain.DocumentStatus, orm_document.status, f"{kind.value} status"),
        date=orm_document.date,
        fiscal_year_id=orm_document.fiscal_year_id,
        detail_id=orm_document.detail_id,
        special_code_id=orm_document.special_code_id,
        cashbox_id=orm_document.cashbox_id,
        total_amount=_money(orm_document.total_amount),
        journal_id=orm_document.journal_id,
        description=orm_document.description,
        items=tuple(document_item_to_domain(item) for item in orm_document.items),
    )


def setting_to_domain(orm_setting: ORMSetting) -> domain.Setting:
    return domain.Setting(
        code=orm_setting.code,
        name=orm_setting.name,
        special_id=orm_setting.special_id,
        value=orm_setting.value,
    )

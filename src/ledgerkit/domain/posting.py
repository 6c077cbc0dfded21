"""Posting engine: turns saved receipts and payments into journals."""

from decimal import Decimal
from typing import Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.documents import items_total
from ledgerkit.domain.entities import (
    CodeSlot,
    DocumentItem,
    DocumentKind,
    DocumentStatus,
    InstrumentType,
    JournalLine,
    JournalSource,
    TreasuryDocument,
)
from ledgerkit.domain.errors import (
    AlreadyPostedError,
    MissingCodeMappingError,
    MissingItemsError,
    NotFoundError,
    TotalMismatchError,
    ValidationError,
    not_found,
)
from ledgerkit.domain.journal import BALANCE_EPSILON, JournalService
from ledgerkit.domain.lifecycle import DOCUMENT_TRANSITIONS, require_transition
from ledgerkit.domain.settings import SettingsService
from ledgerkit.logging_config import LogContext, get_logger

logger = get_logger("domain.posting")

ITEM_SLOTS: dict[DocumentKind, dict[InstrumentType, CodeSlot]] = {
    DocumentKind.RECEIPT: {
        InstrumentType.CASH: CodeSlot.CASH_RECEIPT,
        InstrumentType.CARD: CodeSlot.CARD_RECEIPT,
        InstrumentType.TRANSFER: CodeSlot.TRANSFER_RECEIPT,
        InstrumentType.CHECK: CodeSlot.CHECK_RECEIPT,
    },
    DocumentKind.PAYMENT: {
        InstrumentType.CASH: CodeSlot.CASH_PAYMENT,
        InstrumentType.CARD: CodeSlot.CARD_PAYMENT,
        InstrumentType.TRANSFER: CodeSlot.TRANSFER_PAYMENT,
        InstrumentType.CHECK: CodeSlot.CHECK_PAYMENT,
        # A customer check leaving the cashbox clears the receivable it was booked on
        InstrumentType.CHECKIN: CodeSlot.CHECK_RECEIPT,
    },
}

COUNTERPARTY_SLOTS = {
    DocumentKind.RECEIPT: CodeSlot.COUNTERPARTY_RECEIPT,
    DocumentKind.PAYMENT: CodeSlot.COUNTERPARTY_PAYMENT,
}

JOURNAL_SOURCES = {
    DocumentKind.RECEIPT: JournalSource.RECEIPT,
    DocumentKind.PAYMENT: JournalSource.PAYMENT,
}


class PostingEngine:
    """Post receipts and payments to the journal ledger.

    Receipts debit one line per item and credit the counterparty; payments
    do the opposite. The journal is written as a draft and the document is
    marked sent in the same transaction.
    """

    def __init__(
        self,
        db: Database,
        config: Optional[LedgerConfig] = None,
        settings: Optional[SettingsService] = None,
        journals: Optional[JournalService] = None,
    ):
        """Initialize posting engine.

        Args:
            db: Database instance
            config: Code overrides and fallbacks, defaults to LedgerConfig()
            settings: Settings lookup for code slots, defaults to SettingsService(db)
            journals: Journal service used to write journals
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.settings = settings or SettingsService(db)
        self.journals = journals or JournalService(db, self.config)

    def resolve_code(self, slot: CodeSlot) -> int:
        """Resolve a posting slot to a code node ID.

        Lookup order: configured ID override, the setting's code reference,
        then a literal code (from configuration or the setting value).

        Raises:
            MissingCodeMappingError: If no tier yields an existing code node
        """
        name = CodeSlot(slot).value

        override = self.config.code_overrides.get(name)
        if override is not None and self.db.get_code_node(override) is not None:
            return override

        reference = self.settings.get_code_reference(name)
        if reference is not None and self.db.get_code_node(reference) is not None:
            return reference

        for literal in (self.config.fallback_codes.get(name), self.settings.get_literal_code(name)):
            if literal:
                node = self.db.get_code_node_by_code(literal)
                if node is not None:
                    return node.id

        raise MissingCodeMappingError(name)

    def _item_detail(self, document: TreasuryDocument, item: DocumentItem) -> Optional[int]:
        instrument = InstrumentType(item.instrument_type)
        if instrument == InstrumentType.CASH:
            cashbox = self.db.get_cashbox(document.cashbox_id) if document.cashbox_id else None
            if cashbox is None:
                raise ValidationError("Cash items need the document's cashbox")
            return cashbox.handler_detail_id
        if instrument in (InstrumentType.CHECK, InstrumentType.CHECKIN):
            check = self.db.get_check(item.check_id) if item.check_id else None
            if check is not None and check.beneficiary_detail_id is not None:
                return check.beneficiary_detail_id
            return document.detail_id
        if item.card_reader_id is not None:
            card_reader = self.db.get_card_reader(item.card_reader_id)
            if card_reader is None:
                raise NotFoundError(not_found("Card reader", item.card_reader_id))
            return card_reader.handler_detail_id
        if item.bank_account_id is not None:
            bank_account = self.db.get_bank_account(item.bank_account_id)
            if bank_account is None:
                raise NotFoundError(not_found("Bank account", item.bank_account_id))
            return bank_account.handler_detail_id
        raise ValidationError(f"{instrument.value.capitalize()} item {item.id} has no instrument")

    def _fiscal_year_for(self, document: TreasuryDocument) -> int:
        if document.fiscal_year_id is not None:
            return document.fiscal_year_id
        for year in self.db.list_fiscal_years():
            if year.is_open:
                return year.id
        raise ValidationError(f"{document.kind.value.capitalize()} {document.id} has no fiscal year")

    def build_lines(self, document: TreasuryDocument) -> list[JournalLine]:
        """Build the journal lines for a document without writing anything."""
        kind = document.kind
        is_receipt = kind == DocumentKind.RECEIPT
        lines = []
        for item in document.items:
            code_id = self.resolve_code(ITEM_SLOTS[kind][InstrumentType(item.instrument_type)])
            amount = item.amount
            lines.append(
                JournalLine(
                    code_id=code_id,
                    debit=amount if is_receipt else Decimal("0"),
                    credit=Decimal("0") if is_receipt else amount,
                    detail_id=self._item_detail(document, item),
                    description=item.reference,
                )
            )

        counter_code = document.special_code_id or self.resolve_code(COUNTERPARTY_SLOTS[kind])
        lines.append(
            JournalLine(
                code_id=counter_code,
                debit=Decimal("0") if is_receipt else document.total_amount,
                credit=document.total_amount if is_receipt else Decimal("0"),
                detail_id=document.detail_id,
                description=document.description,
            )
        )
        return lines

    def _post(self, kind: DocumentKind, document_id: int) -> int:
        label = kind.value.capitalize()
        with LogContext.bind(f"post_{kind.value}"), self.db.transaction():
            document = self.db.get_document(kind, document_id, for_update=True)
            if document is None:
                raise NotFoundError(not_found(label, document_id))
            if document.status == DocumentStatus.SENT:
                raise AlreadyPostedError(kind.value, document_id, document.journal_id)
            require_transition(kind.value, DOCUMENT_TRANSITIONS, document.status, DocumentStatus.SENT)
            if not document.items:
                raise MissingItemsError(f"{label} {document_id} has no items")
            computed = items_total(document.items)
            if abs(document.total_amount - computed) > BALANCE_EPSILON:
                raise TotalMismatchError(document.total_amount, computed)

            lines = self.build_lines(document)

            description = f"{label} {document.number}"
            if document.description:
                description = f"{description}: {document.description}"
            journal_id = self.journals.create(
                fiscal_year_id=self._fiscal_year_for(document),
                date=document.date,
                items=lines,
                description=description,
                source=JOURNAL_SOURCES[kind],
            )
            self.db.update_document(kind, document_id, status=DocumentStatus.SENT, journal_id=journal_id)
            logger.info(
                f"{label} posted",
                extra={"document_id": document_id, "journal_id": journal_id, "lines": len(lines)},
            )
        return journal_id

    def post_receipt(self, receipt_id: int) -> int:
        """Post a receipt: debit each item, credit the counterparty.

        Returns:
            ID of the draft journal written

        Raises:
            NotFoundError: If the receipt does not exist
            AlreadyPostedError: If the receipt was already sent
            MissingItemsError: If the receipt has no items
            TotalMismatchError: If the header total differs from the items
            MissingCodeMappingError: If a posting code cannot be resolved
        """
        return self._post(DocumentKind.RECEIPT, receipt_id)

    def post_payment(self, payment_id: int) -> int:
        """Post a payment: debit the counterparty, credit each item.

        Returns:
            ID of the draft journal written
        """
        return self._post(DocumentKind.PAYMENT, payment_id)

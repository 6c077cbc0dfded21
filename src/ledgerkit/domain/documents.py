"""Receipt and payment domain service.

Saving a document moves the checks it references along their state machine:

* receipt ``check`` lines take incoming checks from created to incashbox,
* payment ``checkin`` lines spend incashbox checks,
* payment ``check`` lines spend issued checks from our own checkbooks.

Removing a line (by editing or deleting the document) reverses the move.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.allocation import next_sequence_number, retry_on_conflict
from ledgerkit.domain.entities import (
    Check,
    CheckStatus,
    CheckType,
    DocumentItem,
    DocumentKind,
    DocumentLine,
    DocumentStatus,
    InstrumentType,
    TreasuryDocument,
)
from ledgerkit.domain.errors import (
    AlreadyPostedError,
    ConflictError,
    NotFoundError,
    TotalMismatchError,
    ValidationError,
    not_found,
)
from ledgerkit.domain.journal import BALANCE_EPSILON, to_amount
from ledgerkit.domain.treasury import TreasuryService
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.documents")

_UNSET: Any = object()

ALLOWED_INSTRUMENTS: dict[DocumentKind, frozenset[InstrumentType]] = {
    DocumentKind.RECEIPT: frozenset(
        {InstrumentType.CASH, InstrumentType.CARD, InstrumentType.TRANSFER, InstrumentType.CHECK}
    ),
    DocumentKind.PAYMENT: frozenset(
        {
            InstrumentType.CASH,
            InstrumentType.CARD,
            InstrumentType.TRANSFER,
            InstrumentType.CHECK,
            InstrumentType.CHECKIN,
        }
    ),
}

# Lines that move physical cash or paper through a cashbox
CASHBOX_INSTRUMENTS: dict[DocumentKind, frozenset[InstrumentType]] = {
    DocumentKind.RECEIPT: frozenset({InstrumentType.CASH, InstrumentType.CHECK}),
    DocumentKind.PAYMENT: frozenset({InstrumentType.CASH, InstrumentType.CHECKIN}),
}

# (instrument, required check type, status while held by the document)
CHECK_HOLDINGS: dict[DocumentKind, dict[InstrumentType, tuple[CheckType, CheckStatus, CheckStatus]]] = {
    DocumentKind.RECEIPT: {
        InstrumentType.CHECK: (CheckType.INCOMING, CheckStatus.CREATED, CheckStatus.INCASHBOX),
    },
    DocumentKind.PAYMENT: {
        InstrumentType.CHECKIN: (CheckType.INCOMING, CheckStatus.INCASHBOX, CheckStatus.SPENT),
        InstrumentType.CHECK: (CheckType.OUTGOING, CheckStatus.ISSUED, CheckStatus.SPENT),
    },
}


def items_total(lines: Iterable[DocumentLine | DocumentItem]) -> Decimal:
    return sum((line.amount for line in lines), Decimal("0"))


class TreasuryDocumentService:
    """Service for receipts and payments and the check moves they cause."""

    def __init__(
        self,
        db: Database,
        config: Optional[LedgerConfig] = None,
        treasury: Optional[TreasuryService] = None,
    ):
        """Initialize document service.

        Args:
            db: Database instance
            config: Allocation retry settings, defaults to LedgerConfig()
            treasury: Treasury service used for check transitions
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.treasury = treasury or TreasuryService(db, self.config)

    # Validation

    def _normalize_lines(self, kind: DocumentKind, items: Iterable[DocumentLine]) -> list[DocumentLine]:
        lines = []
        seen_checks: set[int] = set()
        for index, item in enumerate(items, start=1):
            try:
                instrument = InstrumentType(item.instrument_type)
            except ValueError:
                raise ValidationError(f"Item {index}: unknown instrument type '{item.instrument_type}'")
            if instrument not in ALLOWED_INSTRUMENTS[kind]:
                raise ValidationError(f"Item {index}: '{instrument.value}' is not allowed on a {kind.value}")
            amount = to_amount(item.amount, "amount")
            if amount <= 0:
                raise ValidationError(f"Item {index}: amount must be greater than zero")

            if instrument == InstrumentType.TRANSFER or (
                instrument == InstrumentType.CARD and kind == DocumentKind.PAYMENT
            ):
                if item.bank_account_id is None:
                    raise ValidationError(f"Item {index}: a bank account is required for {instrument.value}")
                if self.db.get_bank_account(item.bank_account_id) is None:
                    raise NotFoundError(not_found("Bank account", item.bank_account_id))
            if instrument == InstrumentType.CARD and kind == DocumentKind.RECEIPT:
                if item.card_reader_id is None:
                    raise ValidationError(f"Item {index}: a card reader is required for card receipts")
                if self.db.get_card_reader(item.card_reader_id) is None:
                    raise NotFoundError(not_found("Card reader", item.card_reader_id))
            if instrument in CHECK_HOLDINGS[kind]:
                if item.check_id is None:
                    raise ValidationError(f"Item {index}: a check is required for {instrument.value}")
                if item.check_id in seen_checks:
                    raise ValidationError(f"Item {index}: check {item.check_id} is listed twice")
                seen_checks.add(item.check_id)
                check = self.db.get_check(item.check_id)
                if check is None:
                    raise NotFoundError(not_found("Check", item.check_id))
                required_type = CHECK_HOLDINGS[kind][instrument][0]
                if check.type != required_type:
                    raise ValidationError(
                        f"Item {index}: {instrument.value} lines need an {required_type.value} check"
                    )
                if abs(check.amount - amount) > BALANCE_EPSILON:
                    raise ValidationError(
                        f"Item {index}: amount {amount} differs from check amount {check.amount}"
                    )

            lines.append(
                DocumentLine(
                    instrument_type=instrument,
                    amount=amount,
                    bank_account_id=item.bank_account_id,
                    card_reader_id=item.card_reader_id,
                    check_id=item.check_id,
                    reference=item.reference,
                )
            )
        if not lines:
            raise ValidationError(f"A {kind.value} needs at least one item")
        return lines

    def _validate_header(
        self,
        kind: DocumentKind,
        lines: list[DocumentLine],
        detail_id: int,
        fiscal_year_id: Optional[int],
        cashbox_id: Optional[int],
        special_code_id: Optional[int],
    ) -> None:
        detail = self.db.get_detail(detail_id)
        if detail is None:
            raise NotFoundError(not_found("Detail", detail_id))
        if fiscal_year_id is not None and self.db.get_fiscal_year(fiscal_year_id) is None:
            raise NotFoundError(not_found("Fiscal year", fiscal_year_id))
        if special_code_id is not None and self.db.get_code_node(special_code_id) is None:
            raise NotFoundError(not_found("Code node", special_code_id))
        if cashbox_id is not None:
            cashbox = self.db.get_cashbox(cashbox_id)
            if cashbox is None:
                raise NotFoundError(not_found("Cashbox", cashbox_id))
        elif any(line.instrument_type in CASHBOX_INSTRUMENTS[kind] for line in lines):
            types = ", ".join(sorted(t.value for t in CASHBOX_INSTRUMENTS[kind]))
            raise ValidationError(f"A cashbox is required for {kind.value} items of type {types}")

    @staticmethod
    def _resolve_total(lines: list[DocumentLine], total_amount) -> Decimal:
        computed = items_total(lines)
        if total_amount is None:
            return computed
        total = to_amount(total_amount, "total amount")
        if abs(total - computed) > BALANCE_EPSILON:
            raise TotalMismatchError(total, computed)
        return total

    def _require(self, kind: DocumentKind, document_id: int, for_update: bool = False) -> TreasuryDocument:
        document = self.db.get_document(kind, document_id, for_update=for_update)
        if document is None:
            raise NotFoundError(not_found(kind.value.capitalize(), document_id))
        return document

    def _require_draft(self, kind: DocumentKind, document_id: int) -> TreasuryDocument:
        document = self._require(kind, document_id, for_update=True)
        if document.status == DocumentStatus.SENT:
            raise AlreadyPostedError(kind.value, document_id, document.journal_id)
        return document

    # Check movements

    @staticmethod
    def _held_checks(kind: DocumentKind, lines: Iterable[DocumentLine | DocumentItem]) -> dict[int, InstrumentType]:
        return {
            line.check_id: InstrumentType(line.instrument_type)
            for line in lines
            if line.check_id is not None and InstrumentType(line.instrument_type) in CHECK_HOLDINGS[kind]
        }

    def _take_check(
        self,
        kind: DocumentKind,
        document_id: int,
        check_id: int,
        instrument: InstrumentType,
        already_held: bool,
        cashbox_id: Optional[int],
    ) -> None:
        _, free_status, held_status = CHECK_HOLDINGS[kind][instrument]
        if self.db.count_check_references(check_id, kind, exclude_document_id=document_id):
            raise ConflictError(f"Check {check_id} is already used by another {kind.value}")
        check = self.db.get_check(check_id, for_update=True)
        if check.status == held_status and already_held:
            if kind == DocumentKind.RECEIPT and check.cashbox_id != cashbox_id:
                self.db.update_check(check_id, cashbox_id=cashbox_id)
            return
        if check.status != free_status:
            raise ConflictError(f"Check {check.number} is {check.status.value} and cannot be used here")
        if kind == DocumentKind.RECEIPT:
            self.treasury.transition_check(check_id, held_status, cashbox_id=cashbox_id)
        else:
            self.treasury.transition_check(check_id, held_status)

    def _release_check(
        self, kind: DocumentKind, document_id: int, check_id: int, instrument: InstrumentType
    ) -> None:
        _, free_status, held_status = CHECK_HOLDINGS[kind][instrument]
        if self.db.count_check_references(check_id, kind, exclude_document_id=document_id):
            return
        check: Optional[Check] = self.db.get_check(check_id, for_update=True)
        if check is None or check.status == free_status:
            return
        if kind == DocumentKind.RECEIPT:
            self.treasury.transition_check(check_id, free_status, cashbox_id=None)
        else:
            self.treasury.transition_check(check_id, free_status)

    def _move_checks(
        self,
        kind: DocumentKind,
        document_id: int,
        old: dict[int, InstrumentType],
        new: dict[int, InstrumentType],
        cashbox_id: Optional[int],
    ) -> None:
        """Release checks dropped from a document, then take the ones it now holds."""
        for check_id, instrument in old.items():
            if new.get(check_id) != instrument:
                self._release_check(kind, document_id, check_id, instrument)
        for check_id, instrument in new.items():
            self._take_check(
                kind,
                document_id,
                check_id,
                instrument,
                already_held=old.get(check_id) == instrument,
                cashbox_id=cashbox_id,
            )

    # Generic save / delete

    def _create(
        self,
        kind: DocumentKind,
        date: date,
        detail_id: int,
        items: Iterable[DocumentLine],
        fiscal_year_id: Optional[int] = None,
        cashbox_id: Optional[int] = None,
        special_code_id: Optional[int] = None,
        total_amount=None,
        number: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        lines = self._normalize_lines(kind, items)
        total = self._resolve_total(lines, total_amount)
        self._validate_header(kind, lines, detail_id, fiscal_year_id, cashbox_id, special_code_id)
        if number is not None:
            number = number.strip() or None
            if number is not None and number in self.db.list_document_numbers(kind, fiscal_year_id):
                raise ConflictError(f"{kind.value.capitalize()} number '{number}' already exists")

        def attempt() -> int:
            with self.db.transaction():
                doc_number = number or str(
                    next_sequence_number(self.db.list_document_numbers(kind, fiscal_year_id))
                )
                document_id = self.db.create_document(
                    kind=kind,
                    number=doc_number,
                    date=date,
                    detail_id=detail_id,
                    total_amount=total,
                    lines=lines,
                    fiscal_year_id=fiscal_year_id,
                    cashbox_id=cashbox_id,
                    special_code_id=special_code_id,
                    description=description,
                )
                self._move_checks(kind, document_id, {}, self._held_checks(kind, lines), cashbox_id)
                return document_id

        with self.db.transaction():
            document_id = retry_on_conflict(
                attempt,
                attempts=self.config.allocation_attempts,
                backoff=self.config.allocation_backoff,
            )
        logger.info(f"{kind.value.capitalize()} saved", extra={"document_id": document_id})
        return document_id

    def _update(
        self,
        kind: DocumentKind,
        document_id: int,
        date: Optional[date] = None,
        detail_id: Optional[int] = None,
        items: Optional[Iterable[DocumentLine]] = None,
        cashbox_id: Optional[int] = _UNSET,
        special_code_id: Optional[int] = _UNSET,
        total_amount=None,
        number: Optional[str] = None,
        description: Optional[str] = _UNSET,
    ) -> None:
        with self.db.transaction():
            document = self._require_draft(kind, document_id)
            lines = (
                self._normalize_lines(kind, items)
                if items is not None
                else [
                    DocumentLine(
                        instrument_type=item.instrument_type,
                        amount=item.amount,
                        bank_account_id=item.bank_account_id,
                        card_reader_id=item.card_reader_id,
                        check_id=item.check_id,
                        reference=item.reference,
                    )
                    for item in document.items
                ]
            )
            total = self._resolve_total(lines, total_amount)
            next_detail = document.detail_id if detail_id is None else detail_id
            next_cashbox = document.cashbox_id if cashbox_id is _UNSET else cashbox_id
            next_special = document.special_code_id if special_code_id is _UNSET else special_code_id
            self._validate_header(
                kind, lines, next_detail, document.fiscal_year_id, next_cashbox, next_special
            )

            fields: dict[str, Any] = {
                "detail_id": next_detail,
                "cashbox_id": next_cashbox,
                "special_code_id": next_special,
                "total_amount": total,
            }
            if date is not None:
                fields["date"] = date
            if description is not _UNSET:
                fields["description"] = description
            if number is not None and number.strip() != document.number:
                number = number.strip()
                if number in self.db.list_document_numbers(kind, document.fiscal_year_id):
                    raise ConflictError(f"{kind.value.capitalize()} number '{number}' already exists")
                fields["number"] = number

            self.db.update_document(kind, document_id, **fields)
            if items is not None:
                self.db.replace_document_items(kind, document_id, lines)
            self._move_checks(
                kind,
                document_id,
                self._held_checks(kind, document.items),
                self._held_checks(kind, lines),
                next_cashbox,
            )
        logger.info(f"{kind.value.capitalize()} updated", extra={"document_id": document_id})

    def _delete(self, kind: DocumentKind, document_id: int) -> None:
        with self.db.transaction():
            document = self._require_draft(kind, document_id)
            held = self._held_checks(kind, document.items)
            self.db.delete_document(kind, document_id)
            self._move_checks(kind, document_id, held, {}, None)
        logger.info(f"{kind.value.capitalize()} deleted", extra={"document_id": document_id})

    # Receipts

    def create_receipt(
        self,
        date: date,
        detail_id: int,
        items: Iterable[DocumentLine],
        fiscal_year_id: Optional[int] = None,
        cashbox_id: Optional[int] = None,
        special_code_id: Optional[int] = None,
        total_amount=None,
        number: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Save a draft receipt.

        Args:
            date: Receipt date
            detail_id: Counterparty detail credited on posting
            items: cash, card, transfer or check lines
            fiscal_year_id: Fiscal year used for numbering and posting
            cashbox_id: Cashbox receiving cash and checks
            special_code_id: Code overriding the counterparty code on posting
            total_amount: Expected total; must equal the sum of items when given
            number: Receipt number, next free number in the year if omitted
            description: Optional description

        Returns:
            Receipt ID

        Raises:
            ValidationError: If items are malformed or a required cashbox is missing
            TotalMismatchError: If total_amount differs from the sum of items
            ConflictError: If a check cannot be taken into the cashbox
        """
        return self._create(
            DocumentKind.RECEIPT,
            date=date,
            detail_id=detail_id,
            items=items,
            fiscal_year_id=fiscal_year_id,
            cashbox_id=cashbox_id,
            special_code_id=special_code_id,
            total_amount=total_amount,
            number=number,
            description=description,
        )

    def update_receipt(self, receipt_id: int, **changes: Any) -> None:
        """Edit a draft receipt. Accepts the same fields as create_receipt.

        Raises:
            AlreadyPostedError: If the receipt was sent to the ledger
        """
        self._update(DocumentKind.RECEIPT, receipt_id, **changes)

    def delete_receipt(self, receipt_id: int) -> None:
        """Delete a draft receipt and return its checks to created."""
        self._delete(DocumentKind.RECEIPT, receipt_id)

    def get_receipt(self, receipt_id: int) -> Optional[TreasuryDocument]:
        return self.db.get_document(DocumentKind.RECEIPT, receipt_id)

    def list_receipts(
        self, fiscal_year_id: Optional[int] = None, status: Optional[DocumentStatus] = None
    ) -> list[TreasuryDocument]:
        return self.db.list_documents(DocumentKind.RECEIPT, fiscal_year_id=fiscal_year_id, status=status)

    # Payments

    def create_payment(
        self,
        date: date,
        detail_id: int,
        items: Iterable[DocumentLine],
        fiscal_year_id: Optional[int] = None,
        cashbox_id: Optional[int] = None,
        special_code_id: Optional[int] = None,
        total_amount=None,
        number: Optional[str] = None,
        description: Optional[str] = None,
    ) -> int:
        """Save a draft payment.

        ``checkin`` lines spend incoming checks held in a cashbox; ``check``
        lines spend outgoing checks issued from our checkbooks.

        Returns:
            Payment ID

        Raises:
            ValidationError: If items are malformed or a required cashbox is missing
            TotalMismatchError: If total_amount differs from the sum of items
            ConflictError: If a check is not available to spend
        """
        return self._create(
            DocumentKind.PAYMENT,
            date=date,
            detail_id=detail_id,
            items=items,
            fiscal_year_id=fiscal_year_id,
            cashbox_id=cashbox_id,
            special_code_id=special_code_id,
            total_amount=total_amount,
            number=number,
            description=description,
        )

    def update_payment(self, payment_id: int, **changes: Any) -> None:
        """Edit a draft payment; checks dropped from it are un-spent."""
        self._update(DocumentKind.PAYMENT, payment_id, **changes)

    def delete_payment(self, payment_id: int) -> None:
        """Delete a draft payment and un-spend its checks."""
        self._delete(DocumentKind.PAYMENT, payment_id)

    def get_payment(self, payment_id: int) -> Optional[TreasuryDocument]:
        return self.db.get_document(DocumentKind.PAYMENT, payment_id)

    def list_payments(
        self, fiscal_year_id: Optional[int] = None, status: Optional[DocumentStatus] = None
    ) -> list[TreasuryDocument]:
        return self.db.list_documents(DocumentKind.PAYMENT, fiscal_year_id=fiscal_year_id, status=status)

"""Domain model entities for ledgerkit.

These are pure data classes representing business concepts, independent of
database schema. Services receive and return these; ORM rows never leave the
database package.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class CodeKind(str, Enum):
    """Level of a node in the chart of accounts."""

    GROUP = "group"
    GENERAL = "general"
    SPECIFIC = "specific"


class Nature(str, Enum):
    """Normal balance side of a code node."""

    DEBIT = "debit"
    CREDIT = "credit"


class DetailKind(str, Enum):
    USER_DEFINED = "user-defined"
    SYSTEM_MANAGED = "system-managed"


class JournalStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"


class JournalSource(str, Enum):
    """Which workflow produced a journal."""

    MANUAL = "manual"
    RECEIPT = "receipt"
    PAYMENT = "payment"
    REVERSAL = "reversal"


class CheckType(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class CheckStatus(str, Enum):
    CREATED = "created"
    INCASHBOX = "incashbox"
    SPENT = "spent"
    ISSUED = "issued"


class CheckbookStatus(str, Enum):
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class DocumentKind(str, Enum):
    """Treasury document direction."""

    RECEIPT = "receipt"
    PAYMENT = "payment"


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"


class InstrumentType(str, Enum):
    """How money moved for one treasury document item."""

    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    CHECK = "check"
    CHECKIN = "checkin"


class CodeSlot(str, Enum):
    """Named posting targets resolved to code nodes at posting time."""

    CASH_RECEIPT = "CODE_TREASURY_CASH_RECEIPT"
    CARD_RECEIPT = "CODE_TREASURY_CARD_RECEIPT"
    TRANSFER_RECEIPT = "CODE_TREASURY_TRANSFER_RECEIPT"
    CHECK_RECEIPT = "CODE_TREASURY_CHECK_RECEIPT"
    COUNTERPARTY_RECEIPT = "CODE_TREASURY_COUNTERPARTY_RECEIPT"
    CASH_PAYMENT = "CODE_TREASURY_CASH_PAYMENT"
    CARD_PAYMENT = "CODE_TREASURY_CARD_PAYMENT"
    TRANSFER_PAYMENT = "CODE_TREASURY_TRANSFER_PAYMENT"
    CHECK_PAYMENT = "CODE_TREASURY_CHECK_PAYMENT"
    COUNTERPARTY_PAYMENT = "CODE_TREASURY_COUNTERPARTY_PAYMENT"


class InstrumentClass(str, Enum):
    """Treasury instruments that own a system-managed detail."""

    BANK_ACCOUNT = "bank_account"
    CARD_READER = "card_reader"
    CASHBOX = "cashbox"


@dataclass(frozen=True)
class CodeNode:
    """Chart-of-accounts node (group, general or specific code)."""

    id: int
    code: str
    title: str
    kind: CodeKind
    parent_id: Optional[int]
    nature: Optional[Nature]
    is_active: bool


@dataclass(frozen=True)
class Detail:
    """Global 4-digit sub-ledger entity (counterparty, cashbox, bank account...)."""

    id: int
    code: str
    title: str
    kind: DetailKind
    is_active: bool

    @property
    def is_system_managed(self) -> bool:
        return self.kind == DetailKind.SYSTEM_MANAGED


@dataclass(frozen=True)
class DetailLink:
    """Attachment of a detail to a leaf code node."""

    detail_id: int
    level_id: int
    is_primary: bool
    position: Optional[int]


@dataclass(frozen=True)
class DetailLinkSpec:
    """Requested link when creating or replacing a detail's links."""

    level_id: int
    is_primary: bool = False
    position: Optional[int] = None


@dataclass(frozen=True)
class FiscalYear:
    """Fiscal year domain entity."""

    id: int
    name: str
    start_date: date
    end_date: date
    is_closed: bool

    @property
    def is_open(self) -> bool:
        return not self.is_closed


@dataclass(frozen=True)
class Journal:
    """Journal header domain entity."""

    id: int
    fiscal_year_id: int
    ref_no: Optional[str]
    code: Optional[int]
    date: date
    description: Optional[str]
    status: JournalStatus
    source: JournalSource
    reversal_of_id: Optional[int]


@dataclass(frozen=True)
class JournalItem:
    """One debit or credit line of a journal."""

    id: int
    journal_id: int
    code_id: int
    debit: Decimal
    credit: Decimal
    party_id: Optional[int]
    detail_id: Optional[int]
    description: Optional[str]


@dataclass(frozen=True)
class JournalLine:
    """Journal line to be written (no ID yet)."""

    code_id: int
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    detail_id: Optional[int] = None
    party_id: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Bank:
    id: int
    name: str
    branch_number: Optional[str]
    branch_name: Optional[str]
    city: Optional[str]


@dataclass(frozen=True)
class BankAccount:
    """Bank account owned by the business."""

    id: int
    bank_id: int
    account_number: str
    name: str
    kind_of_account: Optional[str]
    card_number: Optional[str]
    iban: Optional[str]
    is_active: bool
    starting_amount: Decimal
    starting_date: Optional[date]
    handler_detail_id: int


@dataclass(frozen=True)
class CardReader:
    """POS terminal settling into a bank account."""

    id: int
    bank_account_id: int
    psp_provider: str
    terminal_id: str
    merchant_id: Optional[str]
    device_serial: Optional[str]
    is_active: bool
    description: Optional[str]
    handler_detail_id: int


@dataclass(frozen=True)
class Cashbox:
    """Physical cash register; its code mirrors its handler detail's code."""

    id: int
    code: str
    name: str
    handler_detail_id: int
    is_active: bool
    starting_amount: Decimal
    starting_date: Optional[date]


@dataclass(frozen=True)
class Checkbook:
    id: int
    bank_account_id: int
    series: Optional[str]
    start_number: int
    page_count: int
    issue_date: Optional[date]
    received_date: Optional[date]
    status: CheckbookStatus
    description: Optional[str]

    @property
    def last_number(self) -> int:
        return self.start_number + self.page_count - 1


@dataclass(frozen=True)
class Check:
    """Incoming (customer) or outgoing (own checkbook) check."""

    id: int
    type: CheckType
    number: str
    amount: Decimal
    issue_date: date
    status: CheckStatus
    checkbook_id: Optional[int]
    due_date: Optional[date]
    beneficiary_detail_id: Optional[int]
    cashbox_id: Optional[int]
    bank_name: Optional[str]
    issuer: Optional[str]
    beneficiary: Optional[str]
    notes: Optional[str]


@dataclass(frozen=True)
class DocumentItem:
    """Stored line of a receipt or payment."""

    id: int
    document_id: int
    instrument_type: InstrumentType
    amount: Decimal
    bank_account_id: Optional[int]
    card_reader_id: Optional[int]
    check_id: Optional[int]
    reference: Optional[str]
    position: int


@dataclass(frozen=True)
class DocumentLine:
    """Receipt or payment line to be written (no ID yet)."""

    instrument_type: InstrumentType
    amount: Decimal
    bank_account_id: Optional[int] = None
    card_reader_id: Optional[int] = None
    check_id: Optional[int] = None
    reference: Optional[str] = None


@dataclass(frozen=True)
class TreasuryDocument:
    """Receipt or payment header."""

    id: int
    kind: DocumentKind
    number: str
    status: DocumentStatus
    date: date
    fiscal_year_id: Optional[int]
    detail_id: int
    special_code_id: Optional[int]
    cashbox_id: Optional[int]
    total_amount: Decimal
    journal_id: Optional[int]
    description: Optional[str]
    items: tuple[DocumentItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Setting:
    """Key-value configuration row."""

    code: str
    name: Optional[str]
    special_id: Optional[int]
    value: Any

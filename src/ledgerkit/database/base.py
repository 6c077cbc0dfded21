"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Optional

# Import entities directly to avoid circular import through domain/__init__.py
from ledgerkit.domain.entities import (
    Bank,
    BankAccount,
    CardReader,
    Cashbox,
    Check,
    CheckStatus,
    CheckType,
    Checkbook,
    CodeKind,
    CodeNode,
    Detail,
    DetailLink,
    DetailLinkSpec,
    DocumentKind,
    DocumentLine,
    DocumentStatus,
    FiscalYear,
    InstrumentClass,
    Journal,
    JournalItem,
    JournalLine,
    JournalStatus,
    Setting,
    TreasuryDocument,
)


class Database(ABC):
    """Abstract database interface for ledgerkit.

    Each write method commits on its own unless it runs inside
    :meth:`transaction`, in which case the enclosing block decides.
    Unique constraint violations surface as DuplicateValueError and foreign
    key violations as DependencyError.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Group writes atomically. Nested blocks roll back to a savepoint."""
        pass

    # Code node operations
    @abstractmethod
    def create_code_node(
        self,
        code: str,
        title: str,
        kind: CodeKind,
        parent_id: Optional[int] = None,
        nature: Optional[str] = None,
        is_active: bool = True,
    ) -> int:
        """Create a code node. Returns node ID."""
        pass

    @abstractmethod
    def get_code_node(self, node_id: int) -> Optional[CodeNode]:
        """Get code node by ID."""
        pass

    @abstractmethod
    def get_code_node_by_code(self, code: str) -> Optional[CodeNode]:
        """Get code node by its code value."""
        pass

    @abstractmethod
    def list_code_nodes(
        self, kind: Optional[CodeKind] = None, parent_id: Optional[int] = None
    ) -> list[CodeNode]:
        """List code nodes ordered by code, optionally filtered."""
        pass

    @abstractmethod
    def update_code_node(self, node_id: int, **fields: Any) -> None:
        """Update code node columns."""
        pass

    @abstractmethod
    def delete_code_node(self, node_id: int) -> None:
        """Delete a code node."""
        pass

    @abstractmethod
    def count_code_node_children(self, node_id: int) -> int:
        """Count direct children of a code node."""
        pass

    @abstractmethod
    def count_code_node_references(self, node_id: int) -> dict[str, int]:
        """Count rows referencing a code node, keyed by referencing record type."""
        pass

    # Detail operations
    @abstractmethod
    def create_detail(self, code: str, title: str, kind: str, is_active: bool = True) -> int:
        """Create a detail. Returns detail ID."""
        pass

    @abstractmethod
    def get_detail(self, detail_id: int) -> Optional[Detail]:
        """Get detail by ID."""
        pass

    @abstractmethod
    def get_detail_by_code(self, code: str) -> Optional[Detail]:
        """Get detail by code."""
        pass

    @abstractmethod
    def list_details(self, active_only: bool = False) -> list[Detail]:
        """List details ordered by code."""
        pass

    @abstractmethod
    def list_detail_codes(self) -> set[str]:
        """Return every code currently used by a detail."""
        pass

    @abstractmethod
    def update_detail(self, detail_id: int, **fields: Any) -> None:
        """Update detail columns."""
        pass

    @abstractmethod
    def delete_detail(self, detail_id: int) -> None:
        """Delete a detail together with its links."""
        pass

    @abstractmethod
    def count_detail_references(self, detail_id: int) -> dict[str, int]:
        """Count rows referencing a detail, keyed by referencing record type."""
        pass

    # Detail link operations
    @abstractmethod
    def add_detail_link(self, detail_id: int, link: DetailLinkSpec) -> None:
        """Attach a detail to a code node."""
        pass

    @abstractmethod
    def replace_detail_links(self, detail_id: int, links: list[DetailLinkSpec]) -> None:
        """Replace all links of a detail."""
        pass

    @abstractmethod
    def delete_detail_link(self, detail_id: int, level_id: int) -> bool:
        """Remove one link. Returns False if it did not exist."""
        pass

    @abstractmethod
    def list_detail_links(self, detail_id: int) -> list[DetailLink]:
        """List links of a detail ordered by position."""
        pass

    # Fiscal year operations
    @abstractmethod
    def create_fiscal_year(
        self, name: str, start_date: date, end_date: date, is_closed: bool = True
    ) -> int:
        """Create a fiscal year. Returns fiscal year ID."""
        pass

    @abstractmethod
    def get_fiscal_year(self, fiscal_year_id: int, for_update: bool = False) -> Optional[FiscalYear]:
        """Get fiscal year by ID, optionally locking the row."""
        pass

    @abstractmethod
    def get_fiscal_year_by_start(self, start_date: date) -> Optional[FiscalYear]:
        """Get the fiscal year starting on the given date."""
        pass

    @abstractmethod
    def list_fiscal_years(self, for_update: bool = False) -> list[FiscalYear]:
        """List fiscal years ordered by start date, optionally locking all rows."""
        pass

    @abstractmethod
    def update_fiscal_year(self, fiscal_year_id: int, **fields: Any) -> None:
        """Update fiscal year columns."""
        pass

    @abstractmethod
    def delete_fiscal_year(self, fiscal_year_id: int) -> None:
        """Delete a fiscal year."""
        pass

    @abstractmethod
    def count_fiscal_year_documents(self, fiscal_year_id: int) -> int:
        """Count journals, receipts and payments belonging to a fiscal year."""
        pass

    # Journal operations
    @abstractmethod
    def create_journal(
        self,
        fiscal_year_id: int,
        date: date,
        lines: list[JournalLine],
        status: JournalStatus,
        source: str,
        ref_no: Optional[str] = None,
        code: Optional[int] = None,
        description: Optional[str] = None,
        reversal_of_id: Optional[int] = None,
    ) -> int:
        """Create a journal with its items. Returns journal ID."""
        pass

    @abstractmethod
    def get_journal(self, journal_id: int, for_update: bool = False) -> Optional[Journal]:
        """Get journal header by ID."""
        pass

    @abstractmethod
    def list_journal_items(self, journal_id: int) -> list[JournalItem]:
        """List items of a journal in insertion order."""
        pass

    @abstractmethod
    def list_journals(
        self, fiscal_year_id: Optional[int] = None, status: Optional[JournalStatus] = None
    ) -> list[Journal]:
        """List journals ordered by date then ID."""
        pass

    @abstractmethod
    def update_journal(self, journal_id: int, **fields: Any) -> None:
        """Update journal header columns."""
        pass

    @abstractmethod
    def replace_journal_items(self, journal_id: int, lines: list[JournalLine]) -> None:
        """Replace every item of a journal."""
        pass

    @abstractmethod
    def delete_journal(self, journal_id: int) -> None:
        """Delete a journal and its items."""
        pass

    @abstractmethod
    def list_journal_ref_numbers(self, fiscal_year_id: int) -> list[str]:
        """Return all reference numbers used in a fiscal year."""
        pass

    @abstractmethod
    def max_journal_code(self, fiscal_year_id: int) -> Optional[int]:
        """Return the highest journal code in a fiscal year."""
        pass

    @abstractmethod
    def get_reversal_of(self, journal_id: int) -> Optional[Journal]:
        """Return the journal that reverses ``journal_id``, if any."""
        pass

    # Bank operations
    @abstractmethod
    def create_bank(self, name: str, **fields: Any) -> int:
        """Create a bank. Returns bank ID."""
        pass

    @abstractmethod
    def get_bank(self, bank_id: int) -> Optional[Bank]:
        """Get bank by ID."""
        pass

    @abstractmethod
    def list_banks(self) -> list[Bank]:
        """List banks ordered by name."""
        pass

    @abstractmethod
    def update_bank(self, bank_id: int, **fields: Any) -> None:
        """Update bank columns."""
        pass

    @abstractmethod
    def delete_bank(self, bank_id: int) -> None:
        """Delete a bank."""
        pass

    @abstractmethod
    def count_bank_accounts(self, bank_id: int) -> int:
        """Count bank accounts held at a bank."""
        pass

    # Bank account operations
    @abstractmethod
    def create_bank_account(
        self, bank_id: int, account_number: str, name: str, handler_detail_id: int, **fields: Any
    ) -> int:
        """Create a bank account. Returns bank account ID."""
        pass

    @abstractmethod
    def get_bank_account(self, bank_account_id: int) -> Optional[BankAccount]:
        """Get bank account by ID."""
        pass

    @abstractmethod
    def get_bank_account_by_number(self, account_number: str) -> Optional[BankAccount]:
        """Get bank account by account number."""
        pass

    @abstractmethod
    def list_bank_accounts(self, bank_id: Optional[int] = None) -> list[BankAccount]:
        """List bank accounts, optionally for one bank."""
        pass

    @abstractmethod
    def update_bank_account(self, bank_account_id: int, **fields: Any) -> None:
        """Update bank account columns."""
        pass

    @abstractmethod
    def delete_bank_account(self, bank_account_id: int) -> None:
        """Delete a bank account."""
        pass

    @abstractmethod
    def count_bank_account_references(self, bank_account_id: int) -> dict[str, int]:
        """Count card readers, checkbooks and document items using a bank account."""
        pass

    # Card reader operations
    @abstractmethod
    def create_card_reader(
        self, bank_account_id: int, psp_provider: str, terminal_id: str, handler_detail_id: int, **fields: Any
    ) -> int:
        """Create a card reader. Returns card reader ID."""
        pass

    @abstractmethod
    def get_card_reader(self, card_reader_id: int) -> Optional[CardReader]:
        """Get card reader by ID."""
        pass

    @abstractmethod
    def list_card_readers(self, bank_account_id: Optional[int] = None) -> list[CardReader]:
        """List card readers, optionally for one bank account."""
        pass

    @abstractmethod
    def update_card_reader(self, card_reader_id: int, **fields: Any) -> None:
        """Update card reader columns."""
        pass

    @abstractmethod
    def delete_card_reader(self, card_reader_id: int) -> None:
        """Delete a card reader."""
        pass

    @abstractmethod
    def count_card_reader_references(self, card_reader_id: int) -> dict[str, int]:
        """Count document items using a card reader."""
        pass

    # Cashbox operations
    @abstractmethod
    def create_cashbox(self, code: str, name: str, handler_detail_id: int, **fields: Any) -> int:
        """Create a cashbox. Returns cashbox ID."""
        pass

    @abstractmethod
    def get_cashbox(self, cashbox_id: int) -> Optional[Cashbox]:
        """Get cashbox by ID."""
        pass

    @abstractmethod
    def get_cashbox_by_code(self, code: str) -> Optional[Cashbox]:
        """Get cashbox by code."""
        pass

    @abstractmethod
    def list_cashboxes(self) -> list[Cashbox]:
        """List cashboxes ordered by code."""
        pass

    @abstractmethod
    def update_cashbox(self, cashbox_id: int, **fields: Any) -> None:
        """Update cashbox columns."""
        pass

    @abstractmethod
    def delete_cashbox(self, cashbox_id: int) -> None:
        """Delete a cashbox."""
        pass

    @abstractmethod
    def count_cashbox_references(self, cashbox_id: int) -> dict[str, int]:
        """Count documents and checks referencing a cashbox."""
        pass

    @abstractmethod
    def list_cashbox_codes(self) -> set[str]:
        """Return every code used by a cashbox."""
        pass

    @abstractmethod
    def list_handler_detail_codes(self, instrument: InstrumentClass) -> list[str]:
        """Return the handler detail codes of every instrument of one class."""
        pass

    # Checkbook operations
    @abstractmethod
    def create_checkbook(
        self, bank_account_id: int, start_number: int, page_count: int, **fields: Any
    ) -> int:
        """Create a checkbook. Returns checkbook ID."""
        pass

    @abstractmethod
    def get_checkbook(self, checkbook_id: int, for_update: bool = False) -> Optional[Checkbook]:
        """Get checkbook by ID."""
        pass

    @abstractmethod
    def list_checkbooks(self, bank_account_id: Optional[int] = None) -> list[Checkbook]:
        """List checkbooks, optionally for one bank account."""
        pass

    @abstractmethod
    def update_checkbook(self, checkbook_id: int, **fields: Any) -> None:
        """Update checkbook columns."""
        pass

    @abstractmethod
    def delete_checkbook(self, checkbook_id: int) -> None:
        """Delete a checkbook."""
        pass

    @abstractmethod
    def count_checkbook_checks(self, checkbook_id: int) -> int:
        """Count checks issued from a checkbook."""
        pass

    # Check operations
    @abstractmethod
    def create_check(
        self,
        check_type: CheckType,
        number: str,
        amount: Any,
        issue_date: date,
        status: CheckStatus,
        **fields: Any,
    ) -> int:
        """Create a check. Returns check ID."""
        pass

    @abstractmethod
    def get_check(self, check_id: int, for_update: bool = False) -> Optional[Check]:
        """Get check by ID, optionally locking the row."""
        pass

    @abstractmethod
    def get_check_by_number(self, checkbook_id: int, number: str) -> Optional[Check]:
        """Get the check with ``number`` issued from a checkbook."""
        pass

    @abstractmethod
    def list_checks(
        self,
        check_type: Optional[CheckType] = None,
        status: Optional[CheckStatus] = None,
        checkbook_id: Optional[int] = None,
    ) -> list[Check]:
        """List checks, optionally filtered."""
        pass

    @abstractmethod
    def update_check(self, check_id: int, **fields: Any) -> None:
        """Update check columns."""
        pass

    @abstractmethod
    def delete_check(self, check_id: int) -> None:
        """Delete a check."""
        pass

    @abstractmethod
    def count_check_references(
        self, check_id: int, kind: DocumentKind, exclude_document_id: Optional[int] = None
    ) -> int:
        """Count receipt or payment items referencing a check."""
        pass

    # Receipt / payment operations
    @abstractmethod
    def create_document(
        self,
        kind: DocumentKind,
        number: str,
        date: date,
        detail_id: int,
        total_amount: Any,
        lines: list[DocumentLine],
        **fields: Any,
    ) -> int:
        """Create a receipt or payment with its items. Returns document ID."""
        pass

    @abstractmethod
    def get_document(
        self, kind: DocumentKind, document_id: int, for_update: bool = False
    ) -> Optional[TreasuryDocument]:
        """Get a receipt or payment with its items."""
        pass

    @abstractmethod
    def list_documents(
        self,
        kind: DocumentKind,
        fiscal_year_id: Optional[int] = None,
        status: Optional[DocumentStatus] = None,
    ) -> list[TreasuryDocument]:
        """List receipts or payments ordered by date then ID."""
        pass

    @abstractmethod
    def update_document(self, kind: DocumentKind, document_id: int, **fields: Any) -> None:
        """Update receipt or payment header columns."""
        pass

    @abstractmethod
    def replace_document_items(
        self, kind: DocumentKind, document_id: int, lines: list[DocumentLine]
    ) -> None:
        """Replace every item of a receipt or payment."""
        pass

    @abstractmethod
    def delete_document(self, kind: DocumentKind, document_id: int) -> None:
        """Delete a receipt or payment and its items."""
        pass

    @abstractmethod
    def list_document_numbers(self, kind: DocumentKind, fiscal_year_id: Optional[int]) -> list[str]:
        """Return all numbers used by receipts or payments in a fiscal year."""
        pass

    # Settings operations
    @abstractmethod
    def get_setting(self, code: str) -> Optional[Setting]:
        """Get setting by code."""
        pass

    @abstractmethod
    def list_settings(self) -> list[Setting]:
        """List settings ordered by code."""
        pass

    @abstractmethod
    def upsert_setting(
        self,
        code: str,
        name: Optional[str] = None,
        special_id: Optional[int] = None,
        value: Any = None,
    ) -> None:
        """Insert or replace a setting."""
        pass

    @abstractmethod
    def delete_setting(self, code: str) -> bool:
        """Delete a setting. Returns False if it did not exist."""
        pass

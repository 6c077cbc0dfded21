"""Journal ledger domain service."""

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from ledgerkit.config import LedgerConfig
from ledgerkit.database.base import Database
from ledgerkit.domain.allocation import next_sequence_number, retry_on_conflict
from ledgerkit.domain.entities import (
    Journal,
    JournalItem,
    JournalLine,
    JournalSource,
    JournalStatus,
)
from ledgerkit.domain.errors import (
    ConflictError,
    NotDraftError,
    NotFoundError,
    NotPostedError,
    UnbalancedError,
    ValidationError,
    not_found,
)
from ledgerkit.domain.lifecycle import JOURNAL_TRANSITIONS, require_transition
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.journal")

BALANCE_EPSILON = Decimal("0.0001")
REVERSAL_PREFIX = "REV-"


def to_amount(value: Union[Decimal, int, float, str, None], field: str = "amount") -> Decimal:
    """Convert a numeric input to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Invalid {field} '{value}'")


def line_totals(lines: Iterable[Union[JournalLine, JournalItem]]) -> tuple[Decimal, Decimal]:
    """Return (total debit, total credit)."""
    total_debit = Decimal("0")
    total_credit = Decimal("0")
    for line in lines:
        total_debit += line.debit
        total_credit += line.credit
    return total_debit, total_credit


def is_balanced(total_debit: Decimal, total_credit: Decimal) -> bool:
    return abs(total_debit - total_credit) <= BALANCE_EPSILON


class JournalService:
    """Service for creating, posting and reversing journals."""

    def __init__(self, db: Database, config: Optional[LedgerConfig] = None):
        """Initialize journal service.

        Args:
            db: Database instance
            config: Allocation retry settings, defaults to LedgerConfig()
        """
        self.db = db
        self.config = config or LedgerConfig()

    def _require(self, journal_id: int, for_update: bool = False) -> Journal:
        journal = self.db.get_journal(journal_id, for_update=for_update)
        if journal is None:
            raise NotFoundError(not_found("Journal", journal_id))
        return journal

    def _normalize_lines(self, items: Iterable[JournalLine]) -> list[JournalLine]:
        """Validate journal lines and coerce amounts to Decimal."""
        lines = []
        for index, item in enumerate(items, start=1):
            debit = to_amount(item.debit, "debit")
            credit = to_amount(item.credit, "credit")
            if debit < 0 or credit < 0:
                raise ValidationError(f"Item {index}: debit and credit cannot be negative")
            if debit > 0 and credit > 0:
                raise ValidationError(f"Item {index}: cannot have both debit and credit")
            if self.db.get_code_node(item.code_id) is None:
                raise NotFoundError(not_found("Code node", item.code_id))
            if item.detail_id is not None and self.db.get_detail(item.detail_id) is None:
                raise NotFoundError(not_found("Detail", item.detail_id))
            lines.append(
                JournalLine(
                    code_id=item.code_id,
                    debit=debit,
                    credit=credit,
                    detail_id=item.detail_id,
                    party_id=item.party_id,
                    description=item.description,
                )
            )
        if not lines:
            raise ValidationError("A journal needs at least one item")
        return lines

    @staticmethod
    def _check_balance(lines: Iterable[Union[JournalLine, JournalItem]]) -> None:
        total_debit, total_credit = line_totals(lines)
        if not is_balanced(total_debit, total_credit):
            raise UnbalancedError(total_debit, total_credit)

    def _insert(
        self,
        fiscal_year_id: int,
        entry_date: date,
        lines: list[JournalLine],
        status: JournalStatus,
        source: JournalSource,
        ref_no: Optional[str] = None,
        description: Optional[str] = None,
        reversal_of_id: Optional[int] = None,
    ) -> int:
        """Insert a journal with the next code (and ref_no when not given)."""

        def attempt() -> int:
            with self.db.transaction():
                code = (self.db.max_journal_code(fiscal_year_id) or 0) + 1
                number = ref_no
                if number is None:
                    number = str(next_sequence_number(self.db.list_journal_ref_numbers(fiscal_year_id)))
                return self.db.create_journal(
                    fiscal_year_id=fiscal_year_id,
                    date=entry_date,
                    lines=lines,
                    status=status,
                    source=source,
                    ref_no=number,
                    code=code,
                    description=description,
                    reversal_of_id=reversal_of_id,
                )

        return retry_on_conflict(
            attempt,
            attempts=self.config.allocation_attempts,
            backoff=self.config.allocation_backoff,
        )

    def _check_ref_no_free(self, fiscal_year_id: int, ref_no: str, journal_id: Optional[int] = None) -> None:
        for journal in self.db.list_journals(fiscal_year_id=fiscal_year_id):
            if journal.ref_no == ref_no and journal.id != journal_id:
                raise ConflictError(f"Reference number '{ref_no}' is already used in this fiscal year")

    def create(
        self,
        fiscal_year_id: int,
        date: date,
        items: Iterable[JournalLine],
        ref_no: Optional[str] = None,
        description: Optional[str] = None,
        source: JournalSource = JournalSource.MANUAL,
    ) -> int:
        """Create a balanced draft journal.

        Args:
            fiscal_year_id: Fiscal year the journal belongs to
            date: Journal date
            items: Journal lines (debit XOR credit per line)
            ref_no: Reference number, next free number in the year if omitted
            description: Optional header description
            source: Workflow that produced the journal

        Returns:
            Journal ID

        Raises:
            NotFoundError: If the fiscal year, a code or a detail does not exist
            ValidationError: If an item is malformed
            UnbalancedError: If debits and credits differ by more than 0.0001
        """
        if self.db.get_fiscal_year(fiscal_year_id) is None:
            raise NotFoundError(not_found("Fiscal year", fiscal_year_id))
        lines = self._normalize_lines(items)
        self._check_balance(lines)
        if ref_no is not None:
            ref_no = ref_no.strip() or None
        if ref_no is not None:
            self._check_ref_no_free(fiscal_year_id, ref_no)

        journal_id = self._insert(
            fiscal_year_id=fiscal_year_id,
            entry_date=date,
            lines=lines,
            status=JournalStatus.DRAFT,
            source=source,
            ref_no=ref_no,
            description=description,
        )
        logger.info(
            "Journal created",
            extra={"journal_id": journal_id, "fiscal_year_id": fiscal_year_id, "source": source.value},
        )
        return journal_id

    def get(self, journal_id: int) -> Optional[Journal]:
        """Get journal header by ID."""
        return self.db.get_journal(journal_id)

    def get_items(self, journal_id: int) -> list[JournalItem]:
        """Get journal items.

        Raises:
            NotFoundError: If the journal does not exist
        """
        self._require(journal_id)
        return self.db.list_journal_items(journal_id)

    def list_journals(
        self, fiscal_year_id: Optional[int] = None, status: Optional[JournalStatus] = None
    ) -> list[Journal]:
        """List journals ordered by date."""
        return self.db.list_journals(fiscal_year_id=fiscal_year_id, status=status)

    def totals(self, journal_id: int) -> tuple[Decimal, Decimal]:
        """Return (total debit, total credit) from the stored items."""
        return line_totals(self.get_items(journal_id))

    def post(self, journal_id: int) -> None:
        """Post a draft journal after re-checking its stored items.

        Raises:
            NotFoundError: If the journal does not exist
            NotDraftError: If the journal is not a draft
            UnbalancedError: If the stored items do not balance
        """
        with self.db.transaction():
            journal = self._require(journal_id, for_update=True)
            if journal.status != JournalStatus.DRAFT:
                raise NotDraftError(journal_id)
            self._check_balance(self.db.list_journal_items(journal_id))
            require_transition("journal", JOURNAL_TRANSITIONS, journal.status, JournalStatus.POSTED)
            self.db.update_journal(journal_id, status=JournalStatus.POSTED)
        logger.info("Journal posted", extra={"journal_id": journal_id})

    def reverse(self, journal_id: int) -> int:
        """Create a posted journal that cancels a posted one.

        Every line of the original is copied with debit and credit swapped.

        Returns:
            ID of the reversing journal

        Raises:
            NotFoundError: If the journal does not exist
            NotPostedError: If the journal is not posted
            ConflictError: If the journal has already been reversed
        """
        with self.db.transaction():
            journal = self._require(journal_id, for_update=True)
            if journal.status != JournalStatus.POSTED:
                raise NotPostedError(journal_id)
            existing = self.db.get_reversal_of(journal_id)
            if existing is not None:
                raise ConflictError(f"Journal {journal_id} was already reversed by journal {existing.id}")

            lines = [
                JournalLine(
                    code_id=item.code_id,
                    debit=item.credit,
                    credit=item.debit,
                    detail_id=item.detail_id,
                    party_id=item.party_id,
                    description=f"Reversal: {item.description}" if item.description else "Reversal",
                )
                for item in self.db.list_journal_items(journal_id)
            ]
            self._check_balance(lines)

            ref_no = f"{REVERSAL_PREFIX}{journal.ref_no or journal.id}"
            description = f"Reversal of {journal.id}"
            if journal.description:
                description = f"{description}: {journal.description}"

            reversal_id = self._insert(
                fiscal_year_id=journal.fiscal_year_id,
                entry_date=journal.date,
                lines=lines,
                status=JournalStatus.POSTED,
                source=JournalSource.REVERSAL,
                ref_no=ref_no,
                description=description,
                reversal_of_id=journal_id,
            )
        logger.info("Journal reversed", extra={"journal_id": journal_id, "reversal_id": reversal_id})
        return reversal_id

    def update(
        self,
        journal_id: int,
        date: Optional[date] = None,
        ref_no: Optional[str] = None,
        description: Optional[str] = None,
        items: Optional[Iterable[JournalLine]] = None,
    ) -> None:
        """Update a draft journal; ``items`` replaces all lines when given.

        Raises:
            NotFoundError: If the journal does not exist
            NotDraftError: If the journal is not a draft
            UnbalancedError: If replacement items do not balance
        """
        lines = None
        with self.db.transaction():
            journal = self._require(journal_id, for_update=True)
            if journal.status != JournalStatus.DRAFT:
                raise NotDraftError(journal_id)

            fields: dict[str, Any] = {}
            if date is not None:
                fields["date"] = date
            if ref_no is not None:
                ref_no = ref_no.strip()
                if not ref_no:
                    raise ValidationError("Reference number cannot be empty")
                self._check_ref_no_free(journal.fiscal_year_id, ref_no, journal_id)
                fields["ref_no"] = ref_no
            if description is not None:
                fields["description"] = description
            if items is not None:
                lines = self._normalize_lines(items)
                self._check_balance(lines)

            if fields:
                self.db.update_journal(journal_id, **fields)
            if lines is not None:
                self.db.replace_journal_items(journal_id, lines)

    def delete(self, journal_id: int) -> None:
        """Delete a draft journal.

        Raises:
            NotFoundError: If the journal does not exist
            NotDraftError: If the journal is not a draft
        """
        with self.db.transaction():
            journal = self._require(journal_id, for_update=True)
            if journal.status != JournalStatus.DRAFT:
                raise NotDraftError(journal_id)
            self.db.delete_journal(journal_id)
        logger.info("Journal deleted", extra={"journal_id": journal_id})

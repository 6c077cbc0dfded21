"""Treasury instrument service: banks, bank accounts, card readers, cashboxes,
checkbooks and checks.

Bank accounts, card readers and cashboxes each own a system-managed detail
that is created, renamed and removed together with the instrument.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional

from ledgerkit.config import (
    BANK_DETAIL_START_CODE,
    CARD_READER_DETAIL_START_CODE,
    CASHBOX_START_CODE,
    DEFAULT_BANK_DETAIL_START,
    DEFAULT_CARD_READER_DETAIL_START,
    DEFAULT_CASHBOX_START,
    LedgerConfig,
)
from ledgerkit.database.base import Database
from ledgerkit.domain.allocation import (
    CODE_MAX,
    is_four_digit_code,
    next_free_code,
    retry_on_conflict,
)
from ledgerkit.domain.entities import (
    Bank,
    BankAccount,
    CardReader,
    Cashbox,
    Check,
    CheckStatus,
    CheckType,
    Checkbook,
    CheckbookStatus,
    DetailKind,
    InstrumentClass,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    DuplicateCheckError,
    DuplicateCodeError,
    DuplicateValueError,
    NoCodesAvailableError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
    delete_blocked,
    not_found,
)
from ledgerkit.domain.journal import to_amount
from ledgerkit.domain.lifecycle import (
    CHECKBOOK_TRANSITIONS,
    INITIAL_CHECK_STATUS,
    require_check_transition,
    require_transition,
)
from ledgerkit.domain.settings import SettingsService
from ledgerkit.logging_config import get_logger

logger = get_logger("domain.treasury")

_UNSET: Any = object()

# (setting / environment name, default) for each instrument's code series
CODE_SERIES: dict[InstrumentClass, tuple[str, int]] = {
    InstrumentClass.BANK_ACCOUNT: (BANK_DETAIL_START_CODE, DEFAULT_BANK_DETAIL_START),
    InstrumentClass.CARD_READER: (CARD_READER_DETAIL_START_CODE, DEFAULT_CARD_READER_DETAIL_START),
    InstrumentClass.CASHBOX: (CASHBOX_START_CODE, DEFAULT_CASHBOX_START),
}

CASHBOX_CODE_MIN = 1000


def bank_account_title(name: str, account_number: str) -> str:
    return f"{name} - {account_number}"


def card_reader_title(psp_provider: str, terminal_id: str) -> str:
    return f"{psp_provider} - {terminal_id}"


def _required(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def _positive_amount(value, field: str = "amount") -> Decimal:
    amount = to_amount(value, field)
    if amount <= 0:
        raise ValidationError(f"{field.capitalize()} must be greater than zero")
    return amount


class TreasuryService:
    """Service for treasury instruments and checks."""

    def __init__(
        self,
        db: Database,
        config: Optional[LedgerConfig] = None,
        settings: Optional[SettingsService] = None,
    ):
        """Initialize treasury service.

        Args:
            db: Database instance
            config: Allocation retry settings, defaults to LedgerConfig()
            settings: Settings lookup for code offsets, defaults to SettingsService(db)
        """
        self.db = db
        self.config = config or LedgerConfig()
        self.settings = settings or SettingsService(db)

    # Handler detail allocation

    def start_code(self, instrument: InstrumentClass) -> int:
        """Return the first code of an instrument class's detail series."""
        name, default = CODE_SERIES[instrument]
        start = self.settings.get_int(name, name, default)
        if instrument == InstrumentClass.CASHBOX:
            return min(max(start, CASHBOX_CODE_MIN), CODE_MAX)
        return min(max(start, 1), CODE_MAX)

    def suggest_code(self, instrument: InstrumentClass) -> str:
        """Return the code the next instrument of this class would receive."""
        start = self.start_code(instrument)
        series = [
            int(code)
            for code in self.db.list_handler_detail_codes(instrument)
            if code.isdigit() and int(code) >= start
        ]
        occupied = self.db.list_detail_codes() | self.db.list_cashbox_codes()
        return next_free_code(occupied, start, max(series, default=None))

    def _create_with_handler(
        self,
        instrument: InstrumentClass,
        title: str,
        create_owner: Callable[[int, str], int],
        code: Optional[str] = None,
    ) -> int:
        """Create a system-managed detail and its owning instrument atomically.

        A fresh code is computed on every attempt, so a concurrent insert of
        the same code only costs a retry.
        """

        def attempt() -> int:
            with self.db.transaction():
                detail_code = code or self.suggest_code(instrument)
                detail_id = self.db.create_detail(
                    code=detail_code, title=title, kind=DetailKind.SYSTEM_MANAGED
                )
                owner_id = create_owner(detail_id, detail_code)
            logger.info(
                "Handler detail allocated",
                extra={"instrument": instrument.value, "code": detail_code, "owner_id": owner_id},
            )
            return owner_id

        if code is not None:
            try:
                return attempt()
            except DuplicateValueError:
                raise DuplicateCodeError(code, "detail")
        try:
            return retry_on_conflict(
                attempt,
                attempts=self.config.allocation_attempts,
                backoff=self.config.allocation_backoff,
            )
        except DuplicateValueError as exc:
            raise NoCodesAvailableError(self.start_code(instrument)) from exc

    def _sync_handler(self, detail_id: Optional[int], **fields: Any) -> None:
        if detail_id is not None and fields:
            self.db.update_detail(detail_id, **fields)

    def _release_handler(self, detail_id: Optional[int]) -> None:
        """Delete an instrument's detail, or deactivate it if still referenced."""
        if detail_id is None:
            return
        if any(self.db.count_detail_references(detail_id).values()):
            self.db.update_detail(detail_id, is_active=False)
            logger.info("Handler detail deactivated", extra={"detail_id": detail_id})
        else:
            self.db.delete_detail(detail_id)
            logger.info("Handler detail deleted", extra={"detail_id": detail_id})

    # Banks

    def create_bank(
        self,
        name: str,
        branch_number: Optional[str] = None,
        branch_name: Optional[str] = None,
        city: Optional[str] = None,
    ) -> int:
        """Create a bank. Returns bank ID."""
        return self.db.create_bank(
            name=_required(name, "Bank name"),
            branch_number=branch_number,
            branch_name=branch_name,
            city=city,
        )

    def get_bank(self, bank_id: int) -> Optional[Bank]:
        return self.db.get_bank(bank_id)

    def list_banks(self) -> list[Bank]:
        return self.db.list_banks()

    def update_bank(self, bank_id: int, **changes: Any) -> None:
        """Update name, branch_number, branch_name or city of a bank."""
        if self.db.get_bank(bank_id) is None:
            raise NotFoundError(not_found("Bank", bank_id))
        allowed = {"name", "branch_number", "branch_name", "city"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown bank fields: {', '.join(sorted(unknown))}")
        if "name" in changes:
            changes["name"] = _required(changes["name"], "Bank name")
        self.db.update_bank(bank_id, **changes)

    def delete_bank(self, bank_id: int) -> None:
        """Delete a bank that holds no accounts."""
        if self.db.get_bank(bank_id) is None:
            raise NotFoundError(not_found("Bank", bank_id))
        count = self.db.count_bank_accounts(bank_id)
        if count:
            raise DependencyError(delete_blocked("bank", bank_id, {"bank account": count}))
        self.db.delete_bank(bank_id)

    # Bank accounts

    def _require_bank_account(self, bank_account_id: int) -> BankAccount:
        account = self.db.get_bank_account(bank_account_id)
        if account is None:
            raise NotFoundError(not_found("Bank account", bank_account_id))
        return account

    def create_bank_account(
        self,
        bank_id: int,
        account_number: str,
        name: str,
        kind_of_account: Optional[str] = None,
        card_number: Optional[str] = None,
        iban: Optional[str] = None,
        is_active: bool = True,
        starting_amount=Decimal("0"),
        starting_date: Optional[date] = None,
    ) -> int:
        """Create a bank account and its handler detail.

        The detail is titled "<name> - <account number>" and receives the next
        free code from the bank account series.

        Returns:
            Bank account ID

        Raises:
            NotFoundError: If the bank does not exist
            ConflictError: If the account number is already registered
            NoCodesAvailableError: If no detail code is free
        """
        if self.db.get_bank(bank_id) is None:
            raise NotFoundError(not_found("Bank", bank_id))
        account_number = _required(account_number, "Account number")
        name = _required(name, "Account name")
        if self.db.get_bank_account_by_number(account_number) is not None:
            raise ConflictError(f"Bank account number '{account_number}' already exists")
        starting_amount = to_amount(starting_amount, "starting amount")

        def create_owner(detail_id: int, _code: str) -> int:
            return self.db.create_bank_account(
                bank_id=bank_id,
                account_number=account_number,
                name=name,
                handler_detail_id=detail_id,
                kind_of_account=kind_of_account,
                card_number=card_number,
                iban=iban,
                is_active=is_active,
                starting_amount=starting_amount,
                starting_date=starting_date,
            )

        with self.db.transaction():
            return self._create_with_handler(
                InstrumentClass.BANK_ACCOUNT, bank_account_title(name, account_number), create_owner
            )

    def get_bank_account(self, bank_account_id: int) -> Optional[BankAccount]:
        return self.db.get_bank_account(bank_account_id)

    def list_bank_accounts(self, bank_id: Optional[int] = None) -> list[BankAccount]:
        return self.db.list_bank_accounts(bank_id=bank_id)

    def update_bank_account(self, bank_account_id: int, **changes: Any) -> None:
        """Update a bank account and keep its handler detail in sync.

        Raises:
            NotFoundError: If the account or a new bank does not exist
            ConflictError: If the new account number is taken
        """
        account = self._require_bank_account(bank_account_id)
        allowed = {
            "bank_id",
            "account_number",
            "name",
            "kind_of_account",
            "card_number",
            "iban",
            "is_active",
            "starting_amount",
            "starting_date",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown bank account fields: {', '.join(sorted(unknown))}")
        if "bank_id" in changes and self.db.get_bank(changes["bank_id"]) is None:
            raise NotFoundError(not_found("Bank", changes["bank_id"]))
        if "name" in changes:
            changes["name"] = _required(changes["name"], "Account name")
        if "account_number" in changes:
            changes["account_number"] = _required(changes["account_number"], "Account number")
            existing = self.db.get_bank_account_by_number(changes["account_number"])
            if existing is not None and existing.id != bank_account_id:
                raise ConflictError(f"Bank account number '{changes['account_number']}' already exists")
        if "starting_amount" in changes:
            changes["starting_amount"] = to_amount(changes["starting_amount"], "starting amount")

        detail_fields: dict[str, Any] = {}
        name = changes.get("name", account.name)
        number = changes.get("account_number", account.account_number)
        if (name, number) != (account.name, account.account_number):
            detail_fields["title"] = bank_account_title(name, number)
        if "is_active" in changes:
            detail_fields["is_active"] = changes["is_active"]

        with self.db.transaction():
            self.db.update_bank_account(bank_account_id, **changes)
            self._sync_handler(account.handler_detail_id, **detail_fields)

    def delete_bank_account(self, bank_account_id: int) -> None:
        """Delete an unused bank account and release its handler detail.

        Raises:
            NotFoundError: If the account does not exist
            DependencyError: If card readers, checkbooks or documents use it
        """
        account = self._require_bank_account(bank_account_id)
        counts = self.db.count_bank_account_references(bank_account_id)
        if any(counts.values()):
            raise DependencyError(delete_blocked("bank account", bank_account_id, counts))
        with self.db.transaction():
            self.db.delete_bank_account(bank_account_id)
            self._release_handler(account.handler_detail_id)

    # Card readers

    def _require_card_reader(self, card_reader_id: int) -> CardReader:
        reader = self.db.get_card_reader(card_reader_id)
        if reader is None:
            raise NotFoundError(not_found("Card reader", card_reader_id))
        return reader

    def create_card_reader(
        self,
        bank_account_id: int,
        psp_provider: str,
        terminal_id: str,
        merchant_id: Optional[str] = None,
        device_serial: Optional[str] = None,
        is_active: bool = True,
        description: Optional[str] = None,
    ) -> int:
        """Create a card reader and its handler detail ("<psp> - <terminal>").

        Returns:
            Card reader ID
        """
        self._require_bank_account(bank_account_id)
        psp_provider = _required(psp_provider, "PSP provider")
        terminal_id = _required(terminal_id, "Terminal ID")

        def create_owner(detail_id: int, _code: str) -> int:
            return self.db.create_card_reader(
                bank_account_id=bank_account_id,
                psp_provider=psp_provider,
                terminal_id=terminal_id,
                handler_detail_id=detail_id,
                merchant_id=merchant_id,
                device_serial=device_serial,
                is_active=is_active,
                description=description,
            )

        with self.db.transaction():
            return self._create_with_handler(
                InstrumentClass.CARD_READER, card_reader_title(psp_provider, terminal_id), create_owner
            )

    def get_card_reader(self, card_reader_id: int) -> Optional[CardReader]:
        return self.db.get_card_reader(card_reader_id)

    def list_card_readers(self, bank_account_id: Optional[int] = None) -> list[CardReader]:
        return self.db.list_card_readers(bank_account_id=bank_account_id)

    def update_card_reader(self, card_reader_id: int, **changes: Any) -> None:
        """Update a card reader and re-title its handler detail when needed."""
        reader = self._require_card_reader(card_reader_id)
        allowed = {
            "bank_account_id",
            "psp_provider",
            "terminal_id",
            "merchant_id",
            "device_serial",
            "is_active",
            "description",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown card reader fields: {', '.join(sorted(unknown))}")
        if "bank_account_id" in changes:
            self._require_bank_account(changes["bank_account_id"])
        for field, label in (("psp_provider", "PSP provider"), ("terminal_id", "Terminal ID")):
            if field in changes:
                changes[field] = _required(changes[field], label)

        detail_fields: dict[str, Any] = {}
        psp = changes.get("psp_provider", reader.psp_provider)
        terminal = changes.get("terminal_id", reader.terminal_id)
        if (psp, terminal) != (reader.psp_provider, reader.terminal_id):
            detail_fields["title"] = card_reader_title(psp, terminal)
        if "is_active" in changes:
            detail_fields["is_active"] = changes["is_active"]

        with self.db.transaction():
            self.db.update_card_reader(card_reader_id, **changes)
            self._sync_handler(reader.handler_detail_id, **detail_fields)

    def delete_card_reader(self, card_reader_id: int) -> None:
        """Delete an unused card reader and release its handler detail."""
        reader = self._require_card_reader(card_reader_id)
        counts = self.db.count_card_reader_references(card_reader_id)
        if any(counts.values()):
            raise DependencyError(delete_blocked("card reader", card_reader_id, counts))
        with self.db.transaction():
            self.db.delete_card_reader(card_reader_id)
            self._release_handler(reader.handler_detail_id)

    # Cashboxes

    def _require_cashbox(self, cashbox_id: int) -> Cashbox:
        cashbox = self.db.get_cashbox(cashbox_id)
        if cashbox is None:
            raise NotFoundError(not_found("Cashbox", cashbox_id))
        return cashbox

    def create_cashbox(
        self,
        name: str,
        code: Optional[str] = None,
        is_active: bool = True,
        starting_amount=Decimal("0"),
        starting_date: Optional[date] = None,
    ) -> int:
        """Create a cashbox and its mirrored detail.

        Args:
            name: Cashbox name, also the detail title
            code: 4-digit code; the next free code of the cashbox series if omitted
            is_active: Whether the cashbox accepts new documents
            starting_amount: Opening balance
            starting_date: Opening balance date

        Returns:
            Cashbox ID

        Raises:
            ValidationError: If the code is not 4 digits
            DuplicateCodeError: If the code is used by a detail or cashbox
        """
        name = _required(name, "Cashbox name")
        if code is not None:
            code = code.strip()
            if not is_four_digit_code(code):
                raise ValidationError(f"Cashbox code '{code}' must be exactly 4 digits")
            if code in self.db.list_detail_codes() or code in self.db.list_cashbox_codes():
                raise DuplicateCodeError(code, "cashbox code")
        starting_amount = to_amount(starting_amount, "starting amount")

        def create_owner(detail_id: int, detail_code: str) -> int:
            return self.db.create_cashbox(
                code=detail_code,
                name=name,
                handler_detail_id=detail_id,
                is_active=is_active,
                starting_amount=starting_amount,
                starting_date=starting_date,
            )

        with self.db.transaction():
            return self._create_with_handler(InstrumentClass.CASHBOX, name, create_owner, code=code)

    def get_cashbox(self, cashbox_id: int) -> Optional[Cashbox]:
        return self.db.get_cashbox(cashbox_id)

    def list_cashboxes(self) -> list[Cashbox]:
        return self.db.list_cashboxes()

    def update_cashbox(
        self,
        cashbox_id: int,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        starting_amount=None,
        starting_date: Optional[date] = _UNSET,
    ) -> None:
        """Rename or (de)activate a cashbox; the mirrored detail follows."""
        cashbox = self._require_cashbox(cashbox_id)
        fields: dict[str, Any] = {}
        detail_fields: dict[str, Any] = {}
        if name is not None:
            fields["name"] = detail_fields["title"] = _required(name, "Cashbox name")
        if is_active is not None:
            fields["is_active"] = detail_fields["is_active"] = is_active
        if starting_amount is not None:
            fields["starting_amount"] = to_amount(starting_amount, "starting amount")
        if starting_date is not _UNSET:
            fields["starting_date"] = starting_date
        if not fields:
            return
        with self.db.transaction():
            self.db.update_cashbox(cashbox_id, **fields)
            self._sync_handler(cashbox.handler_detail_id, **detail_fields)

    def delete_cashbox(self, cashbox_id: int) -> None:
        """Delete an unused cashbox and release its mirrored detail."""
        cashbox = self._require_cashbox(cashbox_id)
        counts = self.db.count_cashbox_references(cashbox_id)
        if any(counts.values()):
            raise DependencyError(delete_blocked("cashbox", cashbox_id, counts))
        with self.db.transaction():
            self.db.delete_cashbox(cashbox_id)
            self._release_handler(cashbox.handler_detail_id)

    # Checkbooks

    def _require_checkbook(self, checkbook_id: int, for_update: bool = False) -> Checkbook:
        checkbook = self.db.get_checkbook(checkbook_id, for_update=for_update)
        if checkbook is None:
            raise NotFoundError(not_found("Checkbook", checkbook_id))
        return checkbook

    def create_checkbook(
        self,
        bank_account_id: int,
        start_number: int,
        page_count: int,
        series: Optional[str] = None,
        issue_date: Optional[date] = None,
        received_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> int:
        """Register a checkbook covering ``start_number`` .. ``start_number + page_count - 1``.

        Raises:
            NotFoundError: If the bank account does not exist
            ValidationError: If start_number is negative or page_count is not positive
        """
        self._require_bank_account(bank_account_id)
        if start_number < 0:
            raise ValidationError("Start number cannot be negative")
        if page_count <= 0:
            raise ValidationError("Page count must be greater than zero")
        checkbook_id = self.db.create_checkbook(
            bank_account_id=bank_account_id,
            start_number=start_number,
            page_count=page_count,
            series=series,
            issue_date=issue_date,
            received_date=received_date,
            description=description,
        )
        logger.info("Checkbook created", extra={"checkbook_id": checkbook_id})
        return checkbook_id

    def get_checkbook(self, checkbook_id: int) -> Optional[Checkbook]:
        return self.db.get_checkbook(checkbook_id)

    def list_checkbooks(self, bank_account_id: Optional[int] = None) -> list[Checkbook]:
        return self.db.list_checkbooks(bank_account_id=bank_account_id)

    def delete_checkbook(self, checkbook_id: int) -> None:
        """Delete a checkbook from which no check has been issued."""
        self._require_checkbook(checkbook_id)
        count = self.db.count_checkbook_checks(checkbook_id)
        if count:
            raise DependencyError(delete_blocked("checkbook", checkbook_id, {"check": count}))
        self.db.delete_checkbook(checkbook_id)

    def _check_page(self, checkbook: Checkbook, number: str, check_id: Optional[int] = None) -> None:
        """Validate a page number against a checkbook's range and issued checks."""
        if not number.isdigit():
            raise ValidationError(f"Check number '{number}' must contain only digits")
        page = int(number)
        if not checkbook.start_number <= page <= checkbook.last_number:
            raise OutOfRangeError(page, checkbook.start_number, checkbook.last_number)
        existing = self.db.get_check_by_number(checkbook.id, number)
        if existing is not None and existing.id != check_id:
            raise DuplicateCheckError(checkbook.id, number)

    def _exhaust_if_last_page(self, checkbook: Checkbook, number: str) -> None:
        if int(number) == checkbook.last_number and checkbook.status == CheckbookStatus.ACTIVE:
            require_transition(
                "checkbook", CHECKBOOK_TRANSITIONS, checkbook.status, CheckbookStatus.EXHAUSTED
            )
            self.db.update_checkbook(checkbook.id, status=CheckbookStatus.EXHAUSTED)
            logger.info("Checkbook exhausted", extra={"checkbook_id": checkbook.id})

    def _check_beneficiary(self, detail_id: Optional[int]) -> None:
        if detail_id is None:
            return
        detail = self.db.get_detail(detail_id)
        if detail is None:
            raise NotFoundError(not_found("Detail", detail_id))
        if not detail.is_active:
            raise ValidationError(f"Detail {detail.code} is inactive")

    def issue_check(
        self,
        checkbook_id: int,
        number,
        amount,
        issue_date: date,
        due_date: Optional[date] = None,
        beneficiary_detail_id: Optional[int] = None,
        beneficiary: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Issue an outgoing check from a checkbook page.

        Issuing the checkbook's last page marks the checkbook exhausted.

        Returns:
            Check ID

        Raises:
            NotFoundError: If the checkbook does not exist
            ConflictError: If the checkbook is not active
            OutOfRangeError: If the number is outside the checkbook's pages
            DuplicateCheckError: If the page was already issued
        """
        number = str(number).strip()
        amount = _positive_amount(amount)
        self._check_beneficiary(beneficiary_detail_id)
        with self.db.transaction():
            checkbook = self._require_checkbook(checkbook_id, for_update=True)
            if checkbook.status != CheckbookStatus.ACTIVE:
                raise ConflictError(f"Checkbook {checkbook_id} is {checkbook.status.value}")
            self._check_page(checkbook, number)
            try:
                check_id = self.db.create_check(
                    check_type=CheckType.OUTGOING,
                    number=number,
                    amount=amount,
                    issue_date=issue_date,
                    status=INITIAL_CHECK_STATUS[CheckType.OUTGOING],
                    checkbook_id=checkbook_id,
                    due_date=due_date,
                    beneficiary_detail_id=beneficiary_detail_id,
                    beneficiary=beneficiary,
                    notes=notes,
                )
            except DuplicateValueError:
                raise DuplicateCheckError(checkbook_id, number)
            self._exhaust_if_last_page(checkbook, number)
        logger.info("Check issued", extra={"check_id": check_id, "checkbook_id": checkbook_id})
        return check_id

    def create_incoming_check(
        self,
        number,
        amount,
        issue_date: date,
        due_date: Optional[date] = None,
        beneficiary_detail_id: Optional[int] = None,
        bank_name: Optional[str] = None,
        issuer: Optional[str] = None,
        beneficiary: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> int:
        """Register a check received from a customer (status created).

        Raises:
            ValidationError: If the number is not numeric, the amount is not
                positive or the beneficiary detail is inactive
            NotFoundError: If the beneficiary detail does not exist
        """
        number = str(number).strip()
        if not number.isdigit():
            raise ValidationError(f"Check number '{number}' must contain only digits")
        amount = _positive_amount(amount)
        self._check_beneficiary(beneficiary_detail_id)
        check_id = self.db.create_check(
            check_type=CheckType.INCOMING,
            number=number,
            amount=amount,
            issue_date=issue_date,
            status=INITIAL_CHECK_STATUS[CheckType.INCOMING],
            due_date=due_date,
            beneficiary_detail_id=beneficiary_detail_id,
            bank_name=bank_name,
            issuer=issuer,
            beneficiary=beneficiary,
            notes=notes,
        )
        logger.info("Incoming check registered", extra={"check_id": check_id})
        return check_id

    def get_check(self, check_id: int) -> Optional[Check]:
        return self.db.get_check(check_id)

    def list_checks(
        self,
        check_type: Optional[CheckType] = None,
        status: Optional[CheckStatus] = None,
        checkbook_id: Optional[int] = None,
    ) -> list[Check]:
        return self.db.list_checks(check_type=check_type, status=status, checkbook_id=checkbook_id)

    def update_check(self, check_id: int, **changes: Any) -> None:
        """Edit check details. Status is only changed by receipts and payments.

        Raises:
            NotFoundError: If the check does not exist
            ValidationError: If ``status`` or an unknown field is passed
            OutOfRangeError / DuplicateCheckError: If a checkbook check gets a bad number
        """
        check = self.db.get_check(check_id)
        if check is None:
            raise NotFoundError(not_found("Check", check_id))
        if "status" in changes:
            raise ValidationError("Check status cannot be edited directly")
        allowed = {
            "number",
            "amount",
            "issue_date",
            "due_date",
            "beneficiary_detail_id",
            "bank_name",
            "issuer",
            "beneficiary",
            "notes",
        }
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown check fields: {', '.join(sorted(unknown))}")
        if "amount" in changes:
            changes["amount"] = _positive_amount(changes["amount"])
        if "beneficiary_detail_id" in changes:
            self._check_beneficiary(changes["beneficiary_detail_id"])

        with self.db.transaction():
            if "number" in changes:
                changes["number"] = str(changes["number"]).strip()
                if check.checkbook_id is not None:
                    checkbook = self._require_checkbook(check.checkbook_id, for_update=True)
                    self._check_page(checkbook, changes["number"], check_id)
                    self._exhaust_if_last_page(checkbook, changes["number"])
                elif not changes["number"].isdigit():
                    raise ValidationError(f"Check number '{changes['number']}' must contain only digits")
            self.db.update_check(check_id, **changes)

    def delete_check(self, check_id: int) -> None:
        """Delete a check that has not entered a cashbox or been spent.

        Raises:
            NotFoundError: If the check does not exist
            ConflictError: If the check is not in its initial status
        """
        check = self.db.get_check(check_id)
        if check is None:
            raise NotFoundError(not_found("Check", check_id))
        if check.status != INITIAL_CHECK_STATUS[check.type]:
            raise ConflictError(
                f"Check {check.number} is {check.status.value} and cannot be deleted"
            )
        self.db.delete_check(check_id)

    def transition_check(
        self,
        check_id: int,
        target: CheckStatus,
        cashbox_id: Optional[int] = _UNSET,
    ) -> Check:
        """Move a check along its state machine, locking the row first.

        Args:
            check_id: Check to move
            target: New status
            cashbox_id: New cashbox stamp, left unchanged if omitted

        Returns:
            The check as it was before the change

        Raises:
            NotFoundError: If the check does not exist
            InvalidTransitionError: If the move is not allowed for this check type
        """
        check = self.db.get_check(check_id, for_update=True)
        if check is None:
            raise NotFoundError(not_found("Check", check_id))
        require_check_transition(check.type, check.status, target)
        fields: dict[str, Any] = {"status": target}
        if cashbox_id is not _UNSET:
            fields["cashbox_id"] = cashbox_id
        self.db.update_check(check_id, **fields)
        logger.info(
            "Check status changed",
            extra={"check_id": check_id, "from": check.status.value, "to": target.value},
        )
        return check

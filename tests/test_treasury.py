"""Tests for the treasury instrument service."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.config import BANK_DETAIL_START_CODE, CASHBOX_START_CODE
from ledgerkit.domain.entities import (
    CheckStatus,
    CheckType,
    CheckbookStatus,
    DetailKind,
    InstrumentClass,
)
from ledgerkit.domain.errors import (
    ConflictError,
    DependencyError,
    DuplicateCheckError,
    DuplicateCodeError,
    InvalidTransitionError,
    NoCodesAvailableError,
    NotFoundError,
    OutOfRangeError,
    ValidationError,
)
from ledgerkit.domain.settings import SettingsService
from ledgerkit.domain.treasury import TreasuryService


class TestHandlerDetails:
    """Tests for the system-managed details owned by instruments."""

    def test_bank_account_detail(self, catalog, bank_account):
        detail = catalog.get_detail(bank_account.handler_detail_id)
        assert detail.code == "6100"
        assert detail.title == "Operating - 0101-55"
        assert detail.kind == DetailKind.SYSTEM_MANAGED

    def test_codes_are_sequential_per_series(self, catalog, treasury, bank):
        first = treasury.create_bank_account(bank.id, "1", "A")
        second = treasury.create_bank_account(bank.id, "2", "B")
        codes = [
            catalog.get_detail(treasury.get_bank_account(a).handler_detail_id).code
            for a in (first, second)
        ]
        assert codes == ["6100", "6101"]

    def test_series_skips_user_detail_codes(self, catalog, treasury, bank):
        catalog.create_detail("6100", "Squatter")
        account_id = treasury.create_bank_account(bank.id, "1", "A")
        account = treasury.get_bank_account(account_id)
        assert catalog.get_detail(account.handler_detail_id).code == "6101"

    def test_collisions_on_every_attempt(self, catalog, treasury, bank, monkeypatch):
        catalog.create_detail("6100", "Squatter")
        monkeypatch.setattr(treasury, "suggest_code", lambda instrument: "6100")

        with pytest.raises(NoCodesAvailableError) as exc_info:
            treasury.create_bank_account(bank.id, "1", "A")

        assert exc_info.value.start == 6100
        assert treasury.list_bank_accounts() == []

    def test_card_reader_detail(self, catalog, card_reader):
        detail = catalog.get_detail(card_reader.handler_detail_id)
        assert detail.code == "6200"
        assert detail.title == "PayCo - T-100"

    def test_cashbox_detail_mirrors_cashbox(self, catalog, cashbox):
        assert cashbox.code == "6000"
        detail = catalog.get_detail(cashbox.handler_detail_id)
        assert detail.code == "6000"
        assert detail.title == "Front desk"

    def test_start_code_from_setting(self, temp_db, settings_service, bank):
        settings_service.set(BANK_DETAIL_START_CODE, value={"start": 7000})
        treasury = TreasuryService(temp_db, settings=settings_service)
        assert treasury.suggest_code(InstrumentClass.BANK_ACCOUNT) == "7000"

    def test_start_code_from_environment(self, temp_db):
        settings = SettingsService(temp_db, environ={CASHBOX_START_CODE: "3000"})
        treasury = TreasuryService(temp_db, settings=settings)
        assert treasury.start_code(InstrumentClass.CASHBOX) == 3000

    def test_cashbox_start_code_has_a_floor(self, temp_db):
        settings = SettingsService(temp_db, environ={CASHBOX_START_CODE: "5"})
        treasury = TreasuryService(temp_db, settings=settings)
        assert treasury.start_code(InstrumentClass.CASHBOX) == 1000

    def test_invalid_environment_start_code(self, temp_db):
        settings = SettingsService(temp_db, environ={CASHBOX_START_CODE: "soon"})
        treasury = TreasuryService(temp_db, settings=settings)
        with pytest.raises(ValidationError):
            treasury.suggest_code(InstrumentClass.CASHBOX)

    def test_rename_syncs_detail_title(self, catalog, treasury, bank_account, card_reader, cashbox):
        treasury.update_bank_account(bank_account.id, name="Payroll")
        treasury.update_card_reader(card_reader.id, terminal_id="T-200")
        treasury.update_cashbox(cashbox.id, name="Back office")

        assert catalog.get_detail(bank_account.handler_detail_id).title == "Payroll - 0101-55"
        assert catalog.get_detail(card_reader.handler_detail_id).title == "PayCo - T-200"
        assert catalog.get_detail(cashbox.handler_detail_id).title == "Back office"

    def test_deactivate_syncs_detail(self, catalog, treasury, cashbox):
        treasury.update_cashbox(cashbox.id, is_active=False)
        assert treasury.get_cashbox(cashbox.id).is_active is False
        assert catalog.get_detail(cashbox.handler_detail_id).is_active is False

    def test_delete_removes_unreferenced_detail(self, catalog, treasury, cashbox):
        treasury.delete_cashbox(cashbox.id)
        assert treasury.get_cashbox(cashbox.id) is None
        assert catalog.get_detail(cashbox.handler_detail_id) is None

    def test_delete_deactivates_referenced_detail(self, catalog, treasury, bank, chart):
        account_id = treasury.create_bank_account(bank.id, "77", "Spare")
        account = treasury.get_bank_account(account_id)
        catalog.link_detail(account.handler_detail_id, chart["110102"])

        treasury.delete_bank_account(account_id)

        detail = catalog.get_detail(account.handler_detail_id)
        assert detail is not None
        assert detail.is_active is False


class TestBanksAndAccounts:
    def test_bank_crud(self, treasury):
        bank_id = treasury.create_bank("City Bank", city="Springfield")
        treasury.update_bank(bank_id, branch_name="Main street")
        bank = treasury.get_bank(bank_id)
        assert bank.branch_name == "Main street"
        assert bank.city == "Springfield"

        treasury.delete_bank(bank_id)
        assert treasury.get_bank(bank_id) is None

    def test_bank_name_required(self, treasury):
        with pytest.raises(ValidationError):
            treasury.create_bank("   ")

    def test_delete_bank_with_accounts_blocked(self, treasury, bank_account):
        with pytest.raises(DependencyError, match="bank account"):
            treasury.delete_bank(bank_account.bank_id)

    def test_duplicate_account_number(self, treasury, bank, bank_account):
        with pytest.raises(ConflictError):
            treasury.create_bank_account(bank.id, "0101-55", "Copy")

    def test_account_for_missing_bank(self, treasury):
        with pytest.raises(NotFoundError):
            treasury.create_bank_account(99, "1", "Ghost")

    def test_unknown_update_field(self, treasury, bank_account):
        with pytest.raises(ValidationError):
            treasury.update_bank_account(bank_account.id, colour="blue")

    def test_delete_account_with_card_reader_blocked(self, treasury, bank_account, card_reader):
        with pytest.raises(DependencyError, match="card reader"):
            treasury.delete_bank_account(bank_account.id)

    def test_list_accounts_by_bank(self, treasury, bank, bank_account):
        other_bank = treasury.create_bank("Other Bank")
        treasury.create_bank_account(other_bank, "9", "Elsewhere")
        assert [a.id for a in treasury.list_bank_accounts(bank_id=bank.id)] == [bank_account.id]


class TestCashboxes:
    def test_explicit_code(self, treasury):
        cashbox_id = treasury.create_cashbox("Safe", code="1234")
        assert treasury.get_cashbox(cashbox_id).code == "1234"

    @pytest.mark.parametrize("code", ["12", "12345", "abcd"])
    def test_code_must_be_four_digits(self, treasury, code):
        with pytest.raises(ValidationError):
            treasury.create_cashbox("Safe", code=code)

    def test_code_must_be_free(self, treasury, customer):
        with pytest.raises(DuplicateCodeError):
            treasury.create_cashbox("Safe", code=customer.code)

    def test_next_code_follows_series(self, treasury, cashbox):
        second = treasury.create_cashbox("Second desk")
        assert treasury.get_cashbox(second).code == "6001"


class TestChecks:
    """Tests for checkbooks, check registration and the check state machine."""

    def test_checkbook_range(self, checkbook):
        assert checkbook.start_number == 1001
        assert checkbook.last_number == 1010
        assert checkbook.status == CheckbookStatus.ACTIVE

    @pytest.mark.parametrize("start,pages", [(-1, 10), (1, 0)])
    def test_invalid_checkbook(self, treasury, bank_account, start, pages):
        with pytest.raises(ValidationError):
            treasury.create_checkbook(bank_account.id, start, pages)

    def test_issue_check(self, treasury, checkbook, supplier):
        check_id = treasury.issue_check(
            checkbook.id, "1003", "250.00", date(2024, 4, 1), beneficiary_detail_id=supplier.id
        )
        check = treasury.get_check(check_id)
        assert check.type == CheckType.OUTGOING
        assert check.status == CheckStatus.ISSUED
        assert check.amount == Decimal("250.00")
        assert check.checkbook_id == checkbook.id

    @pytest.mark.parametrize("number", ["1000", "1011"])
    def test_issue_out_of_range_creates_nothing(self, treasury, checkbook, number):
        with pytest.raises(OutOfRangeError):
            treasury.issue_check(checkbook.id, number, "10", date(2024, 4, 1))
        assert treasury.list_checks() == []

    def test_issue_duplicate_page(self, treasury, checkbook):
        treasury.issue_check(checkbook.id, "1001", "10", date(2024, 4, 1))
        with pytest.raises(DuplicateCheckError):
            treasury.issue_check(checkbook.id, "1001", "20", date(2024, 4, 2))
        assert len(treasury.list_checks(checkbook_id=checkbook.id)) == 1

    def test_issue_requires_positive_amount(self, treasury, checkbook):
        with pytest.raises(ValidationError):
            treasury.issue_check(checkbook.id, "1001", "0", date(2024, 4, 1))

    def test_last_page_exhausts_checkbook(self, treasury, checkbook):
        treasury.issue_check(checkbook.id, "1010", "10", date(2024, 4, 1))
        assert treasury.get_checkbook(checkbook.id).status == CheckbookStatus.EXHAUSTED

        with pytest.raises(ConflictError):
            treasury.issue_check(checkbook.id, "1002", "10", date(2024, 4, 2))

    def test_delete_checkbook_with_checks_blocked(self, treasury, checkbook):
        treasury.issue_check(checkbook.id, "1001", "10", date(2024, 4, 1))
        with pytest.raises(DependencyError, match="check"):
            treasury.delete_checkbook(checkbook.id)

    def test_incoming_check(self, incoming_check, customer):
        assert incoming_check.type == CheckType.INCOMING
        assert incoming_check.status == CheckStatus.CREATED
        assert incoming_check.beneficiary_detail_id == customer.id
        assert incoming_check.checkbook_id is None

    def test_incoming_check_number_must_be_numeric(self, treasury):
        with pytest.raises(ValidationError):
            treasury.create_incoming_check("AB-1", "10", date(2024, 1, 1))

    def test_inactive_beneficiary_rejected(self, treasury, catalog, customer):
        catalog.update_detail(customer.id, is_active=False)
        with pytest.raises(ValidationError, match="inactive"):
            treasury.create_incoming_check("1", "10", date(2024, 1, 1), beneficiary_detail_id=customer.id)

    def test_status_cannot_be_edited(self, treasury, incoming_check):
        with pytest.raises(ValidationError):
            treasury.update_check(incoming_check.id, status=CheckStatus.SPENT)

    def test_update_check_fields(self, treasury, incoming_check):
        treasury.update_check(incoming_check.id, amount="75", notes="Post-dated")
        check = treasury.get_check(incoming_check.id)
        assert check.amount == Decimal("75")
        assert check.notes == "Post-dated"

    def test_renumber_outgoing_check_within_range(self, treasury, checkbook):
        check_id = treasury.issue_check(checkbook.id, "1001", "10", date(2024, 4, 1))
        with pytest.raises(OutOfRangeError):
            treasury.update_check(check_id, number="2000")
        treasury.update_check(check_id, number="1005")
        assert treasury.get_check(check_id).number == "1005"

    def test_incoming_transitions(self, treasury, incoming_check, cashbox):
        treasury.transition_check(incoming_check.id, CheckStatus.INCASHBOX, cashbox_id=cashbox.id)
        check = treasury.get_check(incoming_check.id)
        assert check.status == CheckStatus.INCASHBOX
        assert check.cashbox_id == cashbox.id

        treasury.transition_check(incoming_check.id, CheckStatus.SPENT)
        treasury.transition_check(incoming_check.id, CheckStatus.INCASHBOX)
        previous = treasury.transition_check(incoming_check.id, CheckStatus.CREATED, cashbox_id=None)

        assert previous.status == CheckStatus.INCASHBOX
        check = treasury.get_check(incoming_check.id)
        assert check.status == CheckStatus.CREATED
        assert check.cashbox_id is None

    def test_incoming_cannot_skip_cashbox(self, treasury, incoming_check):
        with pytest.raises(InvalidTransitionError):
            treasury.transition_check(incoming_check.id, CheckStatus.SPENT)
        assert treasury.get_check(incoming_check.id).status == CheckStatus.CREATED

    def test_outgoing_transitions(self, treasury, checkbook):
        check_id = treasury.issue_check(checkbook.id, "1001", "10", date(2024, 4, 1))
        treasury.transition_check(check_id, CheckStatus.SPENT)
        treasury.transition_check(check_id, CheckStatus.ISSUED)
        with pytest.raises(InvalidTransitionError):
            treasury.transition_check(check_id, CheckStatus.INCASHBOX)

    def test_delete_check_only_in_initial_status(self, treasury, incoming_check, cashbox):
        treasury.transition_check(incoming_check.id, CheckStatus.INCASHBOX, cashbox_id=cashbox.id)
        with pytest.raises(ConflictError):
            treasury.delete_check(incoming_check.id)

        treasury.transition_check(incoming_check.id, CheckStatus.CREATED, cashbox_id=None)
        treasury.delete_check(incoming_check.id)
        assert treasury.get_check(incoming_check.id) is None

    def test_cashbox_delete_blocked_by_held_check(self, treasury, incoming_check, cashbox):
        treasury.transition_check(incoming_check.id, CheckStatus.INCASHBOX, cashbox_id=cashbox.id)
        with pytest.raises(DependencyError):
            treasury.delete_cashbox(cashbox.id)

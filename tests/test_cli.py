"""Tests for individual CLI commands."""

from datetime import date
from decimal import Decimal

from ledgerkit.cli.main import cli
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.entities import CheckStatus, DocumentKind, DocumentLine, InstrumentType


def _invoke(cli_runner, temp_db, *args):
    return cli_runner.invoke(cli, ["--db-path", temp_db.database_path, *args])


class TestCodeCommands:
    def test_create_and_list(self, cli_runner, temp_db):
        result = _invoke(cli_runner, temp_db, "code", "create", "11", "Assets", "--kind", "group")
        assert result.exit_code == 0
        assert "Created group code 11 'Assets' (ID: 1)" in result.output

        result = _invoke(cli_runner, temp_db, "code", "list")
        assert result.exit_code == 0
        assert "Assets" in result.output

    def test_invalid_parent_fails(self, cli_runner, temp_db):
        result = _invoke(cli_runner, temp_db, "code", "create", "1101", "Cash", "--kind", "general")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_delete_blocked_by_children(self, cli_runner, temp_db, chart):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "code", "delete", "1101", "--yes")
        assert result.exit_code == 1
        assert "child code" in result.output


class TestDetailCommands:
    def test_suggest_code(self, cli_runner, temp_db, customer):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "detail", "suggest-code")
        assert result.exit_code == 0
        assert "0002" in result.output

    def test_invalid_code(self, cli_runner, temp_db):
        result = _invoke(cli_runner, temp_db, "detail", "create", "Bad", "--code", "12345")
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestYearCommands:
    def test_open_next(self, cli_runner, temp_db, fiscal_years, open_year):
        fiscal_years.close(open_year.id)
        temp_db.disconnect()

        result = _invoke(cli_runner, temp_db, "year", "open-next", str(open_year.id), "--name", "FY2025")

        assert result.exit_code == 0
        assert "Opened fiscal year 'FY2025' 2025-01-01 .. 2025-12-31" in result.output

    def test_open_next_requires_closed_year(self, cli_runner, temp_db, open_year):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "year", "open-next", str(open_year.id))
        assert result.exit_code == 1
        assert "must be closed" in result.output


class TestJournalCommands:
    def test_create_post_show(self, cli_runner, temp_db, chart, open_year, customer):
        temp_db.disconnect()
        result = _invoke(
            cli_runner,
            temp_db,
            "journal",
            "create",
            "--date",
            "2024-02-01",
            "--debit",
            "110101=100@0001",
            "--credit",
            "410101=100",
            "--post",
        )
        assert result.exit_code == 0
        assert "Created posted journal 1" in result.output

        result = _invoke(cli_runner, temp_db, "journal", "show", "1")
        assert result.exit_code == 0
        assert "110101" in result.output
        assert "410101" in result.output

    def test_unbalanced(self, cli_runner, temp_db, chart, open_year):
        temp_db.disconnect()
        result = _invoke(
            cli_runner, temp_db, "journal", "create", "--debit", "110101=100", "--credit", "410101=90"
        )
        assert result.exit_code == 1
        assert "unbalanced" in result.output

    def test_requires_open_year(self, cli_runner, temp_db, chart):
        temp_db.disconnect()
        result = _invoke(
            cli_runner, temp_db, "journal", "create", "--debit", "110101=1", "--credit", "410101=1"
        )
        assert result.exit_code == 1
        assert "No fiscal year is open" in result.output

    def test_malformed_line(self, cli_runner, temp_db, chart, open_year):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "journal", "create", "--debit", "110101:100")
        assert result.exit_code == 1
        assert "expected CODE=AMOUNT" in result.output


class TestTreasuryCommands:
    def test_bank_account_gets_handler_detail(self, cli_runner, temp_db, bank):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "treasury", "account", "create", str(bank.id), "0101-55", "Operating")
        assert result.exit_code == 0
        assert "detail 6100" in result.output

    def test_issue_out_of_range(self, cli_runner, temp_db, checkbook):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "treasury", "check", "issue", str(checkbook.id), "2000", "10")
        assert result.exit_code == 1
        assert "outside checkbook range" in result.output

    def test_issue_check(self, cli_runner, temp_db, checkbook, supplier):
        temp_db.disconnect()
        result = _invoke(
            cli_runner,
            temp_db,
            "treasury",
            "check",
            "issue",
            str(checkbook.id),
            "1001",
            "75.50",
            "--date",
            "2024-04-01",
            "--to",
            supplier.code,
        )
        assert result.exit_code == 0
        assert "Issued check 1001" in result.output

        result = _invoke(cli_runner, temp_db, "treasury", "check", "list", "--status", "issued")
        assert "1001" in result.output


class TestDocumentCommands:
    def test_receipt_requires_cashbox_for_cash(self, cli_runner, temp_db, open_year, customer):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "receipt", "create", customer.code, "--cash", "10")
        assert result.exit_code == 1
        assert "cashbox" in result.output

    def test_total_mismatch(self, cli_runner, temp_db, open_year, customer, cashbox):
        temp_db.disconnect()
        result = _invoke(
            cli_runner,
            temp_db,
            "receipt",
            "create",
            customer.code,
            "--cashbox",
            str(cashbox.id),
            "--cash",
            "10",
            "--total",
            "12",
        )
        assert result.exit_code == 1
        assert "does not match" in result.output

    def test_card_item_format(self, cli_runner, temp_db, open_year, customer):
        temp_db.disconnect()
        result = _invoke(cli_runner, temp_db, "receipt", "create", customer.code, "--card", "10")
        assert result.exit_code == 1
        assert "AMOUNT@ID" in result.output

    def test_payment_post_and_repost(
        self, cli_runner, temp_db, posting_slots, open_year, supplier, bank_account
    ):
        temp_db.disconnect()
        result = _invoke(
            cli_runner,
            temp_db,
            "payment",
            "create",
            supplier.code,
            "--date",
            "2024-05-01",
            "--transfer",
            f"250@{bank_account.id}",
        )
        assert result.exit_code == 0
        assert "Saved payment 1 (ID: 1) total 250.00" in result.output

        result = _invoke(cli_runner, temp_db, "payment", "post", "1")
        assert result.exit_code == 0
        assert "Posted payment 1 as journal 1" in result.output

        result = _invoke(cli_runner, temp_db, "payment", "post", "1")
        assert result.exit_code == 1
        assert "already been posted" in result.output

    def test_delete_receipt_releases_check(
        self, cli_runner, temp_db, documents, open_year, customer, cashbox, incoming_check
    ):
        receipt_id = documents.create_receipt(
            date(2024, 3, 5),
            customer.id,
            [DocumentLine(instrument_type=InstrumentType.CHECK, amount=Decimal("50"), check_id=incoming_check.id)],
            cashbox_id=cashbox.id,
        )
        temp_db.disconnect()

        result = _invoke(cli_runner, temp_db, "receipt", "delete", str(receipt_id))
        assert result.exit_code == 0

        db = create_sqlite_database(database_path=temp_db.database_path)
        try:
            assert db.get_document(DocumentKind.RECEIPT, receipt_id) is None
            assert db.get_check(incoming_check.id).status == CheckStatus.CREATED
        finally:
            db.disconnect()

    def test_post_without_mapping_hints_at_check_slots(
        self, cli_runner, temp_db, documents, chart, open_year, customer, cashbox
    ):
        documents.create_receipt(
            date(2024, 3, 5),
            customer.id,
            [DocumentLine(instrument_type=InstrumentType.CASH, amount=Decimal("10"))],
            cashbox_id=cashbox.id,
        )
        temp_db.disconnect()

        result = _invoke(cli_runner, temp_db, "receipt", "post", "1")

        assert result.exit_code == 1
        assert "No code mapping configured" in result.output
        assert "check-slots" in result.output


class TestSettingCommands:
    def test_check_slots_reports_missing(self, cli_runner, temp_db):
        result = _invoke(cli_runner, temp_db, "setting", "check-slots")
        assert result.exit_code == 1
        assert "(not configured)" in result.output

    def test_set_json_value(self, cli_runner, temp_db):
        result = _invoke(cli_runner, temp_db, "setting", "set", "BANK_DETAIL_START_CODE", "--value", "7100")
        assert result.exit_code == 0

        result = _invoke(cli_runner, temp_db, "setting", "list")
        assert "BANK_DETAIL_START_CODE" in result.output
        assert "7100" in result.output


def test_log_level_emits_json(cli_runner, temp_db):
    result = _invoke(
        cli_runner,
        temp_db,
        "--log-level",
        "INFO",
        "year",
        "create",
        "FY2024",
        "--start",
        "2024-01-01",
        "--end",
        "2024-12-31",
    )
    assert result.exit_code == 0
    assert "Fiscal year created" in result.output

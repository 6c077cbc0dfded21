"""Shared pytest fixtures for ledgerkit tests."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.config import LedgerConfig
from ledgerkit.database.factories import create_sqlite_database
from ledgerkit.domain.code_catalog import CodeCatalogService
from ledgerkit.domain.documents import TreasuryDocumentService
from ledgerkit.domain.entities import CodeKind, CodeSlot
from ledgerkit.domain.fiscal_year import FiscalYearService
from ledgerkit.domain.journal import JournalService
from ledgerkit.domain.posting import PostingEngine
from ledgerkit.domain.settings import SettingsService
from ledgerkit.domain.treasury import TreasuryService
from ledgerkit.logging_config import reset_logging

# (code, title, kind, parent code)
CHART = [
    ("11", "Current assets", CodeKind.GROUP, None),
    ("1101", "Cash and banks", CodeKind.GENERAL, "11"),
    ("110101", "Cash on hand", CodeKind.SPECIFIC, "1101"),
    ("110102", "Bank balances", CodeKind.SPECIFIC, "1101"),
    ("110103", "Card settlements", CodeKind.SPECIFIC, "1101"),
    ("110104", "Checks on hand", CodeKind.SPECIFIC, "1101"),
    ("12", "Receivables", CodeKind.GROUP, None),
    ("1201", "Trade receivables", CodeKind.GENERAL, "12"),
    ("120101", "Customers", CodeKind.SPECIFIC, "1201"),
    ("21", "Current liabilities", CodeKind.GROUP, None),
    ("2101", "Trade payables", CodeKind.GENERAL, "21"),
    ("210101", "Checks payable", CodeKind.SPECIFIC, "2101"),
    ("210102", "Suppliers", CodeKind.SPECIFIC, "2101"),
    ("41", "Revenue", CodeKind.GROUP, None),
    ("4101", "Sales", CodeKind.GENERAL, "41"),
    ("410101", "Product sales", CodeKind.SPECIFIC, "4101"),
]

SLOT_CODES = {
    CodeSlot.CASH_RECEIPT: "110101",
    CodeSlot.CARD_RECEIPT: "110103",
    CodeSlot.TRANSFER_RECEIPT: "110102",
    CodeSlot.CHECK_RECEIPT: "110104",
    CodeSlot.COUNTERPARTY_RECEIPT: "120101",
    CodeSlot.CASH_PAYMENT: "110101",
    CodeSlot.CARD_PAYMENT: "110102",
    CodeSlot.TRANSFER_PAYMENT: "110102",
    CodeSlot.CHECK_PAYMENT: "210101",
    CodeSlot.COUNTERPARTY_PAYMENT: "210102",
}


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture(autouse=True)
def clean_logging():
    """Leave the ledgerkit logger hierarchy as we found it."""
    yield
    reset_logging()


@pytest.fixture
def config():
    """Configuration without environment overrides."""
    return LedgerConfig()


@pytest.fixture
def catalog(temp_db):
    """Create a CodeCatalogService with a temporary database."""
    return CodeCatalogService(temp_db)


@pytest.fixture
def settings_service(temp_db):
    """Create a SettingsService that ignores the process environment."""
    return SettingsService(temp_db, environ={})


@pytest.fixture
def fiscal_years(temp_db):
    """Create a FiscalYearService with a temporary database."""
    return FiscalYearService(temp_db)


@pytest.fixture
def journals(temp_db, config):
    """Create a JournalService with a temporary database."""
    return JournalService(temp_db, config)


@pytest.fixture
def treasury(temp_db, config, settings_service):
    """Create a TreasuryService with a temporary database."""
    return TreasuryService(temp_db, config, settings_service)


@pytest.fixture
def documents(temp_db, config, treasury):
    """Create a TreasuryDocumentService with a temporary database."""
    return TreasuryDocumentService(temp_db, config, treasury)


@pytest.fixture
def posting(temp_db, config, settings_service, journals):
    """Create a PostingEngine with a temporary database."""
    return PostingEngine(temp_db, config, settings_service, journals)


@pytest.fixture
def chart(catalog):
    """Seed a small chart of accounts. Returns code -> node ID."""
    ids = {}
    for code, title, kind, parent in CHART:
        ids[code] = catalog.create_node(
            code=code, title=title, kind=kind, parent_id=ids[parent] if parent else None
        )
    return ids


@pytest.fixture
def posting_slots(chart, settings_service):
    """Point every posting slot setting at a code of the sample chart."""
    for slot, code in SLOT_CODES.items():
        settings_service.set(slot.value, name=slot.name, special_id=chart[code])
    return chart


@pytest.fixture
def open_year(fiscal_years):
    """Create and open FY2024."""
    year_id = fiscal_years.create("FY2024", date(2024, 1, 1), date(2024, 12, 31))
    fiscal_years.open(year_id)
    return fiscal_years.get(year_id)


@pytest.fixture
def customer(catalog):
    """User-defined detail for a customer."""
    detail_id = catalog.create_detail(code="0001", title="Acme Ltd")
    return catalog.get_detail(detail_id)


@pytest.fixture
def supplier(catalog):
    """User-defined detail for a supplier."""
    detail_id = catalog.create_detail(code="0002", title="Widget Supplies")
    return catalog.get_detail(detail_id)


@pytest.fixture
def bank(treasury):
    bank_id = treasury.create_bank("First Bank", branch_number="042")
    return treasury.get_bank(bank_id)


@pytest.fixture
def bank_account(treasury, bank):
    """Bank account with its handler detail (code 6100)."""
    account_id = treasury.create_bank_account(bank.id, "0101-55", "Operating")
    return treasury.get_bank_account(account_id)


@pytest.fixture
def card_reader(treasury, bank_account):
    reader_id = treasury.create_card_reader(bank_account.id, "PayCo", "T-100")
    return treasury.get_card_reader(reader_id)


@pytest.fixture
def cashbox(treasury):
    """Cashbox with its handler detail (code 6000)."""
    cashbox_id = treasury.create_cashbox("Front desk")
    return treasury.get_cashbox(cashbox_id)


@pytest.fixture
def checkbook(treasury, bank_account):
    """Ten-page checkbook numbered 1001..1010."""
    checkbook_id = treasury.create_checkbook(bank_account.id, 1001, 10)
    return treasury.get_checkbook(checkbook_id)


@pytest.fixture
def incoming_check(treasury, customer):
    check_id = treasury.create_incoming_check(
        "556677", Decimal("50"), date(2024, 3, 1), beneficiary_detail_id=customer.id
    )
    return treasury.get_check(check_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()

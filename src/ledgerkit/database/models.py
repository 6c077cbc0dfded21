"""SQLAlchemy models for the ledgerkit database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    create_engine,
    event,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(18, 4)

# Numbers of documents saved without a fiscal year share one namespace
_NO_YEAR = text("fiscal_year_id IS NULL")


def _now() -> datetime:
    return datetime.now(UTC)


class CodeNode(Base):
    """Chart-of-accounts node model (group, general, specific)."""

    __tablename__ = "code_nodes"

    id = Column(Integer, primary_key=True)
    parent_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=True)
    code = Column(String, unique=True, nullable=False)
    title = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    nature = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    parent = relationship("CodeNode", remote_side=[id], backref="children")


class Detail(Base):
    """Global 4-digit detail model."""

    __tablename__ = "details"

    id = Column(Integer, primary_key=True)
    code = Column(String(4), unique=True, nullable=False)
    title = Column(String, nullable=False)
    kind = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)

    links = relationship("DetailLink", back_populates="detail", cascade="all, delete-orphan")


class DetailLink(Base):
    """Link between a detail and a leaf code node."""

    __tablename__ = "detail_links"

    id = Column(Integer, primary_key=True)
    detail_id = Column(Integer, ForeignKey("details.id"), nullable=False)
    level_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, nullable=True)

    __table_args__ = (UniqueConstraint("detail_id", "level_id", name="uq_detail_link"),)

    detail = relationship("Detail", back_populates="links")


class FiscalYear(Base):
    """Fiscal year model."""

    __tablename__ = "fiscal_years"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_closed = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class Journal(Base):
    """Journal header model."""

    __tablename__ = "journals"

    id = Column(Integer, primary_key=True)
    fiscal_year_id = Column(Integer, ForeignKey("fiscal_years.id"), nullable=False)
    ref_no = Column(String, nullable=True)
    code = Column(Integer, nullable=True)
    date = Column(Date, nullable=False)
    description = Column(String, nullable=True)
    status = Column(String, nullable=False)
    source = Column(String, nullable=False, default="manual")
    reversal_of_id = Column(Integer, ForeignKey("journals.id"), nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "ref_no", name="uq_journal_ref_no"),
        UniqueConstraint("fiscal_year_id", "code", name="uq_journal_code"),
    )

    items = relationship(
        "JournalItem",
        back_populates="journal",
        cascade="all, delete-orphan",
        order_by="JournalItem.id",
    )


class JournalItem(Base):
    """Journal line model."""

    __tablename__ = "journal_items"

    id = Column(Integer, primary_key=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=False)
    code_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=False)
    party_id = Column(Integer, nullable=True)
    detail_id = Column(Integer, ForeignKey("details.id"), nullable=True)
    debit = Column(MONEY, default=0, nullable=False)
    credit = Column(MONEY, default=0, nullable=False)
    description = Column(String, nullable=True)

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_item_non_negative"),
        CheckConstraint("NOT (debit > 0 AND credit > 0)", name="ck_journal_item_one_side"),
    )

    journal = relationship("Journal", back_populates="items")


class Bank(Base):
    """Bank model."""

    __tablename__ = "banks"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    branch_number = Column(String, nullable=True)
    branch_name = Column(String, nullable=True)
    city = Column(String, nullable=True)


class BankAccount(Base):
    """Bank account model."""

    __tablename__ = "bank_accounts"

    id = Column(Integer, primary_key=True)
    bank_id = Column(Integer, ForeignKey("banks.id"), nullable=False)
    account_number = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    kind_of_account = Column(String, nullable=True)
    card_number = Column(String, nullable=True)
    iban = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    starting_amount = Column(MONEY, default=0, nullable=False)
    starting_date = Column(Date, nullable=True)
    handler_detail_id = Column(Integer, ForeignKey("details.id"), nullable=True)


class CardReader(Base):
    """Card reader (POS terminal) model."""

    __tablename__ = "card_readers"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False)
    psp_provider = Column(String, nullable=False)
    terminal_id = Column(String, nullable=False)
    merchant_id = Column(String, nullable=True)
    device_serial = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    description = Column(String, nullable=True)
    handler_detail_id = Column(Integer, ForeignKey("details.id"), nullable=True)


class Cashbox(Base):
    """Cashbox model."""

    __tablename__ = "cashboxes"

    id = Column(Integer, primary_key=True)
    code = Column(String(4), unique=True, nullable=False)
    name = Column(String, nullable=False)
    handler_detail_id = Column(Integer, ForeignKey("details.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    starting_amount = Column(MONEY, default=0, nullable=False)
    starting_date = Column(Date, nullable=True)


class Checkbook(Base):
    """Checkbook model."""

    __tablename__ = "checkbooks"

    id = Column(Integer, primary_key=True)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=False)
    series = Column(String, nullable=True)
    start_number = Column(Integer, nullable=False)
    page_count = Column(Integer, nullable=False)
    issue_date = Column(Date, nullable=True)
    received_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")
    description = Column(String, nullable=True)

    __table_args__ = (CheckConstraint("page_count > 0", name="ck_checkbook_page_count"),)


class Check(Base):
    """Check model (incoming or outgoing)."""

    __tablename__ = "checks"

    id = Column(Integer, primary_key=True)
    type = Column(String, nullable=False)
    checkbook_id = Column(Integer, ForeignKey("checkbooks.id"), nullable=True)
    number = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    status = Column(String, nullable=False)
    beneficiary_detail_id = Column(Integer, ForeignKey("details.id"), nullable=True)
    cashbox_id = Column(Integer, ForeignKey("cashboxes.id"), nullable=True)
    bank_name = Column(String, nullable=True)
    issuer = Column(String, nullable=True)
    beneficiary = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    __table_args__ = (UniqueConstraint("checkbook_id", "number", name="uq_checkbook_number"),)


class _DocumentColumns:
    """Columns shared by receipt and payment headers."""

    id = Column(Integer, primary_key=True)
    number = Column(String, nullable=False)
    status = Column(String, nullable=False, default="draft")
    date = Column(Date, nullable=False)
    description = Column(String, nullable=True)
    total_amount = Column(MONEY, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)


class _DocumentItemColumns:
    """Columns shared by receipt and payment items."""

    id = Column(Integer, primary_key=True)
    instrument_type = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    reference = Column(String, nullable=True)
    position = Column(Integer, nullable=False, default=0)


class Receipt(_DocumentColumns, Base):
    """Treasury receipt header model."""

    __tablename__ = "receipts"

    fiscal_year_id = Column(Integer, ForeignKey("fiscal_years.id"), nullable=True)
    detail_id = Column(Integer, ForeignKey("details.id"), nullable=False)
    special_code_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=True)
    cashbox_id = Column(Integer, ForeignKey("cashboxes.id"), nullable=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "number", name="uq_receipt_number"),
        Index(
            "uq_receipt_number_no_year",
            "number",
            unique=True,
            sqlite_where=_NO_YEAR,
            postgresql_where=_NO_YEAR,
        ),
    )

    items = relationship(
        "ReceiptItem",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="ReceiptItem.position",
    )


class ReceiptItem(_DocumentItemColumns, Base):
    """Treasury receipt line model."""

    __tablename__ = "receipt_items"

    document_id = Column(Integer, ForeignKey("receipts.id"), nullable=False)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    card_reader_id = Column(Integer, ForeignKey("card_readers.id"), nullable=True)
    check_id = Column(Integer, ForeignKey("checks.id"), nullable=True)

    document = relationship("Receipt", back_populates="items")


class Payment(_DocumentColumns, Base):
    """Treasury payment header model."""

    __tablename__ = "payments"

    fiscal_year_id = Column(Integer, ForeignKey("fiscal_years.id"), nullable=True)
    detail_id = Column(Integer, ForeignKey("details.id"), nullable=False)
    special_code_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=True)
    cashbox_id = Column(Integer, ForeignKey("cashboxes.id"), nullable=True)
    journal_id = Column(Integer, ForeignKey("journals.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("fiscal_year_id", "number", name="uq_payment_number"),
        Index(
            "uq_payment_number_no_year",
            "number",
            unique=True,
            sqlite_where=_NO_YEAR,
            postgresql_where=_NO_YEAR,
        ),
    )

    items = relationship(
        "PaymentItem",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="PaymentItem.position",
    )


class PaymentItem(_DocumentItemColumns, Base):
    """Treasury payment line model."""

    __tablename__ = "payment_items"

    document_id = Column(Integer, ForeignKey("payments.id"), nullable=False)
    bank_account_id = Column(Integer, ForeignKey("bank_accounts.id"), nullable=True)
    card_reader_id = Column(Integer, ForeignKey("card_readers.id"), nullable=True)
    check_id = Column(Integer, ForeignKey("checks.id"), nullable=True)

    document = relationship("Payment", back_populates="items")


class Setting(Base):
    """Key-value setting model."""

    __tablename__ = "settings"

    id = Column(Integer, primary_key=True)
    code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=True)
    special_id = Column(Integer, ForeignKey("code_nodes.id"), nullable=True)
    value = Column(JSON, nullable=True)


def _enable_sqlite_savepoints(engine) -> None:
    """Hand transaction control to SQLAlchemy and turn on FK enforcement.

    pysqlite's implicit BEGIN handling breaks SAVEPOINT, which nested
    transactions rely on.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)

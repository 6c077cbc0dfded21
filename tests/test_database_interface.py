"""Tests for Database interface returning domain models."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.database.factories import create_database, create_sqlite_database
from ledgerkit.domain import entities
from ledgerkit.domain.errors import DependencyError, DuplicateValueError, NotFoundError, ValidationError


class TestDatabaseInterface:
    """Tests to verify Database interface returns domain models."""

    def test_get_code_node_returns_domain_model(self, temp_db):
        node_id = temp_db.create_code_node(code="11", title="Assets", kind=entities.CodeKind.GROUP)

        node = temp_db.get_code_node(node_id)

        assert isinstance(node, entities.CodeNode)
        assert node.code == "11"
        assert node.kind == entities.CodeKind.GROUP
        assert node.parent_id is None

    def test_get_detail_returns_domain_model(self, temp_db):
        detail_id = temp_db.create_detail(code="0001", title="Acme", kind=entities.DetailKind.USER_DEFINED)
        detail = temp_db.get_detail(detail_id)
        assert isinstance(detail, entities.Detail)
        assert detail.is_active is True
        assert temp_db.get_detail_by_code("0001").id == detail_id

    def test_journal_roundtrip_keeps_decimal_amounts(self, temp_db, chart, open_year):
        journal_id = temp_db.create_journal(
            fiscal_year_id=open_year.id,
            date=date(2024, 1, 2),
            lines=[
                entities.JournalLine(code_id=chart["110101"], debit=Decimal("12.3456")),
                entities.JournalLine(code_id=chart["410101"], credit=Decimal("12.3456")),
            ],
            status=entities.JournalStatus.DRAFT,
            source=entities.JournalSource.MANUAL,
            ref_no="1",
            code=1,
        )

        journal = temp_db.get_journal(journal_id)
        items = temp_db.list_journal_items(journal_id)

        assert isinstance(journal, entities.Journal)
        assert journal.status == entities.JournalStatus.DRAFT
        assert all(isinstance(item, entities.JournalItem) for item in items)
        assert items[0].debit == Decimal("12.3456")
        assert isinstance(items[0].credit, Decimal)

    def test_missing_rows(self, temp_db):
        assert temp_db.get_code_node(1) is None
        assert temp_db.get_journal(1) is None
        assert temp_db.get_document(entities.DocumentKind.RECEIPT, 1) is None
        with pytest.raises(NotFoundError):
            temp_db.update_detail(1, title="Ghost")

    def test_unknown_update_field(self, temp_db, customer):
        with pytest.raises(ValidationError):
            temp_db.update_detail(customer.id, colour="blue")


class TestTransactions:
    """Tests for transaction(), savepoints and integrity error translation."""

    def test_unique_violation_becomes_duplicate_value(self, temp_db):
        temp_db.create_detail(code="0001", title="A", kind=entities.DetailKind.USER_DEFINED)
        with pytest.raises(DuplicateValueError):
            temp_db.create_detail(code="0001", title="B", kind=entities.DetailKind.USER_DEFINED)
        # The session is usable after the failure
        assert len(temp_db.list_details()) == 1

    def test_foreign_key_violation_becomes_dependency_error(self, temp_db):
        with pytest.raises(DependencyError):
            temp_db.create_code_node(code="1101", title="Orphan", kind=entities.CodeKind.GENERAL, parent_id=999)

    @pytest.mark.parametrize("kind", list(entities.DocumentKind))
    def test_document_numbers_unique_without_fiscal_year(self, temp_db, kind):
        detail_id = temp_db.create_detail(code="0001", title="A", kind=entities.DetailKind.USER_DEFINED)
        year_id = temp_db.create_fiscal_year("FY2024", date(2024, 1, 1), date(2024, 12, 31))

        def save(fiscal_year_id=None):
            return temp_db.create_document(
                kind=kind,
                number="1",
                date=date(2024, 3, 5),
                detail_id=detail_id,
                total_amount=Decimal("0"),
                lines=[],
                fiscal_year_id=fiscal_year_id,
            )

        save()
        with pytest.raises(DuplicateValueError):
            save()
        # The same number is still free inside a fiscal year
        assert save(fiscal_year_id=year_id) is not None

    def test_rollback_discards_every_write(self, temp_db):
        with pytest.raises(RuntimeError):
            with temp_db.transaction():
                temp_db.create_detail(code="0001", title="A", kind=entities.DetailKind.USER_DEFINED)
                temp_db.create_detail(code="0002", title="B", kind=entities.DetailKind.USER_DEFINED)
                raise RuntimeError("abort")
        assert temp_db.list_details() == []

    def test_commit_is_visible_to_new_connection(self, temp_db):
        with temp_db.transaction():
            temp_db.create_detail(code="0001", title="A", kind=entities.DetailKind.USER_DEFINED)

        other = create_sqlite_database(database_path=temp_db.database_path)
        try:
            assert other.get_detail_by_code("0001") is not None
        finally:
            other.disconnect()

    def test_nested_failure_only_rolls_back_savepoint(self, temp_db):
        with temp_db.transaction():
            temp_db.create_detail(code="0001", title="A", kind=entities.DetailKind.USER_DEFINED)
            with pytest.raises(DuplicateValueError):
                with temp_db.transaction():
                    temp_db.create_detail(code="0001", title="Again", kind=entities.DetailKind.USER_DEFINED)
            temp_db.create_detail(code="0002", title="B", kind=entities.DetailKind.USER_DEFINED)

        assert [d.code for d in temp_db.list_details()] == ["0001", "0002"]


def test_create_database_uses_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'url.db'}"
    monkeypatch.setenv("LEDGERKIT_DATABASE_URL", url)
    db = create_database()
    assert db.database_url == url
    db.disconnect()


def test_create_sqlite_database_uses_env_path(tmp_path, monkeypatch):
    path = tmp_path / "env.db"
    monkeypatch.setenv("LEDGERKIT_DB_PATH", str(path))
    db = create_sqlite_database()
    assert db.database_url == f"sqlite:///{path}"
    db.disconnect()

"""Tests for the journal service."""

from datetime import date
from decimal import Decimal

import pytest

from ledgerkit.domain.entities import JournalLine, JournalSource, JournalStatus
from ledgerkit.domain.errors import (
    ConflictError,
    NotDraftError,
    NotFoundError,
    NotPostedError,
    UnbalancedError,
    ValidationError,
)


def _lines(chart, amount="100", debit_code="110101", credit_code="410101", detail_id=None):
    return [
        JournalLine(code_id=chart[debit_code], debit=Decimal(amount), detail_id=detail_id),
        JournalLine(code_id=chart[credit_code], credit=Decimal(amount)),
    ]


def test_create_balanced_draft(journals, chart, open_year, customer):
    journal_id = journals.create(
        open_year.id,
        date(2024, 5, 1),
        _lines(chart, detail_id=customer.id),
        description="Cash sale",
    )

    journal = journals.get(journal_id)
    assert journal.status == JournalStatus.DRAFT
    assert journal.source == JournalSource.MANUAL
    assert journal.code == 1
    assert journal.ref_no == "1"
    assert journal.description == "Cash sale"

    items = journals.get_items(journal_id)
    assert len(items) == 2
    assert items[0].detail_id == customer.id
    assert journals.totals(journal_id) == (Decimal("100"), Decimal("100"))


def test_codes_and_ref_numbers_increase_per_year(journals, chart, open_year):
    first = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    second = journals.create(open_year.id, date(2024, 5, 2), _lines(chart), ref_no="INV-7")
    third = journals.create(open_year.id, date(2024, 5, 3), _lines(chart))

    assert [journals.get(j).code for j in (first, second, third)] == [1, 2, 3]
    assert journals.get(second).ref_no == "INV-7"
    assert journals.get(third).ref_no == "2"


def test_duplicate_ref_no_in_year(journals, chart, open_year):
    journals.create(open_year.id, date(2024, 5, 1), _lines(chart), ref_no="A1")
    with pytest.raises(ConflictError):
        journals.create(open_year.id, date(2024, 5, 2), _lines(chart), ref_no="A1")


def test_unbalanced_journal_rejected(journals, chart, open_year):
    lines = [
        JournalLine(code_id=chart["110101"], debit=Decimal("100")),
        JournalLine(code_id=chart["410101"], credit=Decimal("99.99")),
    ]
    with pytest.raises(UnbalancedError) as exc_info:
        journals.create(open_year.id, date(2024, 5, 1), lines)
    assert exc_info.value.total_debit == Decimal("100")
    assert journals.list_journals() == []


def test_rounding_within_epsilon_is_balanced(journals, chart, open_year):
    lines = [
        JournalLine(code_id=chart["110101"], debit=Decimal("100.00005")),
        JournalLine(code_id=chart["410101"], credit=Decimal("100")),
    ]
    journal_id = journals.create(open_year.id, date(2024, 5, 1), lines)
    assert journals.get(journal_id) is not None


@pytest.mark.parametrize(
    "debit,credit",
    [(Decimal("-1"), Decimal("0")), (Decimal("5"), Decimal("5"))],
)
def test_malformed_line_rejected(journals, chart, open_year, debit, credit):
    lines = [
        JournalLine(code_id=chart["110101"], debit=debit, credit=credit),
        JournalLine(code_id=chart["410101"], credit=Decimal("5")),
    ]
    with pytest.raises(ValidationError):
        journals.create(open_year.id, date(2024, 5, 1), lines)


def test_empty_journal_rejected(journals, open_year):
    with pytest.raises(ValidationError):
        journals.create(open_year.id, date(2024, 5, 1), [])


def test_unknown_code_or_year(journals, chart, open_year):
    with pytest.raises(NotFoundError):
        journals.create(open_year.id, date(2024, 5, 1), [JournalLine(code_id=999, debit=Decimal("1"))])
    with pytest.raises(NotFoundError):
        journals.create(999, date(2024, 5, 1), _lines(chart))


def test_post(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    journals.post(journal_id)
    assert journals.get(journal_id).status == JournalStatus.POSTED

    with pytest.raises(NotDraftError):
        journals.post(journal_id)


def test_reverse_swaps_sides(journals, chart, open_year, customer):
    journal_id = journals.create(
        open_year.id, date(2024, 5, 1), _lines(chart, amount="42.50", detail_id=customer.id)
    )
    journals.post(journal_id)

    reversal_id = journals.reverse(journal_id)

    reversal = journals.get(reversal_id)
    assert reversal.status == JournalStatus.POSTED
    assert reversal.source == JournalSource.REVERSAL
    assert reversal.reversal_of_id == journal_id
    assert reversal.ref_no == "REV-1"
    assert reversal.date == date(2024, 5, 1)

    original_items = journals.get_items(journal_id)
    reversed_items = journals.get_items(reversal_id)
    assert [(i.code_id, i.credit, i.debit, i.detail_id) for i in original_items] == [
        (i.code_id, i.debit, i.credit, i.detail_id) for i in reversed_items
    ]


def test_reverse_twice_conflicts(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    journals.post(journal_id)
    journals.reverse(journal_id)

    with pytest.raises(ConflictError):
        journals.reverse(journal_id)
    assert len(journals.list_journals()) == 2


def test_reversal_can_be_reversed(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    journals.post(journal_id)
    reversal_id = journals.reverse(journal_id)

    again = journals.reverse(reversal_id)
    assert journals.get(again).reversal_of_id == reversal_id


def test_reverse_requires_posted(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    with pytest.raises(NotPostedError):
        journals.reverse(journal_id)


def test_update_draft_replaces_items(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))

    journals.update(
        journal_id,
        date=date(2024, 6, 1),
        description="Corrected",
        items=_lines(chart, amount="75", debit_code="110102"),
    )

    journal = journals.get(journal_id)
    assert journal.date == date(2024, 6, 1)
    assert journal.description == "Corrected"
    items = journals.get_items(journal_id)
    assert {item.code_id for item in items} == {chart["110102"], chart["410101"]}
    assert journals.totals(journal_id) == (Decimal("75"), Decimal("75"))


def test_update_unbalanced_keeps_original(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    bad = [JournalLine(code_id=chart["110101"], debit=Decimal("1"))]
    with pytest.raises(UnbalancedError):
        journals.update(journal_id, items=bad)
    assert len(journals.get_items(journal_id)) == 2


def test_posted_journal_is_immutable(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    journals.post(journal_id)

    with pytest.raises(NotDraftError):
        journals.update(journal_id, description="Changed")
    with pytest.raises(NotDraftError):
        journals.delete(journal_id)


def test_delete_draft(journals, chart, open_year):
    journal_id = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    journals.delete(journal_id)
    assert journals.get(journal_id) is None
    with pytest.raises(NotFoundError):
        journals.get_items(journal_id)


def test_list_by_status(journals, chart, open_year):
    draft = journals.create(open_year.id, date(2024, 5, 1), _lines(chart))
    posted = journals.create(open_year.id, date(2024, 5, 2), _lines(chart))
    journals.post(posted)

    assert [j.id for j in journals.list_journals(status=JournalStatus.DRAFT)] == [draft]
    assert [j.id for j in journals.list_journals(status=JournalStatus.POSTED)] == [posted]

"""Tests for amount parsing and command-line resolvers."""

from decimal import Decimal

import pytest

from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.resolvers import resolve_code_node, resolve_detail


@pytest.mark.parametrize(
    "text,expected",
    [
        ("100", Decimal("100")),
        ("1,234.50", Decimal("1234.50")),
        ("$99.99", Decimal("99.99")),
        ("12.5€", Decimal("12.5")),
        ("1_000", Decimal("1000")),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "   ", "abc", "-5", "NaN", "Infinity"])
def test_parse_amount_rejects(text):
    with pytest.raises(ValueError):
        parse_amount(text)


def test_resolve_code_node_by_code_and_id(catalog, chart):
    assert resolve_code_node(catalog, "110101") == chart["110101"]
    assert resolve_code_node(catalog, f"#{chart['1101']}") == chart["1101"]


def test_resolve_code_node_missing(catalog, chart):
    with pytest.raises(ValueError, match="not found"):
        resolve_code_node(catalog, "999999")
    with pytest.raises(ValueError, match="Invalid"):
        resolve_code_node(catalog, "#abc")


def test_resolve_detail_pads_code(catalog, customer):
    assert resolve_detail(catalog, "1") == customer.id
    assert resolve_detail(catalog, "0001") == customer.id
    assert resolve_detail(catalog, f"#{customer.id}") == customer.id


def test_resolve_detail_missing(catalog):
    with pytest.raises(ValueError, match="not found"):
        resolve_detail(catalog, "0042")

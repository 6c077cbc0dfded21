"""Utility functions for ledgerkit."""

from ledgerkit.utils.amount_parser import parse_amount
from ledgerkit.utils.date_parser import parse_date
from ledgerkit.utils.resolvers import resolve_code_node, resolve_detail

__all__ = ["parse_date", "parse_amount", "resolve_code_node", "resolve_detail"]

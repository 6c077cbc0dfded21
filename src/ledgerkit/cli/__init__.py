"""Command-line interface for ledgerkit."""

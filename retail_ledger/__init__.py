"""Retail ledger back-end: stock, customers, sales, reserves and the customer balance ledger."""

__version__ = "1.0.0"

"""Exceptions shared by the ledger store and the trading services."""


class StorageFailure(Exception):
    """Raised when the ledger cannot read or write a record."""

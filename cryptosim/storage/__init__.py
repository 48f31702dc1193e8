# Storage module
"""Persistence services for the ledger and application settings."""

from cryptosim.storage.storage import IStorageService, JsonFileStorage
from cryptosim.storage.ledger import (
    ILedgerStore,
    InMemoryLedgerStore,
    JsonLedgerStore,
    StorageFailure,
)

__all__ = [
    "IStorageService",
    "JsonFileStorage",
    "ILedgerStore",
    "InMemoryLedgerStore",
    "JsonLedgerStore",
    "StorageFailure",
]

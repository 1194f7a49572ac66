"""
Storage Services Package

Provides the persistence gateway consumed by the ledger flows and the
record stores behind it: in-memory, local JSON cache and Google Sheets.
"""

from billing_ledger.services.storage.interface import (
    ConnectionError,
    NotFoundError,
    PersistenceError,
    PersistenceGateway,
    Record,
    RecordStore,
    SaveResult,
    StorageError,
    to_record,
)
from billing_ledger.services.storage.memory import InMemoryRecordStore
from billing_ledger.services.storage.local_file import JsonFileRecordStore
from billing_ledger.services.storage.gateway import LocalFirstGateway
from billing_ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)

__all__ = [
    # Interfaces
    "PersistenceGateway",
    "Record",
    "RecordStore",
    "SaveResult",
    "to_record",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PersistenceError",
    "StorageError",
    # Implementations
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "LocalFirstGateway",
]

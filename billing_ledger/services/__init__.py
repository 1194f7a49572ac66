"""Services package."""

from billing_ledger.services.export import DocumentRenderer, ExportError
from billing_ledger.services.storage import (
    ConnectionError,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    JsonFileRecordStore,
    LocalFirstGateway,
    NotFoundError,
    PersistenceError,
    PersistenceGateway,
    RecordStore,
    SaveResult,
    StorageError,
)

__all__ = [
    # Export
    "DocumentRenderer",
    "ExportError",
    # Storage services
    "ConnectionError",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "JsonFileRecordStore",
    "LocalFirstGateway",
    "NotFoundError",
    "PersistenceError",
    "PersistenceGateway",
    "RecordStore",
    "SaveResult",
    "StorageError",
]

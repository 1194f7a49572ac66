"""
Abstract Storage Interface

DESIGN DECISION: The ledger never talks to a database, a file or a
spreadsheet directly. It goes through two small interfaces:

1. RecordStore - one physical store (memory, local JSON cache, Google
   Sheets). Knows nothing about local/remote policy.
2. PersistenceGateway - what the flows consume: save / fetch_all /
   delete, tenant scoped, reporting local and remote outcome separately.

Records cross this boundary as plain dicts (JSON-safe), so stores never
import ledger models.

Writes are last-writer-wins. There is no version token and no conflict
detection across processes.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Union

from pydantic import BaseModel


Record = dict[str, Any]


class SaveResult(BaseModel):
    """Outcome of a gateway save."""

    persisted_locally: bool
    persisted_remotely: bool
    remote_configured: bool = False
    error_message: Optional[str] = None

    @property
    def remote_missed(self) -> bool:
        """Remote is configured but did not take the write."""
        return self.remote_configured and not self.persisted_remotely


def to_record(record: Union[BaseModel, Record]) -> Record:
    """Serialize a model (or pass through a dict) as a JSON-safe record."""
    if isinstance(record, BaseModel):
        data = record.model_dump(mode="json")
        if "id" not in data and hasattr(record, "id"):
            data["id"] = str(record.id)
        return data
    return dict(record)


class RecordStore(ABC):
    """
    One physical, tenant-partitioned record store.

    Implementations must keep records of different tenants apart.
    """

    @abstractmethod
    async def put(self, collection: str, tenant_scope: str, record: Record) -> None:
        """
        Insert or replace a record by its "id".

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def all(self, collection: str, tenant_scope: str) -> list[Record]:
        """
        Return every record of a collection for a tenant.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def remove(self, collection: str, tenant_scope: str, record_id: str) -> bool:
        """
        Delete a record by id.

        Returns:
            True if a record was removed
        """
        pass

    async def replace_all(
        self,
        collection: str,
        tenant_scope: str,
        records: list[Record],
    ) -> None:
        """Overwrite a collection. Stores may override with a bulk write."""
        for existing in await self.all(collection, tenant_scope):
            await self.remove(collection, tenant_scope, str(existing["id"]))
        for record in records:
            await self.put(collection, tenant_scope, record)


class PersistenceGateway(ABC):
    """
    Tenant-scoped persistence consumed by the ledger flows.

    The flows treat persisted_locally=False as a hard failure and a
    remote miss as a soft, user-notifiable one.
    """

    @abstractmethod
    async def save(
        self,
        collection: str,
        record: Union[BaseModel, Record],
        tenant_scope: str,
    ) -> SaveResult:
        pass

    @abstractmethod
    async def fetch_all(self, collection: str, tenant_scope: str) -> list[Record]:
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str, tenant_scope: str) -> None:
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PersistenceError(StorageError):
    """The local store did not take a write: a hard failure."""
    pass

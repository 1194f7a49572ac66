"""
Local-First Persistence Gateway

Every save goes to the local store first and then, if one is configured,
to the remote store:

- local fails           -> persisted_locally=False (hard failure)
- local ok, remote fails -> persisted_remotely=False (soft failure)

Reads prefer the remote when it answers with data, refreshing the local
cache from it; otherwise they fall back to the local cache. Nothing is
merged: the last write to reach a store wins.
"""

from typing import Optional, Union

import structlog
from pydantic import BaseModel

from billing_ledger.services.storage.interface import (
    PersistenceGateway,
    Record,
    RecordStore,
    SaveResult,
    StorageError,
    to_record,
)


logger = structlog.get_logger(__name__)


class LocalFirstGateway(PersistenceGateway):
    """Local cache plus optional remote mirror."""

    def __init__(
        self,
        local: RecordStore,
        remote: Optional[RecordStore] = None,
    ):
        self._local = local
        self._remote = remote

    @property
    def has_remote(self) -> bool:
        return self._remote is not None

    async def save(
        self,
        collection: str,
        record: Union[BaseModel, Record],
        tenant_scope: str,
    ) -> SaveResult:
        if not tenant_scope:
            return SaveResult(
                persisted_locally=False,
                persisted_remotely=False,
                remote_configured=self.has_remote,
                error_message="Missing tenant scope",
            )

        data = to_record(record)
        errors = []

        persisted_locally = False
        try:
            await self._local.put(collection, tenant_scope, data)
            persisted_locally = True
        except StorageError as e:
            errors.append(f"local: {e}")
            logger.error(
                "local_save_failed",
                collection=collection,
                record_id=str(data.get("id")),
                error=str(e),
            )

        persisted_remotely = False
        if self._remote is not None:
            try:
                await self._remote.put(collection, tenant_scope, data)
                persisted_remotely = True
            except StorageError as e:
                errors.append(f"remote: {e}")
                logger.warning(
                    "remote_save_failed",
                    collection=collection,
                    record_id=str(data.get("id")),
                    error=str(e),
                )

        return SaveResult(
            persisted_locally=persisted_locally,
            persisted_remotely=persisted_remotely,
            remote_configured=self.has_remote,
            error_message="; ".join(errors) or None,
        )

    async def fetch_all(self, collection: str, tenant_scope: str) -> list[Record]:
        if self._remote is not None:
            try:
                remote_records = await self._remote.all(collection, tenant_scope)
            except StorageError as e:
                logger.warning(
                    "remote_fetch_failed",
                    collection=collection,
                    error=str(e),
                )
            else:
                if remote_records:
                    await self._local.replace_all(collection, tenant_scope, remote_records)
                    return remote_records

        return await self._local.all(collection, tenant_scope)

    async def delete(self, collection: str, record_id: str, tenant_scope: str) -> None:
        await self._local.remove(collection, tenant_scope, record_id)
        if self._remote is not None:
            try:
                await self._remote.remove(collection, tenant_scope, record_id)
            except StorageError as e:
                logger.warning(
                    "remote_delete_failed",
                    collection=collection,
                    record_id=record_id,
                    error=str(e),
                )

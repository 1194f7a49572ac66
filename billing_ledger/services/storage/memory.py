"""
In-Memory Record Store

Process-local store for tests, demos and as the local side of a
LocalFirstGateway when nothing should touch disk.
"""

import copy

from billing_ledger.services.storage.interface import Record, RecordStore


class InMemoryRecordStore(RecordStore):
    """Dict-backed store keyed by (tenant_scope, collection)."""

    def __init__(self):
        self._data: dict[tuple[str, str], dict[str, Record]] = {}

    def _bucket(self, collection: str, tenant_scope: str) -> dict[str, Record]:
        return self._data.setdefault((tenant_scope, collection), {})

    async def put(self, collection: str, tenant_scope: str, record: Record) -> None:
        self._bucket(collection, tenant_scope)[str(record["id"])] = copy.deepcopy(record)

    async def all(self, collection: str, tenant_scope: str) -> list[Record]:
        return [copy.deepcopy(r) for r in self._bucket(collection, tenant_scope).values()]

    async def remove(self, collection: str, tenant_scope: str, record_id: str) -> bool:
        return self._bucket(collection, tenant_scope).pop(record_id, None) is not None

    async def replace_all(
        self,
        collection: str,
        tenant_scope: str,
        records: list[Record],
    ) -> None:
        self._data[(tenant_scope, collection)] = {
            str(r["id"]): copy.deepcopy(r) for r in records
        }

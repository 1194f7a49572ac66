"""
Local JSON Cache

DESIGN DECISION: The local side of local-first persistence is a plain
JSON file per tenant and collection:

    <base_dir>/<tenant_scope>/<collection>.json

TRADEOFFS:
- Whole-file rewrite on every save (fine at small-business volume)
- No locking: one process owns a data directory
- Human-readable, trivially backed up

A write goes to a temporary file first and is moved into place, so a
crash mid-write leaves the previous file intact.
"""

import json
import os
from pathlib import Path
from typing import Union

from billing_ledger.services.storage.interface import (
    PersistenceError,
    Record,
    RecordStore,
    StorageError,
)


class JsonFileRecordStore(RecordStore):
    """File-backed local cache."""

    def __init__(self, base_dir: Union[str, Path]):
        self._base_dir = Path(base_dir)

    def _path(self, collection: str, tenant_scope: str) -> Path:
        if not tenant_scope or "/" in tenant_scope or tenant_scope.startswith("."):
            raise StorageError(f"Invalid tenant scope: {tenant_scope!r}")
        return self._base_dir / tenant_scope / f"{collection}.json"

    def _read(self, path: Path) -> list[Record]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}")
        return data if isinstance(data, list) else []

    def _write(self, path: Path, records: list[Record]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(json.dumps(records, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}")

    async def put(self, collection: str, tenant_scope: str, record: Record) -> None:
        path = self._path(collection, tenant_scope)
        records = self._read(path)
        record_id = str(record["id"])
        for idx, existing in enumerate(records):
            if str(existing.get("id")) == record_id:
                records[idx] = record
                break
        else:
            records.append(record)
        self._write(path, records)

    async def all(self, collection: str, tenant_scope: str) -> list[Record]:
        return self._read(self._path(collection, tenant_scope))

    async def remove(self, collection: str, tenant_scope: str, record_id: str) -> bool:
        path = self._path(collection, tenant_scope)
        records = self._read(path)
        remaining = [r for r in records if str(r.get("id")) != record_id]
        if len(remaining) == len(records):
            return False
        self._write(path, remaining)
        return True

    async def replace_all(
        self,
        collection: str,
        tenant_scope: str,
        records: list[Record],
    ) -> None:
        self._write(self._path(collection, tenant_scope), list(records))

    def clear_tenant(self, tenant_scope: str) -> None:
        """Drop every cached collection of a tenant."""
        tenant_dir = self._base_dir / tenant_scope
        if not tenant_dir.exists():
            return
        for path in tenant_dir.glob("*.json"):
            path.unlink()

"""
In-Memory Repository

The process-local collection each ledger component owns. Components
receive one explicitly instead of reaching for shared app state, so
two tenants (or two tests) never see each other's records.

Identity is by id only: replacing a record keeps its position,
inserting appends it.
"""

from typing import Callable, Generic, Iterable, Iterator, Optional, TypeVar

from pydantic import BaseModel


T = TypeVar("T", bound=BaseModel)


class Repository(Generic[T]):
    """Id-keyed store of pydantic records."""

    def __init__(self, records: Optional[Iterable[T]] = None):
        self._records: dict[str, T] = {}
        for record in records or ():
            self.put(record)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._records.values()))

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def get(self, record_id: str) -> Optional[T]:
        return self._records.get(record_id)

    def put(self, record: T) -> bool:
        """Insert or replace. Returns True when the id was unseen."""
        created = record.id not in self._records
        self._records[record.id] = record
        return created

    def remove(self, record_id: str) -> Optional[T]:
        return self._records.pop(record_id, None)

    def list(self, predicate: Optional[Callable[[T], bool]] = None) -> list[T]:
        if predicate is None:
            return list(self._records.values())
        return [r for r in self._records.values() if predicate(r)]

    def replace_all(self, records: Iterable[T]) -> None:
        self._records = {}
        for record in records:
            self.put(record)

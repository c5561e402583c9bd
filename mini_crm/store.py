"""Ordered in-memory storage for one record kind."""

from __future__ import annotations

from typing import Generic, Iterable, List, Optional

from .models import RecordT


class EntityStore(Generic[RecordT]):
    """Authoritative, ordered collection of records owned by a single service.

    New records go to the head so the natural order is most-recent-first.
    Every accessor hands out copies; the stored instances never leave.
    """

    def __init__(self, records: Iterable[RecordT] = ()) -> None:
        self._records: List[RecordT] = [record.model_copy(deep=True) for record in records]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return self.index_of(record_id) is not None

    def snapshot(self) -> List[RecordT]:
        return [record.model_copy(deep=True) for record in self._records]

    def index_of(self, record_id: object) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                return index
        return None

    def find(self, record_id: object) -> Optional[RecordT]:
        index = self.index_of(record_id)
        if index is None:
            return None
        return self._records[index].model_copy(deep=True)

    def at(self, index: int) -> RecordT:
        return self._records[index].model_copy(deep=True)

    def insert_head(self, record: RecordT) -> None:
        self._records.insert(0, record)

    def replace_at(self, index: int, record: RecordT) -> None:
        self._records[index] = record

    def remove_at(self, index: int) -> RecordT:
        return self._records.pop(index)

    def reset(self, records: Iterable[RecordT]) -> None:
        """Drop every record and reload from ``records``."""
        self._records = [record.model_copy(deep=True) for record in records]

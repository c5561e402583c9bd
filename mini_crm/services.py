"""Async record services over the in-memory entity stores.

Each service exposes the same five calls (``get_all``, ``get_by_id``,
``create``, ``update``, ``delete``) and waits a configurable delay before
touching its store to mimic a network round-trip. The store mutation itself
happens in one synchronous step after the delay, so cooperative callers on a
single event loop always observe a linear history.

The services never validate required fields; that is the job of the page
controllers in :mod:`mini_crm.pages`. Well-formed input only ever fails with
:class:`~mini_crm.errors.NotFoundError`; values the models cannot coerce at
all (an unparsable date, say) raise :class:`pydantic.ValidationError`.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, ClassVar, Dict, Generic, Iterable, List, Mapping, Optional, Type, Union

from pydantic import BaseModel

from .config import ServiceConfig
from .errors import NotFoundError
from .models import Activity, Contact, Deal, RecordT, new_record_id, utcnow
from .store import EntityStore

logger = logging.getLogger(__name__)

PartialRecord = Union[Mapping[str, Any], BaseModel]
Clock = Callable[[], datetime]


class RecordService(Generic[RecordT]):
    """get/create/update/delete API over one :class:`EntityStore`."""

    entity_name: ClassVar[str] = "Record"
    model_cls: ClassVar[Type[Any]]

    def __init__(
        self,
        records: Iterable[RecordT] = (),
        *,
        config: Optional[ServiceConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config or ServiceConfig()
        self._clock: Clock = clock or utcnow
        self._store: EntityStore[RecordT] = EntityStore(records)

    @property
    def store(self) -> EntityStore[RecordT]:
        return self._store

    async def get_all(self) -> List[RecordT]:
        await self._simulate_latency("get_all")
        return self._store.snapshot()

    async def get_by_id(self, record_id: str) -> RecordT:
        await self._simulate_latency("get_by_id")
        record = self._store.find(record_id)
        if record is None:
            raise self._not_found(record_id)
        return record

    async def create(self, data: Optional[PartialRecord] = None, **kwargs: Any) -> RecordT:
        """Insert a new record at the head of the store.

        Supports both patterns:
        - create({"name": "X", "email": "Y"})
        - create(name="X", email="Y")
        """
        await self._simulate_latency("create")
        fields = self._merge_arguments(data, kwargs)
        fields.update(self._creation_stamps(fields, self._clock()))
        fields["id"] = new_record_id()
        record = self.model_cls.model_validate(fields)
        self._store.insert_head(record)
        logger.debug("Created %s %s", self.entity_name, record.id)
        return record.model_copy(deep=True)

    async def update(self, record_id: str, data: Optional[PartialRecord] = None, **kwargs: Any) -> RecordT:
        """Shallow-merge supplied fields onto an existing record, keeping its position."""
        await self._simulate_latency("update")
        index = self._store.index_of(record_id)
        if index is None:
            raise self._not_found(record_id)
        changes = self._drop_cleared_fields(self._merge_arguments(data, kwargs))
        changes.update(self._update_stamps(changes, self._clock()))
        current = self._store.at(index)
        updated = self.model_cls.model_validate({**current.model_dump(), **changes, "id": current.id})
        self._store.replace_at(index, updated)
        logger.debug("Updated %s %s fields=%s", self.entity_name, record_id, sorted(changes))
        return updated.model_copy(deep=True)

    async def delete(self, record_id: str) -> bool:
        await self._simulate_latency("delete")
        index = self._store.index_of(record_id)
        if index is None:
            raise self._not_found(record_id)
        self._store.remove_at(index)
        logger.debug("Deleted %s %s", self.entity_name, record_id)
        return True

    def reset(self, records: Iterable[RecordT]) -> None:
        self._store.reset(records)

    # ------------------------------------------------------------------
    # Hooks for per-entity timestamps
    # ------------------------------------------------------------------

    def _creation_stamps(self, fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        return {"created_at": now}

    def _update_stamps(self, changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        return {}

    def _drop_cleared_fields(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Remove blank values for required fields so the stored value is kept."""
        return changes

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _simulate_latency(self, operation: str) -> None:
        delay = self._config.latency.for_operation(operation)
        if delay > 0:
            await asyncio.sleep(delay)

    def _not_found(self, record_id: str) -> NotFoundError:
        logger.warning("%s not found with ID '%s'", self.entity_name, record_id)
        return NotFoundError(self.entity_name, record_id)

    def _merge_arguments(self, data: Optional[PartialRecord], kwargs: Mapping[str, Any]) -> Dict[str, Any]:
        """Combine a partial record and keyword fields into field-name keys."""
        if isinstance(data, BaseModel):
            raw: Dict[str, Any] = data.model_dump(exclude_unset=True)
        else:
            raw = dict(data or {})
        raw.update(kwargs)

        fields: Dict[str, Any] = {}
        for key, value in raw.items():
            name = self.model_cls.field_name_for(key)
            if name is None:
                logger.debug("Ignoring unknown %s field '%s'", self.entity_name, key)
                continue
            if name == "id":
                continue
            fields[name] = value
        return fields


class ContactService(RecordService[Contact]):
    entity_name = "Contact"
    model_cls = Contact

    def _creation_stamps(self, fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        return {"created_at": now, "last_activity": now}

    def _update_stamps(self, changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        # Every edit counts as activity, whatever the caller supplied.
        return {"last_activity": now}


class DealService(RecordService[Deal]):
    entity_name = "Deal"
    model_cls = Deal


class ActivityService(RecordService[Activity]):
    entity_name = "Activity"
    model_cls = Activity

    def _creation_stamps(self, fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
        # No created_at on activities; ``date`` doubles as the sort key.
        if fields.get("date"):
            return {}
        return {"date": now}

    def _drop_cleared_fields(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        # A cleared date field on edit keeps the activity's existing date.
        value = changes.get("date", ...)
        if value is None or (isinstance(value, str) and not value.strip()):
            return {key: value for key, value in changes.items() if key != "date"}
        return changes

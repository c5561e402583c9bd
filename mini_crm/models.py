"""Record models for the in-memory CRM.

Contacts, deals and activities are Pydantic models sharing one base
configuration. Instances are frozen: the stores and the page controllers
only ever swap whole records, so a retained copy is never mutated in place.
Cross-entity links (``contact_id`` / ``deal_id``) are soft references that
may point at records which no longer exist.
"""

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Generic, Iterable, List, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def new_record_id() -> str:
    """Generate a UUID4 string for record identifiers."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DealStage(str, Enum):
    LEAD = "lead"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class StageDirection(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


# Pipeline order; Kanban columns follow it left to right.
DEAL_STAGES = tuple(DealStage)
CLOSED_STAGES = frozenset({DealStage.WON.value, DealStage.LOST.value})

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^[+-]?\d+")


def parse_number(value: Any) -> float:
    """Parse a leading number the way an HTML form field does; 0.0 when unparsable."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER_PREFIX.match(value.strip())
        if not match:
            return 0.0
        number = float(match.group(0))
    else:
        return 0.0
    return number if math.isfinite(number) else 0.0


def parse_whole_number(value: Any) -> int:
    """Parse a leading integer, truncating floats; 0 when unparsable."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else 0
    if isinstance(value, str):
        match = _INT_PREFIX.match(value.strip())
        return int(match.group(0)) if match else 0
    return 0


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


class CRMBaseModel(BaseModel):
    """Shared configuration for all CRM records.

    String inputs are trimmed on every create and update, so ``" Bob "`` is
    stored and read back as ``"Bob"``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    id: str = Field(default_factory=new_record_id)

    @field_validator("*", mode="before", check_fields=False)
    @classmethod
    def strip_strings(cls, value: Any) -> Any:
        """Normalize string inputs by trimming whitespace."""
        if isinstance(value, str):
            return value.strip()
        return value

    @classmethod
    def field_name_for(cls, key: str) -> Optional[str]:
        """Map a field name or its camelCase alias to the field name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return None

    def to_payload(self) -> dict:
        """Dump the record with camelCase keys and JSON-friendly values."""
        return self.model_dump(mode="json", by_alias=True)


RecordT = TypeVar("RecordT", bound=CRMBaseModel)


@dataclass(frozen=True)
class SoftReference(Generic[RecordT]):
    """An id pointing at another record, with no existence guarantee."""

    record_id: Optional[str]

    @property
    def is_set(self) -> bool:
        return bool(self.record_id)

    def resolve(self, records: Iterable[RecordT]) -> Optional[RecordT]:
        """Return the referenced record, or None when unset or dangling."""
        if not self.record_id:
            return None
        for record in records:
            if record.id == self.record_id:
                return record
        return None


class Contact(CRMBaseModel):
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    last_activity: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        tags: List[str] = []
        for tag in value:
            tag = str(tag).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @field_validator("created_at", "last_activity")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        return _as_aware(value)


class Deal(CRMBaseModel):
    title: str = ""
    value: float = 0.0
    # Plain string on purpose: unknown stages are kept, not rejected.
    stage: str = DealStage.LEAD.value
    probability: int = 0
    contact_id: Optional[str] = None
    expected_close: Optional[date] = None
    notes: Optional[str] = None
    created_at: datetime

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, value: Any) -> float:
        return max(parse_number(value), 0.0)

    @field_validator("probability", mode="before")
    @classmethod
    def coerce_probability(cls, value: Any) -> int:
        return min(max(parse_whole_number(value), 0), 100)

    @field_validator("stage", mode="before")
    @classmethod
    def stage_to_string(cls, value: Any) -> Any:
        if isinstance(value, DealStage):
            return value.value
        return value

    @field_validator("contact_id", "notes", mode="before")
    @classmethod
    def blank_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("expected_close", mode="before")
    @classmethod
    def normalize_expected_close(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and "T" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        return value

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        return _as_aware(value)

    @property
    def contact_ref(self) -> SoftReference["Contact"]:
        return SoftReference(self.contact_id)


class Activity(CRMBaseModel):
    type: str = ActivityType.CALL.value
    subject: str = ""
    description: Optional[str] = None
    contact_id: Optional[str] = None
    deal_id: Optional[str] = None
    date: datetime
    duration: int = 0

    @field_validator("type", mode="before")
    @classmethod
    def type_to_string(cls, value: Any) -> Any:
        if isinstance(value, ActivityType):
            return value.value
        return value

    @field_validator("duration", mode="before")
    @classmethod
    def coerce_duration(cls, value: Any) -> int:
        return max(parse_whole_number(value), 0)

    @field_validator("contact_id", "deal_id", "description", mode="before")
    @classmethod
    def blank_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("date")
    @classmethod
    def ensure_timezone(cls, value: datetime) -> datetime:
        return _as_aware(value)

    @property
    def contact_ref(self) -> SoftReference[Contact]:
        return SoftReference(self.contact_id)

    @property
    def deal_ref(self) -> SoftReference[Deal]:
        return SoftReference(self.deal_id)

"""Page controllers sitting between a UI and the record services.

A page holds transient view state only: its local copy of the records it
shows, the open form (closed / creating / editing), the current draft and any
filters. Drafts never reach a store before ``submit``. After each successful
call the page rebuilds its local list from the record the service returned,
so earlier lists and records are never mutated.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, List, Optional

from pydantic import ValidationError

from .errors import NotFoundError, RequiredFieldError
from .models import (
    Activity,
    ActivityType,
    Contact,
    Deal,
    DealStage,
    RecordT,
    StageDirection,
    parse_number,
    parse_whole_number,
    utcnow,
)
from .services import Clock, RecordService
from .views import (
    DashboardMetrics,
    FeedEntry,
    PipelineColumn,
    active_deals,
    activity_feed,
    adjacent_stage,
    all_tags,
    build_pipeline_board,
    compute_dashboard_metrics,
    filter_activities,
    filter_contacts,
    group_deals_by_stage,
    recent_activities,
    recent_contacts,
    resolve_contact_name,
    sorted_activities,
    stage_counts,
    stage_display_name,
)
from .workspace import CrmServices

logger = logging.getLogger(__name__)


class FormMode(str, Enum):
    CLOSED = "closed"
    CREATING = "creating"
    EDITING = "editing"


@dataclass
class ActionResult:
    """Outcome of a user action, carrying the message a UI would toast."""

    success: bool
    message: str
    record: Optional[Any] = None

    @staticmethod
    def ok(message: str = "", record: Optional[Any] = None) -> "ActionResult":
        return ActionResult(True, message, record)

    @staticmethod
    def fail(message: str) -> "ActionResult":
        return ActionResult(False, message)


class RecordPage(Generic[RecordT]):
    """Form and list handling shared by the contact, deal and activity pages."""

    entity_label: ClassVar[str] = "Record"
    required_field: ClassVar[str] = "name"
    required_label: ClassVar[str] = "Name"
    created_message: ClassVar[str] = "created successfully"

    def __init__(self, services: CrmServices, clock: Optional[Clock] = None) -> None:
        self.services = services
        self._clock: Clock = clock or utcnow
        self.records: List[RecordT] = []
        self.mode = FormMode.CLOSED
        self.selected: Optional[RecordT] = None
        self.draft: Dict[str, Any] = self.blank_draft()

    @property
    def service(self) -> RecordService[RecordT]:
        raise NotImplementedError

    def blank_draft(self) -> Dict[str, Any]:
        raise NotImplementedError

    def draft_from(self, record: RecordT) -> Dict[str, Any]:
        raise NotImplementedError

    def prepare_payload(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        return dict(draft)

    # ------------------------------------------------------------------
    # Form state
    # ------------------------------------------------------------------

    def open_create(self) -> None:
        self.mode = FormMode.CREATING
        self.selected = None
        self.draft = self.blank_draft()

    def open_edit(self, record: RecordT) -> None:
        self.mode = FormMode.EDITING
        self.selected = record
        self.draft = self.draft_from(record)

    def close_form(self) -> None:
        self.mode = FormMode.CLOSED
        self.selected = None
        self.draft = self.blank_draft()

    def set_field(self, name: str, value: Any) -> None:
        self.draft = {**self.draft, name: value}

    def validate_draft(self) -> None:
        value = self.draft.get(self.required_field)
        if not isinstance(value, str) or not value.strip():
            raise RequiredFieldError(self.required_field, self.required_label)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def load(self) -> None:
        self.records = await self.service.get_all()

    async def submit(self) -> ActionResult:
        if self.mode is FormMode.CLOSED:
            return ActionResult.fail("No form is open")
        try:
            self.validate_draft()
        except RequiredFieldError as exc:
            return ActionResult.fail(str(exc))

        payload = self.prepare_payload(self.draft)
        label = self.entity_label
        try:
            if self.mode is FormMode.EDITING and self.selected is not None:
                record = await self.service.update(self.selected.id, payload)
                self._replace_local(record)
                message = f"{label} updated successfully"
            else:
                record = await self.service.create(payload)
                self.records = [record, *self.records]
                message = f"{label} {self.created_message}"
        except NotFoundError as exc:
            logger.warning("Failed to save %s: %s", label.lower(), exc)
            return ActionResult.fail(str(exc))
        except ValidationError as exc:
            fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
            logger.warning("Failed to save %s, invalid fields %s", label.lower(), fields)
            return ActionResult.fail(f"Failed to save {label.lower()}: invalid {', '.join(fields)}")

        self.close_form()
        return ActionResult.ok(message, record)

    async def delete(self, record: RecordT) -> ActionResult:
        label = self.entity_label
        try:
            await self.service.delete(record.id)
        except NotFoundError as exc:
            logger.warning("Failed to delete %s %s: %s", label.lower(), record.id, exc)
            return ActionResult.fail(f"Failed to delete {label.lower()}")
        self.records = [existing for existing in self.records if existing.id != record.id]
        if self.selected is not None and self.selected.id == record.id:
            self.close_form()
        return ActionResult.ok(f"{label} deleted successfully")

    def _replace_local(self, record: RecordT) -> None:
        self.records = [record if existing.id == record.id else existing for existing in self.records]


class ContactsPage(RecordPage[Contact]):
    entity_label = "Contact"
    required_field = "name"
    required_label = "Name"

    def __init__(self, services: CrmServices, clock: Optional[Clock] = None) -> None:
        super().__init__(services, clock)
        self.search_term = ""
        self.filter_tag = ""

    @property
    def service(self) -> RecordService[Contact]:
        return self.services.contacts

    def blank_draft(self) -> Dict[str, Any]:
        return {"name": "", "email": "", "phone": "", "company": "", "position": "", "tags": []}

    def draft_from(self, record: Contact) -> Dict[str, Any]:
        return {
            "name": record.name or "",
            "email": record.email or "",
            "phone": record.phone or "",
            "company": record.company or "",
            "position": record.position or "",
            "tags": list(record.tags),
        }

    @property
    def filtered_contacts(self) -> List[Contact]:
        return filter_contacts(self.records, self.search_term, self.filter_tag)

    @property
    def all_tags(self) -> List[str]:
        return all_tags(self.records)


class DealsPage(RecordPage[Deal]):
    entity_label = "Deal"
    required_field = "title"
    required_label = "Deal title"

    def __init__(self, services: CrmServices, clock: Optional[Clock] = None) -> None:
        super().__init__(services, clock)
        self.contacts: List[Contact] = []

    @property
    def service(self) -> RecordService[Deal]:
        return self.services.deals

    def blank_draft(self) -> Dict[str, Any]:
        return {
            "title": "",
            "value": "",
            "stage": DealStage.LEAD.value,
            "probability": 10,
            "contact_id": "",
            "expected_close": "",
            "notes": "",
        }

    def draft_from(self, record: Deal) -> Dict[str, Any]:
        return {
            "title": record.title or "",
            "value": str(record.value),
            "stage": record.stage or DealStage.LEAD.value,
            "probability": record.probability or 10,
            "contact_id": record.contact_id or "",
            "expected_close": record.expected_close.isoformat() if record.expected_close else "",
            "notes": record.notes or "",
        }

    def prepare_payload(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        return {
            **draft,
            "value": parse_number(draft.get("value")),
            "probability": parse_whole_number(draft.get("probability")),
        }

    async def load(self) -> None:
        self.records, self.contacts = await asyncio.gather(
            self.services.deals.get_all(),
            self.services.contacts.get_all(),
        )

    async def move_stage(self, deal_id: str, direction: StageDirection) -> ActionResult:
        """Move a deal one column left or right on the pipeline board."""
        deal = next((existing for existing in self.records if existing.id == deal_id), None)
        if deal is None:
            return ActionResult.fail(f"Deal not found with ID '{deal_id}'.")
        target = adjacent_stage(deal.stage, direction)
        if target is None:
            return ActionResult.fail(f"Deal cannot move {StageDirection(direction).value} from {stage_display_name(deal.stage)}")
        try:
            updated = await self.service.update(deal_id, {"stage": target})
        except NotFoundError as exc:
            logger.warning("Failed to move deal %s: %s", deal_id, exc)
            return ActionResult.fail("Failed to update deal")
        self._replace_local(updated)
        return ActionResult.ok(f"Deal moved to {stage_display_name(target)}", updated)

    @property
    def deals_by_stage(self) -> Dict[str, List[Deal]]:
        return group_deals_by_stage(self.records)

    @property
    def board(self) -> List[PipelineColumn]:
        return build_pipeline_board(self.records)

    def contact_name_for(self, deal: Deal) -> str:
        return resolve_contact_name(self.contacts, deal.contact_id)


class ActivitiesPage(RecordPage[Activity]):
    entity_label = "Activity"
    required_field = "subject"
    required_label = "Subject"
    created_message = "logged successfully"

    def __init__(self, services: CrmServices, clock: Optional[Clock] = None) -> None:
        super().__init__(services, clock)
        self.contacts: List[Contact] = []
        self.deals: List[Deal] = []
        self.filter_type = ""
        self.filter_contact = ""

    @property
    def service(self) -> RecordService[Activity]:
        return self.services.activities

    def blank_draft(self) -> Dict[str, Any]:
        return {
            "type": ActivityType.CALL.value,
            "subject": "",
            "description": "",
            "contact_id": "",
            "deal_id": "",
            "date": self._clock().replace(second=0, microsecond=0),
            "duration": "",
        }

    def draft_from(self, record: Activity) -> Dict[str, Any]:
        return {
            "type": record.type or ActivityType.CALL.value,
            "subject": record.subject or "",
            "description": record.description or "",
            "contact_id": record.contact_id or "",
            "deal_id": record.deal_id or "",
            "date": record.date,
            "duration": str(record.duration) if record.duration else "",
        }

    def prepare_payload(self, draft: Dict[str, Any]) -> Dict[str, Any]:
        return {**draft, "duration": parse_whole_number(draft.get("duration"))}

    async def load(self) -> None:
        self.records, self.contacts, self.deals = await asyncio.gather(
            self.services.activities.get_all(),
            self.services.contacts.get_all(),
            self.services.deals.get_all(),
        )

    @property
    def visible_activities(self) -> List[Activity]:
        filtered = filter_activities(self.records, self.filter_type, self.filter_contact)
        return sorted_activities(filtered)

    def contact_name_for(self, activity: Activity) -> str:
        return resolve_contact_name(self.contacts, activity.contact_id)

    def deal_title_for(self, activity: Activity) -> Optional[str]:
        deal = activity.deal_ref.resolve(self.deals)
        return deal.title if deal is not None else None


class DashboardPage:
    """Read-only overview: metrics, deals per stage and the activity feed."""

    feed_limit = 10

    def __init__(self, services: CrmServices) -> None:
        self.services = services
        self.contacts: List[Contact] = []
        self.deals: List[Deal] = []
        self.activities: List[Activity] = []

    async def load(self) -> None:
        self.contacts, self.deals, self.activities = await asyncio.gather(
            self.services.contacts.get_all(),
            self.services.deals.get_all(),
            self.services.activities.get_all(),
        )

    @property
    def metrics(self) -> DashboardMetrics:
        return compute_dashboard_metrics(self.contacts, self.deals)

    @property
    def stage_counts(self) -> Dict[str, int]:
        return stage_counts(self.deals)

    @property
    def activity_feed(self) -> List[FeedEntry]:
        return activity_feed(self.activities, self.contacts, self.feed_limit)


class HomePage(DashboardPage):
    """Landing page summary with short recent lists."""

    recent_contact_limit = 3
    active_deal_limit = 3
    recent_activity_limit = 5

    @property
    def recent_contacts(self) -> List[Contact]:
        return recent_contacts(self.contacts, self.recent_contact_limit)

    @property
    def active_deals(self) -> List[Deal]:
        return active_deals(self.deals)[: self.active_deal_limit]

    @property
    def recent_activities(self) -> List[Activity]:
        return recent_activities(self.activities, self.recent_activity_limit)

"""Derived views over full record snapshots.

Every function here is pure: it takes sequences of records and returns new
lists, dictionaries or small dataclasses without touching any store. The page
controllers recompute these after each service call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .models import (
    CLOSED_STAGES,
    DEAL_STAGES,
    Activity,
    Contact,
    Deal,
    DealStage,
    RecordT,
    SoftReference,
    StageDirection,
)

UNKNOWN_STAGE = "unknown"
UNKNOWN_CONTACT = "Unknown contact"


# ----------------------------------------------------------------------
# Recency
# ----------------------------------------------------------------------


def recent(records: Iterable[RecordT], key: Callable[[RecordT], datetime], limit: int) -> List[RecordT]:
    """Sort by ``key`` descending and keep the first ``limit`` records."""
    return sorted(records, key=key, reverse=True)[: max(limit, 0)]


def recent_contacts(contacts: Iterable[Contact], limit: int = 3) -> List[Contact]:
    return recent(contacts, lambda contact: contact.created_at, limit)


def recent_activities(activities: Iterable[Activity], limit: int = 5) -> List[Activity]:
    return recent(activities, lambda activity: activity.date, limit)


def sorted_activities(activities: Iterable[Activity]) -> List[Activity]:
    """All activities, newest first."""
    return sorted(activities, key=lambda activity: activity.date, reverse=True)


# ----------------------------------------------------------------------
# Deal aggregates
# ----------------------------------------------------------------------


def is_active_deal(deal: Deal) -> bool:
    return (deal.stage or "").lower() not in CLOSED_STAGES


def active_deals(deals: Iterable[Deal]) -> List[Deal]:
    """Deals whose stage is neither won nor lost (case-insensitive)."""
    return [deal for deal in deals if is_active_deal(deal)]


def won_deals(deals: Iterable[Deal]) -> List[Deal]:
    return [deal for deal in deals if (deal.stage or "").lower() == DealStage.WON.value]


def closed_revenue(deals: Iterable[Deal]) -> float:
    return sum(deal.value for deal in won_deals(deals))


def pipeline_value(deals: Iterable[Deal]) -> float:
    return sum(deal.value for deal in active_deals(deals))


def stage_counts(deals: Iterable[Deal]) -> Dict[str, int]:
    """Deal count per raw stage string, in first-seen order (chart data)."""
    counts: Dict[str, int] = {}
    for deal in deals:
        stage = deal.stage or "Unknown"
        counts[stage] = counts.get(stage, 0) + 1
    return counts


# ----------------------------------------------------------------------
# Pipeline board
# ----------------------------------------------------------------------


def group_deals_by_stage(deals: Iterable[Deal]) -> Dict[str, List[Deal]]:
    """Partition deals into the six stage buckets by exact stage match.

    Buckets keep input order. Deals with an unrecognised stage land in no
    bucket; see :func:`unstaged_deals` and :func:`build_pipeline_board`.
    """
    buckets: Dict[str, List[Deal]] = {stage.value: [] for stage in DEAL_STAGES}
    for deal in deals:
        if deal.stage in buckets:
            buckets[deal.stage].append(deal)
    return buckets


def unstaged_deals(deals: Iterable[Deal]) -> List[Deal]:
    known = {stage.value for stage in DEAL_STAGES}
    return [deal for deal in deals if deal.stage not in known]


@dataclass(frozen=True)
class PipelineColumn:
    """One Kanban column of the deal pipeline."""

    stage: str
    name: str
    deals: List[Deal] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.deals)

    @property
    def total_value(self) -> float:
        return sum(deal.value for deal in self.deals)


def build_pipeline_board(deals: Sequence[Deal]) -> List[PipelineColumn]:
    """Kanban columns in stage order.

    A trailing ``unknown`` column is added only when some deal carries a stage
    outside the six known ones, so no deal silently disappears from the board.
    """
    buckets = group_deals_by_stage(deals)
    columns = [PipelineColumn(stage.value, stage.display_name, buckets[stage.value]) for stage in DEAL_STAGES]
    leftovers = unstaged_deals(deals)
    if leftovers:
        columns.append(PipelineColumn(UNKNOWN_STAGE, "Unknown stage", leftovers))
    return columns


def stage_index(stage: str) -> Optional[int]:
    for index, known in enumerate(DEAL_STAGES):
        if known.value == stage:
            return index
    return None


def stage_display_name(stage: str) -> str:
    index = stage_index(stage)
    if index is None:
        return stage or "No stage"
    return DEAL_STAGES[index].display_name


def adjacent_stage(stage: str, direction: StageDirection) -> Optional[str]:
    """Neighbouring stage id in pipeline order, or None at either edge."""
    index = stage_index(stage)
    if index is None:
        return None
    step = 1 if StageDirection(direction) is StageDirection.FORWARD else -1
    target = index + step
    if target < 0 or target >= len(DEAL_STAGES):
        return None
    return DEAL_STAGES[target].value


# ----------------------------------------------------------------------
# Contact filters
# ----------------------------------------------------------------------


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


def search_contacts(contacts: Iterable[Contact], term: str) -> List[Contact]:
    """Case-insensitive substring match on name, email or company."""
    needle = (term or "").lower()
    if not needle:
        return list(contacts)
    return [
        contact
        for contact in contacts
        if _contains(contact.name, needle) or _contains(contact.email, needle) or _contains(contact.company, needle)
    ]


def filter_contacts_by_tag(contacts: Iterable[Contact], tag: str) -> List[Contact]:
    if not tag:
        return list(contacts)
    return [contact for contact in contacts if tag in contact.tags]


def filter_contacts(contacts: Iterable[Contact], term: str = "", tag: str = "") -> List[Contact]:
    return filter_contacts_by_tag(search_contacts(contacts, term), tag)


def all_tags(contacts: Iterable[Contact]) -> List[str]:
    """Union of every contact's tags, de-duplicated in first-seen order."""
    seen: Dict[str, None] = {}
    for contact in contacts:
        for tag in contact.tags:
            seen.setdefault(tag, None)
    return list(seen)


# ----------------------------------------------------------------------
# Activity filters and feed
# ----------------------------------------------------------------------


def filter_activities(
    activities: Iterable[Activity],
    activity_type: str = "",
    contact_id: str = "",
) -> List[Activity]:
    """Exact match on type and/or contact; an empty filter means no constraint."""
    return [
        activity
        for activity in activities
        if (not activity_type or activity.type == activity_type)
        and (not contact_id or activity.contact_id == contact_id)
    ]


def resolve_contact_name(contacts: Sequence[Contact], contact_id: Optional[str]) -> str:
    contact = SoftReference[Contact](contact_id).resolve(contacts)
    if contact is None or not contact.name:
        return UNKNOWN_CONTACT
    return contact.name


@dataclass(frozen=True)
class FeedEntry:
    activity: Activity
    contact_name: str

    @property
    def headline(self) -> str:
        return self.activity.subject or f"{self.activity.type} activity"


def activity_feed(activities: Iterable[Activity], contacts: Sequence[Contact], limit: int = 10) -> List[FeedEntry]:
    """Most recent activities paired with the name of their contact."""
    return [
        FeedEntry(activity, resolve_contact_name(contacts, activity.contact_id))
        for activity in recent_activities(activities, limit)
    ]


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class DashboardMetrics:
    total_contacts: int
    active_deals: int
    pipeline_value: float
    closed_revenue: float


def compute_dashboard_metrics(contacts: Sequence[Contact], deals: Sequence[Deal]) -> DashboardMetrics:
    return DashboardMetrics(
        total_contacts=len(contacts),
        active_deals=len(active_deals(deals)),
        pipeline_value=pipeline_value(deals),
        closed_revenue=closed_revenue(deals),
    )

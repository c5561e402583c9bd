"""In-memory CRM data layer: contacts, deals, activities and derived views."""

from .config import LatencyConfig, ServiceConfig
from .errors import CrmError, NotFoundError, RequiredFieldError
from .models import (
    Activity,
    ActivityType,
    Contact,
    Deal,
    DealStage,
    SoftReference,
    StageDirection,
)
from .services import ActivityService, ContactService, DealService, RecordService
from .workspace import CrmServices

__all__ = [
    "Activity",
    "ActivityService",
    "ActivityType",
    "Contact",
    "ContactService",
    "CrmError",
    "CrmServices",
    "Deal",
    "DealService",
    "DealStage",
    "LatencyConfig",
    "NotFoundError",
    "RecordService",
    "RequiredFieldError",
    "ServiceConfig",
    "SoftReference",
    "StageDirection",
]

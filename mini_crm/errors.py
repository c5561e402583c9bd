"""Error types raised by the CRM data layer and its page controllers."""

from __future__ import annotations

from typing import Optional


class CrmError(ValueError):
    """Base class for every error raised by mini_crm."""


class NotFoundError(CrmError):
    """Raised when no record matches the requested identifier."""

    def __init__(self, entity: str, record_id: Optional[str]) -> None:
        self.entity = entity
        self.record_id = record_id
        super().__init__(f"{entity} not found with ID '{record_id}'.")


class RequiredFieldError(CrmError):
    """Raised by page controllers when a draft is missing a required field."""

    def __init__(self, field_name: str, label: str) -> None:
        self.field_name = field_name
        super().__init__(f"{label} is required")

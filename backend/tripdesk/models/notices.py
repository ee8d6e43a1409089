"""Notice models - warnings and rejections reported by the itinerary engine."""

from typing import Any

from pydantic import BaseModel, Field

from backend.tripdesk.models.common import NoticeKind, NoticeSeverity

# JSON-serializable value types for notice details
JsonValue = str | int | float | bool | None | dict[str, Any] | list[Any]


class Notice(BaseModel):
    """A warning or rejection surfaced to the caller.

    Notices never abort an operation on their own; they describe what the
    engine did instead (clamped a placement, refused a move, purged items).
    """

    kind: NoticeKind
    code: str  # Machine-usable short code, e.g., "CLAMPED_AFTER_TRIP"
    message: str  # Human-readable description (1-2 sentences)
    severity: NoticeSeverity = NoticeSeverity.WARNING
    affected_item_ids: list[str] = Field(default_factory=list)
    details: dict[str, JsonValue] = Field(default_factory=dict)


class MarkupValidationError(BaseModel):
    """Rejected markup edit, as returned by the minimum-markup policy."""

    item_type: str
    attempted: float
    minimum_required: float
    message: str

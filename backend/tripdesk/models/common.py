"""Common types and enums shared across all models."""

from enum import Enum


class ItemType(str, Enum):
    """Bookable itinerary item type."""

    flight = "Flight"
    hotel = "Hotel"
    tour = "Tour"
    transfer = "Transfer"


class MarkupType(str, Enum):
    """How an item-level markup value is interpreted."""

    percentage = "percentage"
    fixed = "fixed"


class MarkupStrategy(str, Enum):
    """Policy for combining item-level and trip-level markup."""

    global_ = "global"
    per_item = "per-item"
    mixed = "mixed"


class FlightDirection(str, Enum):
    """Leg of a round-trip flight."""

    outbound = "outbound"
    return_ = "return"


class NoticeSeverity(str, Enum):
    """Severity levels for engine notices."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NoticeKind(str, Enum):
    """Categories of engine notices."""

    PLACEMENT = "placement"
    STORE = "store"
    MARKUP = "markup"
    RECONCILIATION = "reconciliation"

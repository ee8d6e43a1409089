"""Repository protocol interfaces and the persisted item record shape."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol

from pydantic import BaseModel

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.models.common import ItemType, MarkupStrategy
from backend.tripdesk.models.itinerary import (
    FlightDetails,
    HotelDetails,
    ItineraryItem,
    TourDetails,
    TransferDetails,
)
from backend.tripdesk.models.trip import Trip

# Keys kept at the top level of the details blob rather than inside the variant
_ITEM_LEVEL_KEYS = ("day_index", "span_days", "linked_item_id", "description", "start_time", "end_time")

_DETAIL_MODELS: dict[ItemType, type[BaseModel]] = {
    ItemType.flight: FlightDetails,
    ItemType.hotel: HotelDetails,
    ItemType.tour: TourDetails,
    ItemType.transfer: TransferDetails,
}


@dataclass
class ItemRecord:
    """Persisted itinerary item row.

    `details` is the free-form blob of the record store; it always carries
    `day_index` and, where applicable, `span_days`, `linked_item_id`,
    `flight_direction`, `check_in_date` and `check_out_date`.
    """

    item_id: str
    trip_id: str
    item_type: str
    item_name: str
    cost: float
    quantity: int
    markup: float
    markup_type: str
    details: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def day_index(self) -> int:
        return int(self.details.get("day_index", 0))


def item_to_record(trip_id: str, item: ItineraryItem, day_index: int) -> ItemRecord:
    """Flatten an itinerary item and its day into a record."""
    details: dict[str, Any] = item.details.model_dump(mode="json", exclude_none=True)
    for key, value in details.pop("extra", {}).items():
        if key not in _ITEM_LEVEL_KEYS:
            details.setdefault(key, value)
    details["day_index"] = day_index

    if item.span_days is not None:
        details["span_days"] = item.span_days
    if item.linked_item_id is not None:
        details["linked_item_id"] = item.linked_item_id
    if item.description is not None:
        details["description"] = item.description
    if item.start_time is not None:
        details["start_time"] = item.start_time.isoformat()
    if item.end_time is not None:
        details["end_time"] = item.end_time.isoformat()

    return ItemRecord(
        item_id=item.item_id,
        trip_id=trip_id,
        item_type=item.item_type.value,
        item_name=item.name,
        cost=item.cost,
        quantity=item.quantity,
        markup=item.markup,
        markup_type=item.markup_type.value,
        details=details,
    )


def record_to_item(record: ItemRecord) -> tuple[ItineraryItem, int]:
    """Rebuild an itinerary item and its stored day index from a record.

    Unknown detail keys are kept in the variant's `extra` map.
    """
    item_type = ItemType(record.item_type)
    blob = dict(record.details)
    item_level = {key: blob.pop(key, None) for key in _ITEM_LEVEL_KEYS}

    model = _DETAIL_MODELS[item_type]
    known = set(model.model_fields) - {"extra"}
    variant: dict[str, Any] = {key: blob.pop(key) for key in list(blob) if key in known}
    variant["kind"] = model.model_fields["kind"].default
    variant["extra"] = blob

    span_days = item_level["span_days"]
    item = ItineraryItem(
        item_id=record.item_id,
        item_type=item_type,
        name=record.item_name,
        description=item_level["description"],
        cost=record.cost,
        quantity=record.quantity or 1,
        markup=record.markup or 0,
        markup_type=record.markup_type or "percentage",
        start_time=item_level["start_time"],
        end_time=item_level["end_time"],
        linked_item_id=item_level["linked_item_id"],
        span_days=span_days if span_days and int(span_days) > 1 else None,
        details=variant,
    )
    day_index = item_level["day_index"]
    return item, int(day_index) if day_index is not None else 0


class TripRepository(Protocol):
    """Repository for trip records."""

    async def create_trip(self, trip: Trip, ctx: RequestContext) -> Trip:
        """Create a trip.

        Args:
            trip: Trip to store (trip_id may be empty to have one assigned)
            ctx: Request context with agency/agent IDs

        Returns:
            Stored trip
        """
        ...

    async def get_trip(self, trip_id: str, ctx: RequestContext) -> Trip | None:
        """Get trip by ID.

        Args:
            trip_id: Trip ID
            ctx: Request context (enforces tenancy)

        Returns:
            Trip or None if not found
        """
        ...

    async def update_trip_dates(
        self, trip_id: str, start_date: date | None, end_date: date | None, ctx: RequestContext
    ) -> None:
        """Persist a new trip window."""
        ...

    async def update_trip_pricing(
        self,
        trip_id: str,
        ctx: RequestContext,
        *,
        markup: float | None = None,
        discount: float | None = None,
        markup_strategy: MarkupStrategy | None = None,
    ) -> None:
        """Persist trip-level markup, discount and strategy."""
        ...


class ItemRepository(Protocol):
    """Repository for itinerary item records."""

    async def list_items(self, trip_id: str, ctx: RequestContext) -> list[ItemRecord]:
        """List a trip's items in creation order."""
        ...

    async def create_item(self, record: ItemRecord, ctx: RequestContext) -> ItemRecord:
        """Insert an item record.

        Raises:
            Exception: Any store failure; callers treat it as a failed write
        """
        ...

    async def update_item(
        self,
        item_id: str,
        ctx: RequestContext,
        *,
        markup: float | None = None,
        markup_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """Update markup and/or merge keys into the details blob.

        Returns:
            False when the item does not exist
        """
        ...

    async def delete_items(self, item_ids: list[str], ctx: RequestContext) -> int:
        """Delete item records; returns the number deleted."""
        ...


class MarkupSettingsRepository(Protocol):
    """Agent markup configuration store."""

    async def get_markup_settings(self, ctx: RequestContext) -> dict[str, Any] | None:
        """Stored settings blob for the agent, or None for defaults."""
        ...

    async def save_markup_settings(self, values: dict[str, Any], ctx: RequestContext) -> None:
        """Replace the agent's settings blob."""
        ...

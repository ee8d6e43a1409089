"""Itinerary models - bookable items, day buckets and the assembled day view."""

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from backend.tripdesk.models.common import FlightDirection, ItemType, MarkupType
from backend.tripdesk.models.notices import Notice


class FlightDetails(BaseModel):
    """Flight-specific fields."""

    kind: Literal["flight"] = "flight"
    origin: str | None = None
    destination: str | None = None
    flight_direction: FlightDirection | None = None
    original_offer_id: str | None = None
    carrier: str | None = None
    flight_number: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class HotelDetails(BaseModel):
    """Hotel stay fields."""

    kind: Literal["hotel"] = "hotel"
    check_in_date: date | None = None
    check_out_date: date | None = None
    nights: int | None = Field(None, ge=1)
    nightly_cost: float | None = Field(None, ge=0)
    room_type: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class TourDetails(BaseModel):
    """Tour or activity fields."""

    kind: Literal["tour"] = "tour"
    location: str | None = None
    duration_minutes: int | None = Field(None, ge=0)
    extra: dict[str, Any] = Field(default_factory=dict)


class TransferDetails(BaseModel):
    """Ground transfer fields."""

    kind: Literal["transfer"] = "transfer"
    pickup: str | None = None
    dropoff: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


ItemDetails = Annotated[
    FlightDetails | HotelDetails | TourDetails | TransferDetails,
    Field(discriminator="kind"),
]

DETAILS_KIND_BY_TYPE: dict[ItemType, str] = {
    ItemType.flight: "flight",
    ItemType.hotel: "hotel",
    ItemType.tour: "tour",
    ItemType.transfer: "transfer",
}


def empty_details(item_type: ItemType) -> FlightDetails | HotelDetails | TourDetails | TransferDetails:
    """Build the empty detail variant for an item type."""
    if item_type == ItemType.flight:
        return FlightDetails()
    if item_type == ItemType.hotel:
        return HotelDetails()
    if item_type == ItemType.tour:
        return TourDetails()
    return TransferDetails()


class ItineraryItem(BaseModel):
    """A bookable item placed on one or more days of a trip.

    `linked_item_id` is only valid on flights (the other leg of a round trip);
    `span_days` is only valid on hotels and is absent for single-day stays.
    """

    model_config = ConfigDict(validate_assignment=True)

    item_id: str
    item_type: ItemType
    name: str
    description: str | None = None
    cost: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    markup: float = Field(0.0, ge=0)
    markup_type: MarkupType = MarkupType.percentage
    start_time: datetime | None = None
    end_time: datetime | None = None
    linked_item_id: str | None = None
    span_days: int | None = Field(None, ge=2)
    details: ItemDetails

    @model_validator(mode="before")
    @classmethod
    def default_details(cls, data: Any) -> Any:
        """Fill in the empty detail variant when none was supplied."""
        if isinstance(data, dict) and data.get("details") is None and "item_type" in data:
            data = dict(data)
            data["details"] = empty_details(ItemType(data["item_type"]))
        return data

    @model_validator(mode="after")
    def validate_relations(self) -> "ItineraryItem":
        """Ensure the detail variant and relational fields fit the item type."""
        expected_kind = DETAILS_KIND_BY_TYPE[self.item_type]
        if self.details.kind != expected_kind:
            raise ValueError(
                f"{self.item_type.value} item cannot carry {self.details.kind} details"
            )
        if self.linked_item_id is not None:
            if self.item_type != ItemType.flight:
                raise ValueError("only flights can be linked")
            if self.linked_item_id == self.item_id:
                raise ValueError("an item cannot be linked to itself")
        if self.span_days is not None and self.item_type != ItemType.hotel:
            raise ValueError("only hotels can span multiple days")
        return self

    @property
    def is_linked(self) -> bool:
        return self.linked_item_id is not None

    @property
    def is_spanning(self) -> bool:
        return self.span_days is not None and self.span_days > 1

    @property
    def flight_direction(self) -> FlightDirection | None:
        if isinstance(self.details, FlightDetails):
            return self.details.flight_direction
        return None


class ItemPlacement(BaseModel):
    """Where an item sits in the calendar: its first day and how many days it covers."""

    item_id: str
    start_day: int = Field(..., ge=0)
    span_days: int = Field(1, ge=1)

    @property
    def end_day(self) -> int:
        return self.start_day + self.span_days - 1

    def covers(self, day_index: int) -> bool:
        return self.start_day <= day_index <= self.end_day


class DayBucket(BaseModel):
    """One calendar day of the trip with the items placed on it."""

    index: int = Field(..., ge=0)
    label: str
    calendar_date: date | None = None
    items: list[ItineraryItem] = Field(default_factory=list)


class ItineraryView(BaseModel):
    """Day-by-day itinerary for a trip."""

    trip_id: str
    initialized: bool
    day_count: int
    days: list[DayBucket]
    notices: list[Notice] = Field(default_factory=list)

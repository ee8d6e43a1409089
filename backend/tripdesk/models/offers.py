"""Selected-offer shapes consumed from flight, hotel and tour search providers.

The engine never calls a provider itself; the dashboard hands it whichever
offer the agent picked, normalized into one of these models.
"""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from backend.tripdesk.models.common import ItemType, MarkupType


class FlightSegment(BaseModel):
    """One time-stamped leg of a flight offer."""

    departure_time: datetime
    arrival_time: datetime
    carrier: str | None = None
    flight_number: str | None = None


class FlightOffer(BaseModel):
    """Flight fare quote; round trip when `return_segment` is present."""

    offer_id: str | None = None
    origin: str = Field(..., min_length=1)
    destination: str = Field(..., min_length=1)
    total_cost: float = Field(..., ge=0)
    currency: str = "USD"
    markup: float | None = Field(None, ge=0)
    markup_type: MarkupType | None = None
    outbound: FlightSegment
    return_segment: FlightSegment | None = None
    description: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_round_trip(self) -> bool:
        return self.return_segment is not None


class HotelOffer(BaseModel):
    """Hotel rate for a stay between check-in and check-out."""

    offer_id: str | None = None
    name: str = Field(..., min_length=1)
    check_in_date: date
    check_out_date: date
    nightly_cost: float = Field(..., ge=0)
    currency: str = "USD"
    markup: float | None = Field(None, ge=0)
    markup_type: MarkupType | None = None
    room_type: str | None = None
    description: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_stay(self) -> "HotelOffer":
        """Ensure the stay covers at least one night."""
        if self.check_out_date <= self.check_in_date:
            raise ValueError(
                f"check_out_date {self.check_out_date} must be after check_in_date {self.check_in_date}"
            )
        return self

    @property
    def nights(self) -> int:
        return (self.check_out_date - self.check_in_date).days


class ServiceOffer(BaseModel):
    """Tour, transfer or custom single-day item."""

    offer_id: str | None = None
    item_type: ItemType = ItemType.tour
    name: str = Field(..., min_length=1)
    cost: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    currency: str = "USD"
    markup: float | None = Field(None, ge=0)
    markup_type: MarkupType | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    day_index: int | None = Field(None, ge=0)
    description: str | None = None
    location: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_type(self) -> "ServiceOffer":
        """Flights and hotels have their own offer shapes."""
        if self.item_type not in (ItemType.tour, ItemType.transfer):
            raise ValueError("service offers must be Tour or Transfer items")
        return self

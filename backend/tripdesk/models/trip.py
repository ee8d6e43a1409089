"""Trip models - the trip record the itinerary engine reads and writes."""

from datetime import date

from pydantic import BaseModel, Field, model_validator

from backend.tripdesk.models.common import MarkupStrategy


class Trip(BaseModel):
    """Trip-level fields used by the itinerary engine.

    Dates are optional because a trip can exist before the agent has picked
    its travel window; the day calendar stays uninitialized until both are set.
    """

    trip_id: str
    name: str = ""
    start_date: date | None = None
    end_date: date | None = None
    currency: str = "USD"
    markup: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0, le=100)
    # None lets pricing pick a strategy from the items
    markup_strategy: MarkupStrategy | None = MarkupStrategy.global_


class TripDatesUpdate(BaseModel):
    """New trip window submitted by a date-change operation."""

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def validate_order(self) -> "TripDatesUpdate":
        """Ensure the window is not inverted."""
        if self.end_date < self.start_date:
            raise ValueError(f"end_date {self.end_date} is before start_date {self.start_date}")
        return self


class TripPricingUpdate(BaseModel):
    """Trip-level markup, discount and strategy edit."""

    markup: float | None = Field(None, ge=0)
    discount: float | None = Field(None, ge=0, le=100)
    markup_strategy: MarkupStrategy | None = None

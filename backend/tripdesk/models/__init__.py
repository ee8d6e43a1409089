"""Models package - re-exports for convenience."""

from backend.tripdesk.models.common import (
    FlightDirection,
    ItemType,
    MarkupStrategy,
    MarkupType,
    NoticeKind,
    NoticeSeverity,
)
from backend.tripdesk.models.itinerary import (
    DayBucket,
    FlightDetails,
    HotelDetails,
    ItemPlacement,
    ItineraryItem,
    ItineraryView,
    TourDetails,
    TransferDetails,
)
from backend.tripdesk.models.notices import MarkupValidationError, Notice
from backend.tripdesk.models.offers import FlightOffer, FlightSegment, HotelOffer, ServiceOffer
from backend.tripdesk.models.pricing import PriceBreakdown, PriceLine
from backend.tripdesk.models.trip import Trip, TripDatesUpdate, TripPricingUpdate

__all__ = [
    # Common
    "ItemType",
    "MarkupType",
    "MarkupStrategy",
    "FlightDirection",
    "NoticeKind",
    "NoticeSeverity",
    # Trip
    "Trip",
    "TripDatesUpdate",
    "TripPricingUpdate",
    # Items
    "ItineraryItem",
    "FlightDetails",
    "HotelDetails",
    "TourDetails",
    "TransferDetails",
    "ItemPlacement",
    "DayBucket",
    "ItineraryView",
    # Offers
    "FlightSegment",
    "FlightOffer",
    "HotelOffer",
    "ServiceOffer",
    # Pricing
    "PriceLine",
    "PriceBreakdown",
    # Notices
    "Notice",
    "MarkupValidationError",
]

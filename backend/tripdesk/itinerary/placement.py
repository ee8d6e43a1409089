"""Item placement - decides which day bucket(s) a bookable item belongs to.

Three cases:
- single items (tours, transfers, one-way flights, one-night hotels) land on
  the day of their start timestamp, clamped into the trip
- round-trip flights become two linked items, each placed by its own departure
- multi-night hotels cover one bucket per night from check-in, clamped at the trip end
"""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime

from backend.tripdesk.itinerary.calendar import DayCalendar
from backend.tripdesk.itinerary.errors import ItineraryNotInitializedError
from backend.tripdesk.itinerary.markup import MarkupPolicy
from backend.tripdesk.models.common import (
    FlightDirection,
    ItemType,
    MarkupType,
    NoticeKind,
    NoticeSeverity,
)
from backend.tripdesk.models.itinerary import (
    FlightDetails,
    HotelDetails,
    ItineraryItem,
    TourDetails,
    TransferDetails,
)
from backend.tripdesk.models.notices import Notice
from backend.tripdesk.models.offers import FlightOffer, FlightSegment, HotelOffer, ServiceOffer

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPlacement:
    """An item together with the bucket range it was resolved to."""

    item: ItineraryItem
    day_index: int
    span_days: int = 1
    notices: list[Notice] = field(default_factory=list)


def _new_item_id() -> str:
    return str(uuid.uuid4())


class ItemPlacementResolver:
    """Resolve offers and items to day buckets of a single trip calendar."""

    def __init__(
        self,
        calendar: DayCalendar,
        policy: MarkupPolicy | None = None,
        id_factory: Callable[[], str] = _new_item_id,
    ) -> None:
        self._calendar = calendar
        self._policy = policy or MarkupPolicy.from_settings()
        self._new_id = id_factory

    @property
    def calendar(self) -> DayCalendar:
        return self._calendar

    def _require_initialized(self) -> None:
        if not self._calendar.initialized:
            raise ItineraryNotInitializedError(
                "Itinerary not initialized: trip dates are missing or out of range"
            )

    def _markup_for(
        self, item_type: ItemType, markup: float | None, markup_type: MarkupType | None
    ) -> tuple[float, MarkupType]:
        default_markup, default_type = self._policy.default_for(item_type)
        return (
            default_markup if markup is None else markup,
            markup_type or (default_type if markup is None else MarkupType.percentage),
        )

    def resolve_day_index(
        self, when: date | datetime | str, item_id: str
    ) -> tuple[int, list[Notice]]:
        """Apply the single-item rule to a date or timestamp.

        Returns:
            (clamped day index, placement warnings)
        """
        self._require_initialized()
        raw = self._calendar.raw_index_for(when)
        if raw is None:
            return 0, [
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="UNPARSEABLE_TIME",
                    message="Item time could not be read; placed on the first day.",
                    affected_item_ids=[item_id],
                    details={"value": str(when)},
                )
            ]

        if raw < 0:
            return 0, [
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="CLAMPED_BEFORE_TRIP",
                    message="Item starts before the trip; placed on the first day.",
                    affected_item_ids=[item_id],
                    details={"raw_day_index": raw, "day_index": 0},
                )
            ]

        if raw > self._calendar.last_index:
            last = self._calendar.last_index
            return last, [
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="CLAMPED_AFTER_TRIP",
                    message="Item starts after the trip ends; placed on the last day.",
                    affected_item_ids=[item_id],
                    details={"raw_day_index": raw, "day_index": last},
                )
            ]

        return raw, []

    def place_item(self, item: ItineraryItem, fallback_day: int = 0) -> ResolvedPlacement:
        """Place an already-built single-day item by its start time."""
        self._require_initialized()

        if item.start_time is None:
            day = min(max(fallback_day, 0), self._calendar.last_index)
            notices = [
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="MISSING_START_TIME",
                    message=f"Item has no start time; placed on {self._calendar.label_for(day)}.",
                    severity=NoticeSeverity.INFO,
                    affected_item_ids=[item.item_id],
                    details={"day_index": day},
                )
            ]
            if day != fallback_day:
                notices[0].details["requested_day_index"] = fallback_day
            return ResolvedPlacement(item=item, day_index=day, notices=notices)

        day, notices = self.resolve_day_index(item.start_time, item.item_id)
        return ResolvedPlacement(item=item, day_index=day, notices=notices)

    def place_service(self, offer: ServiceOffer) -> ResolvedPlacement:
        """Build and place a tour, transfer or custom item."""
        self._require_initialized()
        markup, markup_type = self._markup_for(offer.item_type, offer.markup, offer.markup_type)

        details: TourDetails | TransferDetails
        if offer.item_type == ItemType.transfer:
            details = TransferDetails(pickup=offer.location, extra=dict(offer.extra))
        else:
            details = TourDetails(location=offer.location, extra=dict(offer.extra))

        item = ItineraryItem(
            item_id=self._new_id(),
            item_type=offer.item_type,
            name=offer.name,
            description=offer.description,
            cost=offer.cost,
            quantity=offer.quantity,
            markup=markup,
            markup_type=markup_type,
            start_time=offer.start_time,
            end_time=offer.end_time,
            details=details,
        )
        return self.place_item(item, fallback_day=offer.day_index or 0)

    def _flight_item(
        self,
        offer: FlightOffer,
        segment: FlightSegment,
        *,
        item_id: str,
        name: str,
        origin: str,
        destination: str,
        cost: float,
        markup: float,
        markup_type: MarkupType,
        direction: FlightDirection | None,
        linked_item_id: str | None,
    ) -> ItineraryItem:
        return ItineraryItem(
            item_id=item_id,
            item_type=ItemType.flight,
            name=name,
            description=offer.description,
            cost=cost,
            markup=markup,
            markup_type=markup_type,
            start_time=segment.departure_time,
            end_time=segment.arrival_time,
            linked_item_id=linked_item_id,
            details=FlightDetails(
                origin=origin,
                destination=destination,
                flight_direction=direction,
                original_offer_id=offer.offer_id,
                carrier=segment.carrier,
                flight_number=segment.flight_number,
                extra=dict(offer.extra),
            ),
        )

    def place_flight(self, offer: FlightOffer) -> list[ResolvedPlacement]:
        """Build and place a one-way flight, or the two linked legs of a round trip.

        Round trips split cost and markup 50/50 between the legs; each leg is
        placed on the day of its own departure.
        """
        self._require_initialized()
        markup, markup_type = self._markup_for(ItemType.flight, offer.markup, offer.markup_type)

        if offer.return_segment is None:
            item = self._flight_item(
                offer,
                offer.outbound,
                item_id=self._new_id(),
                name=f"{offer.origin} → {offer.destination}",
                origin=offer.origin,
                destination=offer.destination,
                cost=offer.total_cost,
                markup=markup,
                markup_type=markup_type,
                direction=None,
                linked_item_id=None,
            )
            return [self.place_item(item)]

        outbound_id = self._new_id()
        return_id = self._new_id()
        half_cost = offer.total_cost / 2
        half_markup = markup / 2

        outbound = self._flight_item(
            offer,
            offer.outbound,
            item_id=outbound_id,
            name=f"{offer.origin} → {offer.destination}",
            origin=offer.origin,
            destination=offer.destination,
            cost=half_cost,
            markup=half_markup,
            markup_type=markup_type,
            direction=FlightDirection.outbound,
            linked_item_id=return_id,
        )
        inbound = self._flight_item(
            offer,
            offer.return_segment,
            item_id=return_id,
            name=f"{offer.destination} → {offer.origin}",
            origin=offer.destination,
            destination=offer.origin,
            cost=half_cost,
            markup=half_markup,
            markup_type=markup_type,
            direction=FlightDirection.return_,
            linked_item_id=outbound_id,
        )

        placements = [self.place_item(outbound), self.place_item(inbound)]
        logger.info(
            f"[placement] round trip {offer.origin}->{offer.destination} "
            f"outbound day={placements[0].day_index} return day={placements[1].day_index}"
        )
        return placements

    def place_hotel_stay(self, offer: HotelOffer) -> ResolvedPlacement:
        """Build and place a hotel stay covering one bucket per night.

        The stay starts on the check-in day and ends on the day of the last
        night (the day before check-out), clamped to the trip's last day.
        """
        self._require_initialized()
        item_id = self._new_id()
        markup, markup_type = self._markup_for(ItemType.hotel, offer.markup, offer.markup_type)
        nights = offer.nights

        start_day, notices = self.resolve_day_index(offer.check_in_date, item_id)

        raw_checkout = self._calendar.raw_index_for(offer.check_out_date)
        raw_end = (raw_checkout if raw_checkout is not None else start_day + 1) - 1
        end_day = min(max(raw_end, start_day), self._calendar.last_index)
        span_days = end_day - start_day + 1

        if span_days != nights:
            notices.append(
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="SPAN_CLAMPED",
                    message=(
                        f"Stay of {nights} night(s) covers {span_days} day(s) of the trip."
                    ),
                    affected_item_ids=[item_id],
                    details={"nights": nights, "span_days": span_days},
                )
            )

        item = ItineraryItem(
            item_id=item_id,
            item_type=ItemType.hotel,
            name=offer.name,
            description=offer.description,
            cost=offer.nightly_cost,
            quantity=nights,
            markup=markup,
            markup_type=markup_type,
            start_time=datetime.combine(offer.check_in_date, datetime.min.time()),
            end_time=datetime.combine(offer.check_out_date, datetime.min.time()),
            span_days=span_days if span_days > 1 else None,
            details=HotelDetails(
                check_in_date=offer.check_in_date,
                check_out_date=offer.check_out_date,
                nights=nights,
                nightly_cost=offer.nightly_cost,
                room_type=offer.room_type,
                extra=dict(offer.extra),
            ),
        )
        return ResolvedPlacement(item=item, day_index=start_day, span_days=span_days, notices=notices)

"""Tests for item placement onto trip days."""

import itertools
from datetime import date, datetime

import pytest

from backend.tripdesk.itinerary.calendar import build_day_calendar
from backend.tripdesk.itinerary.errors import ItineraryNotInitializedError
from backend.tripdesk.itinerary.markup import MarkupPolicy, MarkupSetting
from backend.tripdesk.itinerary.placement import ItemPlacementResolver
from backend.tripdesk.models.common import FlightDirection, ItemType, MarkupType
from backend.tripdesk.models.offers import FlightOffer, FlightSegment, HotelOffer, ServiceOffer


def _policy() -> MarkupPolicy:
    return MarkupPolicy(
        flight=MarkupSetting(10.0, MarkupType.percentage, 10.0),
        hotel=MarkupSetting(15.0, MarkupType.percentage, 15.0),
        activity=MarkupSetting(20.0, MarkupType.percentage, 20.0),
    )


def _resolver(start: str | None = "2025-06-01", end: str | None = "2025-06-05") -> ItemPlacementResolver:
    ids = itertools.count(1)
    return ItemPlacementResolver(
        build_day_calendar(start, end), _policy(), id_factory=lambda: f"item-{next(ids)}"
    )


def _segment(when: str) -> FlightSegment:
    departure = datetime.fromisoformat(when)
    return FlightSegment(departure_time=departure, arrival_time=departure.replace(hour=23))


class TestSingleItems:
    """Tours, transfers and one-way flights."""

    def test_tour_lands_on_its_start_day(self) -> None:
        placement = _resolver().place_service(
            ServiceOffer(name="Museum tour", cost=50, start_time=datetime(2025, 6, 3, 10))
        )

        assert placement.day_index == 2
        assert placement.span_days == 1
        assert placement.notices == []
        assert placement.item.item_type == ItemType.tour

    def test_item_before_trip_clamps_to_first_day(self) -> None:
        placement = _resolver().place_service(
            ServiceOffer(name="Early tour", cost=50, start_time=datetime(2025, 5, 28, 10))
        )

        assert placement.day_index == 0
        assert [n.code for n in placement.notices] == ["CLAMPED_BEFORE_TRIP"]

    def test_item_after_trip_clamps_to_last_day(self) -> None:
        placement = _resolver().place_service(
            ServiceOffer(
                item_type=ItemType.transfer,
                name="Airport transfer",
                cost=30,
                start_time=datetime(2025, 6, 9, 7),
            )
        )

        assert placement.day_index == 4
        assert [n.code for n in placement.notices] == ["CLAMPED_AFTER_TRIP"]
        assert placement.notices[0].details["raw_day_index"] == 8

    def test_missing_start_time_uses_requested_day(self) -> None:
        placement = _resolver().place_service(ServiceOffer(name="Cooking class", cost=80, day_index=3))

        assert placement.day_index == 3
        assert placement.notices[0].code == "MISSING_START_TIME"

    def test_missing_start_time_clamps_requested_day(self) -> None:
        placement = _resolver().place_service(ServiceOffer(name="Cooking class", cost=80, day_index=12))

        assert placement.day_index == 4
        assert placement.notices[0].details["requested_day_index"] == 12

    def test_default_markup_comes_from_policy(self) -> None:
        tour = _resolver().place_service(ServiceOffer(name="Tour", cost=10, day_index=0))
        transfer = _resolver().place_service(
            ServiceOffer(item_type=ItemType.transfer, name="Transfer", cost=10, day_index=0)
        )

        assert tour.item.markup == 20.0
        assert transfer.item.markup == 10.0

    def test_explicit_markup_wins(self) -> None:
        placement = _resolver().place_service(
            ServiceOffer(name="Tour", cost=10, day_index=0, markup=25, markup_type=MarkupType.fixed)
        )

        assert placement.item.markup == 25
        assert placement.item.markup_type == MarkupType.fixed

    def test_one_way_flight_is_a_single_unlinked_item(self) -> None:
        placements = _resolver().place_flight(
            FlightOffer(
                origin="JFK",
                destination="LHR",
                total_cost=600,
                outbound=_segment("2025-06-01T18:00:00"),
            )
        )

        assert len(placements) == 1
        item = placements[0].item
        assert item.cost == 600
        assert item.linked_item_id is None
        assert item.name == "JFK → LHR"
        assert placements[0].day_index == 0

    def test_uninitialized_calendar_refuses_placement(self) -> None:
        with pytest.raises(ItineraryNotInitializedError):
            _resolver(start=None).place_service(ServiceOffer(name="Tour", cost=10))


class TestRoundTripFlights:
    """Round trips become two linked legs."""

    def _place(self, markup: float | None = 10) -> list:
        return _resolver().place_flight(
            FlightOffer(
                origin="JFK",
                destination="LHR",
                total_cost=800,
                markup=markup,
                outbound=_segment("2025-06-01T18:00:00"),
                return_segment=_segment("2025-06-05T11:00:00"),
            )
        )

    def test_legs_land_on_their_departure_days(self) -> None:
        outbound, inbound = self._place()

        assert outbound.day_index == 0
        assert inbound.day_index == 4

    def test_cost_and_markup_split_evenly(self) -> None:
        outbound, inbound = self._place(markup=10)

        assert outbound.item.cost == 400
        assert inbound.item.cost == 400
        assert outbound.item.markup == 5
        assert inbound.item.markup == 5

    def test_legs_link_to_each_other(self) -> None:
        outbound, inbound = self._place()

        assert outbound.item.linked_item_id == inbound.item.item_id
        assert inbound.item.linked_item_id == outbound.item.item_id

    def test_leg_names_and_directions(self) -> None:
        outbound, inbound = self._place()

        assert outbound.item.name == "JFK → LHR"
        assert inbound.item.name == "LHR → JFK"
        assert outbound.item.flight_direction == FlightDirection.outbound
        assert inbound.item.flight_direction == FlightDirection.return_

    def test_return_after_trip_end_clamps(self) -> None:
        placements = _resolver().place_flight(
            FlightOffer(
                origin="JFK",
                destination="CDG",
                total_cost=500,
                outbound=_segment("2025-06-02T09:00:00"),
                return_segment=_segment("2025-06-08T09:00:00"),
            )
        )

        assert placements[1].day_index == 4
        assert placements[1].notices[0].code == "CLAMPED_AFTER_TRIP"


class TestHotelStays:
    """Multi-night hotels span one day per night."""

    def test_three_night_stay(self) -> None:
        placement = _resolver().place_hotel_stay(
            HotelOffer(
                name="Harbour Hotel",
                check_in_date=date(2025, 6, 2),
                check_out_date=date(2025, 6, 5),
                nightly_cost=100,
            )
        )

        assert placement.day_index == 1
        assert placement.span_days == 3
        assert placement.item.cost == 100
        assert placement.item.quantity == 3
        assert placement.item.span_days == 3
        assert placement.notices == []

    def test_single_night_stay_does_not_span(self) -> None:
        placement = _resolver().place_hotel_stay(
            HotelOffer(
                name="Airport Inn",
                check_in_date=date(2025, 6, 1),
                check_out_date=date(2025, 6, 2),
                nightly_cost=90,
            )
        )

        assert placement.span_days == 1
        assert placement.item.span_days is None

    def test_stay_past_trip_end_is_clamped(self) -> None:
        placement = _resolver().place_hotel_stay(
            HotelOffer(
                name="Late Hotel",
                check_in_date=date(2025, 6, 4),
                check_out_date=date(2025, 6, 8),
                nightly_cost=100,
            )
        )

        assert placement.day_index == 3
        assert placement.span_days == 2
        assert placement.item.quantity == 4
        assert [n.code for n in placement.notices] == ["SPAN_CLAMPED"]
        assert placement.item.cost * placement.item.quantity / placement.span_days == pytest.approx(200)

    def test_stay_starting_before_trip(self) -> None:
        placement = _resolver().place_hotel_stay(
            HotelOffer(
                name="Early Hotel",
                check_in_date=date(2025, 5, 30),
                check_out_date=date(2025, 6, 3),
                nightly_cost=100,
            )
        )

        assert placement.day_index == 0
        assert placement.span_days == 2
        assert [n.code for n in placement.notices] == ["CLAMPED_BEFORE_TRIP", "SPAN_CLAMPED"]

    def test_hotel_default_markup(self) -> None:
        placement = _resolver().place_hotel_stay(
            HotelOffer(
                name="Hotel",
                check_in_date=date(2025, 6, 1),
                check_out_date=date(2025, 6, 3),
                nightly_cost=100,
            )
        )

        assert placement.item.markup == 15.0

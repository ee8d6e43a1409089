"""Tests for trip pricing under each markup strategy."""

import pytest

from backend.tripdesk.itinerary.pricing import PricingEngine, item_final_price
from backend.tripdesk.itinerary.store import ItineraryStore
from backend.tripdesk.models.common import ItemType, MarkupStrategy, MarkupType
from backend.tripdesk.models.itinerary import ItineraryItem
from backend.tripdesk.models.trip import Trip


def _item(
    item_id: str,
    cost: float,
    markup: float = 0.0,
    markup_type: MarkupType = MarkupType.percentage,
    item_type: ItemType = ItemType.tour,
    **kwargs,
) -> ItineraryItem:
    return ItineraryItem(
        item_id=item_id,
        item_type=item_type,
        name=item_id,
        cost=cost,
        markup=markup,
        markup_type=markup_type,
        **kwargs,
    )


def _store(*placed: tuple[int, ItineraryItem], days: int = 3) -> ItineraryStore:
    store = ItineraryStore(days)
    for day, item in placed:
        assert store.add_item(day, item).ok
    return store


def _trip(strategy: MarkupStrategy | None, markup: float = 0.0, discount: float = 0.0) -> Trip:
    return Trip(trip_id="trip-1", markup=markup, discount=discount, markup_strategy=strategy)


def test_item_final_price_percentage() -> None:
    assert item_final_price(_item("a", 100, 10)) == pytest.approx(110)


def test_item_final_price_fixed_is_not_multiplied_by_quantity() -> None:
    item = _item("a", 50, 5, MarkupType.fixed, quantity=3)

    assert item_final_price(item) == pytest.approx(155)


def test_item_final_price_uses_quantity() -> None:
    item = _item("h", 100, 15, item_type=ItemType.hotel, quantity=2)

    assert item_final_price(item) == pytest.approx(230)


def test_per_item_strategy_applies_only_discount() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("b", 50, 5, MarkupType.fixed)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.per_item, markup=30, discount=10))

    assert engine.trip_total(store.items()) == pytest.approx((110 + 55) * 0.9)


def test_global_strategy_wraps_item_totals() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("b", 50, 5, MarkupType.fixed)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10, discount=0))

    assert engine.trip_total(store.items()) == pytest.approx(165 * 1.1)


def test_global_strategy_with_discount() -> None:
    store = _store((0, _item("a", 200)))
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10, discount=10))

    assert engine.trip_total(store.items()) == pytest.approx(200 * 1.1 * 0.9)


def test_mixed_strategy_falls_back_to_trip_markup() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("c", 50, 0)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.mixed, markup=20))

    assert engine.trip_total(store.items()) == pytest.approx(110 + 60)


def test_strategy_override() -> None:
    store = _store((0, _item("a", 100, 10)))
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10))

    assert engine.trip_total(store.items(), MarkupStrategy.per_item) == pytest.approx(110)


def test_spanning_hotel_priced_once_and_split_across_days() -> None:
    hotel = _item("h", 100, item_type=ItemType.hotel, quantity=2, span_days=2)
    store = _store((0, hotel))
    engine = PricingEngine(_trip(MarkupStrategy.per_item))

    breakdown = engine.price_trip(store)

    assert len(breakdown.lines) == 1
    assert breakdown.total == pytest.approx(200)
    assert breakdown.day_totals == pytest.approx([100, 100, 0])


def test_day_totals_sum_to_trip_total() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("h", 80, 15, item_type=ItemType.hotel, quantity=2, span_days=2)),
        (2, _item("b", 40, 5, MarkupType.fixed)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10, discount=5))

    breakdown = engine.price_trip(store)

    assert sum(breakdown.day_totals) == pytest.approx(breakdown.total)


def test_breakdown_fields() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("b", 50, 5, MarkupType.fixed)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10, discount=10))

    breakdown = engine.price_trip(store)

    assert breakdown.strategy == MarkupStrategy.global_
    assert breakdown.subtotal == pytest.approx(150)
    assert breakdown.item_markup_total == pytest.approx(15)
    assert breakdown.trip_markup_amount == pytest.approx(16.5)
    assert breakdown.discount_amount == pytest.approx(18.15)
    assert breakdown.total == pytest.approx(163.35)


def test_average_markup_percent() -> None:
    store = _store(
        (0, _item("a", 100, 10)),
        (1, _item("b", 50, 5, MarkupType.fixed)),
    )
    engine = PricingEngine(_trip(MarkupStrategy.per_item))

    assert engine.average_markup_percent(store.items()) == pytest.approx(10)


def test_empty_itinerary() -> None:
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=12))

    breakdown = engine.price_trip(ItineraryStore(2))

    assert breakdown.total == 0
    assert breakdown.lines == []
    assert breakdown.average_markup_percent == pytest.approx(12)
    assert breakdown.day_totals == [0, 0]


def test_global_markup_and_discount_on_base_300() -> None:
    store = _store((0, _item("a", 200)), (1, _item("b", 100)))
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10, discount=5))

    assert engine.trip_total(store.items()) == pytest.approx(313.5)


def test_trip_without_strategy_prices_marked_items_per_item() -> None:
    store = _store((0, _item("a", 100, 10)), (1, _item("b", 50)))
    engine = PricingEngine(_trip(None, markup=20))

    breakdown = engine.price_trip(store)

    assert breakdown.strategy == MarkupStrategy.per_item
    assert breakdown.total == pytest.approx(110 + 50)


def test_trip_without_strategy_and_unmarked_items_prices_globally() -> None:
    store = _store((0, _item("a", 100)), (1, _item("b", 50)))
    engine = PricingEngine(_trip(None, markup=20))

    assert engine.resolve_strategy(store.items()) == MarkupStrategy.global_
    assert engine.trip_total(store.items()) == pytest.approx(180)


def test_empty_trip_without_strategy_prices_globally() -> None:
    engine = PricingEngine(_trip(None, markup=20))

    assert engine.price_trip(ItineraryStore(2)).strategy == MarkupStrategy.global_


def test_explicit_strategy_is_not_overridden_by_item_markups() -> None:
    store = _store((0, _item("a", 100, 10)))
    engine = PricingEngine(_trip(MarkupStrategy.global_, markup=10))

    assert engine.resolve_strategy(store.items()) == MarkupStrategy.global_

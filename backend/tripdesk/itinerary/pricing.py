"""Pricing engine - per-item prices and trip totals under a markup strategy.

Strategies:
- global: trip markup and discount wrap the summed item totals
  (each item total already includes its own markup)
- per-item: items carry their own markup; only the trip discount is applied
- mixed: items with a markup use it, the rest fall back to the trip markup

A trip without a strategy is priced per item when any item carries its own
markup, and globally otherwise.
"""

import logging
import time
from collections.abc import Iterable

from backend.tripdesk.itinerary.store import ItineraryStore
from backend.tripdesk.models.common import MarkupStrategy, MarkupType
from backend.tripdesk.models.itinerary import ItineraryItem
from backend.tripdesk.models.pricing import PriceBreakdown, PriceLine
from backend.tripdesk.models.trip import Trip
from backend.tripdesk.utils.metrics import pricing_latency_ms

logger = logging.getLogger(__name__)


def item_base_cost(item: ItineraryItem) -> float:
    """Cost before markup, multiplied out by quantity."""
    return item.cost * item.quantity


def markup_amount(base: float, markup: float, markup_type: MarkupType) -> float:
    """Markup in currency units for a given base."""
    if markup_type == MarkupType.percentage:
        return base * (markup / 100)
    return markup


def item_markup_amount(item: ItineraryItem) -> float:
    return markup_amount(item_base_cost(item), item.markup, item.markup_type)


def item_final_price(item: ItineraryItem) -> float:
    """Item price with its own markup applied.

    percentage: cost * quantity * (1 + markup/100); fixed: cost * quantity + markup
    """
    return item_base_cost(item) + item_markup_amount(item)


def _unique(items: Iterable[ItineraryItem]) -> list[ItineraryItem]:
    seen: set[str] = set()
    unique: list[ItineraryItem] = []
    for item in items:
        if item.item_id in seen:
            continue
        seen.add(item.item_id)
        unique.append(item)
    return unique


class PricingEngine:
    """Compute item and trip prices for one trip."""

    def __init__(self, trip: Trip) -> None:
        self._trip = trip

    def resolve_strategy(self, items: Iterable[ItineraryItem]) -> MarkupStrategy:
        """The trip's strategy, or one picked from the items when the trip has none.

        Items carrying their own markup price per item; otherwise the trip
        markup wraps the total.
        """
        if self._trip.markup_strategy is not None:
            return self._trip.markup_strategy
        if any(item.markup > 0 for item in items):
            return MarkupStrategy.per_item
        return MarkupStrategy.global_

    def _line(self, item: ItineraryItem, strategy: MarkupStrategy) -> PriceLine:
        base = item_base_cost(item)
        if strategy == MarkupStrategy.mixed and item.markup <= 0:
            amount = markup_amount(base, self._trip.markup, MarkupType.percentage)
        else:
            amount = item_markup_amount(item)
        return PriceLine(
            item_id=item.item_id,
            item_type=item.item_type,
            name=item.name,
            base_cost=base,
            markup_amount=amount,
            final_price=base + amount,
            span_days=item.span_days or 1,
        )

    def _discount_factor(self) -> float:
        return 1 - self._trip.discount / 100

    def lines(
        self, items: Iterable[ItineraryItem], strategy: MarkupStrategy | None = None
    ) -> list[PriceLine]:
        """Itemized prices; an item referenced from several days is priced once."""
        items = list(items)
        strategy = strategy or self.resolve_strategy(items)
        return [self._line(item, strategy) for item in _unique(items)]

    def trip_total(
        self, items: Iterable[ItineraryItem], strategy: MarkupStrategy | None = None
    ) -> float:
        """Total trip price.

        global:   sum(base + item markup) * (1 + trip markup/100) * (1 - discount/100)
        per-item: sum(item final) * (1 - discount/100)
        mixed:    as per-item, with unmarked items using the trip markup
        """
        items = list(items)
        strategy = strategy or self.resolve_strategy(items)
        summed = sum(line.final_price for line in self.lines(items, strategy))
        if strategy == MarkupStrategy.global_:
            summed *= 1 + self._trip.markup / 100
        return summed * self._discount_factor()

    def day_total(
        self,
        store: ItineraryStore,
        day_index: int,
        strategy: MarkupStrategy | None = None,
    ) -> float:
        """Price attributed to one day; spanning stays are split evenly over their days."""
        strategy = strategy or self.resolve_strategy(store.items())
        total = 0.0
        for item in store.items_on(day_index):
            placement = store.placement_of(item.item_id)
            span = placement.span_days if placement else 1
            total += self._line(item, strategy).final_price / span
        if strategy == MarkupStrategy.global_:
            total *= 1 + self._trip.markup / 100
        return total * self._discount_factor()

    def average_markup_percent(
        self, items: Iterable[ItineraryItem], strategy: MarkupStrategy | None = None
    ) -> float:
        """Effective markup over base cost, as a percentage."""
        items = list(items)
        strategy = strategy or self.resolve_strategy(items)
        lines = self.lines(items, strategy)
        base = sum(line.base_cost for line in lines)
        if base == 0:
            return self._trip.markup if strategy == MarkupStrategy.global_ else 0.0
        final = sum(line.final_price for line in lines)
        if strategy == MarkupStrategy.global_:
            final *= 1 + self._trip.markup / 100
        return (final - base) / base * 100

    def price_trip(
        self, store: ItineraryStore, strategy: MarkupStrategy | None = None
    ) -> PriceBreakdown:
        """Full breakdown of the trip price for the items in a store."""
        started = time.perf_counter()
        items = store.items()
        strategy = strategy or self.resolve_strategy(items)
        lines = self.lines(items, strategy)

        subtotal = sum(line.base_cost for line in lines)
        item_markup_total = sum(line.markup_amount for line in lines)
        with_items = subtotal + item_markup_total
        trip_markup_amount = (
            with_items * self._trip.markup / 100 if strategy == MarkupStrategy.global_ else 0.0
        )
        before_discount = with_items + trip_markup_amount
        total = before_discount * self._discount_factor()

        breakdown = PriceBreakdown(
            strategy=strategy,
            currency=self._trip.currency,
            lines=lines,
            subtotal=subtotal,
            item_markup_total=item_markup_total,
            trip_markup_amount=trip_markup_amount,
            discount_amount=before_discount - total,
            total=total,
            average_markup_percent=self.average_markup_percent(items, strategy),
            day_totals=[self.day_total(store, i, strategy) for i in range(store.day_count)],
        )

        elapsed_ms = (time.perf_counter() - started) * 1000
        pricing_latency_ms.labels(strategy=strategy.value).observe(elapsed_ms)
        logger.debug(
            f"[pricing] trip_id={self._trip.trip_id} strategy={strategy.value} total={total:.2f}"
        )
        return breakdown

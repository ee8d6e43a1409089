"""Prometheus metrics for itinerary operations."""

from prometheus_client import Counter, Histogram

item_placements_total = Counter(
    "itinerary_item_placements_total",
    "Items placed onto trip days",
    ["item_type", "outcome"],
)

placement_clamps_total = Counter(
    "itinerary_placement_clamps_total",
    "Placements clamped into the trip window",
    ["code"],
)

items_purged_total = Counter(
    "itinerary_items_purged_total",
    "Items deleted by boundary reconciliation after a trip date change",
)

markup_rejections_total = Counter(
    "itinerary_markup_rejections_total",
    "Markup edits rejected by the minimum-markup policy",
    ["item_type"],
)

store_rejections_total = Counter(
    "itinerary_store_rejections_total",
    "Store operations refused or referencing unknown items",
    ["operation", "code"],
)

pricing_latency_ms = Histogram(
    "itinerary_pricing_latency_ms",
    "Trip pricing latency in milliseconds",
    ["strategy"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 25, 50, 100],
)


class PrometheusItineraryMetrics:
    """Prometheus-based itinerary metrics implementation."""

    def record_placement(self, item_type: str, outcome: str) -> None:
        """Count an item placement attempt."""
        item_placements_total.labels(item_type=item_type, outcome=outcome).inc()

    def inc_clamp(self, code: str) -> None:
        """Count a clamped placement."""
        placement_clamps_total.labels(code=code).inc()

    def inc_purged(self, count: int) -> None:
        """Count items purged by reconciliation."""
        if count:
            items_purged_total.inc(count)

    def inc_markup_rejection(self, item_type: str) -> None:
        """Count a rejected markup edit."""
        markup_rejections_total.labels(item_type=item_type).inc()

    def inc_store_rejection(self, operation: str, code: str) -> None:
        """Count a refused or not-found store operation."""
        store_rejections_total.labels(operation=operation, code=code).inc()

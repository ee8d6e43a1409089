"""Boundary reconciliation - purge-and-rebuild when a trip's dates change.

Items keep their stored day index across a date change. Anything whose index
no longer fits the new calendar is deleted outright: the engine cannot guess
where the agent wants it moved, so it does not re-place it. Deletions are
irreversible, which is why `preview` exists.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.repositories import ItemRepository
from backend.tripdesk.itinerary.calendar import DayCalendar, build_day_calendar
from backend.tripdesk.itinerary.errors import InvalidTripDatesError, ItemPersistenceError
from backend.tripdesk.itinerary.store import ItineraryStore
from backend.tripdesk.models.common import NoticeKind, NoticeSeverity
from backend.tripdesk.models.notices import Notice
from backend.tripdesk.utils.metrics import PrometheusItineraryMetrics

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """What a date change did (or would do) to the stored items."""

    previous_day_count: int
    day_count: int
    purged_item_ids: list[str] = field(default_factory=list)
    unlinked_item_ids: list[str] = field(default_factory=list)
    trimmed_item_ids: list[str] = field(default_factory=list)
    notices: list[Notice] = field(default_factory=list)


def _surviving_partners(store: ItineraryStore, purged: list[str]) -> list[str]:
    partners: list[str] = []
    for item_id in purged:
        item = store.get(item_id)
        candidates = [store.linked_partner(item_id), item.linked_item_id if item else None]
        for partner_id in candidates:
            if partner_id and partner_id in store and partner_id not in purged and partner_id not in partners:
                partners.append(partner_id)
    return partners


def _overrunning_spans(store: ItineraryStore, day_count: int, purged: list[str]) -> list[str]:
    return [
        placement.item_id
        for placement in store.placements()
        if placement.item_id not in purged and placement.end_day >= day_count
    ]


def _outside(stored: dict[str, int] | None, calendar: DayCalendar) -> list[str]:
    return [
        item_id
        for item_id, day_index in (stored or {}).items()
        if not calendar.contains(day_index)
    ]


def _span_details(store: ItineraryStore, item_id: str) -> dict[str, Any]:
    item = store.get(item_id)
    return {"span_days": item.span_days if item else None}


class BoundaryReconciler:
    """Apply trip date changes to an itinerary store and the persistent item store."""

    def __init__(
        self,
        items: ItemRepository,
        ctx: RequestContext,
        max_days: int | None = None,
        metrics: PrometheusItineraryMetrics | None = None,
    ) -> None:
        self._items = items
        self._ctx = ctx
        self._max_days = max_days
        self._metrics = metrics or PrometheusItineraryMetrics()

    def calendar_for(self, start: date | str, end: date | str) -> DayCalendar:
        """Day calendar for a new trip window.

        Raises:
            InvalidTripDatesError: If the window is empty or too long
        """
        calendar = build_day_calendar(start, end, self._max_days)
        if not calendar.initialized:
            raise InvalidTripDatesError(
                f"Trip window {start}..{end} does not produce a valid day calendar"
            )
        return calendar

    def preview(
        self,
        store: ItineraryStore,
        new_start: date | str,
        new_end: date | str,
        stored_outside: dict[str, int] | None = None,
    ) -> ReconciliationReport:
        """Report which items a date change would purge, without touching anything.

        Args:
            store: Itinerary store holding the placed items
            new_start: New trip start date
            new_end: New trip end date
            stored_outside: Persisted items kept out of the store, by stored day index

        Raises:
            InvalidTripDatesError: If the new window is empty or too long
        """
        calendar = self.calendar_for(new_start, new_end)
        purged = store.out_of_bounds(calendar.day_count)
        purged += _outside(stored_outside, calendar)
        report = ReconciliationReport(
            previous_day_count=store.day_count,
            day_count=calendar.day_count,
            purged_item_ids=purged,
            unlinked_item_ids=_surviving_partners(store, purged),
            trimmed_item_ids=_overrunning_spans(store, calendar.day_count, purged),
        )
        if purged:
            report.notices.append(
                Notice(
                    kind=NoticeKind.RECONCILIATION,
                    code="ITEMS_WILL_BE_PURGED",
                    message=(
                        f"{len(purged)} item(s) fall outside the new dates and will be "
                        "deleted permanently."
                    ),
                    severity=NoticeSeverity.WARNING,
                    affected_item_ids=list(purged),
                    details={"day_count": calendar.day_count},
                )
            )
        return report

    async def _save_details(
        self, item_ids: list[str], details: Callable[[str], dict[str, Any]]
    ) -> list[str]:
        """Write details for each id; returns the ids whose write failed."""
        failed: list[str] = []
        for item_id in item_ids:
            try:
                await self._items.update_item(item_id, self._ctx, details=details(item_id))
            except Exception:
                logger.error(f"[reconciler] could not update item {item_id}", exc_info=True)
                failed.append(item_id)
        return failed

    async def reconcile(
        self,
        trip_id: str,
        store: ItineraryStore,
        new_start: date | str,
        new_end: date | str,
        stored_outside: dict[str, int] | None = None,
    ) -> tuple[DayCalendar, ReconciliationReport]:
        """Purge out-of-range items, then rebuild the store for the new calendar.

        All out-of-range records, including `stored_outside` ones that do not
        fit the new calendar, are deleted in one call. If that delete fails
        the store is left as it was. Once it succeeds the store is purged and
        rebased; failed follow-up writes for unlinked legs and trimmed stays
        are reported as notices.

        Raises:
            InvalidTripDatesError: If the new window is empty or too long
            ItemPersistenceError: If the persistent store rejects the purge
        """
        calendar = self.calendar_for(new_start, new_end)
        report = ReconciliationReport(previous_day_count=store.day_count, day_count=calendar.day_count)

        purged = store.out_of_bounds(calendar.day_count)
        purged += _outside(stored_outside, calendar)
        partners = _surviving_partners(store, purged)

        if purged:
            try:
                await self._items.delete_items(purged, self._ctx)
            except Exception as e:
                raise ItemPersistenceError(
                    f"Failed to purge {len(purged)} out-of-range item(s): {type(e).__name__}",
                    purged,
                ) from e

        for partner_id in partners:
            store.unlink(partner_id)
        store.purge_out_of_bounds(calendar.day_count)
        trimmed = store.rebase(calendar.day_count)

        unsaved_links = await self._save_details(partners, lambda _: {"linked_item_id": None})
        unsaved_spans = await self._save_details(
            trimmed, lambda item_id: _span_details(store, item_id)
        )

        report.purged_item_ids = purged
        report.unlinked_item_ids = partners
        report.trimmed_item_ids = trimmed

        if purged:
            report.notices.append(
                Notice(
                    kind=NoticeKind.RECONCILIATION,
                    code="ITEMS_PURGED",
                    message=f"{len(purged)} item(s) outside the new trip dates were deleted.",
                    affected_item_ids=list(purged),
                    details={"day_count": calendar.day_count},
                )
            )
        if partners:
            report.notices.append(
                Notice(
                    kind=NoticeKind.RECONCILIATION,
                    code="LINK_BROKEN",
                    message="The other leg of a round trip was deleted; the remaining leg is now one-way.",
                    affected_item_ids=list(partners),
                )
            )
        if trimmed:
            report.notices.append(
                Notice(
                    kind=NoticeKind.RECONCILIATION,
                    code="SPAN_TRIMMED",
                    message="Multi-day stays running past the new end date were shortened.",
                    severity=NoticeSeverity.INFO,
                    affected_item_ids=list(trimmed),
                )
            )
        if unsaved_links or unsaved_spans:
            report.notices.append(
                Notice(
                    kind=NoticeKind.STORE,
                    code="RECONCILIATION_NOT_SAVED",
                    message=(
                        "Some itinerary changes from the date change could not be saved and "
                        "may reappear when the trip is reloaded."
                    ),
                    severity=NoticeSeverity.WARNING,
                    affected_item_ids=unsaved_links + unsaved_spans,
                    details={"unlinked": unsaved_links, "trimmed": unsaved_spans},
                )
            )

        self._metrics.inc_purged(len(purged))
        logger.info(
            f"[reconciler] trip_id={trip_id} days {report.previous_day_count}->{calendar.day_count} "
            f"purged={len(purged)} unlinked={len(partners)} trimmed={len(trimmed)} "
            f"unsaved={len(unsaved_links) + len(unsaved_spans)}"
        )
        return calendar, report

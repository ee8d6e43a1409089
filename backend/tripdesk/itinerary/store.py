"""In-memory itinerary store: items, their day placements, and the flight link index.

Each item is stored once with an explicit day range; day buckets are computed
on read. Linked round-trip legs are tracked in an id -> partner id index that
is checked on every mutation, so a half-linked or asymmetric pair cannot be
created through the store.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from backend.tripdesk.itinerary.calendar import DayCalendar
from backend.tripdesk.itinerary.markup import MarkupPolicy
from backend.tripdesk.models.common import MarkupType, NoticeKind, NoticeSeverity
from backend.tripdesk.models.itinerary import DayBucket, ItemPlacement, ItineraryItem
from backend.tripdesk.models.notices import MarkupValidationError, Notice

logger = logging.getLogger(__name__)


class StoreOutcome(str, Enum):
    """Result of a store mutation."""

    ok = "ok"
    not_found = "not_found"
    rejected = "rejected"


@dataclass
class StoreResult:
    """Outcome of a store operation; store operations never raise for bad ids."""

    outcome: StoreOutcome
    code: str = "OK"
    message: str = ""
    item_ids: list[str] = field(default_factory=list)
    markup_error: MarkupValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome == StoreOutcome.ok

    def to_notice(self) -> Notice | None:
        """Warning for the caller, or None for successful operations."""
        if self.ok:
            return None
        return Notice(
            kind=NoticeKind.MARKUP if self.markup_error else NoticeKind.STORE,
            code=self.code,
            message=self.message,
            severity=NoticeSeverity.WARNING,
            affected_item_ids=list(self.item_ids),
        )


def _ok(item_ids: list[str], message: str = "") -> StoreResult:
    return StoreResult(outcome=StoreOutcome.ok, item_ids=item_ids, message=message)


def _not_found(item_id: str, message: str | None = None) -> StoreResult:
    return StoreResult(
        outcome=StoreOutcome.not_found,
        code="NOT_FOUND",
        message=message or f"Item {item_id} not found",
        item_ids=[item_id],
    )


def _rejected(item_id: str, code: str, message: str) -> StoreResult:
    return StoreResult(outcome=StoreOutcome.rejected, code=code, message=message, item_ids=[item_id])


class ItineraryStore:
    """Day-bucketed collection of itinerary items for one trip."""

    def __init__(self, day_count: int = 0) -> None:
        self._day_count = max(day_count, 0)
        self._items: dict[str, ItineraryItem] = {}
        # Insertion order doubles as bucket order
        self._placements: dict[str, ItemPlacement] = {}
        self._links: dict[str, str] = {}

    # Read side

    @property
    def day_count(self) -> int:
        return self._day_count

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> ItineraryItem | None:
        return self._items.get(item_id)

    def items(self) -> list[ItineraryItem]:
        """Every stored item once, in insertion order."""
        return list(self._items.values())

    def placement_of(self, item_id: str) -> ItemPlacement | None:
        return self._placements.get(item_id)

    def day_index_of(self, item_id: str) -> int | None:
        placement = self._placements.get(item_id)
        return placement.start_day if placement else None

    def placements(self) -> list[ItemPlacement]:
        return list(self._placements.values())

    def linked_partner(self, item_id: str) -> str | None:
        return self._links.get(item_id)

    def items_on(self, day_index: int) -> list[ItineraryItem]:
        """Items whose day range covers the given day."""
        return [
            self._items[item_id]
            for item_id, placement in self._placements.items()
            if placement.covers(day_index)
        ]

    def days(self, calendar: DayCalendar | None = None) -> list[DayBucket]:
        """Materialize the day buckets; spanning items appear in each bucket they cover."""
        buckets = [
            DayBucket(
                index=i,
                label=f"Day {i + 1}",
                calendar_date=calendar.date_for(i) if calendar else None,
            )
            for i in range(self._day_count)
        ]
        for item_id, placement in self._placements.items():
            for day in range(placement.start_day, min(placement.end_day, self._day_count - 1) + 1):
                buckets[day].items.append(self._items[item_id])
        return buckets

    # Mutations

    def _referrers(self, item_id: str) -> list[str]:
        """Ids of stored items whose linked_item_id points at item_id."""
        return [
            other.item_id
            for other in self._items.values()
            if other.linked_item_id == item_id and other.item_id != item_id
        ]

    def _check_link(self, item: ItineraryItem) -> StoreResult | None:
        referrers = self._referrers(item.item_id)

        if item.linked_item_id is None:
            if referrers:
                return _rejected(
                    item.item_id,
                    "ASYMMETRIC_LINK",
                    f"Item {referrers[0]} links to {item.item_id} but the new item has no link back",
                )
            return None

        if len(referrers) > 1:
            return _rejected(
                item.item_id,
                "LINK_GROUP_TOO_LARGE",
                f"Item {item.item_id} is referenced by more than one item",
            )
        if referrers and referrers[0] != item.linked_item_id:
            return _rejected(
                item.item_id,
                "ASYMMETRIC_LINK",
                f"Item {referrers[0]} links to {item.item_id} but it links to {item.linked_item_id}",
            )

        partner = self._items.get(item.linked_item_id)
        if partner is None:
            # Partner not added yet; the link completes when it arrives
            return None
        if partner.linked_item_id != item.item_id:
            return _rejected(
                item.item_id,
                "ASYMMETRIC_LINK",
                f"Item {partner.item_id} does not link back to {item.item_id}",
            )
        return None

    def add_item(self, day_index: int, item: ItineraryItem) -> StoreResult:
        """Place an item starting on day_index.

        Spanning hotels cover `item.span_days` buckets from day_index, clamped
        to the last day. Adding a spanning item again on a day it already
        covers is accepted as a no-op, so callers can add once per bucket.
        """
        if self._day_count == 0:
            return _rejected(item.item_id, "NOT_INITIALIZED", "Itinerary not initialized")

        existing = self._placements.get(item.item_id)
        if existing is not None:
            if item.is_spanning and existing.covers(day_index):
                return _ok([item.item_id], "already placed")
            return _rejected(item.item_id, "DUPLICATE_ITEM", f"Item {item.item_id} already placed")

        if not 0 <= day_index < self._day_count:
            return _rejected(
                item.item_id,
                "DAY_OUT_OF_RANGE",
                f"Day index {day_index} outside 0..{self._day_count - 1}",
            )

        link_problem = self._check_link(item)
        if link_problem is not None:
            return link_problem

        span = item.span_days or 1
        clamped_span = min(span, self._day_count - day_index)
        if clamped_span != span:
            item.span_days = clamped_span if clamped_span > 1 else None

        self._items[item.item_id] = item
        self._placements[item.item_id] = ItemPlacement(
            item_id=item.item_id, start_day=day_index, span_days=clamped_span
        )
        if item.linked_item_id is not None:
            self._links[item.item_id] = item.linked_item_id
            if item.linked_item_id in self._items:
                self._links[item.linked_item_id] = item.item_id

        return _ok([item.item_id])

    def removal_group(self, item_id: str) -> list[str]:
        """Ids that removing item_id takes with it: the item and its linked partner."""
        item = self._items.get(item_id)
        if item is None:
            return []

        group = [item_id]
        for candidate in (self._links.get(item_id), item.linked_item_id, *self._referrers(item_id)):
            if candidate and candidate in self._items and candidate not in group:
                group.append(candidate)
        return group

    def remove_item(self, item_id: str) -> StoreResult:
        """Remove an item from every bucket, together with its linked partner."""
        to_remove = self.removal_group(item_id)
        if not to_remove:
            return _not_found(item_id)

        for removed_id in to_remove:
            self._items.pop(removed_id, None)
            self._placements.pop(removed_id, None)
            self._links.pop(removed_id, None)

        logger.debug(f"[store] removed {to_remove}")
        return _ok(to_remove)

    def move_item(self, item_id: str, from_day: int, to_day: int) -> StoreResult:
        """Reassign a plain item from one day to another.

        Linked flight legs and spanning hotels are fixed to their dates and
        cannot be moved; the store is left unchanged.
        """
        item = self._items.get(item_id)
        placement = self._placements.get(item_id)
        if item is None or placement is None:
            return _not_found(item_id)

        if item.is_linked or item_id in self._links or self._referrers(item_id):
            return _rejected(
                item_id,
                "LINKED_ITEM_IMMOVABLE",
                "Linked flight segments stay on their departure days and cannot be moved",
            )
        if placement.span_days > 1:
            return _rejected(
                item_id,
                "SPANNING_ITEM_IMMOVABLE",
                "Multi-day stays cannot be moved; change the stay dates instead",
            )
        if placement.start_day != from_day:
            return _not_found(item_id, f"Item {item_id} is not on day {from_day}")
        if not 0 <= to_day < self._day_count:
            return _rejected(
                item_id, "DAY_OUT_OF_RANGE", f"Day index {to_day} outside 0..{self._day_count - 1}"
            )

        # Re-insert so the item is appended to the end of the target bucket
        del self._placements[item_id]
        self._placements[item_id] = ItemPlacement(item_id=item_id, start_day=to_day, span_days=1)
        return _ok([item_id])

    def update_item_markup(
        self,
        item_id: str,
        new_markup: float,
        markup_type: MarkupType | None = None,
        policy: MarkupPolicy | None = None,
    ) -> StoreResult:
        """Change an item's markup after the minimum-markup policy accepts it."""
        item = self._items.get(item_id)
        if item is None:
            return _not_found(item_id)

        if new_markup < 0:
            return _rejected(item_id, "NEGATIVE_MARKUP", "Markup cannot be negative")

        effective_type = markup_type or item.markup_type
        if policy is not None:
            error = policy.validate(item.item_type, new_markup, effective_type)
            if error is not None:
                return StoreResult(
                    outcome=StoreOutcome.rejected,
                    code="BELOW_MINIMUM_MARKUP",
                    message=error.message,
                    item_ids=[item_id],
                    markup_error=error,
                )

        item.markup = new_markup
        item.markup_type = effective_type
        return _ok([item_id])

    def unlink(self, item_id: str) -> None:
        """Drop the link of a surviving leg whose partner is gone."""
        item = self._items.get(item_id)
        self._links.pop(item_id, None)
        if item is not None and item.linked_item_id is not None:
            item.linked_item_id = None

    def dangling_links(self) -> list[str]:
        """Ids of items linked to a partner that is not in the store."""
        return [
            item.item_id
            for item in self._items.values()
            if item.linked_item_id is not None and item.linked_item_id not in self._items
        ]

    def out_of_bounds(self, day_count: int) -> list[str]:
        """Ids of items whose start day falls outside a calendar of day_count days."""
        return [
            item_id
            for item_id, placement in self._placements.items()
            if not 0 <= placement.start_day < day_count
        ]

    def purge_out_of_bounds(self, day_count: int) -> list[str]:
        """Drop items outside a calendar of day_count days; partners in range stay."""
        purged = self.out_of_bounds(day_count)
        for item_id in purged:
            self._items.pop(item_id, None)
            self._placements.pop(item_id, None)
            self._links.pop(item_id, None)
        return purged

    def rebase(self, day_count: int) -> list[str]:
        """Switch to a calendar of day_count days, trimming spans past its end.

        Out-of-bounds items must be purged first.

        Returns:
            Ids of spanning items whose span was shortened
        """
        self._day_count = max(day_count, 0)
        trimmed: list[str] = []
        for item_id, placement in list(self._placements.items()):
            if placement.end_day < self._day_count:
                continue
            new_span = max(self._day_count - placement.start_day, 1)
            self._placements[item_id] = ItemPlacement(
                item_id=item_id, start_day=placement.start_day, span_days=new_span
            )
            item = self._items[item_id]
            item.span_days = new_span if new_span > 1 else None
            trimmed.append(item_id)
        return trimmed

    def clear(self) -> None:
        self._items.clear()
        self._placements.clear()
        self._links.clear()

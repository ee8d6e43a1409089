"""Itinerary session - one trip's itinerary, loaded once and kept in step with the record store.

Every mutation writes to the persistent item store first and only touches
the in-memory store after the write succeeded. Mutations are serialized with
a lock, so two edits to the same session never interleave. A closed session
discards the results of operations that were still in flight.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import date
from enum import Enum

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.repositories import (
    ItemRepository,
    MarkupSettingsRepository,
    TripRepository,
    item_to_record,
    record_to_item,
)
from backend.tripdesk.itinerary.calendar import DayCalendar, build_day_calendar
from backend.tripdesk.itinerary.errors import (
    ItemPersistenceError,
    ItineraryError,
    ItineraryNotInitializedError,
    LinkedFlightPersistenceError,
    StaleSessionError,
    TripNotFoundError,
    TripPersistenceError,
)
from backend.tripdesk.itinerary.markup import MarkupPolicy
from backend.tripdesk.itinerary.placement import ItemPlacementResolver, ResolvedPlacement
from backend.tripdesk.itinerary.pricing import PricingEngine
from backend.tripdesk.itinerary.reconciler import BoundaryReconciler, ReconciliationReport
from backend.tripdesk.itinerary.store import ItineraryStore, StoreResult
from backend.tripdesk.models.common import MarkupStrategy, MarkupType, NoticeKind
from backend.tripdesk.models.itinerary import ItineraryItem, ItineraryView
from backend.tripdesk.models.notices import Notice
from backend.tripdesk.models.offers import FlightOffer, HotelOffer, ServiceOffer
from backend.tripdesk.models.pricing import PriceBreakdown
from backend.tripdesk.models.trip import Trip
from backend.tripdesk.utils.logging import ItineraryEventLogger
from backend.tripdesk.utils.metrics import PrometheusItineraryMetrics

logger = logging.getLogger(__name__)


class LoadState(str, Enum):
    """Initial-load lifecycle of a session."""

    idle = "idle"
    loading = "loading"
    loaded = "loaded"
    failed = "failed"


class ItinerarySession:
    """Itinerary of a single trip backed by the persistent item store."""

    def __init__(
        self,
        trip: Trip,
        *,
        trips: TripRepository,
        items: ItemRepository,
        ctx: RequestContext,
        policy: MarkupPolicy | None = None,
        max_days: int | None = None,
        metrics: PrometheusItineraryMetrics | None = None,
        event_logger: ItineraryEventLogger | None = None,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._trip = trip
        self._trips = trips
        self._items = items
        self._ctx = ctx
        self._policy = policy or MarkupPolicy.from_settings()
        self._max_days = max_days
        self._metrics = metrics or PrometheusItineraryMetrics()
        self._events = event_logger or ItineraryEventLogger()
        self._id_factory = id_factory

        self._calendar = build_day_calendar(trip.start_date, trip.end_date, max_days)
        self._store = ItineraryStore(self._calendar.day_count)
        # Persisted items whose day index does not fit the current calendar
        self._stray: dict[str, tuple[ItineraryItem, int]] = {}

        self._state = LoadState.idle
        self._load_notices: list[Notice] = []
        self._load_task: asyncio.Task[list[Notice]] | None = None
        self._lock = asyncio.Lock()
        self._generation = 0
        self._closed = False

    @classmethod
    async def open(
        cls,
        trip_id: str,
        *,
        trips: TripRepository,
        items: ItemRepository,
        ctx: RequestContext,
        markup_settings: MarkupSettingsRepository | None = None,
        max_days: int | None = None,
    ) -> "ItinerarySession":
        """Fetch the trip and agent markup settings, then load the itinerary.

        Raises:
            TripNotFoundError: If the trip does not exist for this agency
        """
        trip = await trips.get_trip(trip_id, ctx)
        if trip is None:
            raise TripNotFoundError(f"Trip {trip_id} not found")

        policy = MarkupPolicy.from_settings()
        if markup_settings is not None:
            stored = await markup_settings.get_markup_settings(ctx)
            if stored:
                policy = MarkupPolicy.from_mapping(stored, fallback=policy)

        session = cls(trip, trips=trips, items=items, ctx=ctx, policy=policy, max_days=max_days)
        await session.load()
        return session

    # State

    @property
    def trip(self) -> Trip:
        return self._trip

    @property
    def calendar(self) -> DayCalendar:
        return self._calendar

    @property
    def store(self) -> ItineraryStore:
        return self._store

    @property
    def policy(self) -> MarkupPolicy:
        return self._policy

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def load_notices(self) -> list[Notice]:
        """Notices raised while loading the persisted items."""
        return list(self._load_notices)

    def close(self) -> None:
        """Tear the session down; in-flight operations will discard their results."""
        self._closed = True
        self._generation += 1
        logger.info(f"[session] closed trip_id={self._trip.trip_id}")

    def _ensure_current(self, generation: int) -> None:
        if self._closed or generation != self._generation:
            raise StaleSessionError(
                f"Itinerary session for trip {self._trip.trip_id} is no longer current"
            )

    def _resolver(self) -> ItemPlacementResolver:
        if self._id_factory is not None:
            return ItemPlacementResolver(self._calendar, self._policy, self._id_factory)
        return ItemPlacementResolver(self._calendar, self._policy)

    def _require_initialized(self) -> None:
        if not self._calendar.initialized:
            raise ItineraryNotInitializedError(
                f"Itinerary not initialized for trip {self._trip.trip_id}: set valid trip dates first"
            )

    # Loading

    async def load(self) -> list[Notice]:
        """Load persisted items into the day buckets, exactly once.

        Concurrent callers share the in-flight load; once loaded, further
        calls are no-ops. A failed load can be retried.
        """
        if self._state == LoadState.loaded:
            return []
        if self._state == LoadState.loading and self._load_task is not None:
            return await self._load_task

        self._state = LoadState.loading
        self._load_task = asyncio.ensure_future(self._load(self._generation))
        return await self._load_task

    async def _load(self, generation: int) -> list[Notice]:
        try:
            records = await self._items.list_items(self._trip.trip_id, self._ctx)
        except Exception:
            self._state = LoadState.failed
            logger.error(f"[session] load failed trip_id={self._trip.trip_id}", exc_info=True)
            raise

        try:
            self._ensure_current(generation)
        except StaleSessionError:
            self._state = LoadState.failed
            raise

        notices: list[Notice] = []
        if not self._calendar.initialized:
            notices.append(
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="NOT_INITIALIZED",
                    message="Itinerary not initialized: trip dates are missing or out of range.",
                )
            )

        for record in records:
            item, day_index = record_to_item(record)
            if not self._calendar.contains(day_index):
                self._stray[item.item_id] = (item, day_index)
                continue
            result = self._store.add_item(day_index, item)
            if not result.ok:
                notice = result.to_notice()
                if notice is not None:
                    notices.append(notice)

        if self._stray and self._calendar.initialized:
            notices.append(
                Notice(
                    kind=NoticeKind.PLACEMENT,
                    code="OUT_OF_BOUNDS",
                    message=(
                        f"{len(self._stray)} stored item(s) fall outside the trip dates and "
                        "will be purged on the next date change."
                    ),
                    affected_item_ids=list(self._stray),
                )
            )

        dangling = self._store.dangling_links()
        if dangling:
            notices.append(
                Notice(
                    kind=NoticeKind.STORE,
                    code="DANGLING_LINK",
                    message="Linked flight segment is missing its other leg.",
                    affected_item_ids=dangling,
                )
            )

        self._load_notices = notices
        self._state = LoadState.loaded
        logger.info(
            f"[session] loaded trip_id={self._trip.trip_id} items={len(self._store)} "
            f"stray={len(self._stray)} days={self._calendar.day_count}"
        )
        return notices

    # Adding items

    async def _persist(self, placement: ResolvedPlacement) -> None:
        record = item_to_record(self._trip.trip_id, placement.item, placement.day_index)
        try:
            await self._items.create_item(record, self._ctx)
        except Exception as e:
            self._metrics.record_placement(placement.item.item_type.value, "store_error")
            self._events.log_operation(
                self._trip.trip_id,
                "add_item",
                "store_error",
                [placement.item.item_id],
                error=type(e).__name__,
            )
            raise ItemPersistenceError(
                f"Failed to save {placement.item.item_type.value} item '{placement.item.name}'",
                [placement.item.item_id],
            ) from e

    def _place_in_memory(self, placement: ResolvedPlacement) -> None:
        result = self._store.add_item(placement.day_index, placement.item)
        if not result.ok:
            raise ItineraryError(f"{result.code}: {result.message}")

        self._metrics.record_placement(placement.item.item_type.value, "ok")
        for notice in placement.notices:
            if notice.code.startswith("CLAMPED") or notice.code == "SPAN_CLAMPED":
                self._metrics.inc_clamp(notice.code)
        self._events.log_operation(
            self._trip.trip_id,
            "add_item",
            "ok",
            [placement.item.item_id],
            day_index=placement.day_index,
            span_days=placement.span_days,
        )

    async def _add_single(self, placement: ResolvedPlacement) -> list[ResolvedPlacement]:
        generation = self._generation
        self._ensure_current(generation)
        await self._persist(placement)
        self._ensure_current(generation)
        self._place_in_memory(placement)
        return [placement]

    async def _add_linked_pair(
        self, first: ResolvedPlacement, second: ResolvedPlacement
    ) -> list[ResolvedPlacement]:
        generation = self._generation
        self._ensure_current(generation)
        await self._persist(first)
        try:
            await self._persist(second)
        except ItemPersistenceError as e:
            rolled_back = True
            try:
                await self._items.delete_items([first.item.item_id], self._ctx)
            except Exception:
                rolled_back = False
                logger.error(
                    f"[session] could not roll back flight segment {first.item.item_id}",
                    exc_info=True,
                )
            raise LinkedFlightPersistenceError(
                "Round-trip flight was only partially saved"
                + ("; the saved leg was removed again" if rolled_back else "; the saved leg remains"),
                item_ids=[first.item.item_id, second.item.item_id],
                persisted_ids=[] if rolled_back else [first.item.item_id],
                rolled_back=rolled_back,
            ) from e

        self._ensure_current(generation)
        self._place_in_memory(first)
        self._place_in_memory(second)
        return [first, second]

    async def add_service(self, offer: ServiceOffer) -> ResolvedPlacement:
        """Add a tour, transfer or custom item."""
        await self.load()
        self._require_initialized()
        async with self._lock:
            placement = self._resolver().place_service(offer)
            await self._add_single(placement)
        return placement

    async def add_flight(self, offer: FlightOffer) -> list[ResolvedPlacement]:
        """Add a one-way flight, or both linked legs of a round trip."""
        await self.load()
        self._require_initialized()
        async with self._lock:
            placements = self._resolver().place_flight(offer)
            if len(placements) == 2:
                return await self._add_linked_pair(placements[0], placements[1])
            return await self._add_single(placements[0])

    async def add_hotel_stay(self, offer: HotelOffer) -> ResolvedPlacement:
        """Add a hotel stay covering one day per night."""
        await self.load()
        self._require_initialized()
        async with self._lock:
            placement = self._resolver().place_hotel_stay(offer)
            await self._add_single(placement)
        return placement

    # Editing items

    def _log_result(self, operation: str, result: StoreResult) -> None:
        if not result.ok:
            self._metrics.inc_store_rejection(operation, result.code)
        self._events.log_operation(
            self._trip.trip_id, operation, result.outcome.value, result.item_ids, result.code
        )

    async def remove_item(self, item_id: str) -> StoreResult:
        """Remove an item everywhere it appears, with its linked partner.

        Raises:
            ItemPersistenceError: If the record store rejects the delete
        """
        await self.load()
        async with self._lock:
            generation = self._generation
            self._ensure_current(generation)
            group = self._store.removal_group(item_id)
            if not group:
                result = self._store.remove_item(item_id)
                self._log_result("remove_item", result)
                return result

            try:
                await self._items.delete_items(group, self._ctx)
            except Exception as e:
                raise ItemPersistenceError(f"Failed to delete item {item_id}", group) from e

            self._ensure_current(generation)
            result = self._store.remove_item(item_id)
            self._log_result("remove_item", result)
            return result

    async def move_item(self, item_id: str, from_day: int, to_day: int) -> StoreResult:
        """Move a plain item between days; linked and spanning items are refused."""
        await self.load()
        async with self._lock:
            generation = self._generation
            self._ensure_current(generation)
            result = self._store.move_item(item_id, from_day, to_day)
            self._log_result("move_item", result)
            if not result.ok or from_day == to_day:
                return result

            try:
                await self._items.update_item(item_id, self._ctx, details={"day_index": to_day})
            except Exception as e:
                self._store.move_item(item_id, to_day, from_day)
                raise ItemPersistenceError(f"Failed to move item {item_id}", [item_id]) from e

            self._ensure_current(generation)
            return result

    async def update_item_markup(
        self, item_id: str, markup: float, markup_type: MarkupType | None = None
    ) -> StoreResult:
        """Change an item's markup if the agent's minimum-markup policy allows it."""
        await self.load()
        async with self._lock:
            generation = self._generation
            self._ensure_current(generation)
            item = self._store.get(item_id)
            previous = (item.markup, item.markup_type) if item else None

            result = self._store.update_item_markup(item_id, markup, markup_type, self._policy)
            self._log_result("update_item_markup", result)
            if result.markup_error is not None:
                self._metrics.inc_markup_rejection(result.markup_error.item_type)
            if not result.ok or item is None or previous is None:
                return result

            try:
                await self._items.update_item(
                    item_id, self._ctx, markup=item.markup, markup_type=item.markup_type.value
                )
            except Exception as e:
                item.markup, item.markup_type = previous
                raise ItemPersistenceError(
                    f"Failed to save markup for item {item_id}", [item_id]
                ) from e

            self._ensure_current(generation)
            return result

    # Trip-level changes

    def _stray_days(self) -> dict[str, int]:
        return {item_id: day_index for item_id, (_, day_index) in self._stray.items()}

    def _reconciler(self) -> BoundaryReconciler:
        return BoundaryReconciler(self._items, self._ctx, self._max_days, self._metrics)

    async def _save_trip_dates(self, start_date: date | None, end_date: date | None) -> None:
        try:
            await self._trips.update_trip_dates(self._trip.trip_id, start_date, end_date, self._ctx)
        except Exception as e:
            raise TripPersistenceError(
                f"Failed to save new dates for trip {self._trip.trip_id}"
            ) from e

    async def _restore_trip_dates(self) -> None:
        try:
            await self._trips.update_trip_dates(
                self._trip.trip_id, self._trip.start_date, self._trip.end_date, self._ctx
            )
        except Exception:
            logger.error(
                f"[session] could not restore dates for trip_id={self._trip.trip_id}",
                exc_info=True,
            )

    def preview_date_change(self, start_date: date, end_date: date) -> ReconciliationReport:
        """Report which items a date change would delete."""
        return self._reconciler().preview(self._store, start_date, end_date, self._stray_days())

    async def change_trip_dates(self, start_date: date, end_date: date) -> ReconciliationReport:
        """Apply new trip dates: save the trip, purge out-of-range items, rebuild days.

        The trip record is written before anything is purged. If the purge
        is then rejected, the previous dates are written back and the
        itinerary is left as it was.

        Raises:
            InvalidTripDatesError: If the new window is empty or too long
            TripPersistenceError: If the trip record rejects the new dates
            ItemPersistenceError: If the out-of-range items could not be purged
        """
        await self.load()
        async with self._lock:
            generation = self._generation
            self._ensure_current(generation)
            reconciler = self._reconciler()
            reconciler.calendar_for(start_date, end_date)

            await self._save_trip_dates(start_date, end_date)
            try:
                self._ensure_current(generation)
                calendar, report = await reconciler.reconcile(
                    self._trip.trip_id, self._store, start_date, end_date, self._stray_days()
                )
            except ItineraryError:
                await self._restore_trip_dates()
                raise

            self._calendar = calendar
            self._trip = self._trip.model_copy(
                update={"start_date": start_date, "end_date": end_date}
            )

            # Stored items that did not fit the old calendar come back if they fit now
            for item_id, (item, day_index) in list(self._stray.items()):
                if item_id in report.purged_item_ids:
                    del self._stray[item_id]
                    continue
                result = self._store.add_item(day_index, item)
                if result.ok:
                    del self._stray[item_id]
                else:
                    notice = result.to_notice()
                    if notice is not None:
                        report.notices.append(notice)

            self._events.log_operation(
                self._trip.trip_id,
                "change_trip_dates",
                "ok",
                report.purged_item_ids,
                day_count=calendar.day_count,
            )
            return report

    async def update_trip_pricing(
        self,
        *,
        markup: float | None = None,
        discount: float | None = None,
        markup_strategy: MarkupStrategy | None = None,
    ) -> Trip:
        """Persist trip markup/discount/strategy and apply them to this session."""
        async with self._lock:
            generation = self._generation
            self._ensure_current(generation)
            await self._trips.update_trip_pricing(
                self._trip.trip_id,
                self._ctx,
                markup=markup,
                discount=discount,
                markup_strategy=markup_strategy,
            )
            self._ensure_current(generation)

            updates: dict[str, object] = {}
            if markup is not None:
                updates["markup"] = markup
            if discount is not None:
                updates["discount"] = discount
            if markup_strategy is not None:
                updates["markup_strategy"] = markup_strategy
            self._trip = self._trip.model_copy(update=updates)
            return self._trip

    # Read side

    def view(self, notices: list[Notice] | None = None) -> ItineraryView:
        """Current day-by-day itinerary."""
        return ItineraryView(
            trip_id=self._trip.trip_id,
            initialized=self._calendar.initialized,
            day_count=self._calendar.day_count,
            days=self._store.days(self._calendar),
            notices=notices or [],
        )

    def price(self, strategy: MarkupStrategy | None = None) -> PriceBreakdown:
        """Trip price breakdown under the trip's (or the given) markup strategy."""
        return PricingEngine(self._trip).price_trip(self._store, strategy)

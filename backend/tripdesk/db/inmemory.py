"""In-memory implementations of repository interfaces."""

import copy
import uuid
from datetime import date, datetime
from typing import Any

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.repositories import ItemRecord
from backend.tripdesk.models.common import MarkupStrategy
from backend.tripdesk.models.trip import Trip


class InMemoryTripRepository:
    """In-memory implementation of TripRepository."""

    def __init__(self) -> None:
        self._trips: dict[str, tuple[uuid.UUID, Trip]] = {}

    async def create_trip(self, trip: Trip, ctx: RequestContext) -> Trip:
        """Create a trip."""
        stored = trip.model_copy(update={"trip_id": trip.trip_id or str(uuid.uuid4())})
        self._trips[stored.trip_id] = (ctx.agency_id, stored)
        return stored.model_copy()

    async def get_trip(self, trip_id: str, ctx: RequestContext) -> Trip | None:
        """Get trip by ID."""
        data = self._trips.get(trip_id)

        if data is None:
            return None

        agency_id, trip = data

        # Enforce tenancy
        if agency_id != ctx.agency_id:
            return None

        return trip.model_copy()

    async def update_trip_dates(
        self, trip_id: str, start_date: date | None, end_date: date | None, ctx: RequestContext
    ) -> None:
        """Persist a new trip window."""
        data = self._trips.get(trip_id)
        if data is None or data[0] != ctx.agency_id:
            return
        self._trips[trip_id] = (
            data[0],
            data[1].model_copy(update={"start_date": start_date, "end_date": end_date}),
        )

    async def update_trip_pricing(
        self,
        trip_id: str,
        ctx: RequestContext,
        *,
        markup: float | None = None,
        discount: float | None = None,
        markup_strategy: MarkupStrategy | None = None,
    ) -> None:
        """Persist trip-level markup, discount and strategy."""
        data = self._trips.get(trip_id)
        if data is None or data[0] != ctx.agency_id:
            return

        updates: dict[str, Any] = {}
        if markup is not None:
            updates["markup"] = markup
        if discount is not None:
            updates["discount"] = discount
        if markup_strategy is not None:
            updates["markup_strategy"] = markup_strategy
        self._trips[trip_id] = (data[0], data[1].model_copy(update=updates))


class InMemoryItemRepository:
    """In-memory implementation of ItemRepository."""

    def __init__(self) -> None:
        self._items: dict[str, tuple[uuid.UUID, ItemRecord]] = {}

    async def list_items(self, trip_id: str, ctx: RequestContext) -> list[ItemRecord]:
        """List a trip's items in creation order."""
        return [
            copy.deepcopy(record)
            for agency_id, record in self._items.values()
            if agency_id == ctx.agency_id and record.trip_id == trip_id
        ]

    async def create_item(self, record: ItemRecord, ctx: RequestContext) -> ItemRecord:
        """Insert an item record."""
        if record.item_id in self._items:
            raise ValueError(f"Item {record.item_id} already exists")

        stored = copy.deepcopy(record)
        stored.created_at = stored.created_at or datetime.now()
        self._items[stored.item_id] = (ctx.agency_id, stored)
        return copy.deepcopy(stored)

    async def update_item(
        self,
        item_id: str,
        ctx: RequestContext,
        *,
        markup: float | None = None,
        markup_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> bool:
        """Update markup and/or merge keys into the details blob."""
        data = self._items.get(item_id)
        if data is None or data[0] != ctx.agency_id:
            return False

        record = data[1]
        if markup is not None:
            record.markup = markup
        if markup_type is not None:
            record.markup_type = markup_type
        if details:
            merged = {**record.details, **details}
            record.details = {key: value for key, value in merged.items() if value is not None}
        return True

    async def delete_items(self, item_ids: list[str], ctx: RequestContext) -> int:
        """Delete item records."""
        deleted = 0
        for item_id in item_ids:
            data = self._items.get(item_id)
            if data is None or data[0] != ctx.agency_id:
                continue
            del self._items[item_id]
            deleted += 1
        return deleted


class InMemoryMarkupSettingsRepository:
    """In-memory implementation of MarkupSettingsRepository."""

    def __init__(self) -> None:
        self._settings: dict[tuple[uuid.UUID, uuid.UUID], dict[str, Any]] = {}

    async def get_markup_settings(self, ctx: RequestContext) -> dict[str, Any] | None:
        """Stored settings blob for the agent."""
        values = self._settings.get((ctx.agency_id, ctx.agent_id))
        return dict(values) if values is not None else None

    async def save_markup_settings(self, values: dict[str, Any], ctx: RequestContext) -> None:
        """Replace the agent's settings blob."""
        self._settings[(ctx.agency_id, ctx.agent_id)] = dict(values)

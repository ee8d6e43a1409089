"""Tests for tenancy enforcement."""

import uuid
from datetime import date

import pytest

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.inmemory import (
    InMemoryItemRepository,
    InMemoryMarkupSettingsRepository,
    InMemoryTripRepository,
)
from backend.tripdesk.db.repositories import ItemRecord
from backend.tripdesk.models.trip import Trip


def _contexts() -> tuple[RequestContext, RequestContext]:
    return (
        RequestContext(agency_id=uuid.uuid4(), agent_id=uuid.uuid4()),
        RequestContext(agency_id=uuid.uuid4(), agent_id=uuid.uuid4()),
    )


@pytest.mark.asyncio
async def test_trip_repository_tenancy_isolation() -> None:
    """Test that TripRepository enforces agency isolation."""
    repo = InMemoryTripRepository()
    ctx_a, ctx_b = _contexts()

    trip_a = await repo.create_trip(
        Trip(trip_id="", name="Lisbon", start_date=date(2025, 6, 1), end_date=date(2025, 6, 5)),
        ctx_a,
    )
    trip_b = await repo.create_trip(Trip(trip_id="", name="Porto"), ctx_b)

    assert (await repo.get_trip(trip_a.trip_id, ctx_a)) is not None
    assert (await repo.get_trip(trip_a.trip_id, ctx_b)) is None
    assert (await repo.get_trip(trip_b.trip_id, ctx_b)) is not None
    assert (await repo.get_trip(trip_b.trip_id, ctx_a)) is None

    # Cross-agency writes are ignored
    await repo.update_trip_dates(trip_a.trip_id, date(2025, 7, 1), date(2025, 7, 2), ctx_b)
    unchanged = await repo.get_trip(trip_a.trip_id, ctx_a)
    assert unchanged is not None
    assert unchanged.start_date == date(2025, 6, 1)


@pytest.mark.asyncio
async def test_item_repository_tenancy_isolation() -> None:
    """Test that ItemRepository enforces agency isolation."""
    repo = InMemoryItemRepository()
    ctx_a, ctx_b = _contexts()

    record = ItemRecord(
        item_id="tour-1",
        trip_id="trip-1",
        item_type="Tour",
        item_name="Walking tour",
        cost=40.0,
        quantity=1,
        markup=20.0,
        markup_type="percentage",
        details={"day_index": 0},
    )
    await repo.create_item(record, ctx_a)

    assert [r.item_id for r in await repo.list_items("trip-1", ctx_a)] == ["tour-1"]
    assert await repo.list_items("trip-1", ctx_b) == []

    assert await repo.update_item("tour-1", ctx_b, markup=5.0) is False
    assert await repo.delete_items(["tour-1"], ctx_b) == 0
    assert await repo.delete_items(["tour-1"], ctx_a) == 1


@pytest.mark.asyncio
async def test_markup_settings_are_per_agent() -> None:
    """Test that markup settings of one agent are invisible to another."""
    repo = InMemoryMarkupSettingsRepository()
    ctx_a, ctx_b = _contexts()

    await repo.save_markup_settings({"hotel_markup": 18}, ctx_a)

    assert await repo.get_markup_settings(ctx_a) == {"hotel_markup": 18}
    assert await repo.get_markup_settings(ctx_b) is None

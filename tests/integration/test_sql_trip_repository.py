"""Integration tests for the SQL trip repository over aiosqlite."""

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.models import Agency
from backend.tripdesk.db.sql_repositories import SqlTripRepository
from backend.tripdesk.models.common import MarkupStrategy
from backend.tripdesk.models.trip import Trip


async def _ctx(session: AsyncSession) -> RequestContext:
    agency_id = uuid.uuid4()
    session.add(Agency(agency_id=agency_id, name="Sql Agency"))
    await session.commit()
    return RequestContext(agency_id=agency_id, agent_id=uuid.uuid4())


@pytest.mark.asyncio
async def test_trip_without_strategy_round_trips(sqlite_session: AsyncSession) -> None:
    """A trip saved without a markup strategy reads back without one."""
    ctx = await _ctx(sqlite_session)
    repo = SqlTripRepository(sqlite_session)

    created = await repo.create_trip(Trip(trip_id="", name="Porto", markup_strategy=None), ctx)
    loaded = await repo.get_trip(created.trip_id, ctx)

    assert loaded is not None
    assert loaded.markup_strategy is None


@pytest.mark.asyncio
async def test_strategy_update_is_stored(sqlite_session: AsyncSession) -> None:
    ctx = await _ctx(sqlite_session)
    repo = SqlTripRepository(sqlite_session)
    created = await repo.create_trip(Trip(trip_id="", name="Porto", markup_strategy=None), ctx)

    await repo.update_trip_pricing(created.trip_id, ctx, markup_strategy=MarkupStrategy.mixed)
    loaded = await repo.get_trip(created.trip_id, ctx)

    assert loaded is not None
    assert loaded.markup_strategy == MarkupStrategy.mixed


@pytest.mark.asyncio
async def test_trip_dates_can_be_cleared(sqlite_session: AsyncSession) -> None:
    """Writing back an unset window leaves the trip without dates."""
    ctx = await _ctx(sqlite_session)
    repo = SqlTripRepository(sqlite_session)
    created = await repo.create_trip(
        Trip(trip_id="", name="Porto", start_date=date(2024, 5, 1), end_date=date(2024, 5, 3)),
        ctx,
    )

    await repo.update_trip_dates(created.trip_id, None, None, ctx)
    loaded = await repo.get_trip(created.trip_id, ctx)

    assert loaded is not None
    assert loaded.start_date is None
    assert loaded.end_date is None

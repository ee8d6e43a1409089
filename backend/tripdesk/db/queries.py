"""Tenancy-safe query helpers."""

import uuid

from sqlalchemy import Select, select

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.models import Trip, TripItem


def select_trips(ctx: RequestContext) -> Select[tuple[Trip]]:
    """Select from the trip table with agency scoping enforced.

    Args:
        ctx: Request context with agency_id

    Returns:
        Select statement filtered by agency_id
    """
    return select(Trip).where(Trip.agency_id == ctx.agency_id)


def select_trip_items(ctx: RequestContext, trip_id: uuid.UUID | None = None) -> Select[tuple[TripItem]]:
    """Select from the trip_item table with agency scoping enforced.

    Args:
        ctx: Request context with agency_id
        trip_id: Optional trip to restrict to

    Returns:
        Select statement filtered by agency_id (and trip_id when given)
    """
    stmt = select(TripItem).where(TripItem.agency_id == ctx.agency_id)
    if trip_id is not None:
        stmt = stmt.where(TripItem.trip_id == trip_id)
    return stmt


def parse_uuid(value: str) -> uuid.UUID | None:
    """Parse a UUID path/query value, returning None for malformed ids."""
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None

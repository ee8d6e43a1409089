"""Trip itinerary endpoints - day view, item placement, date changes and pricing."""

import logging
from collections.abc import AsyncGenerator
from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.api.auth import get_current_context
from backend.tripdesk.config import get_settings
from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.engine import get_session
from backend.tripdesk.db.sql_repositories import (
    SqlItemRepository,
    SqlMarkupSettingsRepository,
    SqlTripRepository,
)
from backend.tripdesk.itinerary.errors import (
    InvalidTripDatesError,
    ItemPersistenceError,
    ItineraryError,
    ItineraryNotInitializedError,
    LinkedFlightPersistenceError,
    StaleSessionError,
    TripNotFoundError,
    TripPersistenceError,
)
from backend.tripdesk.itinerary.placement import ResolvedPlacement
from backend.tripdesk.itinerary.reconciler import ReconciliationReport
from backend.tripdesk.itinerary.session import ItinerarySession
from backend.tripdesk.itinerary.store import StoreOutcome, StoreResult
from backend.tripdesk.models.common import MarkupStrategy, MarkupType
from backend.tripdesk.models.itinerary import ItineraryView
from backend.tripdesk.models.notices import Notice
from backend.tripdesk.models.offers import FlightOffer, HotelOffer, ServiceOffer
from backend.tripdesk.models.pricing import PriceBreakdown
from backend.tripdesk.models.trip import Trip, TripDatesUpdate, TripPricingUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["itinerary"])


class CreateTripRequest(BaseModel):
    """Request body for POST /trips."""

    name: str = Field(..., min_length=1)
    start_date: date | None = None
    end_date: date | None = None
    currency: str | None = None
    markup: float = Field(0.0, ge=0)
    discount: float = Field(0.0, ge=0, le=100)
    markup_strategy: MarkupStrategy | None = None


class PlacementResponse(BaseModel):
    """Result of adding an offer to the itinerary."""

    item_ids: list[str]
    day_indices: list[int]
    notices: list[Notice] = Field(default_factory=list)
    itinerary: ItineraryView


class MoveItemRequest(BaseModel):
    """Request body for moving an item between days."""

    from_day: int = Field(..., ge=0)
    to_day: int = Field(..., ge=0)


class UpdateMarkupRequest(BaseModel):
    """Request body for an item markup edit."""

    markup: float
    markup_type: MarkupType | None = None


class StoreResultResponse(BaseModel):
    """Outcome of a remove, move or markup edit."""

    outcome: StoreOutcome
    code: str
    message: str
    item_ids: list[str]
    itinerary: ItineraryView


class DateChangeResponse(BaseModel):
    """What a trip date change did, or would do on a dry run."""

    dry_run: bool
    previous_day_count: int
    day_count: int
    purged_item_ids: list[str]
    unlinked_item_ids: list[str]
    trimmed_item_ids: list[str]
    notices: list[Notice] = Field(default_factory=list)
    itinerary: ItineraryView | None = None


def _http_error(exc: ItineraryError) -> HTTPException:
    """Map an engine error to an HTTP error."""
    if isinstance(exc, TripNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ItineraryNotInitializedError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "NOT_INITIALIZED", "message": str(exc)},
        )
    if isinstance(exc, InvalidTripDatesError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "INVALID_TRIP_DATES", "message": str(exc)},
        )
    if isinstance(exc, LinkedFlightPersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "code": "LINKED_FLIGHT_NOT_SAVED",
                "message": str(exc),
                "item_ids": exc.item_ids,
                "persisted_ids": exc.persisted_ids,
                "rolled_back": exc.rolled_back,
            },
        )
    if isinstance(exc, TripPersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "TRIP_NOT_SAVED", "message": str(exc)},
        )
    if isinstance(exc, ItemPersistenceError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "ITEM_NOT_SAVED", "message": str(exc), "item_ids": exc.item_ids},
        )
    if isinstance(exc, StaleSessionError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": "STALE_SESSION", "message": str(exc)},
        )
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


async def get_itinerary_session(
    trip_id: str,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AsyncGenerator[ItinerarySession, None]:
    """Open and load the itinerary of the trip in the path.

    Yields:
        Loaded ItinerarySession, closed when the request finishes
    """
    try:
        itinerary = await ItinerarySession.open(
            trip_id,
            trips=SqlTripRepository(session),
            items=SqlItemRepository(session),
            ctx=ctx,
            markup_settings=SqlMarkupSettingsRepository(session),
        )
    except ItineraryError as e:
        raise _http_error(e) from e

    try:
        yield itinerary
    finally:
        itinerary.close()


def _placement_response(
    itinerary: ItinerarySession, placements: list[ResolvedPlacement]
) -> PlacementResponse:
    return PlacementResponse(
        item_ids=[placement.item.item_id for placement in placements],
        day_indices=[placement.day_index for placement in placements],
        notices=[notice for placement in placements for notice in placement.notices],
        itinerary=itinerary.view(),
    )


def _store_response(itinerary: ItinerarySession, result: StoreResult) -> StoreResultResponse:
    """Raise for refused operations, otherwise return the outcome with the new view."""
    if result.outcome == StoreOutcome.not_found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": result.code, "message": result.message},
        )
    if result.markup_error is not None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "code": result.code,
                "message": result.message,
                "markup_error": result.markup_error.model_dump(),
            },
        )
    if not result.ok:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": result.code, "message": result.message},
        )
    return StoreResultResponse(
        outcome=result.outcome,
        code=result.code,
        message=result.message,
        item_ids=result.item_ids,
        itinerary=itinerary.view(),
    )


def _date_change_response(
    report: ReconciliationReport, dry_run: bool, itinerary: ItineraryView | None
) -> DateChangeResponse:
    return DateChangeResponse(
        dry_run=dry_run,
        previous_day_count=report.previous_day_count,
        day_count=report.day_count,
        purged_item_ids=report.purged_item_ids,
        unlinked_item_ids=report.unlinked_item_ids,
        trimmed_item_ids=report.trimmed_item_ids,
        notices=report.notices,
        itinerary=itinerary,
    )


# Trips


@router.post("/trips", response_model=Trip, status_code=status.HTTP_201_CREATED)
async def create_trip(
    request: CreateTripRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> Trip:
    """Create a trip; dates may be left empty until the agent picks them."""
    settings = get_settings()
    default_strategy = (
        None
        if settings.default_markup_strategy == "auto"
        else MarkupStrategy(settings.default_markup_strategy)
    )
    trip = Trip(
        trip_id="",
        name=request.name,
        start_date=request.start_date,
        end_date=request.end_date,
        currency=request.currency or settings.default_currency,
        markup=request.markup,
        discount=request.discount,
        markup_strategy=request.markup_strategy or default_strategy,
    )
    created = await SqlTripRepository(session).create_trip(trip, ctx)
    logger.info(f"[itinerary] created trip trip_id={created.trip_id}")
    return created


@router.get("/trips/{trip_id}", response_model=Trip)
async def get_trip(
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> Trip:
    """Trip record."""
    return itinerary.trip


@router.get("/trips/{trip_id}/itinerary", response_model=ItineraryView)
async def get_itinerary(
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> ItineraryView:
    """Day-by-day itinerary with the notices raised while loading it."""
    return itinerary.view(itinerary.load_notices)


# Adding items


@router.post(
    "/trips/{trip_id}/items",
    response_model=PlacementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_service(
    offer: ServiceOffer,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> PlacementResponse:
    """Add a tour or transfer."""
    try:
        placement = await itinerary.add_service(offer)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _placement_response(itinerary, [placement])


@router.post(
    "/trips/{trip_id}/flights",
    response_model=PlacementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_flight(
    offer: FlightOffer,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> PlacementResponse:
    """Add a flight; round trips are stored as two linked legs."""
    try:
        placements = await itinerary.add_flight(offer)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _placement_response(itinerary, placements)


@router.post(
    "/trips/{trip_id}/hotels",
    response_model=PlacementResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_hotel_stay(
    offer: HotelOffer,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> PlacementResponse:
    """Add a hotel stay covering one day per night."""
    try:
        placement = await itinerary.add_hotel_stay(offer)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _placement_response(itinerary, [placement])


# Editing items


@router.delete("/trips/{trip_id}/items/{item_id}", response_model=StoreResultResponse)
async def remove_item(
    item_id: str,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> StoreResultResponse:
    """Remove an item; removing a flight leg removes its linked partner too."""
    try:
        result = await itinerary.remove_item(item_id)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _store_response(itinerary, result)


@router.post("/trips/{trip_id}/items/{item_id}/move", response_model=StoreResultResponse)
async def move_item(
    item_id: str,
    request: MoveItemRequest,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> StoreResultResponse:
    """Move a single-day item to another day."""
    try:
        result = await itinerary.move_item(item_id, request.from_day, request.to_day)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _store_response(itinerary, result)


@router.patch("/trips/{trip_id}/items/{item_id}/markup", response_model=StoreResultResponse)
async def update_item_markup(
    item_id: str,
    request: UpdateMarkupRequest,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> StoreResultResponse:
    """Change an item's markup, subject to the agent's minimum markup."""
    try:
        result = await itinerary.update_item_markup(item_id, request.markup, request.markup_type)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _store_response(itinerary, result)


# Trip-level changes


@router.patch("/trips/{trip_id}/dates", response_model=DateChangeResponse)
async def change_trip_dates(
    request: TripDatesUpdate,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
    dry_run: Annotated[bool, Query()] = False,
) -> DateChangeResponse:
    """Change the trip window; items outside the new dates are deleted.

    With `dry_run=true` nothing is changed and the response lists what would
    be deleted.
    """
    try:
        if dry_run:
            report = itinerary.preview_date_change(request.start_date, request.end_date)
            return _date_change_response(report, True, None)
        report = await itinerary.change_trip_dates(request.start_date, request.end_date)
    except ItineraryError as e:
        raise _http_error(e) from e
    return _date_change_response(report, False, itinerary.view(report.notices))


@router.patch("/trips/{trip_id}/pricing", response_model=Trip)
async def update_trip_pricing(
    request: TripPricingUpdate,
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
) -> Trip:
    """Update trip markup, discount or markup strategy."""
    try:
        return await itinerary.update_trip_pricing(
            markup=request.markup,
            discount=request.discount,
            markup_strategy=request.markup_strategy,
        )
    except ItineraryError as e:
        raise _http_error(e) from e


@router.get("/trips/{trip_id}/pricing", response_model=PriceBreakdown)
async def get_trip_pricing(
    itinerary: Annotated[ItinerarySession, Depends(get_itinerary_session)],
    strategy: Annotated[MarkupStrategy | None, Query()] = None,
) -> PriceBreakdown:
    """Trip price breakdown, optionally under a different markup strategy."""
    return itinerary.price(strategy)


# Agent markup settings


@router.get("/markup-settings")
async def get_markup_settings(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> dict[str, Any]:
    """Stored markup settings of the calling agent (empty when using defaults)."""
    return await SqlMarkupSettingsRepository(session).get_markup_settings(ctx) or {}


@router.put("/markup-settings")
async def save_markup_settings(
    values: dict[str, Any],
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    session: Annotated[AsyncSession, Depends(get_session)],
) -> dict[str, Any]:
    """Replace the calling agent's markup settings."""
    await SqlMarkupSettingsRepository(session).save_markup_settings(values, ctx)
    return values

"""SQL implementations of repository interfaces."""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.tripdesk.db.context import RequestContext
from backend.tripdesk.db.models import AgentMarkupSetting
from backend.tripdesk.db.models import Trip as TripDB
from backend.tripdesk.db.models import TripItem
from backend.tripdesk.db.queries import parse_uuid, select_trip_items, select_trips
from backend.tripdesk.db.repositories import ItemRecord
from backend.tripdesk.models.common import MarkupStrategy
from backend.tripdesk.models.trip import Trip


def _trip_from_row(row: TripDB) -> Trip:
    return Trip(
        trip_id=str(row.trip_id),
        name=row.name,
        start_date=row.start_date,
        end_date=row.end_date,
        currency=row.currency,
        markup=row.markup,
        discount=row.discount,
        markup_strategy=MarkupStrategy(row.markup_strategy) if row.markup_strategy else None,
    )


def _record_from_row(row: TripItem) -> ItemRecord:
    return ItemRecord(
        item_id=row.item_id,
        trip_id=str(row.trip_id),
        item_type=row.item_type,
        item_name=row.item_name,
        cost=row.cost,
        quantity=row.quantity,
        markup=row.markup,
        markup_type=row.markup_type,
        details=dict(row.details or {}),
        created_at=row.created_at,
    )


class SqlTripRepository:
    """SQL implementation of TripRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def _get_row(self, trip_id: str, ctx: RequestContext) -> TripDB | None:
        trip_uuid = parse_uuid(trip_id)
        if trip_uuid is None:
            return None
        result = await self._session.execute(select_trips(ctx).where(TripDB.trip_id == trip_uuid))
        return result.scalar_one_or_none()

    async def create_trip(self, trip: Trip, ctx: RequestContext) -> Trip:
        """Create a trip."""
        row = TripDB(
            trip_id=parse_uuid(trip.trip_id) or uuid.uuid4(),
            agency_id=ctx.agency_id,
            name=trip.name,
            start_date=trip.start_date,
            end_date=trip.end_date,
            currency=trip.currency,
            markup=trip.markup,
            discount=trip.discount,
            markup_strategy=trip.markup_strategy.value if trip.markup_strategy else None,
            created_at=datetime.now(timezone.utc),
        )
        trip_out = _trip_from_row(row)
        self._session.add(row)
        await self._session.commit()
        return trip_out

    async def get_trip(self, trip_id: str, ctx: RequestContext) -> Trip | None:
        """Get trip by ID."""
        row = await self._get_row(trip_id, ctx)
        return _trip_from_row(row) if row is not None else None

    async def update_trip_dates(
        self, trip_id: str, start_date: date | None, end_date: date | None, ctx: RequestContext
    ) -> None:
        """Persist a new trip window."""
        row = await self._get_row(trip_id, ctx)
        if row is None:
            return
        row.start_date = start_date
        row.end_date = end_date
        await self._session.commit()

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
        row = await self._get_row(trip_id, ctx)
        if row is None:
            return
        if markup is not None:
            row.markup = markup
        if discount is not None:
            row.discount = discount
        if markup_strategy is not None:
            row.markup_strategy = markup_strategy.value
        await self._session.commit()


class SqlItemRepository:
    """SQL implementation of ItemRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_items(self, trip_id: str, ctx: RequestContext) -> list[ItemRecord]:
        """List a trip's items in creation order."""
        trip_uuid = parse_uuid(trip_id)
        if trip_uuid is None:
            return []
        result = await self._session.execute(
            select_trip_items(ctx, trip_uuid).order_by(TripItem.created_at.asc())
        )
        return [_record_from_row(row) for row in result.scalars().all()]

    async def create_item(self, record: ItemRecord, ctx: RequestContext) -> ItemRecord:
        """Insert an item record."""
        trip_uuid = parse_uuid(record.trip_id)
        if trip_uuid is None:
            raise ValueError(f"Invalid trip id {record.trip_id!r}")

        row = TripItem(
            item_id=record.item_id,
            trip_id=trip_uuid,
            agency_id=ctx.agency_id,
            item_type=record.item_type,
            item_name=record.item_name,
            cost=record.cost,
            quantity=record.quantity,
            markup=record.markup,
            markup_type=record.markup_type,
            details=dict(record.details),
            created_at=datetime.now(timezone.utc),
        )
        stored = _record_from_row(row)
        self._session.add(row)
        try:
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return stored

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
        result = await self._session.execute(
            select_trip_items(ctx).where(TripItem.item_id == item_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return False

        if markup is not None:
            row.markup = markup
        if markup_type is not None:
            row.markup_type = markup_type
        if details:
            merged = {**(row.details or {}), **details}
            # Reassign so the JSON column is flagged dirty
            row.details = {key: value for key, value in merged.items() if value is not None}

        await self._session.commit()
        return True

    async def delete_items(self, item_ids: list[str], ctx: RequestContext) -> int:
        """Delete item records."""
        if not item_ids:
            return 0
        result = await self._session.execute(
            delete(TripItem).where(
                TripItem.agency_id == ctx.agency_id, TripItem.item_id.in_(item_ids)
            )
        )
        await self._session.commit()
        return result.rowcount or 0


class SqlMarkupSettingsRepository:
    """SQL implementation of MarkupSettingsRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_markup_settings(self, ctx: RequestContext) -> dict[str, Any] | None:
        """Stored settings blob for the agent."""
        result = await self._session.execute(
            select(AgentMarkupSetting).where(
                AgentMarkupSetting.agent_id == ctx.agent_id,
                AgentMarkupSetting.agency_id == ctx.agency_id,
            )
        )
        row = result.scalar_one_or_none()
        return dict(row.setting_value) if row is not None else None

    async def save_markup_settings(self, values: dict[str, Any], ctx: RequestContext) -> None:
        """Replace the agent's settings blob."""
        result = await self._session.execute(
            select(AgentMarkupSetting).where(AgentMarkupSetting.agent_id == ctx.agent_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = AgentMarkupSetting(
                agent_id=ctx.agent_id, agency_id=ctx.agency_id, setting_value=dict(values)
            )
            self._session.add(row)
        else:
            row.setting_value = dict(values)
        await self._session.commit()

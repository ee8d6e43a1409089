"""Pricing models - itemized and trip-level price output."""

from pydantic import BaseModel, Field

from backend.tripdesk.models.common import ItemType, MarkupStrategy


class PriceLine(BaseModel):
    """Price of one unique item (spanning hotels appear once)."""

    item_id: str
    item_type: ItemType
    name: str
    base_cost: float
    markup_amount: float
    final_price: float
    span_days: int = 1


class PriceBreakdown(BaseModel):
    """Trip price under a single markup strategy."""

    strategy: MarkupStrategy
    currency: str
    lines: list[PriceLine] = Field(default_factory=list)
    subtotal: float
    item_markup_total: float
    trip_markup_amount: float
    discount_amount: float
    total: float
    average_markup_percent: float
    day_totals: list[float] = Field(default_factory=list)

"""SQLAlchemy ORM models for agencies, trips and itinerary items."""

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JsonBlob = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Agency(Base):
    """Agency table - top-level tenancy boundary."""

    __tablename__ = "agency"

    agency_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    agents: Mapped[list["Agent"]] = relationship("Agent", back_populates="agency")
    trips: Mapped[list["Trip"]] = relationship("Trip", back_populates="agency")


class Agent(Base):
    """Agent table - agency-scoped user accounts."""

    __tablename__ = "agent"
    __table_args__ = (
        UniqueConstraint("agency_id", "email", name="uq_agent_agency_email"),
        Index("idx_agent_agency", "agency_id"),
    )

    agent_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agency.agency_id"), nullable=False
    )
    email: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    agency: Mapped["Agency"] = relationship("Agency", back_populates="agents")
    markup_setting: Mapped["AgentMarkupSetting | None"] = relationship(
        "AgentMarkupSetting", back_populates="agent", uselist=False, cascade="all, delete-orphan"
    )


class AgentMarkupSetting(Base):
    """Agent markup configuration - default and minimum markup per item category."""

    __tablename__ = "agent_markup_setting"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agent.agent_id", ondelete="CASCADE"), primary_key=True
    )
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agency.agency_id"), nullable=False
    )
    setting_value: Mapped[dict[str, Any]] = mapped_column(JsonBlob, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Relationships
    agent: Mapped["Agent"] = relationship("Agent", back_populates="markup_setting")


class Trip(Base):
    """Trip table - the quote/trip record itinerary items hang off."""

    __tablename__ = "trip"
    __table_args__ = (Index("idx_trip_agency", "agency_id", "created_at"),)

    trip_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agency.agency_id"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    currency: Mapped[str] = mapped_column(Text, nullable=False, default="USD")
    markup: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    discount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    markup_strategy: Mapped[str | None] = mapped_column(Text, nullable=True, default="global")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    agency: Mapped["Agency"] = relationship("Agency", back_populates="trips")
    items: Mapped[list["TripItem"]] = relationship(
        "TripItem", back_populates="trip", cascade="all, delete-orphan"
    )


class TripItem(Base):
    """Trip item table - one row per itinerary item; day placement lives in `details`."""

    __tablename__ = "trip_item"
    __table_args__ = (Index("idx_trip_item_trip", "trip_id", "created_at"),)

    item_id: Mapped[str] = mapped_column(Text, primary_key=True)
    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("trip.trip_id", ondelete="CASCADE"), nullable=False
    )
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agency.agency_id"), nullable=False
    )
    item_type: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[float] = mapped_column(Float, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    markup: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    markup_type: Mapped[str] = mapped_column(Text, nullable=False, default="percentage")
    details: Mapped[dict[str, Any]] = mapped_column(JsonBlob, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    trip: Mapped["Trip"] = relationship("Trip", back_populates="items")

"""Itinerary schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates:
- agency, agent, agent_markup_setting
- trip, trip_item
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "agency",
        sa.Column("agency_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )

    op.create_table(
        "agent",
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("agency_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["agency_id"], ["agency.agency_id"]),
        sa.UniqueConstraint("agency_id", "email", name="uq_agent_agency_email"),
    )
    op.create_index("idx_agent_agency", "agent", ["agency_id"])

    op.create_table(
        "agent_markup_setting",
        sa.Column("agent_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("agency_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("setting_value", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["agent_id"], ["agent.agent_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["agency_id"], ["agency.agency_id"]),
    )

    op.create_table(
        "trip",
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("agency_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("currency", sa.Text(), nullable=False, server_default="USD"),
        sa.Column("markup", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("markup_strategy", sa.Text(), nullable=True, server_default="global"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["agency_id"], ["agency.agency_id"]),
    )
    op.create_index("idx_trip_agency", "trip", ["agency_id", "created_at"])

    op.create_table(
        "trip_item",
        sa.Column("item_id", sa.Text(), primary_key=True),
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("agency_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("item_type", sa.Text(), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("markup", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("markup_type", sa.Text(), nullable=False, server_default="percentage"),
        sa.Column("details", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trip.trip_id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["agency_id"], ["agency.agency_id"]),
    )
    op.create_index("idx_trip_item_trip", "trip_item", ["trip_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_trip_item_trip", table_name="trip_item")
    op.drop_table("trip_item")
    op.drop_index("idx_trip_agency", table_name="trip")
    op.drop_table("trip")
    op.drop_table("agent_markup_setting")
    op.drop_index("idx_agent_agency", table_name="agent")
    op.drop_table("agent")
    op.drop_table("agency")

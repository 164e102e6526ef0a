"""Add itineraries and itinerary_legs tables

Revision ID: itinerary_001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "itinerary_001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "itineraries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("origin", sa.String(3), nullable=False),
        sa.Column("final_destination", sa.String(3), nullable=False),
        sa.Column("is_round_trip", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_price_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price_currency", sa.String(3), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "itinerary_legs",
        sa.Column(
            "itinerary_id",
            sa.Uuid(),
            sa.ForeignKey("itineraries.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("sequence", sa.Integer(), primary_key=True),
        sa.Column("flight_id", sa.String(64), nullable=False),
        sa.Column("flight_number", sa.String(16), nullable=False),
        sa.Column("airline_code", sa.String(3), nullable=False),
        sa.Column("origin", sa.String(3), nullable=False),
        sa.Column("destination", sa.String(3), nullable=False),
        sa.Column("departure_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("price_currency", sa.String(3), nullable=False),
        sa.Column("cabin_class", sa.String(20), nullable=False),
        sa.Column("direction", sa.String(10), nullable=False),
    )

    # Stored searches filter on the first leg's route and departure
    op.create_index(
        "ix_itinerary_legs_route_departure",
        "itinerary_legs",
        ["origin", "destination", "departure_utc"],
    )
    op.create_index("ix_itineraries_created_at", "itineraries", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_itineraries_created_at")
    op.drop_index("ix_itinerary_legs_route_departure")
    op.drop_table("itinerary_legs")
    op.drop_table("itineraries")

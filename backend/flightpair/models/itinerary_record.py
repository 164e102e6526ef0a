import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flightpair.database import Base


class ItineraryRecord(Base):
    __tablename__ = "itineraries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    origin: Mapped[str] = mapped_column(String(3), nullable=False)
    final_destination: Mapped[str] = mapped_column(String(3), nullable=False)
    is_round_trip: Mapped[bool] = mapped_column(Boolean, default=False)
    total_price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_price_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    legs: Mapped[list["ItineraryLegRecord"]] = relationship(
        back_populates="itinerary",
        cascade="all, delete-orphan",
        order_by="ItineraryLegRecord.sequence",
    )


class ItineraryLegRecord(Base):
    __tablename__ = "itinerary_legs"

    itinerary_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("itineraries.id", ondelete="CASCADE"), primary_key=True
    )
    sequence: Mapped[int] = mapped_column(Integer, primary_key=True)
    flight_id: Mapped[str] = mapped_column(String(64), nullable=False)
    flight_number: Mapped[str] = mapped_column(String(16), nullable=False)
    airline_code: Mapped[str] = mapped_column(String(3), nullable=False)
    origin: Mapped[str] = mapped_column(String(3), nullable=False)
    destination: Mapped[str] = mapped_column(String(3), nullable=False)
    departure_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    arrival_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    price_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    cabin_class: Mapped[str] = mapped_column(String(20), nullable=False)
    direction: Mapped[str] = mapped_column(String(10), nullable=False)

    itinerary: Mapped["ItineraryRecord"] = relationship(back_populates="legs")

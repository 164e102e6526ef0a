"""Itinerary aggregate and its leg snapshots."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from flightpair.models.flight import CabinClass, FlightOffer, Money, ensure_utc


class Direction(str, Enum):
    OUTBOUND = "outbound"
    RETURN = "return"


class InvalidReason(str, Enum):
    DISCONTIGUOUS_SEQUENCE = "discontiguous_sequence"
    OVERLAPPING_LEGS = "overlapping_legs"
    BROKEN_ROUND_TRIP_LOOP = "broken_round_trip_loop"
    CURRENCY_MISMATCH = "currency_mismatch"


@dataclass(frozen=True)
class ItineraryLeg:
    """Immutable copy of a flight offer placed at a position in an itinerary.

    ``flight_id`` only traces the leg back to the catalog offer; no live
    reference to the offer is kept.
    """

    sequence: int
    flight_id: str
    flight_number: str
    airline_code: str
    origin: str
    destination: str
    departure_utc: datetime
    arrival_utc: datetime
    price: Money
    cabin_class: CabinClass
    direction: Direction

    def __post_init__(self):
        if self.sequence < 0:
            raise ValueError("Leg sequence must be >= 0")
        for name in ("flight_id", "flight_number", "airline_code", "origin", "destination"):
            value = getattr(self, name)
            if not value or not str(value).strip():
                raise ValueError(f"Leg {name} is required")
        object.__setattr__(self, "flight_number", self.flight_number.upper())
        object.__setattr__(self, "airline_code", self.airline_code.upper())
        object.__setattr__(self, "origin", self.origin.upper())
        object.__setattr__(self, "destination", self.destination.upper())
        object.__setattr__(self, "departure_utc", ensure_utc(self.departure_utc))
        object.__setattr__(self, "arrival_utc", ensure_utc(self.arrival_utc))
        object.__setattr__(self, "cabin_class", CabinClass(self.cabin_class))
        object.__setattr__(self, "direction", Direction(self.direction))
        if self.arrival_utc <= self.departure_utc:
            raise ValueError("Leg arrival must be after departure")

    @classmethod
    def from_offer(cls, sequence: int, offer: FlightOffer, direction: Direction) -> "ItineraryLeg":
        return cls(
            sequence=sequence,
            flight_id=offer.flight_id,
            flight_number=offer.flight_number,
            airline_code=offer.airline_code,
            origin=offer.origin,
            destination=offer.destination,
            departure_utc=offer.departure_utc,
            arrival_utc=offer.arrival_utc,
            price=offer.price,
            cabin_class=offer.cabin_class,
            direction=direction,
        )

    @property
    def duration(self) -> timedelta:
        return self.arrival_utc - self.departure_utc


@dataclass(frozen=True)
class Itinerary:
    """A priced, time-ordered sequence of legs forming one purchasable trip.

    Instances are produced by ``build_itinerary`` which enforces the leg
    invariants; use ``Itinerary.create`` for exception semantics.
    """

    legs: tuple[ItineraryLeg, ...]
    total_price: Money
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(cls, legs) -> "Itinerary":
        from flightpair.errors import InvalidItineraryError
        from flightpair.services.itinerary_builder import build_itinerary

        result = build_itinerary(legs)
        if isinstance(result, InvalidItinerary):
            raise InvalidItineraryError(result.reason, result.detail)
        return result

    @property
    def origin(self) -> str:
        return self.legs[0].origin

    @property
    def final_destination(self) -> str:
        return self.legs[-1].destination

    @property
    def leg_count(self) -> int:
        return len(self.legs)

    @property
    def is_round_trip(self) -> bool:
        directions = [leg.direction for leg in self.legs]
        return directions.count(Direction.RETURN) == 1 and Direction.OUTBOUND in directions

    @property
    def outbound_departure(self) -> datetime | None:
        return next((l.departure_utc for l in self.legs if l.direction == Direction.OUTBOUND), None)

    @property
    def return_departure(self) -> datetime | None:
        return next((l.departure_utc for l in self.legs if l.direction == Direction.RETURN), None)

    @property
    def total_duration(self) -> timedelta:
        return self.legs[-1].arrival_utc - self.legs[0].departure_utc


@dataclass(frozen=True)
class InvalidItinerary:
    """Structured reason why a set of legs was rejected."""

    reason: InvalidReason
    detail: str

import uuid
from datetime import datetime

from pydantic import BaseModel

from flightpair.models.itinerary import Itinerary, ItineraryLeg


class ItineraryLegResponse(BaseModel):
    sequence: int
    flight_number: str
    airline_code: str
    origin: str
    destination: str
    departure_utc: datetime
    arrival_utc: datetime
    duration_minutes: int
    cabin_class: str
    price_amount: float
    price_currency: str
    direction: str

    @classmethod
    def from_leg(cls, leg: ItineraryLeg) -> "ItineraryLegResponse":
        return cls(
            sequence=leg.sequence,
            flight_number=leg.flight_number,
            airline_code=leg.airline_code,
            origin=leg.origin,
            destination=leg.destination,
            departure_utc=leg.departure_utc,
            arrival_utc=leg.arrival_utc,
            duration_minutes=int(leg.duration.total_seconds() // 60),
            cabin_class=leg.cabin_class.value,
            price_amount=float(leg.price.amount),
            price_currency=leg.price.currency,
            direction=leg.direction.value,
        )


class ItineraryResponse(BaseModel):
    id: uuid.UUID
    origin: str
    final_destination: str
    is_round_trip: bool
    outbound_departure: datetime | None
    return_departure: datetime | None
    total_price_amount: float
    total_price_currency: str
    total_duration_minutes: int
    leg_count: int
    legs: list[ItineraryLegResponse]

    @classmethod
    def from_itinerary(cls, itinerary: Itinerary) -> "ItineraryResponse":
        return cls(
            id=itinerary.id,
            origin=itinerary.origin,
            final_destination=itinerary.final_destination,
            is_round_trip=itinerary.is_round_trip,
            outbound_departure=itinerary.outbound_departure,
            return_departure=itinerary.return_departure,
            total_price_amount=float(itinerary.total_price.amount),
            total_price_currency=itinerary.total_price.currency,
            total_duration_minutes=int(itinerary.total_duration.total_seconds() // 60),
            leg_count=itinerary.leg_count,
            legs=[ItineraryLegResponse.from_leg(leg) for leg in itinerary.legs],
        )

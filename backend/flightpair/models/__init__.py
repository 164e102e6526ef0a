from flightpair.models.flight import CabinClass, FlightOffer, Money, ensure_utc
from flightpair.models.itinerary import (
    Direction,
    InvalidItinerary,
    InvalidReason,
    Itinerary,
    ItineraryLeg,
)
from flightpair.models.options import (
    ItinerarySearchOptions,
    ItinerarySearchRequest,
    SortBy,
    SortOrder,
)
from flightpair.models.itinerary_record import ItineraryLegRecord, ItineraryRecord

__all__ = [
    "CabinClass",
    "Direction",
    "FlightOffer",
    "InvalidItinerary",
    "InvalidReason",
    "Itinerary",
    "ItineraryLeg",
    "ItineraryLegRecord",
    "ItineraryRecord",
    "ItinerarySearchOptions",
    "ItinerarySearchRequest",
    "Money",
    "SortBy",
    "SortOrder",
    "ensure_utc",
]

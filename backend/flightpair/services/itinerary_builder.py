"""Itinerary builder — validates ordered legs into an immutable Itinerary.

Checks run in a fixed order and the first failure decides the reason:

    1. sequence contiguity      legs[i].sequence == i
    2. temporal non-overlap     legs[i+1].departure >= legs[i].arrival
    3. round-trip closure       only when exactly one Return leg is present
    4. currency uniformity      every leg priced in the first leg's currency

Failures are returned as ``InvalidItinerary`` values, never raised, because
the pairing loop calls this once per candidate.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from flightpair.models.flight import Money
from flightpair.models.itinerary import (
    Direction,
    InvalidItinerary,
    InvalidReason,
    Itinerary,
    ItineraryLeg,
)


def build_itinerary(
    legs: Sequence[ItineraryLeg],
    itinerary_id: uuid.UUID | None = None,
    created_at: datetime | None = None,
) -> Itinerary | InvalidItinerary:
    """Validate ``legs`` (in list order) and price the resulting itinerary.

    ``itinerary_id`` and ``created_at`` are only passed when rehydrating a
    stored aggregate.
    """
    legs = tuple(legs)
    if not legs:
        raise ValueError("Itinerary must have at least one leg")

    for i, leg in enumerate(legs):
        if leg.sequence != i:
            return InvalidItinerary(
                InvalidReason.DISCONTIGUOUS_SEQUENCE,
                f"leg at position {i} has sequence {leg.sequence}",
            )

    for prev, nxt in zip(legs, legs[1:]):
        if nxt.departure_utc < prev.arrival_utc:
            return InvalidItinerary(
                InvalidReason.OVERLAPPING_LEGS,
                f"leg {nxt.sequence} departs {nxt.departure_utc.isoformat()} "
                f"before leg {prev.sequence} arrives {prev.arrival_utc.isoformat()}",
            )

    return_legs = sum(1 for leg in legs if leg.direction == Direction.RETURN)
    if return_legs == 1 and legs[-1].destination != legs[0].origin:
        return InvalidItinerary(
            InvalidReason.BROKEN_ROUND_TRIP_LOOP,
            f"round trip starts at {legs[0].origin} but ends at {legs[-1].destination}",
        )

    currency = legs[0].price.currency
    total = Decimal("0")
    for leg in legs:
        if leg.price.currency != currency:
            return InvalidItinerary(
                InvalidReason.CURRENCY_MISMATCH,
                f"leg {leg.sequence} priced in {leg.price.currency}, expected {currency}",
            )
        total += leg.price.amount

    kwargs = {}
    if itinerary_id is not None:
        kwargs["id"] = itinerary_id
    if created_at is not None:
        kwargs["created_at"] = created_at
    return Itinerary(legs=legs, total_price=Money(total, currency), **kwargs)

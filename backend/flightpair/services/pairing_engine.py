"""Pairing engine — turns catalog offers into validated itinerary candidates."""

import asyncio
import itertools
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from flightpair.errors import CatalogError, ItinerarySearchError, SearchCancelledError
from flightpair.models.flight import FlightOffer
from flightpair.models.itinerary import Direction, InvalidItinerary, Itinerary, ItineraryLeg
from flightpair.models.options import ItinerarySearchOptions, ItinerarySearchRequest
from flightpair.services.flight_catalog import FlightCatalog
from flightpair.services.itinerary_builder import build_itinerary

logger = logging.getLogger(__name__)

# How many examined pairs between two cancellation checks
CANCEL_CHECK_INTERVAL = 64


class RejectReason(str, Enum):
    TEMPORAL = "temporal"
    STAY_TOO_SHORT = "stay_too_short"
    STAY_TOO_LONG = "stay_too_long"
    CABIN_MISMATCH = "cabin_mismatch"


@dataclass
class PairingStats:
    outbound_fetched: int = 0
    return_fetched: int = 0
    outbound_considered: int = 0
    return_considered: int = 0
    pairs_examined: int = 0
    rejected: Counter = field(default_factory=Counter)  # RejectReason -> count
    invalid: Counter = field(default_factory=Counter)  # InvalidReason -> count
    accepted: int = 0
    cap_reached: bool = False


@dataclass
class PairingResult:
    candidates: list[Itinerary]
    stats: PairingStats


def pair_rejection(outbound, inbound, options: ItinerarySearchOptions) -> RejectReason | None:
    """Return why an (outbound, return) pair is filtered out, or None if it passes.

    Works on anything exposing ``departure_utc``, ``arrival_utc`` and
    ``cabin_class`` so offers and stored legs are filtered the same way.
    """
    if inbound.departure_utc <= outbound.arrival_utc:
        return RejectReason.TEMPORAL

    stay = inbound.departure_utc - outbound.arrival_utc
    if options.min_stay is not None and stay < options.min_stay:
        return RejectReason.STAY_TOO_SHORT
    if options.max_stay is not None and stay > options.max_stay:
        return RejectReason.STAY_TOO_LONG

    if not options.allow_mixed_cabin and outbound.cabin_class != inbound.cabin_class:
        return RejectReason.CABIN_MISMATCH

    return None


def raise_if_cancelled(cancel_event: asyncio.Event | None, stage: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info(f"Itinerary search cancelled {stage}")
        raise SearchCancelledError(stage)


class PairingEngine:
    """Fetches offers and produces the unordered list of valid itineraries."""

    async def generate(
        self,
        catalog: FlightCatalog,
        request: ItinerarySearchRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> PairingResult:
        raise_if_cancelled(cancel_event, "before catalog fetch")

        origin = request.origin_code
        destination = request.destination_code

        if not request.is_round_trip:
            outbound = await self._fetch(catalog, origin, destination, request.departure_date)
            raise_if_cancelled(cancel_event, "after catalog fetch")
            return self.wrap_one_way(outbound)

        # Outbound and return fetches are independent
        results = await asyncio.gather(
            self._fetch(catalog, origin, destination, request.departure_date),
            self._fetch(catalog, destination, origin, request.return_date),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        outbound, returns = results

        raise_if_cancelled(cancel_event, "after catalog fetch")
        return self.pair_round_trip(outbound, returns, request.options, cancel_event)

    @staticmethod
    def wrap_one_way(offers: list[FlightOffer]) -> PairingResult:
        stats = PairingStats(outbound_fetched=len(offers), outbound_considered=len(offers))
        candidates: list[Itinerary] = []

        for offer in offers:
            result = build_itinerary([ItineraryLeg.from_offer(0, offer, Direction.OUTBOUND)])
            if isinstance(result, InvalidItinerary):
                stats.invalid[result.reason] += 1
                continue
            candidates.append(result)

        stats.accepted = len(candidates)
        return PairingResult(candidates=candidates, stats=stats)

    @staticmethod
    def pair_round_trip(
        outbound: list[FlightOffer],
        returns: list[FlightOffer],
        options: ItinerarySearchOptions,
        cancel_event: asyncio.Event | None = None,
    ) -> PairingResult:
        """Enumerate outbound x return in catalog order.

        ``max_combinations`` bounds the total number of pairs examined over
        the whole product (one global counter, filtered pairs included).
        """
        stats = PairingStats(outbound_fetched=len(outbound), return_fetched=len(returns))
        outbound = outbound[: options.max_outbound_flights]
        returns = returns[: options.max_return_flights]
        stats.outbound_considered = len(outbound)
        stats.return_considered = len(returns)

        candidates: list[Itinerary] = []
        for out_offer, ret_offer in itertools.product(outbound, returns):
            if stats.pairs_examined >= options.max_combinations:
                stats.cap_reached = True
                break
            stats.pairs_examined += 1
            if stats.pairs_examined % CANCEL_CHECK_INTERVAL == 0:
                raise_if_cancelled(cancel_event, "during pairing")

            reject = pair_rejection(out_offer, ret_offer, options)
            if reject is not None:
                stats.rejected[reject] += 1
                continue

            result = build_itinerary([
                ItineraryLeg.from_offer(0, out_offer, Direction.OUTBOUND),
                ItineraryLeg.from_offer(1, ret_offer, Direction.RETURN),
            ])
            if isinstance(result, InvalidItinerary):
                stats.invalid[result.reason] += 1
                logger.debug(
                    f"Skipping {out_offer.flight_number}/{ret_offer.flight_number}: "
                    f"{result.reason.value} ({result.detail})"
                )
                continue
            candidates.append(result)

        stats.accepted = len(candidates)
        if stats.cap_reached:
            logger.info(
                f"Pairing stopped at max_combinations={options.max_combinations} "
                f"({stats.outbound_considered}x{stats.return_considered} possible)"
            )
        return PairingResult(candidates=candidates, stats=stats)

    @staticmethod
    async def _fetch(
        catalog: FlightCatalog, origin: str, destination: str, day: date
    ) -> list[FlightOffer]:
        try:
            return await catalog.search(origin, destination, day)
        except CatalogError as e:
            logger.error(f"Catalog fetch failed for {origin}->{destination} on {day}: {e}")
            raise ItinerarySearchError(
                f"Flight offers unavailable for {origin}->{destination} on {day.isoformat()}"
            ) from e


pairing_engine = PairingEngine()

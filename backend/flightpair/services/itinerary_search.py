"""Itinerary search — pairs offers, sorts the candidates and cuts out one page."""

import asyncio
import logging
import time
from dataclasses import dataclass, field

from flightpair.models.itinerary import Itinerary
from flightpair.models.options import ItinerarySearchRequest, SortBy, SortOrder
from flightpair.services.flight_catalog import FlightCatalog
from flightpair.services.pairing_engine import PairingEngine, PairingStats, pairing_engine
from flightpair.services.paginator import paginate
from flightpair.services.sorter import sort_itineraries

logger = logging.getLogger(__name__)


@dataclass
class ItinerarySearchResult:
    items: list[Itinerary]
    page: int
    page_size: int
    sort_by: SortBy
    sort_order: SortOrder
    round_trip_requested: bool
    total_candidates: int = 0
    stats: PairingStats = field(default_factory=PairingStats)
    elapsed_ms: int = 0

    @property
    def returned_count(self) -> int:
        return len(self.items)


class ItinerarySearchService:
    """Runs one search: fetch -> pair/filter/build -> sort -> paginate."""

    def __init__(self, engine: PairingEngine | None = None):
        self._engine = engine or pairing_engine

    async def search(
        self,
        catalog: FlightCatalog,
        request: ItinerarySearchRequest,
        cancel_event: asyncio.Event | None = None,
    ) -> ItinerarySearchResult:
        """
        Execute an itinerary search against ``catalog``.

        Raises ItinerarySearchError when offers cannot be fetched and
        SearchCancelledError when ``cancel_event`` is set before completion.
        An empty page is a successful result.
        """
        start_time = time.monotonic()
        options = request.options

        pairing = await self._engine.generate(catalog, request, cancel_event)
        ordered = sort_itineraries(pairing.candidates, options.sort_by, options.sort_order)
        page_items = paginate(ordered, options.page, options.page_size)

        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        stats = pairing.stats
        logger.info(
            f"Itinerary search {request.origin_code}-{request.destination_code} "
            f"dep {request.departure_date.isoformat()} "
            f"ret {request.return_date.isoformat() if request.return_date else '-'}: "
            f"{len(ordered)} candidates from {stats.pairs_examined} pairs, "
            f"returned {len(page_items)} (page {options.page}) in {elapsed_ms}ms"
        )
        if stats.invalid:
            logger.debug(f"Rejected by builder: {dict(stats.invalid)}")

        return ItinerarySearchResult(
            items=page_items,
            page=options.page,
            page_size=options.page_size,
            sort_by=options.sort_by,
            sort_order=options.sort_order,
            round_trip_requested=request.is_round_trip,
            total_candidates=len(ordered),
            stats=stats,
            elapsed_ms=elapsed_ms,
        )


itinerary_search_service = ItinerarySearchService()

"""Itineraries router — paired flight search and stored itinerary lookup."""

import asyncio
import logging
import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from flightpair.config import settings
from flightpair.database import async_session_factory, get_db
from flightpair.dependencies import get_flight_catalog
from flightpair.errors import ItinerarySearchError, SearchCancelledError
from flightpair.models.itinerary import Itinerary
from flightpair.schemas.flight import ItineraryResponse
from flightpair.schemas.search import ItinerarySearchParams, SearchItinerariesResponse
from flightpair.services.flight_catalog import FlightCatalog
from flightpair.services.itinerary_repository import itinerary_repository
from flightpair.services.itinerary_search import ItinerarySearchResult, itinerary_search_service

logger = logging.getLogger(__name__)

router = APIRouter()


def search_params(
    origin_code: str = Query(..., description="3-letter origin airport code"),
    destination_code: str = Query(..., description="3-letter destination airport code"),
    departure_date: date = Query(..., description="Outbound date (YYYY-MM-DD)"),
    return_date: date | None = Query(None, description="Return date for round trips"),
    page: int = Query(1),
    page_size: int = Query(settings.default_page_size),
    max_outbound: int = Query(settings.max_outbound_flights, ge=1, le=200),
    max_return: int = Query(settings.max_return_flights, ge=1, le=200),
    max_combos: int = Query(settings.max_combinations, ge=1, le=2000),
    min_stay_hours: float | None = Query(None),
    max_stay_hours: float | None = Query(None),
    allow_mixed_cabin: bool = Query(False),
    sort_by: str | None = Query(None, description="price | duration"),
    sort_order: str | None = Query(None, description="asc | desc"),
) -> ItinerarySearchParams:
    """Collect and validate search parameters; validation failures are 400s."""
    try:
        return ItinerarySearchParams(
            origin_code=origin_code,
            destination_code=destination_code,
            departure_date=departure_date,
            return_date=return_date,
            page=page,
            page_size=page_size,
            max_outbound=max_outbound,
            max_return=max_return,
            max_combos=max_combos,
            min_stay_hours=min_stay_hours,
            max_stay_hours=max_stay_hours,
            allow_mixed_cabin=allow_mixed_cabin,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(p) for p in err["loc"]) or "request",
                "message": err["msg"],
            }
            for err in e.errors()
        ]
        raise HTTPException(status_code=400, detail=errors)


def _to_response(result: ItinerarySearchResult) -> SearchItinerariesResponse:
    return SearchItinerariesResponse(
        items=[ItineraryResponse.from_itinerary(i) for i in result.items],
        page=result.page,
        page_size=result.page_size,
        returned_count=result.returned_count,
        sort_by=result.sort_by.value,
        sort_order=result.sort_order.value,
        round_trip_requested=result.round_trip_requested,
    )


async def _watch_disconnect(request: Request, cancel_event: asyncio.Event) -> None:
    """Set ``cancel_event`` once the client goes away."""
    while not cancel_event.is_set():
        if await request.is_disconnected():
            cancel_event.set()
            return
        await asyncio.sleep(0.25)


async def _store_itineraries(items: list[Itinerary]) -> None:
    """Persist a result page; failures are logged and do not fail the search."""
    try:
        async with async_session_factory() as db:
            await itinerary_repository.add_many(db, items)
    except Exception as e:
        logger.error(f"Failed to store itineraries: {e}", exc_info=True)


def _require_store() -> None:
    if not settings.itinerary_store_enabled:
        raise HTTPException(status_code=404, detail="Itinerary store is disabled")


@router.get("/search", response_model=SearchItinerariesResponse)
async def search_itineraries(
    request: Request,
    params: ItinerarySearchParams = Depends(search_params),
    catalog: FlightCatalog = Depends(get_flight_catalog),
):
    """Search one-way or round-trip itineraries, paired from individual flight offers."""
    search_request = params.to_request()
    cancel_event = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel_event))

    try:
        result = await asyncio.wait_for(
            itinerary_search_service.search(catalog, search_request, cancel_event),
            timeout=settings.search_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error(f"Itinerary search timed out for {params.origin_code}-{params.destination_code}")
        raise HTTPException(status_code=504, detail="Search timed out. Please try again.")
    except SearchCancelledError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except ItinerarySearchError as e:
        logger.error(f"Itinerary search failed for {params.origin_code}-{params.destination_code}: {e}")
        raise HTTPException(status_code=502, detail=f"Search failed: {e}")
    finally:
        watcher.cancel()

    if settings.itinerary_store_enabled and result.items:
        await _store_itineraries(result.items)

    return _to_response(result)


@router.get("/stored/search", response_model=SearchItinerariesResponse)
async def search_stored_itineraries(
    params: ItinerarySearchParams = Depends(search_params),
    db: AsyncSession = Depends(get_db),
):
    """Search previously stored itineraries with the same filter, sort and paging rules."""
    _require_store()
    result = await itinerary_repository.search(db, params.to_request())
    return _to_response(result)


@router.get("/{itinerary_id}", response_model=ItineraryResponse)
async def get_itinerary(itinerary_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    """Fetch one stored itinerary."""
    _require_store()
    itinerary = await itinerary_repository.get_by_id(db, itinerary_id)
    if itinerary is None:
        raise HTTPException(status_code=404, detail="Itinerary not found")
    return ItineraryResponse.from_itinerary(itinerary)

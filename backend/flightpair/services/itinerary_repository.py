"""Itinerary repository — optional persistence of generated itineraries.

Stored searches reuse the pairing filters, the sorter and the paginator so
that results served from storage follow the same rules as live searches.
"""

import logging
import time
import uuid
from datetime import datetime, time as dt_time, timedelta, timezone
from typing import Iterable

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, selectinload

from flightpair.models.flight import Money, ensure_utc
from flightpair.models.itinerary import Direction, InvalidItinerary, Itinerary, ItineraryLeg
from flightpair.models.itinerary_record import ItineraryLegRecord, ItineraryRecord
from flightpair.models.options import ItinerarySearchRequest
from flightpair.services.itinerary_builder import build_itinerary
from flightpair.services.itinerary_search import ItinerarySearchResult
from flightpair.services.pairing_engine import pair_rejection
from flightpair.services.paginator import paginate
from flightpair.services.sorter import sort_itineraries

logger = logging.getLogger(__name__)


def _day_bounds(day) -> tuple[datetime, datetime]:
    start = datetime.combine(day, dt_time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class ItineraryRepository:
    """Reads and writes Itinerary aggregates through an AsyncSession."""

    async def add(self, db: AsyncSession, itinerary: Itinerary) -> None:
        db.add(self._to_record(itinerary))
        await db.commit()
        logger.info(
            f"Stored itinerary {itinerary.id} with {itinerary.leg_count} legs "
            f"and total {itinerary.total_price}"
        )

    async def add_many(self, db: AsyncSession, itineraries: Iterable[Itinerary]) -> int:
        records = [self._to_record(i) for i in itineraries]
        if not records:
            return 0
        db.add_all(records)
        await db.commit()
        logger.info(f"Stored {len(records)} itineraries")
        return len(records)

    async def get_by_id(self, db: AsyncSession, itinerary_id: uuid.UUID) -> Itinerary | None:
        result = await db.execute(
            select(ItineraryRecord)
            .where(ItineraryRecord.id == itinerary_id)
            .options(selectinload(ItineraryRecord.legs))
        )
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return self._to_domain(record)

    async def search(self, db: AsyncSession, request: ItinerarySearchRequest) -> ItinerarySearchResult:
        """Serve a search from storage with live-search filter/sort/paging rules."""
        start_time = time.monotonic()
        options = request.options

        first_leg = aliased(ItineraryLegRecord)
        dep_start, dep_end = _day_bounds(request.departure_date)
        stmt = (
            select(ItineraryRecord)
            .join(first_leg, and_(first_leg.itinerary_id == ItineraryRecord.id, first_leg.sequence == 0))
            .where(
                first_leg.origin == request.origin_code,
                first_leg.destination == request.destination_code,
                first_leg.departure_utc >= dep_start,
                first_leg.departure_utc < dep_end,
                ItineraryRecord.is_round_trip == request.is_round_trip,
            )
            .options(selectinload(ItineraryRecord.legs))
            .order_by(ItineraryRecord.created_at, ItineraryRecord.id)
        )
        if request.is_round_trip:
            return_leg = aliased(ItineraryLegRecord)
            ret_start, ret_end = _day_bounds(request.return_date)
            stmt = stmt.join(
                return_leg,
                and_(
                    return_leg.itinerary_id == ItineraryRecord.id,
                    return_leg.direction == Direction.RETURN.value,
                ),
            ).where(return_leg.departure_utc >= ret_start, return_leg.departure_utc < ret_end)

        result = await db.execute(stmt)
        itineraries = [i for i in (self._to_domain(r) for r in result.scalars().unique()) if i]
        itineraries = self._latest_per_pairing(itineraries)

        if request.is_round_trip:
            itineraries = [i for i in itineraries if self._passes_filters(i, request)]

        ordered = sort_itineraries(itineraries, options.sort_by, options.sort_order)
        page_items = paginate(ordered, options.page, options.page_size)

        return ItinerarySearchResult(
            items=page_items,
            page=options.page,
            page_size=options.page_size,
            sort_by=options.sort_by,
            sort_order=options.sort_order,
            round_trip_requested=request.is_round_trip,
            total_candidates=len(ordered),
            elapsed_ms=int((time.monotonic() - start_time) * 1000),
        )

    @staticmethod
    def pairing_key(itinerary: Itinerary) -> tuple:
        """Identity of the flights in an itinerary, independent of when it was stored."""
        return tuple((l.flight_id, l.flight_number, l.departure_utc) for l in itinerary.legs)

    @classmethod
    def _latest_per_pairing(cls, itineraries: list[Itinerary]) -> list[Itinerary]:
        """Keep one itinerary per pairing: the last stored one, at its own position.

        Every live search writes its page, so the same pairing can be stored
        many times under different ids.
        """
        latest: dict[tuple, Itinerary] = {}
        for itinerary in itineraries:
            key = cls.pairing_key(itinerary)
            latest.pop(key, None)
            latest[key] = itinerary
        return list(latest.values())

    @staticmethod
    def _passes_filters(itinerary: Itinerary, request: ItinerarySearchRequest) -> bool:
        outbound = [l for l in itinerary.legs if l.direction == Direction.OUTBOUND]
        inbound = [l for l in itinerary.legs if l.direction == Direction.RETURN]
        if not outbound or not inbound:
            return False
        return pair_rejection(outbound[-1], inbound[0], request.options) is None

    @staticmethod
    def _to_record(itinerary: Itinerary) -> ItineraryRecord:
        return ItineraryRecord(
            id=itinerary.id,
            origin=itinerary.origin,
            final_destination=itinerary.final_destination,
            is_round_trip=itinerary.is_round_trip,
            total_price_amount=itinerary.total_price.amount,
            total_price_currency=itinerary.total_price.currency,
            created_at=itinerary.created_at,
            legs=[
                ItineraryLegRecord(
                    sequence=leg.sequence,
                    flight_id=leg.flight_id,
                    flight_number=leg.flight_number,
                    airline_code=leg.airline_code,
                    origin=leg.origin,
                    destination=leg.destination,
                    departure_utc=leg.departure_utc,
                    arrival_utc=leg.arrival_utc,
                    price_amount=leg.price.amount,
                    price_currency=leg.price.currency,
                    cabin_class=leg.cabin_class.value,
                    direction=leg.direction.value,
                )
                for leg in itinerary.legs
            ],
        )

    @staticmethod
    def _to_domain(record: ItineraryRecord) -> Itinerary | None:
        legs = [
            ItineraryLeg(
                sequence=r.sequence,
                flight_id=r.flight_id,
                flight_number=r.flight_number,
                airline_code=r.airline_code,
                origin=r.origin,
                destination=r.destination,
                departure_utc=r.departure_utc,
                arrival_utc=r.arrival_utc,
                price=Money(r.price_amount, r.price_currency),
                cabin_class=r.cabin_class,
                direction=r.direction,
            )
            for r in sorted(record.legs, key=lambda r: r.sequence)
        ]
        result = build_itinerary(legs, itinerary_id=record.id, created_at=ensure_utc(record.created_at))
        if isinstance(result, InvalidItinerary):
            logger.error(f"Stored itinerary {record.id} is invalid: {result.reason.value} ({result.detail})")
            return None
        return result


itinerary_repository = ItineraryRepository()

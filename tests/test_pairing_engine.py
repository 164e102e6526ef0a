import asyncio
from datetime import date, timedelta

import pytest

from factories import BarrierCatalog, CancellingCatalog, FailingCatalog, utc
from flightpair.errors import CatalogError, ItinerarySearchError, SearchCancelledError
from flightpair.models import (
    CabinClass,
    Direction,
    InvalidReason,
    ItinerarySearchOptions,
    ItinerarySearchRequest,
)
from flightpair.services.pairing_engine import (
    CANCEL_CHECK_INTERVAL,
    PairingEngine,
    RejectReason,
    pair_rejection,
)

DAY1 = date(2025, 6, 1)
DAY5 = date(2025, 6, 5)


def round_trip(options=None, departure=DAY1, return_date=DAY5):
    return ItinerarySearchRequest("LAX", "JFK", departure, return_date, options or ItinerarySearchOptions())


@pytest.fixture
def engine():
    return PairingEngine()


@pytest.fixture
def add_returns(catalog, make_offer):
    """Register ``count`` JFK->LAX offers on DAY5, twenty minutes apart."""

    def _add(count, **kwargs):
        offers = [
            make_offer(
                origin="JFK",
                destination="LAX",
                departure=utc(2025, 6, 5, 6) + timedelta(minutes=20 * i),
                **kwargs,
            )
            for i in range(count)
        ]
        for offer in offers:
            catalog.add(offer)
        return offers

    return _add


@pytest.fixture
def add_outbounds(catalog, make_offer):
    """Register ``count`` LAX->JFK offers on DAY1, twenty minutes apart."""

    def _add(count, **kwargs):
        offers = [
            make_offer(departure=utc(2025, 6, 1, 0) + timedelta(minutes=20 * i), **kwargs)
            for i in range(count)
        ]
        for offer in offers:
            catalog.add(offer)
        return offers

    return _add


class TestOneWay:
    """Tests for one-way searches."""

    @pytest.mark.asyncio
    async def test_each_offer_becomes_a_single_leg_itinerary(self, engine, catalog, add_outbounds):
        offers = add_outbounds(3)

        result = await engine.generate(catalog, ItinerarySearchRequest("LAX", "JFK", DAY1))

        assert len(result.candidates) == 3
        assert all(i.leg_count == 1 for i in result.candidates)
        assert all(i.legs[0].direction is Direction.OUTBOUND for i in result.candidates)
        assert [i.legs[0].flight_id for i in result.candidates] == [o.flight_id for o in offers]
        assert result.stats.accepted == 3
        assert result.stats.pairs_examined == 0

    @pytest.mark.asyncio
    async def test_no_offers_is_an_empty_result(self, engine, catalog):
        result = await engine.generate(catalog, ItinerarySearchRequest("LAX", "JFK", DAY1))
        assert result.candidates == []

    @pytest.mark.asyncio
    async def test_return_route_not_fetched(self, engine):
        failing = FailingCatalog(CatalogError("boom"))

        with pytest.raises(ItinerarySearchError):
            await engine.generate(failing, ItinerarySearchRequest("LAX", "JFK", DAY1))

        assert failing.calls == [("LAX", "JFK", DAY1)]


class TestRoundTrip:
    """Tests for round-trip pairing."""

    @pytest.mark.asyncio
    async def test_pairs_are_built_outbound_then_return(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(2)
        add_returns(3)

        result = await engine.generate(catalog, round_trip())

        assert len(result.candidates) == 6
        for itinerary in result.candidates:
            assert itinerary.is_round_trip
            assert [l.direction for l in itinerary.legs] == [Direction.OUTBOUND, Direction.RETURN]
            assert [l.sequence for l in itinerary.legs] == [0, 1]
        assert result.stats.pairs_examined == 6

    @pytest.mark.asyncio
    async def test_enumeration_is_outbound_major(self, engine, catalog, add_outbounds, add_returns):
        outbounds = add_outbounds(2)
        returns = add_returns(2)

        result = await engine.generate(catalog, round_trip())

        pairs = [(i.legs[0].flight_id, i.legs[1].flight_id) for i in result.candidates]
        assert pairs == [
            (outbounds[0].flight_id, returns[0].flight_id),
            (outbounds[0].flight_id, returns[1].flight_id),
            (outbounds[1].flight_id, returns[0].flight_id),
            (outbounds[1].flight_id, returns[1].flight_id),
        ]

    @pytest.mark.asyncio
    async def test_stay_filter(self, engine, catalog, make_offer):
        catalog.add(make_offer(departure=utc(2025, 6, 1, 9), duration=timedelta(hours=8)))
        # Stays of 2d15h and 3d17h after the 17:00 arrival
        catalog.add(make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 4, 8)))
        late = make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 5, 10))
        catalog.add(late)
        options = ItinerarySearchOptions.create(min_stay=timedelta(hours=72))

        result = await engine.generate(catalog, round_trip(options, return_date=date(2025, 6, 4)))
        assert result.candidates == []
        assert result.stats.rejected[RejectReason.STAY_TOO_SHORT] == 1

        result = await engine.generate(catalog, round_trip(options, return_date=DAY5))
        assert len(result.candidates) == 1
        assert result.candidates[0].legs[1].flight_id == late.flight_id

    @pytest.mark.asyncio
    async def test_max_stay_filter(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1)
        add_returns(1)
        options = ItinerarySearchOptions.create(max_stay=timedelta(hours=24))

        result = await engine.generate(catalog, round_trip(options))

        assert result.candidates == []
        assert result.stats.rejected[RejectReason.STAY_TOO_LONG] == 1

    @pytest.mark.asyncio
    async def test_cabin_mismatch_excluded_by_default(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1, cabin=CabinClass.ECONOMY)
        add_returns(1, cabin=CabinClass.BUSINESS)

        result = await engine.generate(catalog, round_trip())

        assert result.candidates == []
        assert result.stats.rejected[RejectReason.CABIN_MISMATCH] == 1

    @pytest.mark.asyncio
    async def test_cabin_mismatch_allowed_when_mixed_cabin(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1, cabin=CabinClass.ECONOMY)
        add_returns(1, cabin=CabinClass.BUSINESS)
        options = ItinerarySearchOptions.create(allow_mixed_cabin=True)

        result = await engine.generate(catalog, round_trip(options))

        assert len(result.candidates) == 1

    @pytest.mark.asyncio
    async def test_combination_cap(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(50)
        add_returns(50)
        options = ItinerarySearchOptions.create(max_outbound=50, max_return=50, max_combinations=400)

        result = await engine.generate(catalog, round_trip(options))

        assert result.stats.outbound_considered == 50
        assert result.stats.return_considered == 50
        assert result.stats.pairs_examined == 400
        assert result.stats.cap_reached
        assert len(result.candidates) <= 400

    @pytest.mark.asyncio
    async def test_default_pools_are_truncated_to_forty(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(50)
        add_returns(50)

        result = await engine.generate(catalog, round_trip())

        assert result.stats.outbound_fetched == 50
        assert result.stats.outbound_considered == 40
        assert result.stats.return_considered == 40

    @pytest.mark.asyncio
    async def test_cap_counts_filtered_pairs(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(5, cabin=CabinClass.ECONOMY)
        add_returns(5, cabin=CabinClass.FIRST)
        options = ItinerarySearchOptions.create(max_combinations=7)

        result = await engine.generate(catalog, round_trip(options))

        assert result.candidates == []
        assert result.stats.pairs_examined == 7
        assert result.stats.rejected[RejectReason.CABIN_MISMATCH] == 7

    @pytest.mark.asyncio
    async def test_cap_not_reached_when_product_is_small(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(3)
        add_returns(3)

        result = await engine.generate(catalog, round_trip())

        assert not result.stats.cap_reached

    @pytest.mark.asyncio
    async def test_truncation_keeps_catalog_order(self, engine, catalog, add_outbounds, add_returns):
        outbounds = add_outbounds(5)
        returns = add_returns(5)
        options = ItinerarySearchOptions.create(max_outbound=2, max_return=1)

        result = await engine.generate(catalog, round_trip(options))

        assert {i.legs[0].flight_id for i in result.candidates} == {o.flight_id for o in outbounds[:2]}
        assert {i.legs[1].flight_id for i in result.candidates} == {returns[0].flight_id}

    @pytest.mark.asyncio
    async def test_currency_mismatch_is_skipped_not_raised(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1, currency="USD")
        add_returns(1, currency="EUR")
        add_returns(1, currency="USD")

        result = await engine.generate(catalog, round_trip())

        assert len(result.candidates) == 1
        assert result.candidates[0].total_price.currency == "USD"
        assert result.stats.invalid[InvalidReason.CURRENCY_MISMATCH] == 1

    @pytest.mark.asyncio
    async def test_return_before_outbound_arrival_is_rejected(self, engine, catalog, make_offer):
        catalog.add(make_offer(departure=utc(2025, 6, 1, 9), duration=timedelta(hours=5)))
        catalog.add(make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 1, 12)))

        result = await engine.generate(catalog, round_trip(return_date=DAY1))

        assert result.candidates == []
        assert result.stats.rejected[RejectReason.TEMPORAL] == 1

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1)
        add_returns(1)
        barrier = BarrierCatalog(catalog)

        result = await engine.generate(barrier, round_trip())

        assert barrier.max_in_flight == 2
        assert len(result.candidates) == 1

    @pytest.mark.asyncio
    async def test_catalog_failure_fails_the_search(self, engine):
        with pytest.raises(ItinerarySearchError) as exc_info:
            await engine.generate(FailingCatalog(CatalogError("timeout")), round_trip())

        assert isinstance(exc_info.value.__cause__, CatalogError)


class TestPairRejection:
    def test_return_must_leave_after_outbound_lands(self, make_offer):
        outbound = make_offer(departure=utc(2025, 6, 1, 9), duration=timedelta(hours=5))
        inbound = make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 1, 14))

        assert pair_rejection(outbound, inbound, ItinerarySearchOptions()) is RejectReason.TEMPORAL

    def test_stay_bounds_are_inclusive(self, make_offer):
        outbound = make_offer(departure=utc(2025, 6, 1, 9), duration=timedelta(hours=5))
        inbound = make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 2, 14))
        options = ItinerarySearchOptions.create(min_stay=timedelta(hours=24), max_stay=timedelta(hours=24))

        assert pair_rejection(outbound, inbound, options) is None


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancelled_before_fetch(self, engine):
        cancel_event = asyncio.Event()
        cancel_event.set()
        failing = FailingCatalog(CatalogError("should not be called"))

        with pytest.raises(SearchCancelledError) as exc_info:
            await engine.generate(failing, round_trip(), cancel_event)

        assert failing.calls == []
        assert exc_info.value.stage == "before catalog fetch"

    @pytest.mark.asyncio
    async def test_cancelled_during_fetch(self, engine, catalog, add_outbounds, add_returns):
        add_outbounds(1)
        add_returns(1)
        cancel_event = asyncio.Event()

        with pytest.raises(SearchCancelledError) as exc_info:
            await engine.generate(CancellingCatalog(catalog, cancel_event), round_trip(), cancel_event)

        assert exc_info.value.stage == "after catalog fetch"

    @pytest.mark.asyncio
    async def test_one_way_cancelled_during_fetch(self, engine, catalog, add_outbounds):
        add_outbounds(1)
        cancel_event = asyncio.Event()

        with pytest.raises(SearchCancelledError):
            await engine.generate(
                CancellingCatalog(catalog, cancel_event),
                ItinerarySearchRequest("LAX", "JFK", DAY1),
                cancel_event,
            )

    def test_cancelled_during_pairing(self, make_offer):
        outbounds = [make_offer(departure=utc(2025, 6, 1, 0) + timedelta(minutes=i)) for i in range(10)]
        returns = [
            make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 5, 0) + timedelta(minutes=i))
            for i in range(10)
        ]
        cancel_event = asyncio.Event()
        cancel_event.set()

        with pytest.raises(SearchCancelledError) as exc_info:
            PairingEngine.pair_round_trip(outbounds, returns, ItinerarySearchOptions(), cancel_event)

        assert exc_info.value.stage == "during pairing"

    def test_small_product_finishes_before_first_check(self, make_offer):
        outbounds = [make_offer()]
        returns = [make_offer(origin="JFK", destination="LAX", departure=utc(2025, 6, 5, 9))]
        cancel_event = asyncio.Event()
        cancel_event.set()

        result = PairingEngine.pair_round_trip(outbounds, returns, ItinerarySearchOptions(), cancel_event)

        assert result.stats.pairs_examined < CANCEL_CHECK_INTERVAL
        assert len(result.candidates) == 1

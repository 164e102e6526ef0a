import itertools
from datetime import date, timedelta

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from factories import utc
from flightpair.database import Base
from flightpair.models import CabinClass, FlightOffer, Money
from flightpair.services.flight_catalog import InMemoryFlightCatalog


@pytest.fixture
def make_offer():
    """Factory for flight offers with LAX->JFK defaults."""
    counter = itertools.count(1)

    def _make(
        origin="LAX",
        destination="JFK",
        departure=None,
        duration=timedelta(hours=5),
        price="300.00",
        currency="USD",
        cabin=CabinClass.ECONOMY,
        airline="AA",
        flight_number=None,
    ) -> FlightOffer:
        n = next(counter)
        departure = departure or utc(2025, 6, 1, 9)
        return FlightOffer(
            flight_id=f"offer-{n}",
            flight_number=flight_number or f"{airline}{100 + n}",
            airline_code=airline,
            origin=origin,
            destination=destination,
            departure_utc=departure,
            arrival_utc=departure + duration,
            price=Money(price, currency),
            cabin_class=cabin,
        )

    return _make


@pytest.fixture
def catalog():
    return InMemoryFlightCatalog()


@pytest.fixture
def future_dates():
    """Departure/return dates that always pass the not-in-the-past rule."""
    departure = date.today() + timedelta(days=30)
    return departure, departure + timedelta(days=4)


@pytest.fixture
def test_client(catalog):
    """FastAPI test client with the in-memory catalog injected."""
    from flightpair.dependencies import get_flight_catalog
    from flightpair.main import app

    app.dependency_overrides[get_flight_catalog] = lambda: catalog
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sqlite_url(tmp_path):
    """File-backed SQLite database with the itinerary tables created."""
    path = tmp_path / "itineraries.db"
    sync_engine = create_engine(f"sqlite:///{path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{path}"


@pytest.fixture
def session_factory(sqlite_url):
    # NullPool: every session opens its connection on the loop that uses it
    engine = create_async_engine(sqlite_url, poolclass=NullPool)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session

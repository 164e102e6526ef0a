"""Flight catalog contract and an in-memory implementation."""

from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date

from flightpair.models.flight import FlightOffer


class FlightCatalog(ABC):
    """Source of priced flight offers for one route on one day.

    Implementations return offers in a stable order (the pairing engine
    truncates candidate pools in that order) and raise ``CatalogError``
    when offers cannot be fetched.
    """

    @abstractmethod
    async def search(self, origin: str, destination: str, departure_date: date) -> list[FlightOffer]:
        ...

    async def close(self) -> None:
        return None


class InMemoryFlightCatalog(FlightCatalog):
    """Catalog backed by offers registered up front, returned in insertion order."""

    def __init__(self, offers: list[FlightOffer] | None = None):
        self._offers: dict[tuple[str, str, date], list[FlightOffer]] = defaultdict(list)
        for offer in offers or []:
            self.add(offer)

    def add(self, offer: FlightOffer) -> None:
        key = (offer.origin, offer.destination, offer.departure_utc.date())
        self._offers[key].append(offer)

    async def search(self, origin: str, destination: str, departure_date: date) -> list[FlightOffer]:
        return list(self._offers.get((origin.upper(), destination.upper(), departure_date), []))

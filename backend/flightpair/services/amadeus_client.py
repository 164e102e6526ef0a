"""Amadeus flight catalog — adapter for flight-offer search with OAuth2 and rate limiting."""

import asyncio
import hashlib
import logging
import random
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation

import httpx

from flightpair.config import settings
from flightpair.errors import CatalogError
from flightpair.models.flight import CabinClass, FlightOffer, Money, ensure_utc
from flightpair.services.flight_catalog import FlightCatalog

logger = logging.getLogger(__name__)

# Map Amadeus cabin to our cabin codes
CABIN_MAP = {
    "ECONOMY": CabinClass.ECONOMY,
    "PREMIUM_ECONOMY": CabinClass.PREMIUM_ECONOMY,
    "BUSINESS": CabinClass.BUSINESS,
    "FIRST": CabinClass.FIRST,
}

MAX_ATTEMPTS = 3


class AmadeusFlightCatalog(FlightCatalog):
    """Catalog over the Amadeus Self-Service flight-offers API.

    Only non-stop offers are requested so that every offer maps to exactly
    one itinerary leg. Without credentials the catalog runs in demo mode and
    generates deterministic offers per route and date.
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        base_url: str | None = None,
        currency: str | None = None,
        max_results: int | None = None,
        timeout: float | None = None,
        max_concurrency: int | None = None,
        retry_backoff: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client_id = settings.amadeus_client_id if client_id is None else client_id
        self._client_secret = settings.amadeus_client_secret if client_secret is None else client_secret
        self._base_url = base_url or settings.amadeus_base_url
        self._currency = (currency or settings.catalog_currency).upper()
        self._max_results = max_results or settings.catalog_max_results
        self._timeout = timeout or settings.catalog_timeout_seconds
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.catalog_max_concurrency)
        self._retry_backoff = retry_backoff
        self._transport = transport
        self._token: str | None = None
        self._token_expires: datetime | None = None
        self._client: httpx.AsyncClient | None = None
        self._use_mock = not self._client_id

    @property
    def demo_mode(self) -> bool:
        return self._use_mock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _ensure_token(self):
        """Get or refresh OAuth2 token."""
        if self._token and self._token_expires and datetime.now(timezone.utc) < self._token_expires:
            return

        client = await self._get_client()
        for attempt in range(MAX_ATTEMPTS):
            try:
                resp = await client.post(
                    "/v1/security/oauth2/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._client_id,
                        "client_secret": self._client_secret,
                    },
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
                resp.raise_for_status()
                data = resp.json()
                self._token = data["access_token"]
                self._token_expires = datetime.now(timezone.utc) + timedelta(
                    seconds=data.get("expires_in", 1799) - 60
                )
                logger.info("Amadeus token refreshed")
                return
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < MAX_ATTEMPTS - 1:
                    await asyncio.sleep(self._retry_backoff * 2 ** attempt)
                    continue
                raise CatalogError(f"Amadeus authentication failed: {e.response.status_code}") from e
            except httpx.RequestError as e:
                if attempt < MAX_ATTEMPTS - 1:
                    await asyncio.sleep(self._retry_backoff * 2 ** attempt)
                    continue
                raise CatalogError(f"Amadeus authentication request failed: {e}") from e

    async def search(self, origin: str, destination: str, departure_date: date) -> list[FlightOffer]:
        """Search non-stop offers for one route and day, in provider order."""
        if self._use_mock:
            return self._generate_mock_offers(origin, destination, departure_date)

        async with self._semaphore:
            await self._ensure_token()
            client = await self._get_client()

            params = {
                "originLocationCode": origin,
                "destinationLocationCode": destination,
                "departureDate": departure_date.isoformat(),
                "adults": 1,
                "nonStop": "true",
                "max": self._max_results,
                "currencyCode": self._currency,
            }

            for attempt in range(MAX_ATTEMPTS):
                try:
                    resp = await client.get(
                        "/v2/shopping/flight-offers",
                        params=params,
                        headers={"Authorization": f"Bearer {self._token}"},
                    )
                    if resp.status_code == 429:
                        logger.warning(f"Amadeus rate limited {origin}->{destination}, attempt {attempt + 1}")
                        if attempt < MAX_ATTEMPTS - 1:
                            await asyncio.sleep(self._retry_backoff * 2 ** attempt)
                        continue
                    resp.raise_for_status()
                    data = resp.json()
                except httpx.HTTPStatusError as e:
                    logger.error(f"Amadeus search error: {e.response.status_code}")
                    raise CatalogError(
                        f"Amadeus search failed for {origin}->{destination}: {e.response.status_code}"
                    ) from e
                except httpx.RequestError as e:
                    logger.error(f"Amadeus request error: {e}")
                    if attempt < MAX_ATTEMPTS - 1:
                        await asyncio.sleep(self._retry_backoff * 2 ** attempt)
                        continue
                    raise CatalogError(f"Amadeus unreachable for {origin}->{destination}: {e}") from e

                offers = []
                for raw in data.get("data", []):
                    offer = self._parse_offer(raw, departure_date)
                    if offer is not None:
                        offers.append(offer)
                return offers

        raise CatalogError(f"Amadeus rate limit persisted for {origin}->{destination}")

    @classmethod
    def _parse_offer(cls, offer: dict, departure_date: date) -> FlightOffer | None:
        """Parse Amadeus offer JSON into a FlightOffer; malformed offers are skipped."""
        try:
            itinerary = offer["itineraries"][0]
            segments = itinerary["segments"]
            if len(segments) != 1:
                logger.warning(f"Skipping Amadeus offer {offer.get('id')}: {len(segments)} segments")
                return None
            seg = segments[0]

            cabin = CabinClass.ECONOMY
            traveler_pricings = offer.get("travelerPricings", [])
            if traveler_pricings:
                fare_details = traveler_pricings[0].get("fareDetailsBySegment", [])
                if fare_details:
                    cabin = CABIN_MAP.get(fare_details[0].get("cabin", "ECONOMY"), CabinClass.ECONOMY)

            # "at" values are airport-local; arrival is departure plus block time
            departure = ensure_utc(datetime.fromisoformat(seg["departure"]["at"]))
            duration_minutes = cls._parse_duration(itinerary.get("duration") or seg.get("duration"))
            if duration_minutes > 0:
                arrival = departure + timedelta(minutes=duration_minutes)
            else:
                arrival = datetime.fromisoformat(seg["arrival"]["at"])

            price = offer["price"]
            return FlightOffer(
                flight_id=f"amadeus:{departure_date.isoformat()}:{offer['id']}",
                flight_number=f"{seg['carrierCode']}{seg['number']}",
                airline_code=seg["carrierCode"],
                origin=seg["departure"]["iataCode"],
                destination=seg["arrival"]["iataCode"],
                departure_utc=departure,
                arrival_utc=arrival,
                price=Money(Decimal(str(price["grandTotal"])), price["currency"]),
                cabin_class=cabin,
            )
        except (KeyError, IndexError, TypeError, ValueError, InvalidOperation) as e:
            logger.warning(f"Skipping malformed Amadeus offer {offer.get('id')}: {e}")
            return None

    @staticmethod
    def _parse_duration(duration_str: str | None) -> int:
        """Parse ISO 8601 duration (PT2H30M) to minutes."""
        if not duration_str or not duration_str.startswith("PT"):
            return 0
        duration_str = duration_str[2:]
        hours = 0
        minutes = 0
        if "H" in duration_str:
            h_part, duration_str = duration_str.split("H")
            hours = int(h_part)
        if "M" in duration_str:
            m_part = duration_str.replace("M", "")
            if m_part:
                minutes = int(m_part)
        return hours * 60 + minutes

    # --- Mock data generation for demo mode ---

    def _generate_mock_offers(
        self, origin: str, destination: str, departure_date: date
    ) -> list[FlightOffer]:
        """Generate realistic offers, deterministic per route and date."""
        seed_str = f"{origin}{destination}{departure_date.isoformat()}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)

        base_price = self._estimate_base_price(origin, destination)
        duration = self._estimate_duration(origin, destination)
        airlines = self._get_route_airlines(origin, destination)
        num_flights = rng.randint(5, 12)

        offers = []
        for i in range(num_flights):
            airline = rng.choice(airlines)
            cabin = rng.choices(
                [CabinClass.ECONOMY, CabinClass.PREMIUM_ECONOMY, CabinClass.BUSINESS],
                weights=[70, 15, 15],
            )[0]
            cabin_multiplier = {
                CabinClass.ECONOMY: 1.0,
                CabinClass.PREMIUM_ECONOMY: 1.8,
                CabinClass.BUSINESS: 3.5,
            }[cabin]
            price = Decimal(str(round(base_price * cabin_multiplier * rng.uniform(0.8, 1.8), 2)))

            # Departure between 6:00 and 21:00
            dep_time = datetime(
                departure_date.year, departure_date.month, departure_date.day,
                rng.randint(6, 21), rng.choice([0, 15, 30, 45]), tzinfo=timezone.utc,
            )
            arr_time = dep_time + timedelta(minutes=duration + rng.randint(-15, 30))
            flight_number = f"{airline}{rng.randint(100, 9999)}"

            offers.append(FlightOffer(
                flight_id=str(uuid.UUID(int=rng.getrandbits(128))),
                flight_number=flight_number,
                airline_code=airline,
                origin=origin,
                destination=destination,
                departure_utc=dep_time,
                arrival_utc=arr_time,
                price=Money(price, self._currency),
                cabin_class=cabin,
            ))

        # Earliest departure first, like the live schedule order
        return sorted(offers, key=lambda o: o.departure_utc)

    @staticmethod
    def _estimate_base_price(origin: str, destination: str) -> float:
        """Rough economy base price by route characteristics."""
        medium = {"LAX-JFK", "JFK-LAX", "SFO-JFK", "JFK-SFO", "YYZ-YVR", "YVR-YYZ",
                  "YYZ-MIA", "MIA-YYZ", "ORD-SEA", "SEA-ORD"}
        route_key = f"{origin}-{destination}"
        if route_key in medium:
            return 340
        if any(a in route_key for a in ["LHR", "CDG", "FRA", "AMS"]):
            return 850  # Transatlantic
        if any(a in route_key for a in ["NRT", "HND", "SIN"]):
            return 1200  # Transpacific
        return 260

    @staticmethod
    def _estimate_duration(origin: str, destination: str) -> int:
        """Rough block time in minutes."""
        route_key = f"{origin}-{destination}"
        if any(a in route_key for a in ["LHR", "CDG", "FRA", "AMS"]):
            return 420
        if any(a in route_key for a in ["NRT", "HND", "SIN"]):
            return 780
        if route_key in {"LAX-JFK", "JFK-LAX", "SFO-JFK", "JFK-SFO"}:
            return 330
        return 180

    @staticmethod
    def _get_route_airlines(origin: str, destination: str) -> list[str]:
        european = {"LHR", "LGW", "CDG", "ORY", "AMS", "FRA", "MUC", "ZRH", "FCO", "MAD"}
        canadian = {"YYZ", "YUL", "YVR", "YYC", "YOW"}
        if origin in european or destination in european:
            return ["BA", "LH", "AF", "KL", "AA", "DL", "UA"]
        if origin in canadian or destination in canadian:
            return ["AC", "WS", "PD", "AA", "DL", "UA"]
        return ["AA", "DL", "UA", "B6", "AS", "WN"]

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

"""Flight offer value types supplied by a flight catalog."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum


class CabinClass(str, Enum):
    ECONOMY = "economy"
    PREMIUM_ECONOMY = "premium_economy"
    BUSINESS = "business"
    FIRST = "first"


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive timestamps as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Money:
    amount: Decimal
    currency: str

    def __post_init__(self):
        amount = self.amount if isinstance(self.amount, Decimal) else Decimal(str(self.amount))
        if amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency or not self.currency.strip():
            raise ValueError("Currency is required")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "currency", self.currency.strip().upper())

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls(Decimal("0"), currency)

    def __str__(self) -> str:
        return f"{self.amount:.2f} {self.currency}"


@dataclass(frozen=True)
class FlightOffer:
    """One individually priced flight as returned by a catalog search."""

    flight_id: str
    flight_number: str
    airline_code: str
    origin: str
    destination: str
    departure_utc: datetime
    arrival_utc: datetime
    price: Money
    cabin_class: CabinClass = CabinClass.ECONOMY

    def __post_init__(self):
        object.__setattr__(self, "flight_number", self.flight_number.upper())
        object.__setattr__(self, "airline_code", self.airline_code.upper())
        object.__setattr__(self, "origin", self.origin.upper())
        object.__setattr__(self, "destination", self.destination.upper())
        object.__setattr__(self, "departure_utc", ensure_utc(self.departure_utc))
        object.__setattr__(self, "arrival_utc", ensure_utc(self.arrival_utc))
        object.__setattr__(self, "cabin_class", CabinClass(self.cabin_class))
        if self.arrival_utc <= self.departure_utc:
            raise ValueError(
                f"Flight {self.flight_number} arrives before it departs "
                f"({self.departure_utc.isoformat()} -> {self.arrival_utc.isoformat()})"
            )

    @property
    def duration(self) -> timedelta:
        return self.arrival_utc - self.departure_utc

"""Itinerary search options and request."""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum

MAX_PAGE_SIZE = 100


class SortBy(str, Enum):
    PRICE = "price"
    DURATION = "duration"

    @classmethod
    def parse(cls, value: str | None) -> "SortBy":
        """Lenient parse: unknown or empty values fall back to price."""
        if not value:
            return cls.PRICE
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.PRICE


class SortOrder(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def parse(cls, value: str | None) -> "SortOrder":
        """Lenient parse: anything but desc/descending is ascending."""
        if value and value.strip().lower() in ("desc", "descending"):
            return cls.DESCENDING
        return cls.ASCENDING


@dataclass(frozen=True)
class ItinerarySearchOptions:
    """Options controlling pairing, filtering, sorting and paging.

    The search core trusts these values; use ``create`` at the boundary to
    get normalized options.
    """

    max_outbound_flights: int = 40
    max_return_flights: int = 40
    max_combinations: int = 400
    min_stay: timedelta | None = None  # round trips only
    max_stay: timedelta | None = None
    sort_by: SortBy = SortBy.PRICE
    sort_order: SortOrder = SortOrder.ASCENDING
    page: int = 1
    page_size: int = 20
    allow_mixed_cabin: bool = False

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @classmethod
    def create(
        cls,
        sort_by: SortBy = SortBy.PRICE,
        sort_order: SortOrder = SortOrder.ASCENDING,
        page: int = 1,
        page_size: int = 20,
        max_outbound: int = 40,
        max_return: int = 40,
        max_combinations: int = 400,
        allow_mixed_cabin: bool = False,
        min_stay: timedelta | None = None,
        max_stay: timedelta | None = None,
    ) -> "ItinerarySearchOptions":
        """Normalizing factory: clamps paging and caps, rejects bad stay bounds."""
        if min_stay is not None and min_stay < timedelta(0):
            raise ValueError("min_stay cannot be negative")
        if max_stay is not None and max_stay < timedelta(0):
            raise ValueError("max_stay cannot be negative")
        if min_stay is not None and max_stay is not None and min_stay > max_stay:
            raise ValueError("min_stay cannot be greater than max_stay")

        return cls(
            max_outbound_flights=max(1, max_outbound),
            max_return_flights=max(1, max_return),
            max_combinations=max(1, max_combinations),
            min_stay=min_stay,
            max_stay=max_stay,
            sort_by=sort_by,
            sort_order=sort_order,
            page=max(1, page),
            page_size=min(MAX_PAGE_SIZE, max(1, page_size)),
            allow_mixed_cabin=allow_mixed_cabin,
        )


@dataclass(frozen=True)
class ItinerarySearchRequest:
    origin_code: str
    destination_code: str
    departure_date: date
    return_date: date | None = None
    options: ItinerarySearchOptions = field(default_factory=ItinerarySearchOptions)

    @property
    def is_round_trip(self) -> bool:
        return self.return_date is not None

"""Sorter — orders itinerary candidates by price or total duration."""

from typing import Iterable

from flightpair.models.itinerary import Itinerary
from flightpair.models.options import SortBy, SortOrder

SORT_KEYS = {
    SortBy.PRICE: lambda i: i.total_price.amount,
    SortBy.DURATION: lambda i: i.total_duration,
}


def sort_itineraries(
    itineraries: Iterable[Itinerary],
    sort_by: SortBy = SortBy.PRICE,
    sort_order: SortOrder = SortOrder.ASCENDING,
) -> list[Itinerary]:
    """Stable sort: equal keys keep their enumeration order in both directions."""
    key = SORT_KEYS.get(sort_by, SORT_KEYS[SortBy.PRICE])
    return sorted(itineraries, key=key, reverse=sort_order == SortOrder.DESCENDING)

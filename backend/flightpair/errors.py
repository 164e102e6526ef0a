"""Domain exceptions raised by the catalog adapters and the search pipeline."""


class FlightPairError(Exception):
    """Base class for all flightpair errors."""


class CatalogError(FlightPairError):
    """A flight catalog could not return offers for a route/date."""


class ItinerarySearchError(FlightPairError):
    """A search failed as a whole (no itinerary can be produced)."""


class SearchCancelledError(FlightPairError):
    """The caller cancelled the search before it completed."""

    def __init__(self, stage: str):
        super().__init__(f"Itinerary search cancelled ({stage})")
        self.stage = stage


class InvalidItineraryError(FlightPairError):
    """Raised by ``Itinerary.create`` when the legs do not form a valid itinerary."""

    def __init__(self, reason, detail: str):
        super().__init__(f"{reason.value}: {detail}")
        self.reason = reason
        self.detail = detail

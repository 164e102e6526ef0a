from datetime import date, datetime, timedelta, timezone

from pydantic import BaseModel, Field, field_validator, model_validator

from flightpair.models.options import (
    ItinerarySearchOptions,
    ItinerarySearchRequest,
    SortBy,
    SortOrder,
)
from flightpair.schemas.flight import ItineraryResponse


class ItinerarySearchParams(BaseModel):
    """Raw itinerary search parameters as received by the API."""

    origin_code: str
    destination_code: str
    departure_date: date
    return_date: date | None = None
    page: int = 1
    page_size: int = 20
    max_outbound: int = 40
    max_return: int = 40
    max_combos: int = 400
    min_stay_hours: float | None = Field(None, ge=0)
    max_stay_hours: float | None = Field(None, ge=0)
    allow_mixed_cabin: bool = False
    sort_by: str | None = None
    sort_order: str | None = None

    @field_validator("origin_code", "destination_code")
    @classmethod
    def _airport_code(cls, value: str) -> str:
        value = value.strip().upper()
        if len(value) != 3 or not value.isalpha():
            raise ValueError("must be a 3-letter airport code")
        return value

    @field_validator("departure_date")
    @classmethod
    def _not_in_past(cls, value: date) -> date:
        yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
        if value < yesterday:
            raise ValueError("departure date is in the past")
        return value

    @model_validator(mode="after")
    def _check_route_and_dates(self):
        if self.origin_code == self.destination_code:
            raise ValueError("origin and destination must differ")
        if self.return_date is not None and self.return_date <= self.departure_date:
            raise ValueError("return date must be after departure date")
        if (
            self.min_stay_hours is not None
            and self.max_stay_hours is not None
            and self.min_stay_hours > self.max_stay_hours
        ):
            raise ValueError("min_stay_hours cannot be greater than max_stay_hours")
        return self

    def to_request(self) -> ItinerarySearchRequest:
        options = ItinerarySearchOptions.create(
            sort_by=SortBy.parse(self.sort_by),
            sort_order=SortOrder.parse(self.sort_order),
            page=self.page,
            page_size=self.page_size,
            max_outbound=self.max_outbound,
            max_return=self.max_return,
            max_combinations=self.max_combos,
            allow_mixed_cabin=self.allow_mixed_cabin,
            min_stay=timedelta(hours=self.min_stay_hours) if self.min_stay_hours is not None else None,
            max_stay=timedelta(hours=self.max_stay_hours) if self.max_stay_hours is not None else None,
        )
        return ItinerarySearchRequest(
            origin_code=self.origin_code,
            destination_code=self.destination_code,
            departure_date=self.departure_date,
            return_date=self.return_date,
            options=options,
        )


class SearchItinerariesResponse(BaseModel):
    items: list[ItineraryResponse]
    page: int
    page_size: int
    returned_count: int
    sort_by: str
    sort_order: str
    round_trip_requested: bool

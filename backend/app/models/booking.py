"""Booking search request/response models."""

from pydantic import BaseModel, Field

from backend.app.models.common import BookingKind


class DateRange(BaseModel):
    """Travel dates as ISO strings (either may be blank)."""

    start: str = ""
    end: str = ""


class BookingSearchRequest(BaseModel):
    """Inbound booking search."""

    destination: str = ""
    type: str = Field("", description="hotel, restaurant, activity or flight")
    dates: DateRange | None = None
    origin: str | None = None
    budget: str | None = None


class BookingOffer(BaseModel):
    """One bookable place or link."""

    name: str
    link: str
    blurb: str = ""
    category: BookingKind
    city: str
    provider: str | None = None
    departure: str | None = None
    arrival: str | None = None
    departure_date: str | None = None
    return_date: str | None = None


class BookingSearchResponse(BaseModel):
    """Booking search results."""

    destination: str
    type: BookingKind
    results: list[BookingOffer] = Field(default_factory=list)
    count: int = 0

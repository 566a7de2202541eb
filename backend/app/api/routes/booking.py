"""Booking search endpoint - POST /booking-search."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from backend.app.adapters.booking import fetch_flight_options, fetch_top_places
from backend.app.adapters.search import SearchClient, SearchError
from backend.app.api.deps import get_search_client
from backend.app.models.booking import BookingSearchRequest, BookingSearchResponse
from backend.app.models.common import BookingKind

router = APIRouter(tags=["booking"])
logger = logging.getLogger(__name__)

_MAX_RESULTS: dict[BookingKind, int] = {
    BookingKind.hotel: 8,
    BookingKind.restaurant: 10,
    BookingKind.activity: 12,
    BookingKind.flight: 5,
}


@router.post("/booking-search", response_model=BookingSearchResponse)
async def booking_search(
    request: BookingSearchRequest,
    search: Annotated[SearchClient, Depends(get_search_client)],
) -> BookingSearchResponse:
    """Find bookable hotels, restaurants, activities or flight links for a destination.

    Raises:
        HTTPException: 400 if destination or type is missing or the type is
            unknown, 502 if the search provider fails
    """
    if not request.destination.strip() or not request.type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Destination and type are required",
        )
    try:
        kind = BookingKind(request.type)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid booking type"
        ) from e

    logger.info(f"[POST /booking-search] destination={request.destination!r} type={kind.value}")

    try:
        if kind == BookingKind.flight:
            dates = request.dates
            results = await fetch_flight_options(
                search,
                request.origin,
                request.destination,
                departure_date=dates.start if dates else "",
                return_date=dates.end if dates else "",
                max_results=_MAX_RESULTS[kind],
            )
        else:
            results = await fetch_top_places(
                search, request.destination, kind, max_results=_MAX_RESULTS[kind]
            )
    except SearchError as e:
        logger.error(f"[POST /booking-search] search failed: {e} (status={e.status})")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to fetch booking recommendations",
        ) from e

    return BookingSearchResponse(
        destination=request.destination,
        type=kind,
        results=results,
        count=len(results),
    )

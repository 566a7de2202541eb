"""Booking lookups built on the search capability.

Search results are turned into bookable offers: when a result is not
already on a booking site, the link is replaced with a search on the usual
booking site for that category.
"""

import re
from urllib.parse import quote, quote_plus

from backend.app.adapters.search import SearchClient
from backend.app.models.booking import BookingOffer
from backend.app.models.common import BookingKind
from backend.app.models.evidence import SearchOptions

_QUERIES: dict[BookingKind, str] = {
    BookingKind.hotel: "{city} best hotels booking.com agoda expedia luxury mid-range",
    BookingKind.restaurant: "{city} best restaurants opentable resy reservation michelin local",
    BookingKind.activity: "{city} top attractions tickets booking viator getyourguide",
}

_BOOKING_DOMAINS: dict[BookingKind, tuple[str, ...]] = {
    BookingKind.hotel: ("booking.com", "agoda.com", "expedia.com"),
    BookingKind.restaurant: ("opentable.com", "resy.com"),
    BookingKind.activity: ("viator.com", "getyourguide.com", "klook.com"),
}

_LEADING_RANK = re.compile(r"^\d+\.\s*")
_TITLE_TAIL = re.compile(r"\s+[-|–].*$")
_ISO_DATE_PREFIX = re.compile(r"\d{4}-\d{2}-\d{2}.*?-")
_URL = re.compile(r"https?://\S+")

BLURB_CHARS = 180


def fallback_booking_url(kind: BookingKind, city: str) -> str:
    """Search URL on the default booking site for ``kind``."""
    if kind == BookingKind.hotel:
        return f"https://www.booking.com/searchresults.html?ss={quote_plus(city)}&dest_type=city"
    if kind == BookingKind.restaurant:
        return f"https://www.opentable.com/s?query={quote_plus(city)}"
    return f"https://www.getyourguide.com/s/?q={quote_plus(city)}"


def booking_link(kind: BookingKind, city: str, url: str) -> str:
    domains = _BOOKING_DOMAINS.get(kind, ())
    if any(d in url for d in domains):
        return url
    return fallback_booking_url(kind, city)


def clean_title(title: str) -> str:
    name = _LEADING_RANK.sub("", title)
    name = _TITLE_TAIL.sub("", name)
    return name.strip()


def clean_blurb(content: str) -> str:
    text = _ISO_DATE_PREFIX.sub("", content, count=1)
    text = _URL.sub("", text)
    return text[:BLURB_CHARS].strip()


async def fetch_top_places(
    search: SearchClient, city: str, kind: BookingKind, max_results: int = 5
) -> list[BookingOffer]:
    """Search for top places of ``kind`` in ``city`` and return bookable offers."""
    query = _QUERIES.get(kind, "{city} " + kind.value).format(city=city)
    items = await search.search(query, SearchOptions(max_results=max_results))

    return [
        BookingOffer(
            name=clean_title(item.title) or city,
            link=booking_link(kind, city, item.url),
            blurb=clean_blurb(item.content)
            or f"Top-rated {kind.value} in {city}. Click to view details and book.",
            category=kind,
            city=city,
        )
        for item in items
    ]


def _slug(text: str) -> str:
    return re.sub(r"\s+", "-", text.strip().lower())


async def fetch_flight_options(
    search: SearchClient,
    origin: str | None,
    destination: str,
    departure_date: str = "",
    return_date: str = "",
    max_results: int = 5,
) -> list[BookingOffer]:
    """Meta-search links for a route followed by relevant web results.

    No prices or schedules are fabricated; only links are returned.
    """
    origin_city = (origin or "").strip() or "Your Location"
    destination_city = destination.split(",")[0].strip()

    kayak_path = f"{quote(origin_city)}-{quote(destination_city)}/{departure_date}"
    if return_date:
        kayak_path += f"/{return_date}"

    offers = [
        BookingOffer(
            name=f"Skyscanner: {origin_city} to {destination_city}",
            link=f"https://www.skyscanner.com/routes/{_slug(origin_city)}/{_slug(destination_city)}",
            category=BookingKind.flight,
            city=destination_city,
            provider="Skyscanner",
            departure=origin_city,
            arrival=destination_city,
            departure_date=departure_date or None,
            return_date=return_date or None,
        ),
        BookingOffer(
            name=f"Kayak: {origin_city} to {destination_city}",
            link=f"https://www.kayak.com/flights/{kayak_path}",
            category=BookingKind.flight,
            city=destination_city,
            provider="Kayak",
            departure=origin_city,
            arrival=destination_city,
            departure_date=departure_date or None,
            return_date=return_date or None,
        ),
    ]

    query = f"flights from {origin_city} to {destination} booking skyscanner kayak expedia"
    items = await search.search(query, SearchOptions(max_results=max_results))
    for item in items:
        offers.append(
            BookingOffer(
                name=clean_title(item.title) or item.url,
                link=item.url,
                blurb=clean_blurb(item.content),
                category=BookingKind.flight,
                city=destination_city,
                provider="Web",
                departure=origin_city,
                arrival=destination_city,
                departure_date=departure_date or None,
                return_date=return_date or None,
            )
        )
    return offers

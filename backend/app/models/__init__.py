"""Models package - re-exports for convenience."""

from backend.app.models.booking import (
    BookingOffer,
    BookingSearchRequest,
    BookingSearchResponse,
    DateRange,
)
from backend.app.models.chat import ChatRequest, ChatResponse, ChatTurn, ModelReply
from backend.app.models.common import BookingKind, InteractionType, SubSource, UpdateStatus
from backend.app.models.evidence import EvidenceItem, RetrievalResult, SearchOptions, SearchQuery
from backend.app.models.itinerary import (
    Activity,
    DaySchedule,
    Itinerary,
    PlanRecord,
    TotalBudget,
    validate_itinerary_shape,
)

__all__ = [
    # Common
    "BookingKind",
    "InteractionType",
    "SubSource",
    "UpdateStatus",
    # Itinerary document
    "Activity",
    "DaySchedule",
    "Itinerary",
    "PlanRecord",
    "TotalBudget",
    "validate_itinerary_shape",
    # Retrieval
    "EvidenceItem",
    "RetrievalResult",
    "SearchOptions",
    "SearchQuery",
    # Chat
    "ChatRequest",
    "ChatResponse",
    "ChatTurn",
    "ModelReply",
    # Booking
    "BookingOffer",
    "BookingSearchRequest",
    "BookingSearchResponse",
    "DateRange",
]

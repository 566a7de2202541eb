"""Common types and enums shared across all models."""

from enum import Enum


class InteractionType(str, Enum):
    """Whether the model treated the message as a question or an edit."""

    question = "question"
    modification = "modification"


class SubSource(str, Enum):
    """Optional retrieval sub-sources, in issue order."""

    social = "social"
    authenticity = "authenticity"


class UpdateStatus(str, Enum):
    """What happened to the stored document during a chat turn."""

    applied = "applied"
    unchanged = "unchanged"
    rejected = "rejected"


class BookingKind(str, Enum):
    """Booking search category."""

    hotel = "hotel"
    restaurant = "restaurant"
    activity = "activity"
    flight = "flight"

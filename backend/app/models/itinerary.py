"""Itinerary document models - the mutable unit of truth for a trip.

Field names follow the camelCase wire shape produced by the upstream planning
pipeline, so that a stored document round-trips byte-for-byte. All models
allow extra keys: renderers attach fields this engine does not know about.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Activity(BaseModel):
    """Single scheduled activity. Only structural shape is enforced."""

    model_config = ConfigDict(extra="allow")

    time: str = ""
    activity: str = ""
    type: str = ""
    cost: str | float | None = None
    location: str | None = None
    bookingRequired: bool | None = None
    tips: list[str] | None = None


class DaySchedule(BaseModel):
    """One travel day."""

    model_config = ConfigDict(extra="allow")

    day: int = Field(..., ge=1, description="1-based ordinal, unique within a document")
    date: str = ""
    title: str = ""
    activities: list[Activity] = Field(default_factory=list)


class TotalBudget(BaseModel):
    """Trip budget with per-category breakdown."""

    model_config = ConfigDict(extra="allow")

    amount: str | float = ""
    currency: str | None = None
    breakdown: dict[str, Any] = Field(default_factory=dict)


class Itinerary(BaseModel):
    """Itinerary document.

    ``schedule`` is always a list once present; day ordinals are unique.
    """

    model_config = ConfigDict(extra="allow")

    destination: str = ""
    schedule: list[DaySchedule] = Field(default_factory=list)
    totalBudget: TotalBudget | None = None
    bookingInfo: dict[str, list[Any]] | None = None
    localInsights: list[Any] | None = None
    logistics: dict[str, Any] | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _unique_day_ordinals(self) -> "Itinerary":
        seen: set[int] = set()
        for day in self.schedule:
            if day.day in seen:
                raise ValueError(f"duplicate day ordinal {day.day}")
            seen.add(day.day)
        return self


class PlanRecord(BaseModel):
    """Itinerary plus sibling context that travels with it.

    ``recommendations``, ``workflow_data`` and ``orchestration`` are opaque to
    the mutation engine and are never patched.
    """

    model_config = ConfigDict(extra="allow")

    itinerary: Itinerary
    recommendations: list[Any] = Field(default_factory=list)
    workflow_data: dict[str, Any] | None = None
    orchestration: dict[str, Any] | None = None


def validate_itinerary_shape(document: dict[str, Any]) -> None:
    """Raise ``ValueError`` if ``document`` is not a renderable itinerary."""
    if not isinstance(document, dict):
        raise ValueError("itinerary must be an object")
    if "schedule" not in document:
        raise ValueError("itinerary is missing schedule")
    Itinerary.model_validate(document)

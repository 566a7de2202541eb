"""Retrieval intent classification.

A cheap keyword heuristic deciding whether a chat message should trigger
web retrieval. It is a cost/latency control only: a miss still gets an
answer grounded in the itinerary document.
"""

import re
from dataclasses import dataclass, field

from backend.app.models.common import SubSource

_TRIGGERS: dict[str, re.Pattern[str]] = {
    "recommendation": re.compile(
        r"\b(recommend\w*|suggest\w*|best|top|where (?:should|can|to)|what to (?:do|see|eat)"
        r"|find (?:me|us|a|some)|hidden gems?|must[- ]?(?:see|try|do)|worth (?:visiting|it)"
        r"|alternatives?|options? for|any good|places? to)\b",
        re.IGNORECASE,
    ),
    "recency": re.compile(
        r"\b(latest|current(?:ly)?|recent(?:ly)?|right now|today|tonight|this (?:week|weekend|month)"
        r"|upcoming|new(?:est)?|open now|still open|events?|festivals?|weather|20\d\d)\b",
        re.IGNORECASE,
    ),
    "social": re.compile(
        r"\b(tik ?tok|instagram|insta|youtube|reddit|influencers?|viral|trend(?:ing|y)?"
        r"|social media|vlogs?)\b",
        re.IGNORECASE,
    ),
    "booking": re.compile(
        r"\b(book(?:ing)?|reserv\w*|tickets?|prices?|how much|availability|opening hours"
        r"|hotels?|flights?|tours?)\b",
        re.IGNORECASE,
    ),
}

_SOCIAL_SUBSOURCE = re.compile(
    r"\b(tik ?tok|instagram|insta|youtube|influencers?|viral|trend(?:ing|y)?|social media"
    r"|vlogs?|instagrammable)\b",
    re.IGNORECASE,
)

_AUTHENTICITY_SUBSOURCE = re.compile(
    r"\b(authentic|reddit|locals?\s+(?:tips?|advice|recommend\w*|favou?rites?|go)"
    r"|local (?:tips?|advice|secrets?)|like a local|off the beaten (?:path|track)"
    r"|non[- ]?touristy|tourist traps?)\b",
    re.IGNORECASE,
)

# "book" inside these phrases is about editing the plan, not searching for offers
_EDIT_ONLY = re.compile(r"^\s*(add|remove|delete|move|swap|change|rename|replace)\b", re.IGNORECASE)


@dataclass(frozen=True)
class IntentDecision:
    """Result of classifying one message."""

    needs_retrieval: bool
    sub_sources: tuple[SubSource, ...] = ()
    matched: tuple[str, ...] = field(default_factory=tuple)

    @property
    def recency(self) -> bool:
        return "recency" in self.matched


def classify(message: str) -> IntentDecision:
    """Decide whether ``message`` needs retrieval and which sub-sources to add.

    Sub-sources are returned in issue order (social, then authenticity) and
    are independent of each other.
    """
    matched = tuple(name for name, pattern in _TRIGGERS.items() if pattern.search(message))

    # A plain edit command that only names a category ("add a hotel") is not a search request
    if matched == ("booking",) and _EDIT_ONLY.search(message):
        matched = ()

    sub_sources: list[SubSource] = []
    if _SOCIAL_SUBSOURCE.search(message):
        sub_sources.append(SubSource.social)
    if _AUTHENTICITY_SUBSOURCE.search(message):
        sub_sources.append(SubSource.authenticity)

    needs_retrieval = bool(matched) or bool(sub_sources)
    return IntentDecision(
        needs_retrieval=needs_retrieval,
        sub_sources=tuple(sub_sources) if needs_retrieval else (),
        matched=matched,
    )

"""Prompt construction for chat-driven itinerary edits.

Section order is fixed: instructions, itinerary, evidence (only when
present), recent history (oldest first), user message, output contract.
Given the same inputs the prompt is byte-identical.
"""

import json
from collections.abc import Sequence
from typing import Any

from backend.app.models.chat import ChatTurn
from backend.app.models.evidence import EvidenceItem

DEFAULT_HISTORY_WINDOW = 6
DEFAULT_EXCERPT_CHARS = 400
DEFAULT_MESSAGE_CHARS = 2000

PERSONA = """You are an AI travel concierge helping a traveller refine an existing itinerary.

TASKS:
1. Inspect the current itinerary object provided below.
2. Analyse the user's new message in the context of the recent conversation.
3. Decide whether the message asks a question or implies a modification to the itinerary
   (dates, activities, budget, bookings, etc.).
4. If a change is needed, express it ONLY as an RFC 6902 JSON Patch array whose paths are
   relative to the itinerary object shown (e.g. "/schedule/2/activities/-").
5. If no change is necessary, return an empty patch array.
6. Always reply to the user in natural language, acknowledging any change or answering
   the question.

RULES:
- Never replace or remove the whole itinerary or the "schedule" list itself.
- Keep every day's "day" number unique and keep "activities" a list.
- When "Web Evidence" is present, prefer it for facts about places, prices and events and
  list the URLs you relied on in "sources". Do NOT invent URLs.
- Do not invent bookings, prices or opening hours that are not in the itinerary or evidence."""

OUTPUT_CONTRACT = """Return ONLY a JSON object with exactly these keys:
{
  "interaction_type": "question" | "modification",
  "patch": <RFC 6902 JSON Patch array, [] when nothing changes>,
  "assistant_response": <string reply to the user>,
  "suggestions": <array of short follow-up replies the user might send>,
  "sources": <array of evidence URLs used, [] if none>
}"""


def _excerpt(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def build_prompt(
    itinerary: dict[str, Any],
    message: str,
    *,
    evidence: Sequence[EvidenceItem] = (),
    history: Sequence[ChatTurn] = (),
    history_window: int = DEFAULT_HISTORY_WINDOW,
    excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
    message_chars: int = DEFAULT_MESSAGE_CHARS,
) -> str:
    """Assemble the model prompt for one chat turn.

    Args:
        itinerary: Current itinerary document (not the plan record wrapper)
        message: User message
        evidence: Retrieved evidence items, already capped by the aggregator
        history: Conversation history, oldest first
        history_window: Number of most recent turns to include
        excerpt_chars: Max characters per evidence excerpt
        message_chars: Max characters of the user message

    Returns:
        Prompt string
    """
    sections: list[str] = [PERSONA]

    sections.append(
        "### Current Itinerary\n```json\n"
        + json.dumps(itinerary, indent=2, ensure_ascii=False)
        + "\n```"
    )

    if evidence:
        lines = ["### Web Evidence"]
        for i, item in enumerate(evidence, start=1):
            header = f"[{i}] {item.title or item.url} ({item.url})"
            if item.published_date:
                header += f" - published {item.published_date}"
            lines.append(header)
            lines.append(f"    {_excerpt(item.content, excerpt_chars)}")
        sections.append("\n".join(lines))

    recent = list(history)[-history_window:] if history_window > 0 else []
    if recent:
        lines = ["### Recent Conversation"]
        for turn in recent:
            lines.append(f"{turn.role}: {_excerpt(turn.message, excerpt_chars)}")
        sections.append("\n".join(lines))

    bounded = message if len(message) <= message_chars else message[:message_chars]
    sections.append(f"### User Message\n{json.dumps(bounded, ensure_ascii=False)}")

    sections.append(OUTPUT_CONTRACT)

    return "\n\n".join(sections)

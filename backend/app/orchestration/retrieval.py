"""Retrieval aggregation - fans a chat message out to search sources.

Queries are issued concurrently and joined before anything downstream runs.
A failing source is logged and dropped; the aggregate never raises because
of a source outage, it just returns less evidence.
"""

import asyncio
import logging
import re

from backend.app.adapters.search import SearchClient
from backend.app.models.common import SubSource
from backend.app.models.evidence import EvidenceItem, RetrievalResult, SearchOptions, SearchQuery
from backend.app.orchestration.intent import IntentDecision
from backend.app.tools.executor import CancelToken, SourceConfig, SourceContext, SourceExecutor

logger = logging.getLogger(__name__)

DEFAULT_EVIDENCE_CAP = 10
DEFAULT_TOPIC_MAX_CHARS = 80

_FILLER = re.compile(
    r"\b(?:can|could|would|will) you\b|\bplease\b|\b(?:show|tell|give|help|find) me\b"
    r"|\bi(?:'d| would) like(?: to)?\b|\bi (?:want|need)(?: to)?\b|\blet me know\b",
    re.IGNORECASE,
)
_PUNCT = re.compile(r"[?!.,;:\"]+")
_SPACES = re.compile(r"\s+")

_SOCIAL_SITES = "site:tiktok.com OR site:instagram.com OR site:youtube.com"
_FORUM_SITES = (
    "site:reddit.com/r/travel OR site:reddit.com/r/solotravel OR site:reddit.com/r/TravelHacks"
)


def normalize_topic(message: str, max_chars: int = DEFAULT_TOPIC_MAX_CHARS) -> str:
    """Strip conversational filler and bound the topic length."""
    topic = _FILLER.sub(" ", message)
    topic = _PUNCT.sub(" ", topic)
    topic = _SPACES.sub(" ", topic).strip()
    if len(topic) <= max_chars:
        return topic
    cut = topic[:max_chars]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.strip()


def build_queries(
    topic: str, destination: str, decision: IntentDecision
) -> list[SearchQuery]:
    """Build the primary query followed by enabled sub-source queries, in issue order."""
    base = f"{destination} {topic}".strip()
    queries = [
        SearchQuery(
            source="web",
            query=base,
            options=SearchOptions(
                max_results=5,
                depth="advanced",
                time_range_days=7 if decision.recency else None,
            ),
        )
    ]

    for sub in decision.sub_sources:
        if sub == SubSource.social:
            queries.append(
                SearchQuery(
                    source=SubSource.social.value,
                    query=f"{base} travel tips hidden gems {_SOCIAL_SITES}",
                    options=SearchOptions(max_results=5, depth="advanced", time_range_days=90),
                )
            )
        elif sub == SubSource.authenticity:
            queries.append(
                SearchQuery(
                    source=SubSource.authenticity.value,
                    query=f"{base} {_FORUM_SITES}",
                    options=SearchOptions(max_results=5, depth="advanced", time_range_days=180),
                )
            )

    return queries


class RetrievalAggregator:
    """Runs retrieval queries concurrently and merges the results."""

    def __init__(
        self,
        search_client: SearchClient,
        executor: SourceExecutor,
        source_config: SourceConfig,
        *,
        evidence_cap: int = DEFAULT_EVIDENCE_CAP,
        topic_max_chars: int = DEFAULT_TOPIC_MAX_CHARS,
    ) -> None:
        self._search = search_client
        self._executor = executor
        self._config = source_config
        self._cap = evidence_cap
        self._topic_max_chars = topic_max_chars

    async def _run(
        self, query: SearchQuery, trace_id: str, cancel_token: CancelToken
    ) -> list[EvidenceItem]:
        ctx = SourceContext(trace_id=trace_id, source=query.source)
        items = await self._executor.execute(
            ctx,
            self._config,
            lambda: self._search.search(query.query, query.options),
            cancel_token,
        )
        return [item.model_copy(update={"source": query.source}) for item in items]

    async def gather(
        self,
        message: str,
        destination: str,
        decision: IntentDecision,
        *,
        trace_id: str,
        cancel_token: CancelToken | None = None,
    ) -> RetrievalResult:
        """Retrieve evidence for one chat message.

        Args:
            message: Raw user message
            destination: Trip destination used to anchor every query
            decision: Intent classification for the message
            trace_id: Request trace id for logs
            cancel_token: Request cancellation token

        Returns:
            RetrievalResult with at most ``evidence_cap`` items, primary
            source first, and one citation URL per retained item
        """
        cancel_token = cancel_token or CancelToken()
        topic = normalize_topic(message, self._topic_max_chars)
        queries = build_queries(topic, destination, decision)

        outcomes = await asyncio.gather(
            *(self._run(q, trace_id, cancel_token) for q in queries),
            return_exceptions=True,
        )

        # Cancellation is the caller's decision, not a degraded source
        cancel_token.throw_if_cancelled()

        merged: list[EvidenceItem] = []
        failed: list[str] = []
        for query, outcome in zip(queries, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                failed.append(query.source)
                logger.warning(
                    f"[retrieval] trace_id={trace_id} source={query.source} dropped: "
                    f"{type(outcome).__name__}: {outcome}"
                )
                continue
            merged.extend(outcome)

        retained = merged[: self._cap]
        logger.info(
            f"[retrieval] trace_id={trace_id} queries={len(queries)} "
            f"merged={len(merged)} retained={len(retained)} failed={failed}"
        )
        return RetrievalResult(
            items=retained,
            citations=[item.url for item in retained],
            failed_sources=failed,
        )

"""FastAPI dependencies wiring the mutation engine from settings.

Tests replace these through ``app.dependency_overrides``.
"""

import logging
from functools import lru_cache

from backend.app.adapters.search import DisabledSearchClient, SearchClient, TavilySearchClient
from backend.app.config import get_settings
from backend.app.db.inmemory import InMemoryPlanStore
from backend.app.db.redis_store import RedisPlanStore
from backend.app.db.repositories import PlanStore
from backend.app.llm.client import GenerativeAdapter, get_llm_client
from backend.app.orchestration.coordinator import MutationCoordinator
from backend.app.orchestration.retrieval import RetrievalAggregator
from backend.app.tools.executor import SourceConfig, SourceExecutor
from backend.app.utils.logging import StructuredSourceLogger
from backend.app.utils.metrics import PrometheusSourceMetrics

logger = logging.getLogger(__name__)


@lru_cache
def get_plan_store() -> PlanStore:
    """Process-wide plan store: Redis when configured, in-memory otherwise."""
    settings = get_settings()
    if settings.redis_url:
        logger.info("Using Redis plan store")
        return RedisPlanStore.from_url(settings.redis_url)
    logger.warning("No REDIS_URL configured, using in-memory plan store")
    return InMemoryPlanStore()


@lru_cache
def get_search_client() -> SearchClient:
    """Search capability: Tavily when a key is configured, disabled otherwise."""
    settings = get_settings()
    if settings.tavily_api_key:
        return TavilySearchClient(api_key=settings.tavily_api_key, base_url=settings.tavily_base_url)
    logger.warning("No TAVILY_API_KEY configured, retrieval will return no evidence")
    return DisabledSearchClient()


@lru_cache
def get_coordinator() -> MutationCoordinator:
    """Process-wide coordinator (one lock registry per process)."""
    settings = get_settings()
    aggregator = RetrievalAggregator(
        get_search_client(),
        SourceExecutor(metrics=PrometheusSourceMetrics(), logger=StructuredSourceLogger()),
        SourceConfig(
            timeout_ms=settings.search_timeout_ms,
            breaker_failure_threshold=settings.circuit_breaker_failures,
            breaker_window_seconds=settings.circuit_breaker_window_sec,
            breaker_half_open_seconds=settings.circuit_breaker_half_open_sec,
        ),
        evidence_cap=settings.evidence_cap,
        topic_max_chars=settings.topic_max_chars,
    )
    return MutationCoordinator(
        get_plan_store(),
        aggregator,
        GenerativeAdapter(get_llm_client(settings), timeout_ms=settings.llm_timeout_ms),
        ttl_seconds=settings.plan_ttl_seconds,
        plan_prefix=settings.plan_key_prefix,
        log_prefix=settings.chat_log_prefix,
        history_window=settings.history_window,
        excerpt_chars=settings.evidence_excerpt_chars,
        message_chars=settings.message_max_chars,
    )

"""Tests for retrieval aggregation and query building."""

import pytest

from backend.app.adapters.search import SearchError
from backend.app.errors import RequestCancelledError
from backend.app.models.common import SubSource
from backend.app.orchestration.intent import IntentDecision, classify
from backend.app.orchestration.retrieval import (
    RetrievalAggregator,
    build_queries,
    normalize_topic,
)
from backend.app.tools.executor import BreakerRegistry, CancelToken, SourceConfig, SourceExecutor
from tests.helpers import FakeSearchClient, evidence

SOCIAL = "site:tiktok.com"
FORUMS = "site:reddit.com"
PRIMARY = "Lisbon"


def make_aggregator(search: FakeSearchClient, timeout_ms: int = 1000) -> RetrievalAggregator:
    return RetrievalAggregator(
        search,
        SourceExecutor(registry=BreakerRegistry()),
        SourceConfig(timeout_ms=timeout_ms),
    )


def both_sub_sources() -> IntentDecision:
    return IntentDecision(
        needs_retrieval=True,
        sub_sources=(SubSource.social, SubSource.authenticity),
        matched=("recommendation",),
    )


class TestNormalizeTopic:
    """Topic normalization."""

    def test_strips_filler_and_punctuation(self) -> None:
        topic = normalize_topic("Can you please recommend a rooftop bar?")
        assert topic == "recommend a rooftop bar"

    def test_bounded_on_word_boundary(self) -> None:
        topic = normalize_topic("seafood " * 30, max_chars=80)
        assert len(topic) <= 80
        assert topic.endswith("seafood")

    def test_deterministic(self) -> None:
        msg = "I'd like to find hidden gems near Alfama!"
        assert normalize_topic(msg) == normalize_topic(msg)


class TestBuildQueries:
    """Query construction."""

    def test_primary_only(self) -> None:
        queries = build_queries("rooftop bar", "Lisbon", classify("Recommend a rooftop bar"))

        assert len(queries) == 1
        assert queries[0].source == "web"
        assert queries[0].query == "Lisbon rooftop bar"
        assert queries[0].options.time_range_days is None

    def test_recency_sets_week_window(self) -> None:
        queries = build_queries("events", "Lisbon", classify("Any events this weekend?"))
        assert queries[0].options.time_range_days == 7

    def test_sub_source_order_and_windows(self) -> None:
        queries = build_queries("cafe", "Lisbon", both_sub_sources())

        assert [q.source for q in queries] == ["web", "social", "authenticity"]
        assert SOCIAL in queries[1].query
        assert queries[1].options.time_range_days == 90
        assert FORUMS in queries[2].query
        assert queries[2].options.time_range_days == 180


class TestRetrievalAggregator:
    """Concurrent fan-out, merge and truncation."""

    @pytest.mark.asyncio
    async def test_merges_in_issue_order(self) -> None:
        search = FakeSearchClient(
            {
                SOCIAL: [evidence("https://tiktok.com/v/1")],
                FORUMS: [evidence("https://reddit.com/r/travel/1")],
                PRIMARY: [evidence("https://a.example/1"), evidence("https://a.example/2")],
            }
        )
        result = await make_aggregator(search).gather(
            "cafe", "Lisbon", both_sub_sources(), trace_id="t1"
        )

        assert result.citations == [
            "https://a.example/1",
            "https://a.example/2",
            "https://tiktok.com/v/1",
            "https://reddit.com/r/travel/1",
        ]
        assert [i.source for i in result.items] == ["web", "web", "social", "authenticity"]
        assert result.degraded is False

    @pytest.mark.asyncio
    async def test_failing_source_is_dropped(self) -> None:
        search = FakeSearchClient(
            {
                SOCIAL: SearchError("boom", status=500),
                PRIMARY: [evidence("https://a.example/1")],
            }
        )
        decision = IntentDecision(True, (SubSource.social,), ("recommendation",))
        result = await make_aggregator(search).gather("cafe", "Lisbon", decision, trace_id="t2")

        assert result.citations == ["https://a.example/1"]
        assert result.failed_sources == ["social"]
        assert result.degraded is True

    @pytest.mark.asyncio
    async def test_all_sources_failing_returns_empty(self) -> None:
        search = FakeSearchClient({PRIMARY: SearchError("down")})
        result = await make_aggregator(search).gather(
            "cafe", "Lisbon", classify("recommend a cafe"), trace_id="t3"
        )

        assert result.items == []
        assert result.citations == []
        assert result.failed_sources == ["web"]

    @pytest.mark.asyncio
    async def test_slow_source_times_out(self) -> None:
        search = FakeSearchClient({PRIMARY: [evidence("https://a.example/1")]}, delay=0.2)
        result = await make_aggregator(search, timeout_ms=20).gather(
            "cafe", "Lisbon", classify("recommend a cafe"), trace_id="t4"
        )

        assert result.items == []
        assert result.failed_sources == ["web"]

    @pytest.mark.asyncio
    async def test_truncates_to_cap(self) -> None:
        search = FakeSearchClient(
            {
                SOCIAL: [evidence(f"https://tiktok.com/v/{i}") for i in range(8)],
                PRIMARY: [evidence(f"https://a.example/{i}") for i in range(8)],
            }
        )
        decision = IntentDecision(True, (SubSource.social,), ("recommendation",))
        result = await make_aggregator(search).gather("cafe", "Lisbon", decision, trace_id="t5")

        assert len(result.items) == 10
        assert len(result.citations) == 10
        assert result.citations[:8] == [f"https://a.example/{i}" for i in range(8)]
        assert result.citations[8:] == ["https://tiktok.com/v/0", "https://tiktok.com/v/1"]

    @pytest.mark.asyncio
    async def test_queries_run_concurrently(self) -> None:
        search = FakeSearchClient(delay=0.05)
        await make_aggregator(search).gather("cafe", "Lisbon", both_sub_sources(), trace_id="t6")

        assert len(search.queries) == 3
        assert search.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_cancelled_token_raises(self) -> None:
        search = FakeSearchClient({PRIMARY: [evidence("https://a.example/1")]})
        token = CancelToken()
        token.cancel()

        with pytest.raises(RequestCancelledError):
            await make_aggregator(search).gather(
                "cafe", "Lisbon", classify("recommend a cafe"), trace_id="t7", cancel_token=token
            )
        assert search.queries == []

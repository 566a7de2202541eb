"""Shared pytest fixtures for all test suites."""

import copy
from collections.abc import Callable
from typing import Any

import pytest

from backend.app.db.inmemory import InMemoryPlanStore
from backend.app.llm.client import GenerativeAdapter
from backend.app.orchestration.coordinator import MutationCoordinator
from backend.app.orchestration.retrieval import RetrievalAggregator
from backend.app.tools.executor import BreakerRegistry, SourceConfig, SourceExecutor
from tests.helpers import SAMPLE_PLAN, FakeSearchClient, ScriptedLLMClient


@pytest.fixture
def sample_plan() -> dict[str, Any]:
    """Fresh deep copy of the sample plan record."""
    return copy.deepcopy(SAMPLE_PLAN)


@pytest.fixture
def store() -> InMemoryPlanStore:
    return InMemoryPlanStore()


@pytest.fixture
def make_coordinator(
    store: InMemoryPlanStore,
) -> Callable[..., MutationCoordinator]:
    """Factory building a coordinator over the in-memory store."""

    def _make(
        llm: ScriptedLLMClient,
        search: FakeSearchClient | None = None,
        *,
        timeout_ms: int = 1000,
        plan_store: Any = None,
    ) -> MutationCoordinator:
        aggregator = RetrievalAggregator(
            search or FakeSearchClient(),
            SourceExecutor(registry=BreakerRegistry()),
            SourceConfig(timeout_ms=timeout_ms),
        )
        return MutationCoordinator(
            plan_store or store,
            aggregator,
            GenerativeAdapter(llm, timeout_ms=timeout_ms),
        )

    return _make

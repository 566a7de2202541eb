"""Integration tests for POST /chat-with-plan and GET /plans/{plan_id}."""

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from backend.app.api.deps import get_coordinator
from backend.app.db.inmemory import InMemoryPlanStore
from backend.app.errors import PlanConflictError, StoreUnavailableError
from backend.app.main import app
from backend.app.orchestration.coordinator import MutationCoordinator
from tests.helpers import ScriptedLLMClient, reply_json

ADD_FOOD_TOUR = [
    {
        "op": "add",
        "path": "/schedule/2/activities/-",
        "value": {"time": "19:00", "activity": "Food tour", "type": "food"},
    }
]


@pytest.fixture
def llm() -> ScriptedLLMClient:
    return ScriptedLLMClient([reply_json("modification", ADD_FOOD_TOUR, "Added a food tour.")])


@pytest.fixture
def client(
    llm: ScriptedLLMClient, make_coordinator: Any
) -> Iterator[TestClient]:
    """Test client with the coordinator wired to scripted collaborators."""
    coordinator = make_coordinator(llm)
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestChatWithPlan:
    """POST /chat-with-plan."""

    def test_modification_seeds_and_applies(
        self, client: TestClient, sample_plan: dict[str, Any]
    ) -> None:
        response = client.post(
            "/chat-with-plan",
            json={
                "planId": "abc123",
                "message": "Add a food tour to day 3",
                "currentPlan": sample_plan,
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["interaction_type"] == "modification"
        assert data["update_status"] == "applied"
        assert data["narration"] == "Added a food tour."
        assert data["retrieval_performed"] is False
        assert data["citations"] == []
        activities = data["updated_plan"]["itinerary"]["schedule"][2]["activities"]
        assert activities[-1]["activity"] == "Food tour"

        stored = client.get("/plans/abc123")
        assert stored.status_code == 200
        assert stored.json() == data["updated_plan"]

    def test_question_returns_null_plan(self, make_coordinator: Any) -> None:
        coordinator = make_coordinator(ScriptedLLMClient([reply_json(text="9am.")]))
        app.dependency_overrides[get_coordinator] = lambda: coordinator
        try:
            response = TestClient(app).post(
                "/chat-with-plan",
                json={
                    "planId": "q1",
                    "message": "When do we leave?",
                    "currentPlan": {"destination": "Lisbon", "schedule": []},
                },
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        assert response.json()["updated_plan"] is None
        assert response.json()["update_status"] == "unchanged"

    @pytest.mark.parametrize(
        "body",
        [
            {"message": "hi"},
            {"planId": "abc123"},
            {"planId": "  ", "message": "hi"},
            {"planId": "abc123", "message": ""},
        ],
    )
    def test_missing_fields_return_400(self, client: TestClient, body: dict[str, Any]) -> None:
        response = client.post("/chat-with-plan", json=body)

        assert response.status_code == 400
        assert response.json()["detail"] == "planId and message are required"

    def test_unknown_plan_returns_404(self, client: TestClient) -> None:
        response = client.post("/chat-with-plan", json={"planId": "nope", "message": "hi"})

        assert response.status_code == 404
        assert response.json()["detail"] == "Plan not found"

    def test_bad_model_output_returns_502(
        self, make_coordinator: Any, sample_plan: dict[str, Any]
    ) -> None:
        coordinator = make_coordinator(ScriptedLLMClient(["<html>oops</html>"]))
        app.dependency_overrides[get_coordinator] = lambda: coordinator
        try:
            response = TestClient(app).post(
                "/chat-with-plan",
                json={"planId": "abc123", "message": "hi", "currentPlan": sample_plan},
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 502
        assert "<html>" not in response.text

    @pytest.mark.parametrize(
        ("error", "status_code"),
        [(PlanConflictError("lost race"), 409), (StoreUnavailableError("redis down"), 503)],
    )
    def test_engine_errors_map_to_status(
        self, make_coordinator: Any, error: Exception, status_code: int
    ) -> None:
        class FailingStore(InMemoryPlanStore):
            async def get(self, key: str) -> Any:
                raise error

        coordinator: MutationCoordinator = make_coordinator(
            ScriptedLLMClient([reply_json()]), plan_store=FailingStore()
        )
        app.dependency_overrides[get_coordinator] = lambda: coordinator
        try:
            response = TestClient(app).post(
                "/chat-with-plan", json={"planId": "abc123", "message": "hi"}
            )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == status_code
        assert str(error) not in response.text


class TestPlanReads:
    """GET /plans/{plan_id} and /history."""

    def test_get_unknown_plan_404(self, client: TestClient) -> None:
        assert client.get("/plans/unknown").status_code == 404

    def test_history_after_turn(self, client: TestClient, sample_plan: dict[str, Any]) -> None:
        client.post(
            "/chat-with-plan",
            json={"planId": "h1", "message": "Add a food tour to day 3", "currentPlan": sample_plan},
        )

        response = client.get("/plans/h1/history", params={"limit": 10})

        assert response.status_code == 200
        items = response.json()["items"]
        assert [i["role"] for i in items] == ["user", "assistant"]
        assert items[0]["message"] == "Add a food tour to day 3"

    def test_history_limit_validated(self, client: TestClient) -> None:
        assert client.get("/plans/h1/history", params={"limit": 0}).status_code == 422

"""Plan chat endpoints - POST /chat-with-plan, GET /plans/{plan_id}[/history]."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.app.api.deps import get_coordinator
from backend.app.errors import (
    GenerationError,
    InvalidPlanRequestError,
    PlanConflictError,
    PlanEngineError,
    PlanNotFoundError,
    RequestCancelledError,
    StoreUnavailableError,
)
from backend.app.models.chat import ChatRequest, ChatResponse, ChatTurn
from backend.app.orchestration.coordinator import MutationCoordinator

router = APIRouter(tags=["chat"])
logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[PlanEngineError], int]] = [
    (InvalidPlanRequestError, status.HTTP_400_BAD_REQUEST),
    (PlanNotFoundError, status.HTTP_404_NOT_FOUND),
    (PlanConflictError, status.HTTP_409_CONFLICT),
    (RequestCancelledError, 499),
    (GenerationError, status.HTTP_502_BAD_GATEWAY),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_error(error: PlanEngineError) -> HTTPException:
    """Map an engine error to an HTTPException with a user-safe detail."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return HTTPException(status_code=code, detail=error_type.public_message)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=PlanEngineError.public_message
    )


@router.post("/chat-with-plan", response_model=ChatResponse, status_code=status.HTTP_200_OK)
async def chat_with_plan(
    request: ChatRequest,
    coordinator: Annotated[MutationCoordinator, Depends(get_coordinator)],
) -> ChatResponse:
    """Answer a question about a plan or apply the edit it asks for.

    Returns:
        ChatResponse; ``updated_plan`` is null when the plan did not change

    Raises:
        HTTPException: 400 missing fields, 404 unknown plan, 409 concurrent
            write conflict, 502 model failure, 503 store unavailable
    """
    logger.info(f"[POST /chat-with-plan] plan_id={request.plan_id!r}")
    try:
        return await coordinator.handle(request)
    except PlanEngineError as e:
        logger.warning(
            f"[POST /chat-with-plan] plan_id={request.plan_id!r} failed: "
            f"{type(e).__name__}: {e}",
            exc_info=isinstance(e, (GenerationError, StoreUnavailableError)),
        )
        raise to_http_error(e) from e


@router.get("/plans/{plan_id}", status_code=status.HTTP_200_OK)
async def get_plan(
    plan_id: str,
    coordinator: Annotated[MutationCoordinator, Depends(get_coordinator)],
) -> dict[str, Any]:
    """Return the cached Plan Record."""
    try:
        plan = await coordinator.get_plan(plan_id)
    except PlanEngineError as e:
        raise to_http_error(e) from e

    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Plan not found")
    return plan


@router.get("/plans/{plan_id}/history", status_code=status.HTTP_200_OK)
async def get_history(
    plan_id: str,
    coordinator: Annotated[MutationCoordinator, Depends(get_coordinator)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> dict[str, list[ChatTurn]]:
    """Return the most recent conversation turns, oldest first."""
    try:
        items = await coordinator.get_history(plan_id, limit)
    except PlanEngineError as e:
        raise to_http_error(e) from e
    return {"items": items}

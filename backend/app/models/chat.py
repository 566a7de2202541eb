"""Request/response contracts for chat-driven plan edits."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.app.models.common import InteractionType, UpdateStatus


class ChatTurn(BaseModel):
    """One entry of conversation history."""

    role: Literal["user", "assistant", "system"] = "user"
    message: str
    ts: int | None = Field(None, description="Epoch milliseconds")


class ChatRequest(BaseModel):
    """Inbound chat message about an existing plan.

    Accepts the camelCase names sent by the web client as well as snake_case.
    """

    model_config = ConfigDict(populate_by_name=True)

    plan_id: str = Field("", alias="planId")
    message: str = ""
    role: str = "user"
    current_plan: dict[str, Any] | None = Field(None, alias="currentPlan")
    conversation_history: list[ChatTurn] | None = Field(None, alias="conversationHistory")

    @field_validator("plan_id", "message", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value


class ModelReply(BaseModel):
    """Validated generative model output."""

    interaction_type: InteractionType
    patch: list[Any] = Field(default_factory=list)
    narration: str
    suggestions: list[str] = Field(default_factory=list)
    sources: list[str] = Field(
        default_factory=list,
        description="URLs the model says it used; logged when not in the evidence, "
        "never returned (citations come from retrieval)",
    )


class ChatResponse(BaseModel):
    """Outbound reply for one chat turn.

    ``updated_plan`` is null whenever the stored document did not change;
    ``update_status`` tells "no change" apart from "change rejected".
    """

    narration: str
    suggestions: list[str] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    interaction_type: InteractionType
    updated_plan: dict[str, Any] | None = Field(
        None, description="Full Plan Record as stored, present only when it changed"
    )
    retrieval_performed: bool = False
    update_status: UpdateStatus = UpdateStatus.unchanged

"""Error taxonomy for the plan mutation engine.

Each class carries a fixed, user-safe message. Collaborator error text is
chained via ``raise ... from`` and logged, never returned to the caller.
"""


class PlanEngineError(Exception):
    """Base class for plan engine failures."""

    public_message = "Something went wrong while updating your plan."


class InvalidPlanRequestError(PlanEngineError):
    """Request is missing its plan identifier or message, or is malformed."""

    public_message = "planId and message are required"


class PlanNotFoundError(PlanEngineError):
    """No document exists for the plan and no snapshot was supplied to seed it."""

    public_message = "Plan not found"


class PlanConflictError(PlanEngineError):
    """Another writer updated the plan between our read and our write."""

    public_message = "The plan was updated by another request. Please try again."


class StoreUnavailableError(PlanEngineError):
    """The document store could not be reached."""

    public_message = "The plan store is temporarily unavailable."


class GenerationError(PlanEngineError):
    """Model call failed, timed out, or returned an unparsable structure."""

    public_message = "The assistant could not produce a valid reply. Please try again."


class PatchRejectedError(PlanEngineError):
    """A structural patch could not be applied as a whole."""

    public_message = "The requested change could not be applied to your plan."

    def __init__(self, reason: str, op_index: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.op_index = op_index


class RequestCancelledError(PlanEngineError):
    """Caller abandoned the request before it reached the write step."""

    public_message = "Request cancelled"

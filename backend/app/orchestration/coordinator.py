"""Mutation coordinator - runs one chat turn against a cached plan.

Sequence per request, serialized per plan key:
resolve key -> load (or migrate, or seed) -> classify -> optional retrieval
-> build prompt -> model -> apply patch -> versioned write -> log turn.

Nothing is written until the patch has fully applied and the result has
passed shape validation. A cancelled request never reaches the write.
"""

import logging
import time
import uuid
from typing import Any

from pydantic import ValidationError

from backend.app.db.keys import DEFAULT_LOG_PREFIX, DEFAULT_PLAN_PREFIX, PlanKey, resolve_plan_key
from backend.app.db.repositories import (
    PlanDecodeError,
    PlanStore,
    PlanVersionConflict,
    StoredPlan,
)
from backend.app.errors import (
    InvalidPlanRequestError,
    PatchRejectedError,
    PlanConflictError,
    PlanNotFoundError,
    StoreUnavailableError,
)
from backend.app.llm.client import GenerativeAdapter
from backend.app.models.chat import ChatRequest, ChatResponse, ChatTurn, ModelReply
from backend.app.models.common import InteractionType, UpdateStatus
from backend.app.models.evidence import RetrievalResult
from backend.app.models.itinerary import PlanRecord
from backend.app.orchestration.intent import classify
from backend.app.orchestration.locks import KeyedLocks
from backend.app.orchestration.patching import apply_itinerary_patch
from backend.app.orchestration.prompt import (
    DEFAULT_EXCERPT_CHARS,
    DEFAULT_HISTORY_WINDOW,
    DEFAULT_MESSAGE_CHARS,
    build_prompt,
)
from backend.app.orchestration.retrieval import RetrievalAggregator
from backend.app.tools.executor import CancelToken
from backend.app.utils.metrics import plan_mutations_total

logger = logging.getLogger(__name__)

PLAN_TTL_SECONDS = 24 * 3600


def normalize_snapshot(snapshot: Any) -> dict[str, Any]:
    """Normalize a caller-supplied plan snapshot into Plan Record shape.

    Accepts either a full plan record (``{"itinerary": {...}, ...}``) or a
    bare itinerary document.

    Raises:
        InvalidPlanRequestError: Snapshot has no usable itinerary
    """
    if not isinstance(snapshot, dict):
        raise InvalidPlanRequestError("currentPlan must be an object")

    record = dict(snapshot) if "itinerary" in snapshot else {"itinerary": snapshot}
    itinerary = record.get("itinerary")
    if not isinstance(itinerary, dict):
        raise InvalidPlanRequestError("currentPlan has no itinerary")

    itinerary = dict(itinerary)
    if itinerary.get("schedule") is None:
        itinerary["schedule"] = []
    record["itinerary"] = itinerary
    record.setdefault("recommendations", [])
    record.setdefault("workflow_data", None)
    record.setdefault("orchestration", None)

    try:
        PlanRecord.model_validate(record)
    except ValidationError as e:
        raise InvalidPlanRequestError(f"currentPlan is malformed: {e.error_count()} errors") from e
    return record


def _now_ms() -> int:
    return int(time.time() * 1000)


class MutationCoordinator:
    """Orchestrates a chat turn against one plan document."""

    def __init__(
        self,
        store: PlanStore,
        aggregator: RetrievalAggregator,
        adapter: GenerativeAdapter,
        *,
        locks: KeyedLocks | None = None,
        ttl_seconds: int = PLAN_TTL_SECONDS,
        plan_prefix: str = DEFAULT_PLAN_PREFIX,
        log_prefix: str = DEFAULT_LOG_PREFIX,
        history_window: int = DEFAULT_HISTORY_WINDOW,
        excerpt_chars: int = DEFAULT_EXCERPT_CHARS,
        message_chars: int = DEFAULT_MESSAGE_CHARS,
    ) -> None:
        self._store = store
        self._aggregator = aggregator
        self._adapter = adapter
        self._locks = locks or KeyedLocks()
        self._ttl = ttl_seconds
        self._plan_prefix = plan_prefix
        self._log_prefix = log_prefix
        self._history_window = history_window
        self._excerpt_chars = excerpt_chars
        self._message_chars = message_chars

    def resolve(self, plan_id: str) -> PlanKey:
        """Resolve a plan identifier, mapping bad identifiers to InvalidPlanRequestError."""
        try:
            return resolve_plan_key(
                plan_id, plan_prefix=self._plan_prefix, log_prefix=self._log_prefix
            )
        except ValueError as e:
            raise InvalidPlanRequestError(str(e)) from e

    async def _write_new(self, key: PlanKey, record: dict[str, Any]) -> StoredPlan:
        """Create the canonical document; if someone else just did, use theirs."""
        try:
            version = await self._store.set(key.storage_key, record, self._ttl, expected_version=0)
        except PlanVersionConflict:
            existing = await self._store.get(key.storage_key)
            if existing is None:
                raise PlanConflictError(f"seed race on {key.storage_key}") from None
            return existing
        return StoredPlan(plan=record, version=version)

    async def _get_canonical(self, key: PlanKey) -> StoredPlan | None:
        try:
            return await self._store.get(key.storage_key)
        except PlanDecodeError as e:
            logger.error(f"[coordinator] canonical key {key.storage_key} is unreadable: {e.reason}")
            raise StoreUnavailableError(str(e)) from e

    async def _load(self, key: PlanKey, snapshot: Any = None) -> StoredPlan | None:
        stored = await self._get_canonical(key)
        if stored is not None:
            return stored

        for legacy_key in key.legacy_keys:
            try:
                legacy = await self._store.get(legacy_key)
            except PlanDecodeError as e:
                logger.warning(
                    f"[coordinator] no legacy document at {legacy_key} "
                    f"(value unreadable: {e.reason})"
                )
                continue
            if legacy is None:
                continue
            try:
                record = normalize_snapshot(legacy.plan)
            except InvalidPlanRequestError:
                logger.warning(f"[coordinator] ignoring malformed legacy document at {legacy_key}")
                continue
            logger.info(f"[coordinator] migrating legacy key {legacy_key} -> {key.storage_key}")
            return await self._write_new(key, record)

        if snapshot is None:
            return None

        record = normalize_snapshot(snapshot)
        logger.info(f"[coordinator] seeded cache for {key.storage_key}")
        return await self._write_new(key, record)

    async def get_plan(self, plan_id: str) -> dict[str, Any] | None:
        """Return the stored plan record for ``plan_id`` (migrating legacy keys)."""
        key = self.resolve(plan_id)
        stored = await self._load(key)
        return stored.plan if stored else None

    async def get_history(self, plan_id: str, limit: int) -> list[ChatTurn]:
        """Return the conversation log tail for ``plan_id``, oldest first."""
        key = self.resolve(plan_id)
        return await self._read_history(key, limit)

    async def _read_history(self, key: PlanKey, limit: int) -> list[ChatTurn]:
        try:
            entries = await self._store.read_log(key.log_key, limit)
        except PlanDecodeError as e:
            logger.warning(f"[coordinator] unreadable chat log {key.log_key}: {e.reason}")
            return []

        turns: list[ChatTurn] = []
        for entry in entries:
            try:
                turns.append(ChatTurn.model_validate(entry))
            except ValidationError:
                logger.warning(f"[coordinator] skipping malformed log entry in {key.log_key}")
        return turns

    async def _append_turns(self, key: PlanKey, role: str, message: str, reply: ModelReply) -> None:
        user_role = role if role in ("user", "system") else "user"
        try:
            await self._store.append_log(
                key.log_key, {"role": user_role, "message": message, "ts": _now_ms()}, self._ttl
            )
            await self._store.append_log(
                key.log_key,
                {"role": "assistant", "message": reply.narration, "ts": _now_ms()},
                self._ttl,
            )
        except (StoreUnavailableError, PlanDecodeError) as e:
            # Turn already answered (and any write committed); history is best-effort
            logger.warning(f"[coordinator] could not append chat log for {key.log_key}: {e}")

    async def handle(
        self, request: ChatRequest, cancel_token: CancelToken | None = None
    ) -> ChatResponse:
        """Run one chat turn.

        Args:
            request: Inbound chat request
            cancel_token: Set by the caller to abandon the request

        Returns:
            ChatResponse with narration, citations and the updated plan (or None)

        Raises:
            InvalidPlanRequestError: Missing identifier or message, or bad snapshot
            PlanNotFoundError: No stored document and nothing to seed from
            GenerationError: Model failed or returned unusable output
            PlanConflictError: Lost a versioned write to another process
            StoreUnavailableError: Store unreachable
            RequestCancelledError: Cancelled before the write step
        """
        if not request.plan_id or not request.message:
            raise InvalidPlanRequestError("planId and message are required")

        cancel_token = cancel_token or CancelToken()
        key = self.resolve(request.plan_id)
        trace_id = uuid.uuid4().hex[:16]

        async with self._locks.hold(key.storage_key):
            stored = await self._load(key, request.current_plan)
            if stored is None or not isinstance(stored.plan.get("itinerary"), dict):
                raise PlanNotFoundError(key.storage_key)

            itinerary: dict[str, Any] = stored.plan["itinerary"]
            decision = classify(request.message)
            logger.info(
                f"[coordinator] trace_id={trace_id} key={key.storage_key} "
                f"version={stored.version} retrieval={decision.needs_retrieval} "
                f"matched={list(decision.matched)} sub_sources={[s.value for s in decision.sub_sources]}"
            )

            retrieval = RetrievalResult()
            if decision.needs_retrieval:
                retrieval = await self._aggregator.gather(
                    request.message,
                    str(itinerary.get("destination") or ""),
                    decision,
                    trace_id=trace_id,
                    cancel_token=cancel_token,
                )

            if request.conversation_history is not None:
                history = request.conversation_history
            else:
                history = await self._read_history(key, self._history_window)

            prompt = build_prompt(
                itinerary,
                request.message,
                evidence=retrieval.items,
                history=history,
                history_window=self._history_window,
                excerpt_chars=self._excerpt_chars,
                message_chars=self._message_chars,
            )

            cancel_token.throw_if_cancelled()
            reply = await self._adapter.complete(prompt)
            cancel_token.throw_if_cancelled()

            uncited = [url for url in reply.sources if url not in retrieval.citations]
            if uncited:
                logger.info(
                    f"[coordinator] trace_id={trace_id} model cited {len(uncited)} url(s) "
                    f"outside the evidence: {uncited}",
                    extra={"structured": {"trace_id": trace_id, "uncited_sources": uncited}},
                )

            status = UpdateStatus.unchanged
            updated_plan: dict[str, Any] | None = None

            if reply.interaction_type == InteractionType.modification and reply.patch:
                try:
                    outcome = apply_itinerary_patch(itinerary, reply.patch)
                except PatchRejectedError as e:
                    status = UpdateStatus.rejected
                    logger.warning(
                        f"[coordinator] trace_id={trace_id} patch rejected "
                        f"(op_index={e.op_index}): {e.reason}"
                    )
                else:
                    if outcome.changed:
                        new_plan = {**stored.plan, "itinerary": outcome.document}
                        try:
                            await self._store.set(
                                key.storage_key,
                                new_plan,
                                self._ttl,
                                expected_version=stored.version,
                            )
                        except PlanVersionConflict as e:
                            raise PlanConflictError(str(e)) from e
                        status = UpdateStatus.applied
                        updated_plan = new_plan
            elif reply.patch:
                logger.info(
                    f"[coordinator] trace_id={trace_id} ignoring {len(reply.patch)} patch ops "
                    f"on a question reply"
                )

            await self._append_turns(key, request.role, request.message, reply)

        outcome_label = (
            status.value if reply.interaction_type == InteractionType.modification else "question"
        )
        plan_mutations_total.labels(outcome=outcome_label).inc()
        logger.info(
            f"[coordinator] trace_id={trace_id} done interaction={reply.interaction_type.value} "
            f"status={status.value} citations={len(retrieval.citations)}"
        )

        return ChatResponse(
            narration=reply.narration,
            suggestions=reply.suggestions,
            citations=retrieval.citations,
            interaction_type=reply.interaction_type,
            updated_plan=updated_plan,
            retrieval_performed=decision.needs_retrieval,
            update_status=status,
        )

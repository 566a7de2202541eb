"""Plan identifier to storage key resolution.

Scheme v1: every plan lives at ``<plan_key_prefix><identifier>``. An
identifier that already carries the prefix is its own key. There is no
length or sentinel heuristic.

Older writers stored long opaque identifiers verbatim. ``legacy_keys`` lists
those locations so the coordinator can migrate a document once on read; they
are never written to. Identifiers inside the log namespace get no legacy
alias, since that key holds a conversation list rather than a plan.
"""

from dataclasses import dataclass, field

KEY_SCHEME_VERSION = 1
DEFAULT_PLAN_PREFIX = "travel_plan:"
DEFAULT_LOG_PREFIX = "chat_history:"


@dataclass(frozen=True)
class PlanKey:
    """Resolved storage locations for one plan identifier."""

    plan_id: str
    storage_key: str
    log_key: str
    legacy_keys: tuple[str, ...] = field(default_factory=tuple)


def resolve_plan_key(
    identifier: str,
    *,
    plan_prefix: str = DEFAULT_PLAN_PREFIX,
    log_prefix: str = DEFAULT_LOG_PREFIX,
) -> PlanKey:
    """Map a caller-facing plan identifier to its storage keys.

    Args:
        identifier: Plan identifier as sent by the caller
        plan_prefix: Namespace for plan documents
        log_prefix: Namespace for conversation logs

    Returns:
        PlanKey with the canonical key and any legacy aliases

    Raises:
        ValueError: Identifier is empty or is a bare prefix
    """
    ident = identifier.strip()
    if not ident:
        raise ValueError("plan identifier is empty")

    if ident.startswith(plan_prefix):
        bare = ident[len(plan_prefix) :]
        if not bare:
            raise ValueError("plan identifier has no id after the prefix")
        return PlanKey(plan_id=bare, storage_key=ident, log_key=f"{log_prefix}{bare}")

    legacy_keys = () if ident.startswith(log_prefix) else (ident,)
    return PlanKey(
        plan_id=ident,
        storage_key=f"{plan_prefix}{ident}",
        log_key=f"{log_prefix}{ident}",
        legacy_keys=legacy_keys,
    )

"""Atomic application of RFC 6902 patches to an itinerary document.

The whole operation list is applied to a deep copy. The caller's document
is never touched; on any failure (malformed op, bad path, failed ``test``,
or a result that is no longer a renderable itinerary) the patch is rejected
as a unit.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any

import jsonpatch
import jsonpointer
from pydantic import ValidationError

from backend.app.errors import PatchRejectedError
from backend.app.models.itinerary import validate_itinerary_shape

logger = logging.getLogger(__name__)

_VALUE_OPS = {"add", "replace", "test"}
_FROM_OPS = {"move", "copy"}
_ALL_OPS = _VALUE_OPS | _FROM_OPS | {"remove"}


@dataclass
class PatchOutcome:
    """Result of a successful patch application."""

    document: dict[str, Any]
    changed: bool
    op_count: int


def _pointer(raw: Any, field: str, index: int) -> str:
    if not isinstance(raw, str):
        raise PatchRejectedError(f"op {index}: '{field}' must be a string", index)
    # Models sometimes drop the leading slash ("schedule/2/activities/-")
    pointer = raw if raw.startswith("/") else f"/{raw}"
    if pointer == "/":
        raise PatchRejectedError(f"op {index}: '{field}' may not target the document root", index)
    return pointer


def normalize_operations(patch: list[Any]) -> list[dict[str, Any]]:
    """Validate op shape and normalize pointers.

    Raises:
        PatchRejectedError: An op is not an object, has an unknown ``op``,
            or lacks a required member
    """
    ops: list[dict[str, Any]] = []
    for i, raw in enumerate(patch):
        if not isinstance(raw, dict):
            raise PatchRejectedError(f"op {i}: expected object, got {type(raw).__name__}", i)

        name = raw.get("op")
        if name not in _ALL_OPS:
            raise PatchRejectedError(f"op {i}: unsupported op {name!r}", i)

        op: dict[str, Any] = {"op": name, "path": _pointer(raw.get("path"), "path", i)}
        if name in _VALUE_OPS:
            if "value" not in raw:
                raise PatchRejectedError(f"op {i}: '{name}' requires 'value'", i)
            op["value"] = raw["value"]
        if name in _FROM_OPS:
            op["from"] = _pointer(raw.get("from"), "from", i)
        ops.append(op)
    return ops


def apply_itinerary_patch(itinerary: dict[str, Any], patch: list[Any]) -> PatchOutcome:
    """Apply ``patch`` to a copy of ``itinerary``.

    Args:
        itinerary: Current itinerary document (left unmodified)
        patch: RFC 6902 operation list as returned by the model

    Returns:
        PatchOutcome with the candidate document and whether it differs

    Raises:
        PatchRejectedError: Any op failed or the result is malformed
    """
    if not patch:
        return PatchOutcome(document=itinerary, changed=False, op_count=0)

    ops = normalize_operations(patch)
    candidate: Any = copy.deepcopy(itinerary)

    for i, op in enumerate(ops):
        try:
            candidate = jsonpatch.apply_patch(candidate, [op], in_place=True)
        except (
            jsonpatch.JsonPatchException,
            jsonpointer.JsonPointerException,
            KeyError,
            IndexError,
            TypeError,
        ) as e:
            logger.info(f"[patching] op {i} {op['op']} {op['path']} failed: {e}")
            raise PatchRejectedError(f"op {i} ({op['op']} {op['path']}): {e}", i) from e

    try:
        validate_itinerary_shape(candidate)
    except (ValidationError, ValueError) as e:
        logger.info(f"[patching] patched itinerary failed shape check: {e}")
        raise PatchRejectedError(f"result is not a valid itinerary: {e}") from e

    return PatchOutcome(document=candidate, changed=candidate != itinerary, op_count=len(ops))

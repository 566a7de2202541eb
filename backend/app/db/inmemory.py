"""In-memory implementation of the plan store."""

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from backend.app.db.repositories import PlanVersionConflict, StoredPlan


@dataclass
class _Entry:
    payload: str
    version: int
    expires_at: float


class InMemoryPlanStore:
    """In-memory implementation of PlanStore.

    Documents are held as serialized JSON so that callers never share
    mutable state with the store.
    """

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or time.monotonic
        self._plans: dict[str, _Entry] = {}
        self._logs: dict[str, tuple[list[str], float]] = {}

    def _live(self, key: str) -> _Entry | None:
        entry = self._plans.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._plans[key]
            return None
        return entry

    async def get(self, key: str) -> StoredPlan | None:
        """Get plan record if present and not expired."""
        entry = self._live(key)
        if entry is None:
            return None
        return StoredPlan(plan=json.loads(entry.payload), version=entry.version)

    async def set(
        self,
        key: str,
        plan: dict[str, Any],
        ttl_seconds: int,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Overwrite plan record, refreshing TTL."""
        entry = self._live(key)
        current = entry.version if entry else 0

        if expected_version is not None and expected_version != current:
            raise PlanVersionConflict(key, expected_version, current if entry else None)

        version = current + 1
        self._plans[key] = _Entry(
            payload=json.dumps(plan),
            version=version,
            expires_at=self._clock() + ttl_seconds,
        )
        return version

    async def append_log(self, key: str, entry: dict[str, Any], ttl_seconds: int) -> None:
        """Append entry to conversation log."""
        entries, expires_at = self._logs.get(key, ([], 0.0))
        if expires_at and self._clock() >= expires_at:
            entries = []
        entries.append(json.dumps(entry))
        self._logs[key] = (entries, self._clock() + ttl_seconds)

    async def read_log(self, key: str, limit: int) -> list[dict[str, Any]]:
        """Return the last ``limit`` log entries, oldest first."""
        entries, expires_at = self._logs.get(key, ([], 0.0))
        if not entries or self._clock() >= expires_at or limit <= 0:
            return []
        return [json.loads(e) for e in entries[-limit:]]

    def ttl_remaining(self, key: str) -> float | None:
        """Seconds until the plan expires (None if absent)."""
        entry = self._live(key)
        if entry is None:
            return None
        return entry.expires_at - self._clock()

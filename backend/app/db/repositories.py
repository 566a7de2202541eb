"""Repository protocol interfaces for plan storage."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class StoredPlan:
    """Plan record as held by the store, with its write version."""

    plan: dict[str, Any]
    version: int


class PlanVersionConflict(Exception):
    """Compare-and-swap write lost to a concurrent writer."""

    def __init__(self, key: str, expected: int, actual: int | None) -> None:
        super().__init__(f"version conflict on {key}: expected {expected}, found {actual}")
        self.key = key
        self.expected = expected
        self.actual = actual


class PlanDecodeError(Exception):
    """Value stored at a key is not a plan document (not JSON, or not a string value)."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"undecodable value at {key}: {reason}")
        self.key = key
        self.reason = reason


class PlanStore(Protocol):
    """Key/value store for plan records and their conversation logs."""

    async def get(self, key: str) -> StoredPlan | None:
        """Get plan record by storage key.

        Args:
            key: Resolved storage key

        Returns:
            Stored plan or None if absent or expired

        Raises:
            PlanDecodeError: Key holds something other than a plan document
        """
        ...

    async def set(
        self,
        key: str,
        plan: dict[str, Any],
        ttl_seconds: int,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Overwrite the plan record wholesale and refresh its TTL.

        Args:
            key: Resolved storage key
            plan: Full plan record
            ttl_seconds: Time-to-live from now
            expected_version: If given, write only when the stored version
                still equals it (0 means "must not exist")

        Returns:
            New version number

        Raises:
            PlanVersionConflict: expected_version did not match
        """
        ...

    async def append_log(self, key: str, entry: dict[str, Any], ttl_seconds: int) -> None:
        """Append one entry to the conversation log and refresh its TTL."""
        ...

    async def read_log(self, key: str, limit: int) -> list[dict[str, Any]]:
        """Return the most recent ``limit`` log entries, oldest first."""
        ...

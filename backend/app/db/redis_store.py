"""Redis-backed plan store.

Layout:
- ``<plan key>``: JSON envelope ``{"scheme": 1, "version": n, "plan": {...}}``
  with a rolling TTL refreshed on every write.
- ``<log key>``: Redis list of JSON chat entries (RPUSH), same rolling TTL.

Writes with ``expected_version`` use WATCH/MULTI so that a concurrent writer
in another process turns into a ``PlanVersionConflict`` instead of a lost
update.
"""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.exceptions import WatchError

from backend.app.db.keys import KEY_SCHEME_VERSION
from backend.app.db.repositories import PlanDecodeError, PlanVersionConflict, StoredPlan
from backend.app.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(op: str, key: str) -> Iterator[None]:
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"[redis_store] {op} failed for key={key}: {e}")
        raise StoreUnavailableError(f"redis {op} failed") from e
    except ResponseError as e:
        # WRONGTYPE and friends: the key exists but holds a list, hash, ...
        raise PlanDecodeError(key, str(e)) from e


def _decode(key: str, raw: str) -> StoredPlan:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise PlanDecodeError(key, "value is not JSON") from e

    if isinstance(data, dict) and "plan" in data and "version" in data:
        plan, version = data["plan"], data["version"]
        if not isinstance(plan, dict) or not isinstance(version, int):
            raise PlanDecodeError(key, "malformed envelope")
        return StoredPlan(plan=plan, version=version)
    if not isinstance(data, dict):
        raise PlanDecodeError(key, f"expected a JSON object, got {type(data).__name__}")
    # Written verbatim by a pre-envelope writer
    return StoredPlan(plan=data, version=0)


class RedisPlanStore:
    """Redis implementation of PlanStore."""

    def __init__(self, client: aioredis.Redis) -> None:
        """Initialize store.

        Args:
            client: ``redis.asyncio`` client created with ``decode_responses=True``
        """
        self._redis = client

    @classmethod
    def from_url(cls, url: str) -> "RedisPlanStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def get(self, key: str) -> StoredPlan | None:
        """Get plan record by key.

        Raises:
            PlanDecodeError: Key holds a non-string type or a non-plan value
            StoreUnavailableError: Redis unreachable
        """
        with _store_errors("get", key):
            raw = await self._redis.get(key)
        if raw is None:
            return None
        return _decode(key, raw)

    async def set(
        self,
        key: str,
        plan: dict[str, Any],
        ttl_seconds: int,
        *,
        expected_version: int | None = None,
    ) -> int:
        """Overwrite plan record with optimistic version check."""
        with _store_errors("set", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    current = _decode(key, raw).version if raw is not None else 0

                    if expected_version is not None and expected_version != current:
                        await pipe.unwatch()
                        raise PlanVersionConflict(
                            key, expected_version, current if raw is not None else None
                        )

                    version = current + 1
                    envelope = {"scheme": KEY_SCHEME_VERSION, "version": version, "plan": plan}
                    pipe.multi()
                    pipe.set(key, json.dumps(envelope), ex=ttl_seconds)
                    await pipe.execute()
                except WatchError as e:
                    raise PlanVersionConflict(key, expected_version or 0, None) from e

        return version

    async def append_log(self, key: str, entry: dict[str, Any], ttl_seconds: int) -> None:
        """Append entry to conversation log and refresh its TTL."""
        with _store_errors("append_log", key):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.rpush(key, json.dumps(entry))
                pipe.expire(key, ttl_seconds)
                await pipe.execute()

    async def read_log(self, key: str, limit: int) -> list[dict[str, Any]]:
        """Return the last ``limit`` entries, oldest first."""
        if limit <= 0:
            return []
        with _store_errors("read_log", key):
            raw_entries = await self._redis.lrange(key, -limit, -1)

        entries: list[dict[str, Any]] = []
        for raw in raw_entries:
            try:
                entries.append(json.loads(raw))
            except ValueError:
                logger.warning(f"[redis_store] skipping non-JSON log entry in {key}")
        return entries

    async def ping(self) -> bool:
        with _store_errors("ping", "-"):
            return bool(await self._redis.ping())

    async def close(self) -> None:
        await self._redis.aclose()

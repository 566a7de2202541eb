"""Test doubles and sample data shared across suites."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

from redis.exceptions import ResponseError, WatchError

from backend.app.models.evidence import EvidenceItem, SearchOptions

SAMPLE_PLAN: dict[str, Any] = {
    "itinerary": {
        "destination": "Lisbon, Portugal",
        "schedule": [
            {
                "day": 1,
                "date": "2025-06-10",
                "title": "Arrival and Alfama",
                "activities": [
                    {"time": "15:00", "activity": "Check in", "type": "lodging"},
                    {"time": "18:00", "activity": "Alfama walk", "type": "sightseeing"},
                ],
            },
            {
                "day": 2,
                "date": "2025-06-11",
                "title": "Belem",
                "activities": [
                    {"time": "10:00", "activity": "Jeronimos Monastery", "type": "culture"},
                ],
            },
            {
                "day": 3,
                "date": "2025-06-12",
                "title": "Sintra day trip",
                "activities": [
                    {"time": "09:00", "activity": "Train to Sintra", "type": "transport"},
                    {"time": "11:00", "activity": "Pena Palace", "type": "culture", "cost": "20 EUR"},
                ],
            },
        ],
        "totalBudget": {"amount": "1500", "currency": "EUR", "breakdown": {"food": "400"}},
        "bookingInfo": {"hotels": [], "restaurants": [], "activities": [], "flights": []},
        "localInsights": [],
        "logistics": {"transportation": "Metro and trams", "packingTips": [], "localTips": []},
        "confidence": 0.8,
    },
    "recommendations": [{"name": "Time Out Market"}],
    "workflow_data": {"preferences": {"destination": "Lisbon"}},
    "orchestration": None,
}


def reply_json(
    interaction_type: str = "question",
    patch: list[Any] | None = None,
    text: str = "Here you go.",
    suggestions: list[str] | None = None,
    sources: list[str] | None = None,
) -> str:
    """Serialize a model reply the way the model would return it."""
    return json.dumps(
        {
            "interaction_type": interaction_type,
            "patch": patch or [],
            "assistant_response": text,
            "suggestions": suggestions or [],
            "sources": sources or [],
        }
    )


class ScriptedLLMClient:
    """Generative client returning queued replies and recording prompts."""

    def __init__(self, replies: list[str | Exception], delay: float = 0.0) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.delay = delay

    async def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeSearchClient:
    """Search client keyed on query substrings; unmatched queries return []."""

    def __init__(
        self,
        responses: dict[str, list[EvidenceItem] | Exception] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.responses = responses or {}
        self.queries: list[tuple[str, SearchOptions]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0

    async def search(self, query: str, options: SearchOptions) -> list[EvidenceItem]:
        self.queries.append((query, options))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            for needle, response in self.responses.items():
                if needle in query:
                    if isinstance(response, Exception):
                        raise response
                    return list(response)
            return []
        finally:
            self.in_flight -= 1


def evidence(url: str, title: str = "Result", content: str = "Some content") -> EvidenceItem:
    return EvidenceItem(title=title, url=url, content=content, relevance_score=0.9)




_WRONGTYPE = "WRONGTYPE Operation against a key holding the wrong kind of value"


class FakeRedis:
    """In-process stand-in for a ``redis.asyncio`` client with ``decode_responses=True``.

    Covers the string and list commands the plan store uses, plus
    WATCH/MULTI/EXEC. ``before_execute`` runs between the watched read and
    EXEC, which is where a writer in another process would land.
    """

    def __init__(self) -> None:
        self.data: dict[str, str | list[str]] = {}
        self.ttls: dict[str, int] = {}
        self.writes: dict[str, int] = {}
        self.before_execute: Callable[[], None] | None = None
        self.closed = False

    def _touch(self, key: str) -> None:
        self.writes[key] = self.writes.get(key, 0) + 1

    def _string(self, key: str) -> str | None:
        value = self.data.get(key)
        if isinstance(value, list):
            raise ResponseError(_WRONGTYPE)
        return value

    def _list(self, key: str) -> list[str]:
        value = self.data.setdefault(key, [])
        if not isinstance(value, list):
            raise ResponseError(_WRONGTYPE)
        return value

    def force_set(self, key: str, value: str) -> None:
        """Write a raw string the way another client would."""
        self.data[key] = value
        self._touch(key)

    async def get(self, key: str) -> str | None:
        return self._string(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.force_set(key, value)
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def rpush(self, key: str, *values: str) -> int:
        items = self._list(key)
        items.extend(values)
        self._touch(key)
        return len(items)

    async def expire(self, key: str, seconds: int) -> bool:
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    async def ttl(self, key: str) -> int:
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)

    async def lrange(self, key: str, start: int, end: int) -> list[str]:
        if key not in self.data:
            return []
        items = self._list(key)
        stop = None if end == -1 else end + 1
        return items[start:stop]

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)


class FakePipeline:
    """WATCH/MULTI/EXEC pipeline over a FakeRedis."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._watched: dict[str, int] = {}
        self._queued: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self._watched.clear()
        self._queued.clear()

    async def watch(self, *keys: str) -> bool:
        for key in keys:
            self._watched[key] = self._redis.writes.get(key, 0)
        return True

    async def unwatch(self) -> bool:
        self._watched.clear()
        return True

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    def multi(self) -> None:
        self._queued.clear()

    def _queue(self, command: str, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._queued.append((command, args, kwargs))
        return self

    def set(self, key: str, value: str, ex: int | None = None) -> "FakePipeline":
        return self._queue("set", key, value, ex=ex)

    def rpush(self, key: str, *values: str) -> "FakePipeline":
        return self._queue("rpush", key, *values)

    def expire(self, key: str, seconds: int) -> "FakePipeline":
        return self._queue("expire", key, seconds)

    async def execute(self) -> list[Any]:
        if self._redis.before_execute is not None:
            hook, self._redis.before_execute = self._redis.before_execute, None
            hook()
        try:
            for key, seen in self._watched.items():
                if self._redis.writes.get(key, 0) != seen:
                    raise WatchError("Watched variable changed.")
            results = []
            for command, args, kwargs in self._queued:
                results.append(await getattr(self._redis, command)(*args, **kwargs))
            return results
        finally:
            self._watched.clear()
            self._queued.clear()

"""Health check endpoints.

- /health: liveness, always 200
- /healthz: checks the plan store (Redis when configured)
"""

from typing import Any

import redis.asyncio as aioredis
from fastapi import APIRouter, Response

from backend.app.config import Settings, get_settings

router = APIRouter()


async def check_redis(settings: Settings) -> tuple[bool, str]:
    """Check Redis connectivity.

    Returns:
        (is_ok, status_message)
    """
    if not settings.redis_url:
        return (True, "not_configured")

    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    try:
        await client.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")
    finally:
        await client.aclose()


def check_llm(settings: Settings) -> str:
    """Report which generative client is active."""
    key = settings.openai_api_key
    return "openai" if key and key.get_secret_value() else "stub"


def check_search(settings: Settings) -> str:
    """Report whether retrieval is enabled."""
    return "tavily" if settings.tavily_api_key else "disabled"


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz() -> dict[str, Any] | Response:
    """Health check endpoint.

    Returns:
        200 with component status if the store is reachable
        503 if Redis is configured but unreachable
    """
    settings = get_settings()

    redis_ok, redis_status = await check_redis(settings)

    response_body = {
        "status": "ok" if redis_ok else "degraded",
        "components": {
            "redis": redis_status,
            "llm": check_llm(settings),
            "search": check_search(settings),
        },
    }

    if not redis_ok:
        import json

        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body

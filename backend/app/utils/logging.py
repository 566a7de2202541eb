"""Structured logging for retrieval source calls."""

import logging
from typing import Any

from backend.app.tools.executor import SourceContext

logger = logging.getLogger(__name__)


class StructuredSourceLogger:
    """Structured logger for source calls."""

    def log_attempt(
        self,
        ctx: SourceContext,
        outcome: str,
        latency_ms: float,
        result_count: int = 0,
        error_reason: str | None = None,
    ) -> None:
        """Log source call with structured data."""
        log_data: dict[str, Any] = {
            "trace_id": ctx.trace_id,
            "source": ctx.source,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "result_count": result_count,
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Search source: {ctx.source} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})

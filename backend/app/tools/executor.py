"""Async executor for retrieval source calls.

Implements per-source execution with:
- Hard timeout per call (no retries; a slow source is dropped, not waited on)
- Per-source circuit breaker (shared state via registry)
- Cancellation support
- Metrics and structured logging
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import TypeVar

from backend.app.errors import RequestCancelledError

T = TypeVar("T")


class SourceTimeoutError(Exception):
    """Source call exceeded its timeout."""

    pass


class SourceCircuitOpenError(Exception):
    """Circuit breaker is open for this source."""

    pass


class SourceExecutionError(Exception):
    """Source call failed."""

    pass


@dataclass(frozen=True)
class SourceContext:
    """Context for a source call with tracing."""

    trace_id: str
    source: str


@dataclass
class CancelToken:
    """Token for cancellation signaling across one request."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def throw_if_cancelled(self) -> None:
        """Raise RequestCancelledError if cancelled."""
        if self.cancelled:
            raise RequestCancelledError("request cancelled")


@dataclass
class SourceConfig:
    """Configuration for source execution."""

    timeout_ms: int
    breaker_failure_threshold: int = 5
    breaker_window_seconds: int = 60
    breaker_half_open_seconds: int = 30


class BreakerState(str, Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Per-source circuit breaker.

    Tracks failures within a time window and opens after threshold.
    """

    source: str
    failure_threshold: int
    window_seconds: int
    half_open_seconds: int
    state: BreakerState = BreakerState.CLOSED
    failure_times: list[datetime] = field(default_factory=list)
    opened_at: datetime | None = None

    def record_success(self) -> None:
        """Record successful execution."""
        if self.state == BreakerState.HALF_OPEN:
            self.state = BreakerState.CLOSED
            self.failure_times.clear()
            self.opened_at = None

    def record_failure(self, now: datetime) -> None:
        """Record failed execution."""
        cutoff = now - timedelta(seconds=self.window_seconds)
        self.failure_times = [t for t in self.failure_times if t > cutoff]
        self.failure_times.append(now)

        if len(self.failure_times) >= self.failure_threshold:
            self.state = BreakerState.OPEN
            self.opened_at = now

    def check_and_update_state(self, now: datetime) -> BreakerState:
        """Check if breaker should transition states."""
        if self.state == BreakerState.OPEN:
            if self.opened_at and (now - self.opened_at).total_seconds() >= self.half_open_seconds:
                self.state = BreakerState.HALF_OPEN

        return self.state

    def is_open(self, now: datetime) -> bool:
        """Check if breaker is currently open (rejecting calls)."""
        return self.check_and_update_state(now) == BreakerState.OPEN


class BreakerRegistry:
    """Registry of per-source circuit breakers with shared state."""

    def __init__(self) -> None:
        self._by_source: dict[str, CircuitBreaker] = {}

    def get_or_create(self, source: str, config: SourceConfig) -> CircuitBreaker:
        """Get existing breaker for source or create new one with given config."""
        if source not in self._by_source:
            self._by_source[source] = CircuitBreaker(
                source=source,
                failure_threshold=config.breaker_failure_threshold,
                window_seconds=config.breaker_window_seconds,
                half_open_seconds=config.breaker_half_open_seconds,
            )
        return self._by_source[source]

    def clear(self) -> None:
        """Clear all breakers (useful for testing)."""
        self._by_source.clear()


_global_breaker_registry = BreakerRegistry()


def get_breaker_registry() -> BreakerRegistry:
    """Get the global breaker registry instance."""
    return _global_breaker_registry


class SourceMetrics:
    """Interface for source execution metrics (no-op default)."""

    def record_latency(self, source: str, outcome: str, latency_ms: float) -> None:
        pass

    def inc_error(self, source: str, reason: str) -> None:
        pass


class SourceLogger:
    """Interface for structured logging (no-op default)."""

    def log_attempt(
        self,
        ctx: SourceContext,
        outcome: str,
        latency_ms: float,
        result_count: int = 0,
        error_reason: str | None = None,
    ) -> None:
        pass


class SourceExecutor:
    """Runs one source call under timeout, breaker and cancellation."""

    def __init__(
        self,
        metrics: SourceMetrics | None = None,
        logger: SourceLogger | None = None,
        registry: BreakerRegistry | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            registry: Breaker registry (optional, defaults to the shared one)
        """
        self._metrics = metrics or SourceMetrics()
        self._logger = logger or SourceLogger()
        self._registry = registry or get_breaker_registry()

    async def execute(
        self,
        ctx: SourceContext,
        config: SourceConfig,
        fn: Callable[[], Awaitable[list[T]]],
        cancel_token: CancelToken | None = None,
    ) -> list[T]:
        """Execute one source call.

        Args:
            ctx: Source context with trace_id
            config: Execution configuration
            fn: Zero-argument coroutine factory performing the call
            cancel_token: Cancellation token (optional)

        Returns:
            Whatever ``fn`` returned

        Raises:
            SourceTimeoutError: Call exceeded timeout
            SourceCircuitOpenError: Circuit breaker is open
            RequestCancelledError: Request was cancelled before the call
            SourceExecutionError: Other failures
        """
        cancel_token = cancel_token or CancelToken()
        breaker = self._registry.get_or_create(ctx.source, config)

        cancel_token.throw_if_cancelled()

        now = datetime.now()
        if breaker.is_open(now):
            self._metrics.record_latency(ctx.source, "breaker_open", 0.0)
            self._metrics.inc_error(ctx.source, "breaker_open")
            self._logger.log_attempt(ctx, "breaker_open", 0.0, error_reason="breaker_open")
            raise SourceCircuitOpenError(f"Circuit breaker open for {ctx.source}")

        start = time.monotonic()
        try:
            result = await asyncio.wait_for(fn(), timeout=config.timeout_ms / 1000)
        except TimeoutError as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(ctx.source, "timeout", elapsed_ms)
            self._metrics.inc_error(ctx.source, "timeout")
            self._logger.log_attempt(ctx, "timeout", elapsed_ms, error_reason="timeout")
            breaker.record_failure(datetime.now())
            raise SourceTimeoutError(f"Source {ctx.source} timed out") from e
        except asyncio.CancelledError:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(ctx.source, "cancelled", elapsed_ms)
            self._logger.log_attempt(ctx, "cancelled", elapsed_ms, error_reason="cancelled")
            raise
        except Exception as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(ctx.source, "error", elapsed_ms)
            self._metrics.inc_error(ctx.source, "execution_error")
            self._logger.log_attempt(ctx, "error", elapsed_ms, error_reason=type(e).__name__)
            breaker.record_failure(datetime.now())
            raise SourceExecutionError(f"Source {ctx.source} failed") from e

        elapsed_ms = (time.monotonic() - start) * 1000
        breaker.record_success()
        self._metrics.record_latency(ctx.source, "success", elapsed_ms)
        self._logger.log_attempt(ctx, "success", elapsed_ms, result_count=len(result))
        return result

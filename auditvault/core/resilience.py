"""
Fault-tolerance helpers for the service's two I/O dependencies.

1. **Circuit breaker** (database).  After ``CB_FAILURE_THRESHOLD`` consecutive
   connection-level failures the breaker opens and every repository call fails
   fast with :class:`CircuitBreakerError` (rendered as 503 + ``Retry-After``)
   until ``CB_RECOVERY_TIMEOUT`` has elapsed.  One probe call is then let
   through (HALF_OPEN); success closes the circuit, failure re-opens it.

   CLOSED ──(threshold failures)──▶ OPEN ──(timeout)──▶ HALF_OPEN
      ▲                                                    │
      └──────────────────(probe succeeds)──────────────────┘

2. **Bounded retry with per-attempt timeout** (blob store).  A document
   upload writes its bytes with :func:`retry_async`: each attempt is capped by
   a timeout, transient failures are retried with exponential backoff, and
   after the last attempt the final error is re-raised for the caller to map
   to an upstream error.
"""

import asyncio
import logging
import random
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from sqlalchemy.exc import OperationalError

from auditvault.core.config import settings

logger = logging.getLogger(__name__)

# Failures worth retrying / counting against a dependency's health.
TRANSIENT_ERRORS: Tuple[Type[Exception], ...] = (ConnectionError, OSError, TimeoutError)


# ────────────────────────────────────────────────────────────────────────────
# Circuit Breaker
# ────────────────────────────────────────────────────────────────────────────


class CircuitState(str, Enum):
    """Possible states of a circuit breaker."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised when a call is rejected because the circuit is open."""

    def __init__(self, name: str, retry_after: float):
        self.name = name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{name}' is OPEN; failing fast. "
            f"Retry after {retry_after:.1f}s."
        )


class CircuitBreaker:
    """
    Async circuit breaker.

    Parameters
    ----------
    name : str
        Identifier used in logs and the health endpoint.
    failure_threshold : int
        Consecutive failures before the circuit opens.
    recovery_timeout : float
        Seconds spent OPEN before a probe call is allowed.
    expected_exceptions : tuple
        Exception types that count as failures.  Anything else (including
        domain errors and integrity violations) passes through untouched.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        expected_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exceptions = expected_exceptions

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_time: float = 0.0
        self._success_count = 0

    @property
    def state(self) -> CircuitState:
        """Current state; an expired OPEN circuit reports HALF_OPEN."""
        if self._state == CircuitState.OPEN:
            elapsed = time.monotonic() - self._last_failure_time
            if elapsed >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                logger.info(
                    "Circuit '%s' -> HALF_OPEN after %.1fs",
                    self.name,
                    elapsed,
                )
        return self._state

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(
                "Circuit '%s' -> CLOSED (probe succeeded after %d failures)",
                self.name,
                self._failure_count,
            )
        self._failure_count = 0
        self._success_count += 1
        self._state = CircuitState.CLOSED

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.monotonic()

        if self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            logger.error(
                "Circuit '%s' -> OPEN (%d consecutive failures). "
                "Calls will fail fast for %.1fs.",
                self.name,
                self._failure_count,
                self.recovery_timeout,
            )
        else:
            logger.warning(
                "Circuit '%s' failure %d/%d",
                self.name,
                self._failure_count,
                self.failure_threshold,
            )

    async def call(self, func: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> Any:
        """
        Await ``func(*args, **kwargs)`` through the breaker.

        Raises :class:`CircuitBreakerError` without calling ``func`` while
        the circuit is OPEN.
        """
        if self.state == CircuitState.OPEN:
            retry_after = self.recovery_timeout - (time.monotonic() - self._last_failure_time)
            raise CircuitBreakerError(self.name, max(retry_after, 0))

        try:
            result = await func(*args, **kwargs)
        except self.expected_exceptions:
            self._record_failure()
            raise
        self._record_success()
        return result

    def get_status(self) -> dict:
        """Return a dict suitable for the health endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "failure_threshold": self.failure_threshold,
            "success_count": self._success_count,
            "recovery_timeout_s": self.recovery_timeout,
        }


# ── Breaker shared by every repository ──
db_circuit_breaker = CircuitBreaker(
    name="database",
    failure_threshold=settings.CB_FAILURE_THRESHOLD,
    recovery_timeout=settings.CB_RECOVERY_TIMEOUT,
    expected_exceptions=TRANSIENT_ERRORS + (OperationalError,),
)


# ────────────────────────────────────────────────────────────────────────────
# Bounded retry
# ────────────────────────────────────────────────────────────────────────────


async def retry_async(
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    timeout: Optional[float] = None,
    retryable_exceptions: Tuple[Type[Exception], ...] = TRANSIENT_ERRORS,
    **kwargs: Any,
) -> Any:
    """
    Await ``func(*args, **kwargs)`` up to ``max_attempts`` times.

    Parameters
    ----------
    max_attempts : int
        Total number of calls, including the first one (minimum 1).
    base_delay : float
        Sleep before the second attempt; doubles after every failure.
    max_delay : float
        Cap on a single sleep.
    jitter : bool
        Add 0–50% random jitter to each sleep.
    timeout : float, optional
        Per-attempt limit in seconds.  An attempt that exceeds it raises
        ``TimeoutError``, which is retryable by default.
    retryable_exceptions : tuple
        Only these trigger another attempt; everything else propagates
        immediately.

    The exception from the final attempt is re-raised unchanged.
    """
    attempts = max(1, max_attempts)
    delay = base_delay

    for attempt in range(1, attempts + 1):
        try:
            if timeout is not None:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout)
            return await func(*args, **kwargs)
        except retryable_exceptions as exc:
            if attempt >= attempts:
                logger.error(
                    "Giving up on %s after %d attempts: %s: %s",
                    getattr(func, "__qualname__", func),
                    attempts,
                    type(exc).__name__,
                    exc,
                )
                raise
            actual_delay = min(delay, max_delay)
            if jitter:
                actual_delay += random.uniform(0, actual_delay * 0.5)
            logger.warning(
                "Attempt %d/%d of %s failed (%s: %s); retrying in %.3fs",
                attempt,
                attempts,
                getattr(func, "__qualname__", func),
                type(exc).__name__,
                exc,
                actual_delay,
            )
            await asyncio.sleep(actual_delay)
            delay *= 2

    raise RuntimeError("unreachable")  # pragma: no cover

"""
Circuit breakers and retries for networked storage.

Prevents every lookup from waiting on a database server that is down.

Circuit breaker states:
- CLOSED: Normal operation, calls pass through
- OPEN: Failure threshold exceeded, calls fail immediately
- HALF_OPEN: Testing if the server recovered, limited calls allowed
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pybreaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerListener
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from multilang.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _StateLogger(CircuitBreakerListener):
    """Logs circuit state transitions."""

    def state_change(self, cb: CircuitBreaker, old_state, new_state) -> None:
        new_name = getattr(new_state, "name", str(new_state))
        if new_name == "open":
            logger.error(
                f"Circuit breaker OPENED: {cb.name}",
                extra={"breaker_name": cb.name, "fail_count": cb.fail_counter, "fail_max": cb.fail_max},
            )
        elif new_name == "closed":
            logger.info(f"Circuit breaker CLOSED: {cb.name} (storage recovered)")
        else:
            logger.warning(f"Circuit breaker HALF-OPEN: {cb.name} (testing recovery)")


def create_storage_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 60,
    exclude: tuple[type[BaseException], ...] = (),
) -> CircuitBreaker:
    """
    Create a circuit breaker for one storage backend.

    Args:
        name: Breaker name (shown in logs)
        fail_max: Consecutive failures before the circuit opens
        reset_timeout: Seconds the circuit stays open before half-open
        exclude: Exception types that do not count as failures
    """
    return CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        exclude=list(exclude),
        listeners=[_StateLogger()],
        name=name,
    )


def call_with_breaker(breaker: CircuitBreaker, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Call func through the breaker.

    Raises:
        StorageUnavailableError: If the circuit is open
    """
    try:
        return breaker.call(func, *args, **kwargs)
    except CircuitBreakerError as e:
        logger.warning(
            f"{breaker.name} circuit breaker OPEN - failing fast",
            extra={"function": getattr(func, "__name__", repr(func))},
        )
        raise StorageUnavailableError(
            f"{breaker.name} storage unavailable (circuit breaker open). "
            f"Retry after {breaker.reset_timeout} seconds."
        ) from e


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple[type[Exception], ...] = (Exception,),
):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds
        exceptions: Exception types to retry on

    Usage:
        @with_retry(max_attempts=3, exceptions=(psycopg2.OperationalError,))
        def connect():
            return psycopg2.connect(...)
    """
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        reraise=True,
    )

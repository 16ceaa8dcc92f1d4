"""Retryable error classification with exponential backoff retry.

Classifies errors as retryable (transient) or non-retryable (permanent).
Retry is used for idempotent reads only (the instance list load).
Lifecycle actions, creation and log downloads are never retried.

Usage:
    from dbconsole.core.retryable import classify_error, with_retry

    instances = await with_retry(lambda: control_plane.list_instances())
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from dbconsole.core.circuit_breaker import CircuitOpenError
from dbconsole.core.errors import ConsoleError, FetchError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# httpx error classification
# =============================================================================

HTTPX_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)

HTTPX_NON_RETRYABLE = (
    httpx.InvalidURL,
    httpx.TooManyRedirects,
)


def is_httpx_retryable(exc: Exception) -> bool:
    """Check if httpx exception is retryable."""
    if isinstance(exc, HTTPX_RETRYABLE):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 429:
            return True
        if 400 <= status < 500:
            return False
        if status >= 500:
            return True
    return False


# =============================================================================
# Unified classification
# =============================================================================


def classify_error(exc: Exception) -> str:
    """Classify error as 'retryable', 'permanent', or 'unknown'.

    Args:
        exc: Exception to classify

    Returns:
        'retryable': Transient error, can retry
        'permanent': Permanent error, should not retry
        'unknown': Cannot classify
    """
    if isinstance(exc, asyncio.TimeoutError):
        return "retryable"

    # Open circuit: retrying immediately only adds rejections
    if isinstance(exc, CircuitOpenError):
        return "permanent"
    if isinstance(exc, FetchError):
        return "retryable"
    if isinstance(exc, ConsoleError):
        return "permanent"

    if isinstance(exc, httpx.HTTPStatusError):
        return "retryable" if is_httpx_retryable(exc) else "permanent"
    if isinstance(exc, HTTPX_RETRYABLE):
        return "retryable"
    if isinstance(exc, HTTPX_NON_RETRYABLE):
        return "permanent"

    return "unknown"


def is_retryable(exc: Exception) -> bool:
    """Check if error is retryable (transient)."""
    return classify_error(exc) == "retryable"


# =============================================================================
# Retry utility
# =============================================================================


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    max_retries: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
) -> T:
    """Execute async operation with exponential backoff retry.

    Only retries for retryable errors. Unknown and permanent errors are
    raised immediately.

    Args:
        coro_factory: Factory function that creates new coroutine for each attempt
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds

    Returns:
        Result of successful operation

    Raises:
        Exception: The last exception if all retries fail, or immediately
                   for non-retryable errors

    Example:
        instances = await with_retry(lambda: cp.list_instances(), max_retries=3)
    """
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except Exception as exc:
            error_class = classify_error(exc)

            if error_class != "retryable":
                raise

            if attempt == max_retries:
                logger.warning(
                    "Max retries exceeded (%d attempts): %s",
                    max_retries + 1,
                    exc,
                    extra={"error_class": error_class, "attempt": attempt + 1},
                )
                raise

            delay = min(base_delay * (2**attempt), max_delay)
            # Jitter: 50% ~ 150% of delay
            jittered_delay = delay * (0.5 + random.random())
            logger.info(
                "Retryable error (attempt %d/%d, retry in %.1fs): %s",
                attempt + 1,
                max_retries + 1,
                jittered_delay,
                exc,
                extra={"error_class": error_class, "attempt": attempt + 1},
            )
            await asyncio.sleep(jittered_delay)

    raise RuntimeError("unreachable")  # pragma: no cover

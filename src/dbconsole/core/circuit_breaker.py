"""Circuit breaker guarding the control plane client.

When the control plane keeps failing (network errors, timeouts, 5xx), the
console stops sending requests for `timeout` seconds instead of letting
every auto-refresh tick and every button press wait for its own timeout.

    CLOSED     requests pass; `failure_threshold` consecutive transient
               failures open the circuit
    OPEN       requests are rejected with CircuitOpenError (a FetchError)
               until `timeout` seconds have passed since opening
    HALF_OPEN  one trial request at a time; `success_threshold` successes
               close the circuit, any transient failure reopens it

Answers that prove the control plane is up (404, 409, other 4xx) count as
successes, never as failures.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

from dbconsole.app.config import get_settings
from dbconsole.app.metrics.collector import (
    CIRCUIT_BREAKER_CALLS_TOTAL,
    CIRCUIT_BREAKER_REJECTIONS_TOTAL,
    CIRCUIT_BREAKER_STATE,
)
from dbconsole.core.errors import FetchError
from dbconsole.core.logging_schema import Component, LogEvent

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(StrEnum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


# Gauge encoding of CircuitState
_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitOpenError(FetchError):
    """Request rejected without being sent because the circuit is open."""

    def __init__(self, service: str, retry_after: float) -> None:
        self.service = service
        self.retry_after = retry_after
        super().__init__(f"{service} unavailable, retry after {retry_after:.1f}s")


class CircuitBreaker:
    """Failure tracker for one remote dependency.

    Args:
        name: Circuit name, used as metrics label
        failure_threshold: Consecutive transient failures that open the circuit
        success_threshold: Trial successes that close it again
        timeout: Seconds the circuit stays open before a trial request
        error_classifier: Maps an exception to "permanent", "retryable" or
            "unknown". Permanent errors count as successes.
        clock: Monotonic time source
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        success_threshold: int = 2,
        timeout: float = 30.0,
        error_classifier: Callable[[Exception], str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.failure_threshold = failure_threshold
        self.success_threshold = success_threshold
        self.timeout = timeout
        self._classify = error_classifier
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._trial_successes = 0
        self._opened_at = 0.0
        self._trial_in_flight = False
        self._lock = asyncio.Lock()

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def retry_after(self) -> float:
        """Seconds until a trial request is allowed (0 unless OPEN)."""
        if self._state != CircuitState.OPEN:
            return 0.0
        return max(0.0, self.timeout - (self._clock() - self._opened_at))

    def _transition(self, new_state: CircuitState, **fields: object) -> None:
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self._clock()
        if new_state == CircuitState.HALF_OPEN:
            self._trial_successes = 0
        if new_state == CircuitState.CLOSED:
            self._failures = 0
        CIRCUIT_BREAKER_STATE.labels(circuit=self.name).set(_STATE_GAUGE[new_state])
        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit %s: %s -> %s",
            self.name,
            old_state,
            new_state,
            extra={
                "event": LogEvent.STATE_CHANGED,
                "component": Component.CLIENT,
                "circuit": self.name,
                **fields,
            },
        )

    async def _admit(self) -> bool:
        """Let a request through or raise. Returns True for a trial request."""
        async with self._lock:
            if self._state == CircuitState.OPEN and self.retry_after == 0:
                self._transition(CircuitState.HALF_OPEN)

            if self._state == CircuitState.CLOSED:
                return False
            if self._state == CircuitState.HALF_OPEN and not self._trial_in_flight:
                self._trial_in_flight = True
                return True

            CIRCUIT_BREAKER_REJECTIONS_TOTAL.labels(circuit=self.name).inc()
            raise CircuitOpenError(self.name, self.retry_after)

    async def call(self, coro_factory: Callable[[], Awaitable[T]]) -> T:
        """Run one request through the circuit.

        Raises:
            CircuitOpenError: Circuit is open, or a trial request is already
                in flight. The request was not sent.
            Exception: Whatever the request raised.
        """
        trial = await self._admit()
        try:
            result = await coro_factory()
        except Exception as exc:
            CIRCUIT_BREAKER_CALLS_TOTAL.labels(circuit=self.name, result="failure").inc()
            if self._classify is not None and self._classify(exc) == "permanent":
                await self._record(success=True, trial=trial)
            else:
                await self._record(success=False, trial=trial)
            raise
        CIRCUIT_BREAKER_CALLS_TOTAL.labels(circuit=self.name, result="success").inc()
        await self._record(success=True, trial=trial)
        return result

    async def _record(self, *, success: bool, trial: bool) -> None:
        async with self._lock:
            if trial:
                self._trial_in_flight = False

            if self._state == CircuitState.HALF_OPEN:
                if not success:
                    self._transition(CircuitState.OPEN, reason="trial_failed")
                    return
                self._trial_successes += 1
                if self._trial_successes >= self.success_threshold:
                    self._transition(CircuitState.CLOSED, trial_successes=self._trial_successes)
                return

            if self._state != CircuitState.CLOSED:
                return
            if success:
                self._failures = 0
                return
            self._failures += 1
            if self._failures >= self.failure_threshold:
                self._transition(CircuitState.OPEN, failure_count=self._failures)


_circuit_breakers: dict[str, CircuitBreaker] = {}


def get_circuit_breaker(
    name: str = "default",
    error_classifier: Callable[[Exception], str] | None = None,
) -> CircuitBreaker:
    """Process-wide circuit for `name`, created from CircuitBreakerConfig.

    `error_classifier` only applies when the circuit is first created.
    """
    breaker = _circuit_breakers.get(name)
    if breaker is None:
        config = get_settings().circuit_breaker
        breaker = CircuitBreaker(
            name=name,
            failure_threshold=config.failure_threshold,
            success_threshold=config.success_threshold,
            timeout=config.timeout,
            error_classifier=error_classifier,
        )
        _circuit_breakers[name] = breaker
    return breaker


def reset_all_circuit_breakers() -> None:
    """Forget every circuit (tests, new console session)."""
    _circuit_breakers.clear()

"""
Circuit breaker guarding a model backend.

Closed -> Open when ``failure_threshold`` failures fall inside the sliding
``window_seconds``. Open -> HalfOpen once ``cooldown_seconds`` have passed.
HalfOpen admits ``half_open_max_calls`` trial calls: a success closes the
breaker, a failure reopens it. A trial that ends without either outcome
(cancelled, or failed for request-specific reasons) must ``release`` its
slot.
"""

import time
from collections import deque
from typing import TYPE_CHECKING, Any, Callable

from ..exceptions import CircuitOpenError
from ..models.enums import BreakerState
from ..utils.logging import get_logger

if TYPE_CHECKING:
    from ..core.config import CircuitBreakerSettings

logger = get_logger(__name__)


class CircuitBreaker:
    """
    Per-adapter breaker state machine.

    The clock is injectable so tests can advance time without sleeping.

    Example:
        breaker = CircuitBreaker(config.circuit_breaker)
        breaker.before_call()        # raises CircuitOpenError while open
        try:
            response = await backend.complete(...)
        except ProviderError:
            breaker.record_failure()
            raise
        except asyncio.CancelledError:
            breaker.release()
            raise
        breaker.record_success()
    """

    def __init__(self, settings: "CircuitBreakerSettings", clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.clock = clock
        self._state = BreakerState.CLOSED
        self._failures: deque[float] = deque()
        self._opened_at: float | None = None
        self._trial_calls = 0
        self._total_failures = 0
        self._total_successes = 0
        self._rejected_calls = 0
        self._times_opened = 0

    @property
    def state(self) -> BreakerState:
        """Current state, applying a pending Open -> HalfOpen transition."""
        if self._state == BreakerState.OPEN and self._cooldown_remaining() <= 0:
            self._transition(BreakerState.HALF_OPEN)
            self._trial_calls = 0
        return self._state

    def before_call(self) -> None:
        """
        Admit or reject a call.

        Raises:
            CircuitOpenError: While open, or while half-open with all trial
                slots taken
        """
        state = self.state
        if state == BreakerState.OPEN:
            self._reject(retry_after=self._cooldown_remaining())
        if state == BreakerState.HALF_OPEN:
            if self._trial_calls >= self.settings.half_open_max_calls:
                self._reject(retry_after=None)
            self._trial_calls += 1

    def record_success(self) -> None:
        self._total_successes += 1
        if self._state == BreakerState.HALF_OPEN:
            self._failures.clear()
            self._trial_calls = 0
            self._transition(BreakerState.CLOSED)

    def record_failure(self) -> None:
        now = self.clock()
        self._total_failures += 1

        if self._state == BreakerState.HALF_OPEN:
            self._open(now)
            return

        self._failures.append(now)
        self._prune(now)
        if self._state == BreakerState.CLOSED and len(self._failures) >= self.settings.failure_threshold:
            self._open(now)

    def release(self) -> None:
        """Give back a trial slot for a call that produced no health signal."""
        if self._state == BreakerState.HALF_OPEN and self._trial_calls > 0:
            self._trial_calls -= 1

    def reset(self) -> None:
        self._failures.clear()
        self._opened_at = None
        self._trial_calls = 0
        self._transition(BreakerState.CLOSED)

    @property
    def stats(self) -> dict[str, Any]:
        self._prune(self.clock())
        return {
            "state": self.state.value,
            "failures_in_window": len(self._failures),
            "total_failures": self._total_failures,
            "total_successes": self._total_successes,
            "rejected_calls": self._rejected_calls,
            "times_opened": self._times_opened,
            "trial_calls": self._trial_calls,
        }

    def _open(self, now: float) -> None:
        self._opened_at = now
        self._trial_calls = 0
        self._times_opened += 1
        self._transition(BreakerState.OPEN)

    def _reject(self, retry_after: float | None) -> None:
        self._rejected_calls += 1
        raise CircuitOpenError(
            f"Circuit breaker is {self._state.value}; call rejected",
            retry_after=retry_after,
            details={"state": self._state.value, "failures_in_window": len(self._failures)},
        )

    def _cooldown_remaining(self) -> float:
        if self._opened_at is None:
            return 0.0
        return max(0.0, self.settings.cooldown_seconds - (self.clock() - self._opened_at))

    def _prune(self, now: float) -> None:
        horizon = now - self.settings.window_seconds
        while self._failures and self._failures[0] <= horizon:
            self._failures.popleft()

    def _transition(self, new_state: BreakerState) -> None:
        if new_state == self._state:
            return
        old_state = self._state
        self._state = new_state
        log = logger.warning if new_state == BreakerState.OPEN else logger.info
        log(
            f"breaker_{new_state.value}",
            previous=old_state.value,
            failures_in_window=len(self._failures),
        )

    def __repr__(self) -> str:
        return f"CircuitBreaker(state={self._state.value}, failures={len(self._failures)})"

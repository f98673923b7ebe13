"""
Circuit Breaker for the generation endpoint.

Rejects submissions fast while the remote service is failing, instead of
sending more work to it. It never retries anything itself.

States:
- CLOSED: Normal operation, calls pass through
- OPEN: Failing, calls are rejected immediately
- HALF_OPEN: Probing recovery, a limited number of calls allowed

Each client owns its breaker; there is no process-wide registry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    failure_threshold: int = 5  # Consecutive failures before opening
    recovery_timeout: float = 30.0  # Seconds before trying half-open
    half_open_max_calls: int = 1  # Probes allowed while half-open
    success_threshold: int = 1  # Successful probes needed to close
    excluded_exceptions: tuple = ()  # Exceptions that don't count as failures


@dataclass
class CircuitBreakerStats:
    """Runtime statistics for the circuit breaker."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    success_count: int = 0
    half_open_calls: int = 0
    last_failure_time: float = 0
    last_success_time: float = 0
    state_changed_at: float = field(default_factory=time.monotonic)
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0


class CircuitBreakerOpen(Exception):
    """Raised when the breaker is open and the call is rejected."""

    def __init__(self, service_name: str, retry_after: float):
        self.service_name = service_name
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker is OPEN for {service_name}. "
            f"Retry after {retry_after:.1f} seconds."
        )


class CircuitBreaker:
    """
    Circuit breaker guarding calls to one remote service.

    Usage:
        breaker = CircuitBreaker("gemini")
        job = await breaker.call(endpoint.submit, request)
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_name = service_name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self.stats = CircuitBreakerStats(state_changed_at=clock())
        self._lock = asyncio.Lock()
        self._transitions = 0

    @property
    def state(self) -> CircuitState:
        return self.stats.state

    @property
    def is_closed(self) -> bool:
        return self.stats.state == CircuitState.CLOSED

    @property
    def is_open(self) -> bool:
        return self.stats.state == CircuitState.OPEN

    def _should_try_reset(self) -> bool:
        if self.stats.state != CircuitState.OPEN:
            return False
        elapsed = self._clock() - self.stats.state_changed_at
        return elapsed >= self.config.recovery_timeout

    def _transition_to(self, new_state: CircuitState):
        old_state = self.stats.state
        self.stats.state = new_state
        self.stats.state_changed_at = self._clock()
        self._transitions += 1

        if new_state == CircuitState.HALF_OPEN:
            self.stats.half_open_calls = 0
            self.stats.success_count = 0

        logger.info(
            f"Circuit breaker [{self.service_name}]: "
            f"{old_state.value} -> {new_state.value}"
        )

    async def _before_call(self) -> Optional[int]:
        """
        May raise CircuitBreakerOpen.

        Returns the half-open window the call took a probe slot in, or None.
        """
        async with self._lock:
            self.stats.total_calls += 1

            if self.stats.state == CircuitState.OPEN:
                if self._should_try_reset():
                    self._transition_to(CircuitState.HALF_OPEN)
                else:
                    retry_after = self.config.recovery_timeout - (
                        self._clock() - self.stats.state_changed_at
                    )
                    raise CircuitBreakerOpen(self.service_name, retry_after)

            if self.stats.state == CircuitState.HALF_OPEN:
                if self.stats.half_open_calls >= self.config.half_open_max_calls:
                    raise CircuitBreakerOpen(
                        self.service_name, self.config.recovery_timeout
                    )
                self.stats.half_open_calls += 1
                return self._transitions

            return None

    def _release_probe(self, window: Optional[int]):
        """Give back a probe slot when the call ended with no verdict."""
        if window is None:
            return
        # Only the half-open window that handed out the slot can take it back
        if self.stats.state == CircuitState.HALF_OPEN and self._transitions == window:
            self.stats.half_open_calls = max(self.stats.half_open_calls - 1, 0)

    async def _on_success(self):
        async with self._lock:
            self.stats.success_count += 1
            self.stats.total_successes += 1
            self.stats.last_success_time = self._clock()
            self.stats.failure_count = 0

            if self.stats.state == CircuitState.HALF_OPEN:
                if self.stats.success_count >= self.config.success_threshold:
                    self._transition_to(CircuitState.CLOSED)

    async def _on_failure(self, error: BaseException):
        async with self._lock:
            self.stats.failure_count += 1
            self.stats.total_failures += 1
            self.stats.last_failure_time = self._clock()

            if self.stats.state == CircuitState.HALF_OPEN:
                # Any failed probe reopens
                self._transition_to(CircuitState.OPEN)
            elif self.stats.state == CircuitState.CLOSED:
                if self.stats.failure_count >= self.config.failure_threshold:
                    self._transition_to(CircuitState.OPEN)

            logger.warning(
                f"Circuit breaker [{self.service_name}] failure: {error}. "
                f"Failure count: {self.stats.failure_count}/{self.config.failure_threshold}"
            )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function with circuit breaker protection.

        A cancelled call, or one raising an excluded exception, counts as
        neither success nor failure and frees its half-open probe slot.

        Raises:
            CircuitBreakerOpen: If the circuit is open
            Exception: Any exception from the function
        """
        window = await self._before_call()

        try:
            result = await func(*args, **kwargs)
        except asyncio.CancelledError:
            # Caller gave up; not the remote's fault
            self._release_probe(window)
            raise
        except Exception as e:
            if isinstance(e, self.config.excluded_exceptions):
                self._release_probe(window)
            else:
                await self._on_failure(e)
            raise
        await self._on_success()
        return result

    def reset(self):
        """Manually reset the circuit breaker to closed state."""
        self.stats = CircuitBreakerStats(state_changed_at=self._clock())
        self._transitions += 1
        logger.info(f"Circuit breaker [{self.service_name}] manually reset")

    def get_status(self) -> dict:
        """Get current status as a dictionary."""
        return {
            "service": self.service_name,
            "state": self.stats.state.value,
            "failure_count": self.stats.failure_count,
            "success_count": self.stats.success_count,
            "total_calls": self.stats.total_calls,
            "total_failures": self.stats.total_failures,
            "total_successes": self.stats.total_successes,
            "last_failure": self.stats.last_failure_time,
            "last_success": self.stats.last_success_time,
            "state_changed_at": self.stats.state_changed_at,
        }

"""Circuit Breaker - stops calling a tool that keeps failing.

After failure_threshold consecutive failures the circuit opens and calls are
rejected without running, giving the tool time to recover. Once
recovery_timeout has passed one trial call is let through.

States:
- CLOSED: normal operation, calls pass
- OPEN: tool considered down, calls rejected
- HALF_OPEN: trial call to check recovery
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


class CircuitState(Enum):
    """Circuit Breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreakerConfig:
    """Circuit Breaker settings."""

    failure_threshold: int = 3  # Failures before opening
    recovery_timeout: float = 60.0  # Seconds before a trial call
    success_threshold: int = 1  # Trial successes needed to close

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.recovery_timeout <= 0:
            raise ValueError("recovery_timeout must be > 0")
        if self.success_threshold < 1:
            raise ValueError("success_threshold must be >= 1")


class CircuitOpenError(Exception):
    """Circuit Breaker is open; the call was not made."""

    def __init__(self, name: str, failure_count: int, threshold: int, retry_in: float) -> None:
        self.name = name
        self.failure_count = failure_count
        self.threshold = threshold
        self.retry_in = retry_in
        super().__init__(f"Circuit '{name}' is OPEN. Retry in {retry_in:.1f}s")


@dataclass
class CircuitBreaker:
    """Circuit Breaker guarding one tool.

    Usage:
        breaker = CircuitBreaker("web_search")

        try:
            result = await breaker.call(handler, args)
        except CircuitOpenError:
            # Tool is down, skip it
            ...
    """

    name: str
    config: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _success_count: int = field(default=0, init=False)
    _last_failure_time: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def is_closed(self) -> bool:
        return self._state == CircuitState.CLOSED

    def _retry_in(self) -> float:
        return max(0.0, self.config.recovery_timeout - (self.clock() - self._last_failure_time))

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Run an async function through the breaker.

        Raises:
            CircuitOpenError: if the circuit is open
        """
        async with self._lock:
            if self._state == CircuitState.OPEN:
                if self._retry_in() <= 0:
                    self._state = CircuitState.HALF_OPEN
                    self._success_count = 0
                    logger.debug("Circuit '%s' transitioned to HALF_OPEN", self.name)
                else:
                    raise CircuitOpenError(
                        self.name, self._failure_count, self.config.failure_threshold, self._retry_in()
                    )

        try:
            result = await func(*args, **kwargs)
        except Exception:
            await self._on_failure()
            raise
        await self._on_success()
        return result

    async def _on_success(self) -> None:
        async with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.config.success_threshold:
                    self._state = CircuitState.CLOSED
                    self._failure_count = 0
                    self._success_count = 0
                    logger.info("Circuit '%s' transitioned to CLOSED", self.name)
            else:
                self._failure_count = 0

    async def _on_failure(self) -> None:
        async with self._lock:
            self._failure_count += 1
            self._last_failure_time = self.clock()
            if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.config.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning("Circuit '%s' OPEN after %d failures", self.name, self._failure_count)
                self._state = CircuitState.OPEN

    def reset(self) -> None:
        """Reset to CLOSED (for tests)."""
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._last_failure_time = 0.0

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._failure_count,
            "success_count": self._success_count,
            "last_failure": self._last_failure_time,
        }

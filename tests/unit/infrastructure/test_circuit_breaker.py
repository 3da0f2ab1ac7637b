"""Tests for CircuitBreaker."""

from unittest.mock import AsyncMock

import pytest

from src.infrastructure.resilience import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker(
        "web_search",
        config=CircuitBreakerConfig(failure_threshold=3, recovery_timeout=60.0),
        clock=clock,
    )


async def _fail(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        with pytest.raises(RuntimeError):
            await breaker.call(AsyncMock(side_effect=RuntimeError("down")))


class TestCircuitBreaker:
    """State transitions."""

    @pytest.mark.asyncio
    async def test_passes_through_when_closed(self, breaker):
        """Closed circuit returns the function result."""
        func = AsyncMock(return_value="ok")
        assert await breaker.call(func, 1, key="v") == "ok"
        func.assert_awaited_once_with(1, key="v")
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self, breaker):
        """Third consecutive failure opens the circuit; further calls are not made."""
        await _fail(breaker, 3)
        assert breaker.state is CircuitState.OPEN
        func = AsyncMock()
        with pytest.raises(CircuitOpenError) as exc_info:
            await breaker.call(func)
        func.assert_not_awaited()
        assert exc_info.value.failure_count == 3
        assert exc_info.value.threshold == 3
        assert exc_info.value.retry_in == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, breaker):
        """A success in CLOSED clears earlier failures."""
        await _fail(breaker, 2)
        await breaker.call(AsyncMock(return_value=1))
        await _fail(breaker, 2)
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self, breaker, clock):
        """After the recovery timeout one trial call is allowed."""
        await _fail(breaker, 3)
        clock.now += 61
        assert await breaker.call(AsyncMock(return_value="back")) == "back"
        assert breaker.state is CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_failure_reopens(self, breaker, clock):
        """A failed trial call opens the circuit again."""
        await _fail(breaker, 3)
        clock.now += 61
        await _fail(breaker, 1)
        assert breaker.state is CircuitState.OPEN

    def test_stats_and_reset(self, breaker):
        breaker._failure_count = 2
        assert breaker.get_stats()["failure_count"] == 2
        breaker.reset()
        assert breaker.get_stats()["state"] == "closed"

    def test_config_validation(self):
        with pytest.raises(ValueError):
            CircuitBreakerConfig(failure_threshold=0)

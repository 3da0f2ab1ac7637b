"""Tool runner - validation, timeout, retry and circuit breaking around the executor."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from src.application.agent.tool_registry import ToolReliability, ToolRegistry
from src.domain.entities.agent_errors import AgentError, CircuitBreakerOpenError, ToolFailureError
from src.domain.entities.tool_call import ParsedCommand
from src.domain.ports.config import ResilienceConfig, ToolsConfig
from src.domain.ports.tools import ToolExecutorPort, ToolResult
from src.domain.services.recovery import RecoveryStrategy, select_recovery_strategy
from src.infrastructure.resilience import CircuitBreaker, CircuitBreakerConfig, CircuitOpenError

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _should_retry(error: BaseException) -> bool:
    if not isinstance(error, AgentError):
        return False
    return select_recovery_strategy(error).strategy is RecoveryStrategy.RETRY_WITH_BACKOFF


class ToolRunner:
    """Runs one command at a time with per-tool reliability settings.

    Raises ToolFailureError once attempts are exhausted and
    CircuitBreakerOpenError when the tool's breaker is open. A handler
    returning success=False is a normal result, not retried.
    """

    def __init__(
        self,
        executor: ToolExecutorPort,
        registry: ToolRegistry,
        tools_config: ToolsConfig | None = None,
        resilience_config: ResilienceConfig | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._executor = executor
        self._registry = registry
        self._tools_config = tools_config or ToolsConfig()
        self._resilience = resilience_config or ResilienceConfig()
        self._sleep = sleep
        self._breakers: dict[str, CircuitBreaker] = {}

    def breaker(self, name: str) -> CircuitBreaker:
        key = name.lower()
        if key not in self._breakers:
            self._breakers[key] = CircuitBreaker(
                name=key,
                config=CircuitBreakerConfig(
                    failure_threshold=self._resilience.failure_threshold,
                    recovery_timeout=self._resilience.recovery_timeout,
                    success_threshold=self._resilience.success_threshold,
                ),
            )
        return self._breakers[key]

    def breaker_stats(self) -> dict[str, dict]:
        return {name: b.get_stats() for name, b in self._breakers.items()}

    async def run(self, command: ParsedCommand) -> ToolResult:
        problems = self._registry.validate(command.name, command.arguments)
        if problems:
            logger.info("Rejected %s call: %s", command.name, "; ".join(problems))
            return ToolResult(
                success=False,
                message="",
                error="Invalid arguments: " + "; ".join(problems),
                tool=command.name,
                attempts=0,
                arguments=command.arguments,
            )

        reliability = self._registry.reliability(command.name)
        breaker = self.breaker(command.name)
        started = time.monotonic()
        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(reliability.max_attempts),
            wait=wait_exponential(
                multiplier=self._tools_config.retry_delay,
                exp_base=self._tools_config.retry_backoff_multiplier,
                max=self._tools_config.max_retry_delay,
            ),
            retry=retry_if_exception(_should_retry),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                number = attempt.retry_state.attempt_number
                result = await self._attempt(command, breaker, reliability, number)
                result.attempts = number

        result.elapsed = time.monotonic() - started
        logger.debug("Tool %s finished: %s in %.2fs", command.name, result.status, result.elapsed)
        return result

    async def _attempt(
        self,
        command: ParsedCommand,
        breaker: CircuitBreaker,
        reliability: ToolReliability,
        number: int,
    ) -> ToolResult:
        try:
            return await breaker.call(self._invoke, command, reliability.timeout)
        except CircuitOpenError as e:
            raise CircuitBreakerOpenError(command.name, e.failure_count, e.threshold, e.retry_in) from e
        except asyncio.TimeoutError as e:
            logger.warning("Tool %s timed out (attempt %d/%d)", command.name, number, reliability.max_attempts)
            raise ToolFailureError(
                command.name,
                f"Timed out after {reliability.timeout:g}s",
                number,
                reliability.max_attempts,
                command.arguments,
            ) from e
        except AgentError:
            raise
        except Exception as e:
            logger.warning(
                "Tool %s failed (attempt %d/%d): %s", command.name, number, reliability.max_attempts, e
            )
            raise ToolFailureError(
                command.name, str(e) or type(e).__name__, number, reliability.max_attempts, command.arguments
            ) from e

    async def _invoke(self, command: ParsedCommand, timeout: float) -> ToolResult:
        return await asyncio.wait_for(self._executor.execute(command), timeout=timeout)

"""Agent Use Case - bounded loop: model call -> parse -> one tool -> result -> model call."""

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from src.application.agent.prompts import format_tool_result, summarize_tool_result
from src.application.agent.tool_parser import (
    ParserLimits,
    extract_final_response,
    parse_tool_calls,
    strip_markup,
)
from src.application.agent.tool_registry import ToolRegistry
from src.application.agent.tool_runner import ToolRunner
from src.domain.entities.agent_errors import AgentError, AgentTimeoutError
from src.domain.entities.session import AgentSession, IterationRecord, TerminationReason
from src.domain.entities.tool_call import ParsedCommand
from src.domain.ports.config import AgentConfig, ModelConfig
from src.domain.ports.llm import LLMMessage, LLMPort
from src.domain.ports.tools import ToolResult
from src.domain.services.recovery import RecoveryAction, RecoveryStrategy, select_recovery_strategy

logger = logging.getLogger(__name__)
log = structlog.get_logger()

MAX_ITERATIONS_RESPONSE = "done! let me know if you need anything else"
EMPTY_RESPONSE = "hmm, let me think about that..."
ERROR_RESPONSE = "sorry, something went wrong on my end. can you try again?"

# (kind, payload): thinking, tool_start, tool_complete, recovery, responding
EventCallback = Callable[[str, dict[str, Any]], None]
Sleep = Callable[[float], Awaitable[None]]


class AgentUseCase:
    """Runs one agent session per call. Sequential; holds no per-session state."""

    def __init__(
        self,
        llm: LLMPort,
        runner: ToolRunner,
        registry: ToolRegistry,
        models: ModelConfig | None = None,
        config: AgentConfig | None = None,
        limits: ParserLimits | None = None,
        sleep: Sleep = asyncio.sleep,
        on_event: EventCallback | None = None,
    ) -> None:
        self._llm = llm
        self._runner = runner
        self._registry = registry
        self._models = models or ModelConfig()
        self._config = config or AgentConfig()
        self._limits = limits or ParserLimits()
        self._sleep = sleep
        self._on_event = on_event

    async def run_session(self, seed_messages: Sequence[LLMMessage], model: str | None = None) -> str:
        """Run a session and return the user-visible response. Never raises."""
        session = await self.execute(seed_messages, model=model)
        return session.response

    async def execute(self, seed_messages: Sequence[LLMMessage], model: str | None = None) -> AgentSession:
        """Run a session and return it with all iteration records."""
        session = AgentSession(seed_messages=list(seed_messages))
        model = model or self._models.primary
        started = time.monotonic()

        with structlog.contextvars.bound_contextvars(session_id=uuid.uuid4().hex[:8]):
            log.info("agent_session_start", model=model, max_iterations=self._config.max_iterations)
            try:
                await self._loop(session, model)
            except Exception as e:
                log.exception("agent_session_failed", error=str(e))
                session.finish(ERROR_RESPONSE, TerminationReason.ERROR)

            session.elapsed = time.monotonic() - started
            log.info(
                "agent_session_complete",
                iterations=session.iterations,
                terminated_by=session.terminated_by.value if session.terminated_by else None,
                tools_used=session.tools_used,
                elapsed=round(session.elapsed, 3),
            )
        return session

    async def _loop(self, session: AgentSession, model: str) -> None:
        max_iterations = self._config.max_iterations

        for index in range(max_iterations):
            record = IterationRecord(index=index, model=model)
            session.append(record)
            iteration_started = time.monotonic()
            log.debug("agent_iteration", index=index, model=model)
            self._emit("thinking", {"iteration": index, "model": model})

            partial = False
            try:
                response = await self._llm.generate(
                    session.messages, model=model, temperature=self._config.temperature
                )
                output = response.content
            except AgentError as e:
                action = self._recover(record, e)
                if action.strategy is RecoveryStrategy.ABORT_WITH_PARTIAL:
                    if not (isinstance(e, AgentTimeoutError) and e.partial_content):
                        session.finish(ERROR_RESPONSE, TerminationReason.ERROR)
                        return
                    output = e.partial_content
                    partial = True
                elif (
                    action.strategy is RecoveryStrategy.USE_FALLBACK_MODEL
                    and model != self._models.fallback
                ):
                    model = self._models.fallback
                    record.elapsed = time.monotonic() - iteration_started
                    continue
                else:
                    if index + 1 < max_iterations:
                        await self._sleep(action.delay or self._config.model_retry_delay)
                    record.elapsed = time.monotonic() - iteration_started
                    continue

            record.model_output = output
            done = await self._handle_output(session, record, output, partial)
            record.elapsed = time.monotonic() - iteration_started
            if done:
                self._emit("responding", {"iteration": index})
                return

        log.warning("agent_max_iterations", max_iterations=max_iterations)
        session.finish(MAX_ITERATIONS_RESPONSE, TerminationReason.MAX_ITERATIONS)

    async def _handle_output(
        self,
        session: AgentSession,
        record: IterationRecord,
        output: str,
        partial: bool,
    ) -> bool:
        """Process one model output. True when the session has its response."""
        final = extract_final_response(output)
        if final is not None:
            session.finish(final or EMPTY_RESPONSE, TerminationReason.FINAL_RESPONSE)
            return True

        outcome = parse_tool_calls(output, self._registry, self._limits)
        record.parse_outcome = outcome
        if outcome.diagnostics:
            logger.debug("Parse diagnostics: %s", outcome.diagnostics)

        command = outcome.first
        if command is None:
            text = strip_markup(outcome.residual_text) or EMPTY_RESPONSE
            reason = TerminationReason.PARTIAL_OUTPUT if partial else TerminationReason.PLAIN_TEXT
            session.finish(text, reason)
            return True

        record.executed_command = command
        result = await self._run_tool(record, command)
        record.execution_result = result
        session.messages.append(LLMMessage(role="assistant", content=output))
        session.messages.append(
            LLMMessage(
                role="user",
                content=format_tool_result(command.name, result.status, summarize_tool_result(result)),
            )
        )
        return False

    async def _run_tool(self, record: IterationRecord, command: ParsedCommand) -> ToolResult:
        self._emit("tool_start", {"tool": command.name, "arguments": command.arguments})
        try:
            result = await self._runner.run(command)
        except AgentError as e:
            action = self._recover(record, e)
            if action.strategy is RecoveryStrategy.SKIP_AND_CONTINUE:
                result = ToolResult(
                    success=False,
                    message="",
                    error=f"{e.message}. {e.suggestion}",
                    tool=command.name,
                    arguments=command.arguments,
                    skipped=True,
                )
            else:
                result = ToolResult(
                    success=False,
                    message="",
                    error=f"{e.message}. The tool failed after all attempts; try a different tool or approach.",
                    tool=command.name,
                    attempts=getattr(e, "attempt", 1),
                    arguments=command.arguments,
                )

        log.info(
            "agent_tool_executed",
            tool=command.name,
            status=result.status,
            attempts=result.attempts,
            elapsed=round(result.elapsed, 3),
            recovered=command.recovered,
        )
        self._emit("tool_complete", {"tool": command.name, "status": result.status})
        return result

    def _recover(self, record: IterationRecord, error: AgentError) -> RecoveryAction:
        action = select_recovery_strategy(error)
        record.recovery = action
        log.warning(
            "agent_recovery",
            error_kind=error.kind,
            error=error.message,
            strategy=action.strategy.value,
            description=action.description,
        )
        self._emit("recovery", {"error": error.to_dict(), "strategy": action.strategy.value})
        return action

    def _emit(self, kind: str, payload: dict[str, Any]) -> None:
        if self._on_event is None:
            return
        try:
            self._on_event(kind, payload)
        except Exception:
            logger.exception("Event callback failed for %s", kind)

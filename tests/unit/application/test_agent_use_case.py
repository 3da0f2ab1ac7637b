"""Tests for AgentUseCase (bounded tool loop)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.application.agent.tool_runner import ToolRunner
from src.application.agent.tools import ToolExecutor
from src.application.agent.use_case import (
    EMPTY_RESPONSE,
    ERROR_RESPONSE,
    MAX_ITERATIONS_RESPONSE,
    AgentUseCase,
)
from src.domain.entities.agent_errors import (
    AgentError,
    AgentTimeoutError,
    CircuitBreakerOpenError,
    ToolFailureError,
    UpstreamError,
)
from src.domain.entities.session import TerminationReason
from src.domain.ports.config import ModelConfig
from src.domain.ports.llm import LLMMessage, LLMResponse
from src.domain.ports.tools import ToolResult
from src.domain.services.recovery import RecoveryStrategy

SEED = [LLMMessage(role="user", content="What's new in Python?")]
SEARCH_CALL = '<tool_call><name>web_search</name><params>{"query": "python news"}</params></tool_call>'
MODELS = ModelConfig(primary="big", fallback="small")


def reply(content: str) -> LLMResponse:
    return LLMResponse(content=content, model="big")


@pytest.fixture
def llm():
    llm = MagicMock()
    llm.generate = AsyncMock()
    return llm


@pytest.fixture
def search_handler():
    return AsyncMock(return_value=ToolResult(success=True, message="Python 3.13 released"))


@pytest.fixture
def runner(registry, search_handler, sleep):
    return ToolRunner(ToolExecutor({"web_search": search_handler}), registry, sleep=sleep)


@pytest.fixture
def use_case(llm, runner, registry, sleep):
    return AgentUseCase(llm=llm, runner=runner, registry=registry, models=MODELS, sleep=sleep)


class TestTermination:
    """How a session ends."""

    @pytest.mark.asyncio
    async def test_final_response(self, use_case, llm):
        """<response> ends the session with its inner text."""
        llm.generate.return_value = reply("<response>Hello!</response>")
        session = await use_case.execute(SEED)
        assert session.response == "Hello!"
        assert session.terminated_by is TerminationReason.FINAL_RESPONSE
        assert session.iterations == 1

    @pytest.mark.asyncio
    async def test_response_wins_over_tool_call(self, use_case, llm, search_handler):
        """A response envelope takes priority over tool markup in the same output."""
        llm.generate.return_value = reply(f"{SEARCH_CALL}<response>No need, it's 3.13</response>")
        assert await use_case.run_session(SEED) == "No need, it's 3.13"
        search_handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_plain_text_with_markup_stripped(self, use_case, llm):
        """Output without calls is the response, tags removed."""
        llm.generate.return_value = reply("<p>Python 3.13 is <b>out</b>.</p>")
        session = await use_case.execute(SEED)
        assert session.response == "Python 3.13 is out."
        assert session.terminated_by is TerminationReason.PLAIN_TEXT

    @pytest.mark.asyncio
    async def test_pathologically_nested_params_degrade_to_text(self, use_case, llm, search_handler):
        """A call the parser cannot decode is narrative, not a session error."""
        nested = "[" * 50000 + "]" * 50000
        llm.generate.return_value = reply(
            f"Here you go.\n<tool_call><name>web_search</name><params>{nested}</params></tool_call>"
        )
        session = await use_case.execute(SEED)
        assert session.terminated_by is TerminationReason.PLAIN_TEXT
        assert session.response.startswith("Here you go.")
        search_handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_blank_output(self, use_case, llm):
        """Blank output gets the thinking placeholder."""
        llm.generate.return_value = reply("<p> </p>")
        assert await use_case.run_session(SEED) == EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_max_iterations(self, use_case, llm, search_handler):
        """A model that never stops gets the fixed fallback after max_iterations calls."""
        llm.generate.return_value = reply(SEARCH_CALL)
        session = await use_case.execute(SEED)
        assert session.response == MAX_ITERATIONS_RESPONSE
        assert session.terminated_by is TerminationReason.MAX_ITERATIONS
        assert llm.generate.await_count == 5
        assert search_handler.await_count == 5

    @pytest.mark.asyncio
    async def test_unexpected_exception(self, use_case, llm):
        """Anything unstructured ends with the apology, never an exception."""
        llm.generate.side_effect = RuntimeError("kaboom")
        session = await use_case.execute(SEED)
        assert session.response == ERROR_RESPONSE
        assert session.terminated_by is TerminationReason.ERROR


class TestToolTurns:
    """Tool execution within the loop."""

    @pytest.mark.asyncio
    async def test_tool_then_response(self, use_case, llm, search_handler):
        """Tool result is fed back and the next output answers."""
        llm.generate.side_effect = [reply(f"Let me look.\n{SEARCH_CALL}"), reply("<response>3.13 is out</response>")]
        session = await use_case.execute(SEED)

        assert session.response == "3.13 is out"
        assert session.tools_used == ["web_search"]
        search_handler.assert_awaited_once_with({"query": "python news"})
        assert len(session.messages) == 3
        assert session.messages[1].role == "assistant"
        tool_message = session.messages[2]
        assert tool_message.role == "user"
        assert tool_message.content.startswith('Tool result:\n<tool_result name="web_search" status="success">')
        assert "Python 3.13 released" in tool_message.content
        assert tool_message.content.endswith("respond to the user with <response>your message</response>")
        assert session.seed_messages == SEED

    @pytest.mark.asyncio
    async def test_only_first_command_executed(self, use_case, llm, search_handler):
        """One tool per turn."""
        second = SEARCH_CALL.replace("python news", "rust news")
        llm.generate.side_effect = [reply(SEARCH_CALL + second), reply("<response>ok</response>")]
        session = await use_case.execute(SEED)
        search_handler.assert_awaited_once_with({"query": "python news"})
        assert len(session.records[0].parse_outcome.commands) == 2

    @pytest.mark.asyncio
    async def test_unavailable_tool_reported(self, use_case, llm):
        """A known tool without a handler comes back as an error result."""
        llm.generate.side_effect = [
            reply('<tool_call><name>browse_url</name><params>{"url": "https://x.dev"}</params></tool_call>'),
            reply("<response>ok</response>"),
        ]
        session = await use_case.execute(SEED)
        assert 'status="error"' in session.messages[2].content
        assert "Tool browse_url is not available" in session.messages[2].content

    @pytest.mark.asyncio
    async def test_circuit_open_skips_tool(self, llm, registry, sleep):
        """An open circuit appends a skipped result and continues."""
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=CircuitBreakerOpenError("web_search", 3, 3, 60.0))
        use_case = AgentUseCase(llm=llm, runner=runner, registry=registry, models=MODELS, sleep=sleep)
        llm.generate.side_effect = [reply(SEARCH_CALL), reply("<response>skipped it</response>")]

        session = await use_case.execute(SEED)

        assert session.response == "skipped it"
        assert 'status="skipped"' in session.messages[2].content
        assert session.records[0].recovery.strategy is RecoveryStrategy.SKIP_AND_CONTINUE

    @pytest.mark.asyncio
    async def test_exhausted_tool_suggests_alternative(self, llm, registry, sleep):
        """A tool that failed all attempts is reported so the model can try something else."""
        runner = MagicMock()
        runner.run = AsyncMock(side_effect=ToolFailureError("web_search", "down", 3, 3))
        use_case = AgentUseCase(llm=llm, runner=runner, registry=registry, models=MODELS, sleep=sleep)
        llm.generate.side_effect = [reply(SEARCH_CALL), reply("<response>sorry</response>")]

        session = await use_case.execute(SEED)

        assert 'status="error"' in session.messages[2].content
        assert "try a different tool or approach" in session.messages[2].content
        assert session.records[0].recovery.strategy is RecoveryStrategy.TRY_ALTERNATIVE_TOOL


class TestModelErrors:
    """Recovery from model call failures."""

    @pytest.mark.asyncio
    async def test_timeout_without_partial_backs_off(self, use_case, llm, sleep):
        """Timeout with nothing received sleeps and retries."""
        llm.generate.side_effect = [
            AgentTimeoutError("streaming", 120.0, 120.0),
            reply("<response>made it</response>"),
        ]
        session = await use_case.execute(SEED)
        assert session.response == "made it"
        assert session.iterations == 2
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_timeout_partial_tool_call_salvaged(self, use_case, llm, search_handler):
        """A truncated call in partial output is recovered and executed."""
        partial = (
            "Searching for that now.\n<tool_call>\n<name>web_search</name>\n<params>\n"
            '{"query": "what changed in the latest python release and its standard library'
        )
        llm.generate.side_effect = [
            AgentTimeoutError("streaming", 120.0, 120.0, partial_content=partial),
            reply("<response>found it</response>"),
        ]
        session = await use_case.execute(SEED)
        assert session.response == "found it"
        command = session.records[0].executed_command
        assert command.recovered
        search_handler.assert_awaited_once()
        assert search_handler.await_args.args[0]["query"].startswith("what changed")

    @pytest.mark.asyncio
    async def test_timeout_partial_text_used(self, use_case, llm):
        """Substantial partial text becomes the response."""
        partial = "Python 3.13 ships a new interactive interpreter, an experimental JIT and free-threaded builds, and"
        partial += " a long list of smaller improvements across the standard library."
        llm.generate.side_effect = AgentTimeoutError("streaming", 120.0, 120.0, partial_content=partial)
        session = await use_case.execute(SEED)
        assert session.response == partial
        assert session.terminated_by is TerminationReason.PARTIAL_OUTPUT

    @pytest.mark.asyncio
    async def test_rate_limit_switches_to_fallback(self, use_case, llm, sleep):
        """429 moves the session to the fallback model without sleeping."""
        llm.generate.side_effect = [UpstreamError(429, "big"), reply("<response>hi</response>")]
        session = await use_case.execute(SEED)
        assert session.response == "hi"
        assert llm.generate.await_args_list[0].kwargs["model"] == "big"
        assert llm.generate.await_args_list[1].kwargs["model"] == "small"
        assert session.records[1].model == "small"
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limit_on_fallback_backs_off(self, use_case, llm, sleep):
        """Already on the fallback model, a rate limit backs off instead."""
        llm.generate.side_effect = [
            UpstreamError(429, "big"),
            UpstreamError(429, "small"),
            reply("<response>hi</response>"),
        ]
        assert await use_case.run_session(SEED) == "hi"
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_server_error_retries(self, use_case, llm, sleep):
        llm.generate.side_effect = [UpstreamError(500, "big"), reply("<response>hi</response>")]
        assert await use_case.run_session(SEED) == "hi"
        sleep.assert_awaited_once_with(3.0)

    @pytest.mark.asyncio
    async def test_retries_count_as_iterations(self, use_case, llm, sleep):
        """A model that keeps failing still ends within max_iterations calls."""
        llm.generate.side_effect = UpstreamError(500, "big")
        session = await use_case.execute(SEED)
        assert session.response == MAX_ITERATIONS_RESPONSE
        assert llm.generate.await_count == 5
        assert sleep.await_count == 4

    @pytest.mark.asyncio
    async def test_unclassified_agent_error_aborts(self, use_case, llm):
        llm.generate.side_effect = AgentError("strange")
        session = await use_case.execute(SEED)
        assert session.response == ERROR_RESPONSE
        assert session.terminated_by is TerminationReason.ERROR


class TestEvents:
    """Progress callback."""

    @pytest.mark.asyncio
    async def test_events_emitted(self, llm, runner, registry, sleep):
        events = []
        use_case = AgentUseCase(
            llm=llm,
            runner=runner,
            registry=registry,
            models=MODELS,
            sleep=sleep,
            on_event=lambda kind, payload: events.append(kind),
        )
        llm.generate.side_effect = [reply(SEARCH_CALL), reply("<response>done</response>")]
        await use_case.run_session(SEED)
        assert events == ["thinking", "tool_start", "tool_complete", "thinking", "responding"]

    @pytest.mark.asyncio
    async def test_failing_callback_ignored(self, llm, runner, registry, sleep):
        """A broken callback does not break the session."""
        use_case = AgentUseCase(
            llm=llm,
            runner=runner,
            registry=registry,
            models=MODELS,
            sleep=sleep,
            on_event=MagicMock(side_effect=ValueError("bad listener")),
        )
        llm.generate.return_value = reply("<response>fine</response>")
        assert await use_case.run_session(SEED) == "fine"

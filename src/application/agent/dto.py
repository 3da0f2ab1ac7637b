"""Agent DTOs."""

from typing import Any

from pydantic import BaseModel, Field

from src.domain.entities.session import AgentSession
from src.domain.entities.tool_call import ParseOutcome, QuickValidation
from src.domain.ports.llm import LLMMessage


class AgentRunRequest(BaseModel):
    """Request to run an agent session.

    Contract: messages are the seed conversation, oldest first. Unless
    include_tool_prompt is False, a system prompt describing the tools is
    prepended when messages do not start with a system message.
    """

    messages: list[LLMMessage] = Field(..., min_length=1, max_length=200)
    model: str | None = Field(None, max_length=255)  # Override primary model
    include_tool_prompt: bool = True


class AgentRunResponse(BaseModel):
    """Terminal response of an agent session."""

    response: str
    terminated_by: str | None
    iterations: int
    tools_used: list[str]
    elapsed: float

    @classmethod
    def from_session(cls, session: AgentSession) -> "AgentRunResponse":
        return cls(
            response=session.response,
            terminated_by=session.terminated_by.value if session.terminated_by else None,
            iterations=session.iterations,
            tools_used=session.tools_used,
            elapsed=round(session.elapsed, 3),
        )


class TextRequest(BaseModel):
    """Raw model output to parse or validate."""

    text: str = Field(..., max_length=1_000_000)


class ParsedCommandOut(BaseModel):
    name: str
    arguments: dict[str, Any]
    span: tuple[int, int]
    raw_text: str
    envelope: str
    recovered: bool = False


class ParseResponse(BaseModel):
    """Parse outcome as JSON."""

    residual_text: str
    commands: list[ParsedCommandOut]
    succeeded: bool
    diagnostics: list[str]
    truncated: bool = False

    @classmethod
    def from_outcome(cls, outcome: ParseOutcome) -> "ParseResponse":
        return cls(
            residual_text=outcome.residual_text,
            commands=[
                ParsedCommandOut(
                    name=c.name,
                    arguments=c.arguments,
                    span=(c.span.start, c.span.end),
                    raw_text=c.raw_text,
                    envelope=c.envelope,
                    recovered=c.recovered,
                )
                for c in outcome.commands
            ],
            succeeded=outcome.succeeded,
            diagnostics=outcome.diagnostics,
            truncated=outcome.truncated,
        )


class ValidateResponse(BaseModel):
    has_tools: bool
    tool_count: int
    issues: list[str]

    @classmethod
    def from_validation(cls, validation: QuickValidation) -> "ValidateResponse":
        return cls(has_tools=validation.has_tools, tool_count=validation.tool_count, issues=validation.issues)


class ToolParameterInfo(BaseModel):
    type: str
    description: str = ""
    required: bool = False
    enum: list[Any] | None = None


class ToolInfo(BaseModel):
    """Tool catalogue entry."""

    name: str
    description: str
    parameters: dict[str, ToolParameterInfo]
    timeout: float
    max_attempts: int
    available: bool  # Executor has a handler for it

"""Agent API routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.container import get_container
from src.api.dependencies import get_agent_use_case, get_parser_limits, get_tool_registry, limiter
from src.application.agent.dto import (
    AgentRunRequest,
    AgentRunResponse,
    ParseResponse,
    TextRequest,
    ToolInfo,
    ToolParameterInfo,
    ValidateResponse,
)
from src.application.agent.prompts import build_system_prompt
from src.application.agent.tool_parser import ParserLimits, parse_tool_calls
from src.application.agent.tool_registry import ToolRegistry
from src.application.agent.use_case import AgentUseCase
from src.application.agent.validation import quick_validate
from src.domain.ports.llm import LLMMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agent", tags=["agent"])


@router.post("/run", response_model=AgentRunResponse)
@limiter.limit("30/minute")
async def run_agent(
    request: Request,
    run_request: AgentRunRequest,
    use_case: AgentUseCase = Depends(get_agent_use_case),
    registry: ToolRegistry = Depends(get_tool_registry),
) -> AgentRunResponse:
    """Run an agent session and return its final response."""
    messages = list(run_request.messages)
    if run_request.include_tool_prompt and messages[0].role != "system":
        messages.insert(0, LLMMessage(role="system", content=build_system_prompt(registry)))
    try:
        session = await use_case.execute(messages, model=run_request.model)
    except Exception:
        logger.exception("Agent session failed")
        raise HTTPException(status_code=500, detail="Agent request failed")
    return AgentRunResponse.from_session(session)


@router.post("/parse", response_model=ParseResponse)
async def parse(
    text_request: TextRequest,
    registry: ToolRegistry = Depends(get_tool_registry),
    limits: ParserLimits = Depends(get_parser_limits),
) -> ParseResponse:
    """Parse model output into tool calls and residual text."""
    return ParseResponse.from_outcome(parse_tool_calls(text_request.text, registry, limits))


@router.post("/validate", response_model=ValidateResponse)
async def validate(text_request: TextRequest) -> ValidateResponse:
    """Quick structural lint of model output."""
    return ValidateResponse.from_validation(quick_validate(text_request.text))


@router.get("/tools", response_model=list[ToolInfo])
async def list_tools(registry: ToolRegistry = Depends(get_tool_registry)) -> list[ToolInfo]:
    """Tool catalogue with reliability settings."""
    available = set(get_container().tool_executor.available())
    tools = []
    for definition in registry.definitions():
        reliability = registry.reliability(definition.name)
        tools.append(
            ToolInfo(
                name=definition.name,
                description=definition.description,
                parameters={
                    name: ToolParameterInfo(
                        type=p.type,
                        description=p.description,
                        required=p.required,
                        enum=list(p.enum) if p.enum is not None else None,
                    )
                    for name, p in definition.parameters.items()
                },
                timeout=reliability.timeout,
                max_attempts=reliability.max_attempts,
                available=definition.name.lower() in available,
            )
        )
    return tools

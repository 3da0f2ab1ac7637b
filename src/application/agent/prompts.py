"""Agent prompts - tool call wire format and tool catalogue for the system prompt.

The envelope tokens here must match the extractors in extractors.py.
"""

import json

from src.application.agent.tool_parser import build_tool_call
from src.application.agent.tool_registry import ToolRegistry
from src.domain.ports.tools import ToolResult

AGENT_BASE_PROMPT = """You are a helpful assistant that can use tools to accomplish the user's task.

Use a tool only when it is needed. Call ONE tool per message, then wait for its result.

Format your tool call as:
{example}

Rules:
- params must be valid JSON with double-quoted keys and strings.
- After a tool result, either call another tool or answer the user.
- When you are done, wrap your final answer in <response>your message</response>.
- Never end your turn with only a tool call when you already have the answer.

Available tools:

{tools}
"""


def build_system_prompt(registry: ToolRegistry, preamble: str = "") -> str:
    """System prompt describing the tools in registry."""
    prompt = AGENT_BASE_PROMPT.format(
        example=build_tool_call("web_search", {"query": "latest python release"}),
        tools=registry.render_prompt(),
    )
    if preamble:
        prompt = f"{preamble.strip()}\n\n{prompt}"
    return prompt


def format_tool_result(name: str, status: str, summary: str) -> str:
    """User message carrying a tool outcome back to the model."""
    return (
        f'Tool result:\n<tool_result name="{name}" status="{status}">\n{summary}\n</tool_result>\n\n'
        "You can use another tool if needed, or respond to the user with <response>your message</response>"
    )


def _clip(text: str, limit: int = 3000) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


def summarize_tool_result(result: ToolResult) -> str:
    """Short text for the model describing what a tool returned."""
    if not result.success:
        return f"Error: {result.error or 'Unknown error'}"
    data = result.data
    if isinstance(data, dict):
        if result.tool == "browse_url":
            return f"Page content from {data.get('url', '')}:\n{_clip(str(data.get('content', '')))}"
        if result.tool == "run_python":
            return f"Python output:\n{data.get('output') or data.get('error') or 'No output'}"
        if result.tool in ("web_search", "x_search"):
            answer = data.get("answer") or data.get("posts") or data
            return f"Search results:\n{_clip(answer if isinstance(answer, str) else json.dumps(answer, default=str))}"
        if result.tool == "create_artifact":
            return f'Created artifact "{data.get("title", "")}" (type: {data.get("type", "")}, id: {data.get("id", "")})'
    if result.message:
        return _clip(result.message)
    if data is not None:
        return _clip(data if isinstance(data, str) else json.dumps(data, default=str))
    return "Completed"

"""Tool parser - extracts tool calls from LLM output.

Runs the envelope extractors in priority order, repairs arguments, enforces
safety limits and falls back to partial-call recovery. Pure: no shared state
is read or written, so it is safe to call from concurrent sessions.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from src.application.agent.extractors import EXTRACTORS, PRIMARY_PATTERN, INLINE_PATTERN, LEGACY_PATTERN
from src.application.agent.json_repair import MalformedArgumentsError, nesting_depth, repair_json
from src.application.agent.partial_recovery import recover_partial_call
from src.application.agent.tool_registry import ToolRegistry, default_registry
from src.domain.entities.tool_call import ParseOutcome, ParsedCommand
from src.domain.ports.config import ParserConfig

logger = logging.getLogger(__name__)

RESPONSE_PATTERN = re.compile(r"<response>([\s\S]*?)</response>", re.IGNORECASE)
_MARKUP = re.compile(r"<[^>]+>")


@dataclass(frozen=True)
class ParserLimits:
    """Hard caps applied to every parse."""

    max_input_length: int = 500_000
    max_param_size: int = 100_000
    max_tool_calls: int = 20
    max_json_depth: int = 10
    partial_min_length: int = 50

    @classmethod
    def from_config(cls, config: ParserConfig) -> "ParserLimits":
        return cls(
            max_input_length=config.max_input_length,
            max_param_size=config.max_param_size,
            max_tool_calls=config.max_tool_calls,
            max_json_depth=config.max_json_depth,
            partial_min_length=config.partial_min_length,
        )


DEFAULT_LIMITS = ParserLimits()
_DEFAULT_REGISTRY = default_registry()


def _residual(text: str, commands: list[ParsedCommand]) -> str:
    """Text with every command span removed, in order."""
    parts: list[str] = []
    last_end = 0
    for command in sorted(commands, key=lambda c: c.span.start):
        if command.span.start > last_end:
            parts.append(text[last_end : command.span.start])
        last_end = max(last_end, command.span.end)
    parts.append(text[last_end:])
    return "".join(parts)


def parse_tool_calls(
    content: str,
    registry: ToolRegistry | None = None,
    limits: ParserLimits | None = None,
) -> ParseOutcome:
    """Parse all tool calls from LLM output.

    Expected (primary) format:
    <tool_call>
    <name>web_search</name>
    <params>{"query": "..."}</params>
    </tool_call>

    Inline <tool:name>...</tool:name> and legacy [TOOL:name]```json ...```[/TOOL]
    envelopes are accepted too. Unknown tool names stay in the residual text.

    Returns:
        ParseOutcome with commands in document order and the residual text.
    """
    registry = registry if registry is not None else _DEFAULT_REGISTRY
    limits = limits or DEFAULT_LIMITS
    diagnostics: list[str] = []
    commands: list[ParsedCommand] = []

    truncated = len(content) > limits.max_input_length
    if truncated:
        logger.warning(
            "Input exceeds max length (%d > %d), truncating", len(content), limits.max_input_length
        )
        content = content[: limits.max_input_length]
        diagnostics.append("Input truncated due to size limit")

    capped = False
    for extractor in EXTRACTORS:
        if capped:
            break
        for candidate in extractor.scan(content):
            if candidate.name not in registry:
                diagnostics.append(f"Unknown tool: {candidate.name}")
                continue
            if any(candidate.span.overlaps(c.span) for c in commands):
                continue
            if len(commands) >= limits.max_tool_calls:
                diagnostics.append(f"Max tool calls limit reached ({limits.max_tool_calls})")
                capped = True
                break
            if len(candidate.body) > limits.max_param_size:
                diagnostics.append(
                    f"Params for {candidate.name} exceed max size "
                    f"({len(candidate.body)} > {limits.max_param_size})"
                )
                continue
            depth = nesting_depth(candidate.body)
            if depth > limits.max_json_depth:
                diagnostics.append(
                    f"Params for {candidate.name} exceed max nesting depth ({depth} > {limits.max_json_depth})"
                )
                continue
            try:
                arguments = repair_json(candidate.body)
            except MalformedArgumentsError as e:
                diagnostics.append(f"Failed to parse params for {candidate.name}: {e}")
                continue
            diagnostics.extend(f"{candidate.name}: {problem}" for problem in registry.validate(candidate.name, arguments))
            commands.append(candidate.to_command(arguments))

    commands.sort(key=lambda c: c.span.start)

    if not commands and content:
        recovered, recovery_notes = recover_partial_call(
            content,
            registry,
            min_length=limits.partial_min_length,
            max_param_size=limits.max_param_size,
            max_depth=limits.max_json_depth,
        )
        diagnostics.extend(recovery_notes)
        if recovered is not None:
            commands.append(recovered)

    residual = _residual(content, commands)
    fatal = truncated and not residual.strip()
    return ParseOutcome(
        residual_text=residual,
        commands=commands,
        succeeded=bool(commands) or not fatal,
        diagnostics=diagnostics,
        truncated=truncated,
    )


def has_tool_calls(content: str) -> bool:
    """Check whether content contains any complete command-shaped envelope."""
    return any(p.search(content) for p in (PRIMARY_PATTERN, INLINE_PATTERN, LEGACY_PATTERN))


def extract_text_only(content: str, registry: ToolRegistry | None = None) -> str:
    """Residual text of content, trimmed."""
    return parse_tool_calls(content, registry).residual_text.strip()


def extract_final_response(content: str) -> str | None:
    """Inner text of the first <response>...</response> envelope, or None."""
    match = RESPONSE_PATTERN.search(content)
    return match.group(1).strip() if match else None


def strip_markup(content: str) -> str:
    """Remove tags, leaving plain text."""
    return _MARKUP.sub("", content).strip()


def build_tool_call(name: str, params: dict[str, Any]) -> str:
    """Render a tool call in the primary envelope (for prompts and examples)."""
    return f"<tool_call>\n<name>{name}</name>\n<params>\n{json.dumps(params, indent=2)}\n</params>\n</tool_call>"

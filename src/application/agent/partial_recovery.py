"""Partial tool call recovery for truncated model output (e.g. stream timeout)."""

import logging
import re

from src.application.agent.json_repair import MalformedArgumentsError, repair_json
from src.application.agent.tool_registry import ToolRegistry
from src.domain.entities.tool_call import ParsedCommand, SourceSpan

logger = logging.getLogger(__name__)

PARTIAL_OPEN_PATTERN = re.compile(r"<tool_call>\s*<name>(\w{1,50})</name>\s*<params>", re.IGNORECASE)
_PARAMS_CLOSE = re.compile(r"</params>", re.IGNORECASE)
_CALL_CLOSE = re.compile(r"</tool_call>", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*$")

_CLOSERS = {"{": "}", "[": "]"}


def complete_json_structure(partial: str, max_depth: int = 10) -> str | None:
    """Close an unterminated JSON value.

    Tracks nesting outside string literals (escape aware), closes an open
    string, trims a trailing comma and appends the closers in reverse order.
    Returns None if nesting exceeds max_depth or a closer does not match.
    """
    stack: list[str] = []
    in_string = False
    escape_next = False

    for char in partial:
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in _CLOSERS:
            stack.append(char)
            if len(stack) > max_depth:
                return None
        elif char in ("}", "]"):
            if not stack or _CLOSERS[stack.pop()] != char:
                return None

    completed = partial.rstrip()
    if in_string:
        if escape_next:
            completed = completed[:-1]
        completed += '"'
    else:
        completed = _TRAILING_COMMA.sub("", completed)
    return completed + "".join(_CLOSERS[opener] for opener in reversed(stack))


def recover_partial_call(
    text: str,
    registry: ToolRegistry,
    min_length: int = 50,
    max_param_size: int = 100_000,
    max_depth: int = 10,
) -> tuple[ParsedCommand | None, list[str]]:
    """Salvage the last unterminated primary tool call running to end of text.

    Returns:
        (command or None, diagnostics)
    """
    openers = list(PARTIAL_OPEN_PATTERN.finditer(text))
    if not openers:
        return None, []
    opener = openers[-1]
    rest = text[opener.end():]
    if _CALL_CLOSE.search(rest):
        # Envelope is complete; the call was rejected for another reason.
        return None, []

    name = opener.group(1).lower()
    if name not in registry:
        return None, [f"Unknown tool in truncated call: {name}"]

    params_close = _PARAMS_CLOSE.search(rest)
    body = (rest[: params_close.start()] if params_close else rest).strip()
    if len(body) < min_length:
        return None, []
    if len(body) > max_param_size:
        return None, [f"Truncated params for {name} exceed max size ({len(body)} > {max_param_size})"]

    completed = complete_json_structure(body, max_depth=max_depth)
    if completed is None:
        return None, [f"Could not balance truncated params for {name}"]
    try:
        arguments = repair_json(completed)
    except MalformedArgumentsError:
        return None, [f"Could not repair truncated params for {name}"]

    logger.info("Recovered partial %s tool call (%d chars)", name, len(body))
    command = ParsedCommand(
        name=name,
        arguments=arguments,
        span=SourceSpan(opener.start(), len(text)),
        raw_text=text[opener.start():],
        envelope="partial",
        recovered=True,
    )
    return command, ["Recovered from partial tool call (response may have been truncated)"]

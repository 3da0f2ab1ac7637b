"""Best-effort JSON repair for tool arguments emitted by LLMs.

Each strategy rewrites the cleaned original independently; the first one that
yields a JSON object wins. Rewrites are never chained.
"""

import json
import re
from collections.abc import Callable
from typing import Any

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,])\s*(\w+)\s*:")
_BARE_VALUE = re.compile(r":(\s*)([^\",\[\]{}]+)(\s*[,}])")
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_LITERALS = frozenset({"true", "false", "null"})


class MalformedArgumentsError(ValueError):
    """Arguments could not be coerced into a JSON object."""


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```/```json fence if present."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned))
    return cleaned


def nesting_depth(text: str) -> int:
    """Deepest bracket nesting outside string literals."""
    depth = deepest = 0
    in_string = escape_next = False
    for char in text:
        if escape_next:
            escape_next = False
        elif char == "\\":
            escape_next = in_string
        elif char == '"':
            in_string = not in_string
        elif in_string:
            continue
        elif char in "{[":
            depth += 1
            deepest = max(deepest, depth)
        elif char in "}]":
            depth = max(depth - 1, 0)
    return deepest


def _as_is(text: str) -> str:
    return text


def _double_quotes(text: str) -> str:
    return text.replace("'", '"')


def _drop_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", text)


def _quote_keys(text: str) -> str:
    return _BARE_KEY.sub(r'\1"\2":', text)


def _quote_values(text: str) -> str:
    def _quote(match: re.Match) -> str:
        ws1, value, tail = match.groups()
        value = value.strip()
        if _NUMBER.match(value) or value in _LITERALS:
            return f":{ws1}{value}{tail}"
        return f':{ws1}"{value}"{tail}'

    return _BARE_VALUE.sub(_quote, text)


REPAIR_STRATEGIES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("as_is", _as_is),
    ("single_quotes", _double_quotes),
    ("trailing_commas", _drop_trailing_commas),
    ("unquoted_keys", _quote_keys),
    ("unquoted_values", _quote_values),
)


def repair_json(text: str) -> dict[str, Any]:
    """Parse near-JSON text into a dict.

    Raises:
        MalformedArgumentsError: if no strategy produces a JSON object.
    """
    cleaned = strip_code_fence(text)
    for _name, strategy in REPAIR_STRATEGIES:
        try:
            data = json.loads(strategy(cleaned))
        except (ValueError, TypeError):
            continue
        except RecursionError as e:
            raise MalformedArgumentsError(f"Params nested too deeply: {text[:100]}...") from e
        if isinstance(data, dict):
            return data
    raise MalformedArgumentsError(f"Invalid JSON: {text[:100]}...")

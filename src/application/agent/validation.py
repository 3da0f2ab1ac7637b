"""Quick validator - cheap structural lint of model output.

Independent of the full parser. Advisory only: use for pre-flight diagnostics
and telemetry, never to decide whether a call is executed.
"""

import re

from src.domain.entities.tool_call import QuickValidation

_MARKERS: tuple[tuple[str, re.Pattern[str], re.Pattern[str]], ...] = (
    ("tool_call", re.compile(r"<tool_call>", re.IGNORECASE), re.compile(r"</tool_call>", re.IGNORECASE)),
    ("tool:", re.compile(r"<tool:\w{1,50}>", re.IGNORECASE), re.compile(r"</tool:\w{1,50}>", re.IGNORECASE)),
    ("TOOL", re.compile(r"\[TOOL:\w{1,50}\]", re.IGNORECASE), re.compile(r"\[/TOOL\]", re.IGNORECASE)),
)
_PARAMS_BODY = re.compile(r"<params>([\s\S]*?)</params>", re.IGNORECASE)
_INLINE_BODY = re.compile(r"<tool:(\w{1,50})>([\s\S]*?)</tool:\1>", re.IGNORECASE)
_LEGACY_BODY = re.compile(r"\[TOOL:\w{1,50}\]\s*```(?:json)?([\s\S]*?)```\s*\[/TOOL\]", re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*[}\]]")


def _body_issues(body: str) -> list[str]:
    issues = []
    if "'" in body and '"' not in body:
        issues.append("Params use single quotes instead of double quotes")
    if _TRAILING_COMMA.search(body):
        issues.append("Params contain trailing commas")
    return issues


def quick_validate(content: str) -> QuickValidation:
    """Count markers per envelope and flag obvious defects."""
    issues: list[str] = []
    tool_count = 0

    for label, open_pattern, close_pattern in _MARKERS:
        opens = len(open_pattern.findall(content))
        closes = len(close_pattern.findall(content))
        if opens != closes:
            issues.append(f"Mismatched {label} tags: {opens} opening, {closes} closing")
        tool_count += min(opens, closes)

    bodies = [m.group(1) for m in _PARAMS_BODY.finditer(content)]
    bodies.extend(m.group(2) for m in _INLINE_BODY.finditer(content))
    bodies.extend(m.group(1) for m in _LEGACY_BODY.finditer(content))
    for body in bodies:
        issues.extend(_body_issues(body))

    return QuickValidation(has_tools=tool_count > 0, tool_count=tool_count, issues=issues)

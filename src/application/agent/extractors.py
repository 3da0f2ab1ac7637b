"""Format extractors - one lexical envelope per extractor.

Wire format between the model and the parser; changing a token here needs a
matching prompt change (see prompts.py).

    <tool_call><name>NAME</name><params>{...}</params></tool_call>   primary
    <tool:NAME>{...}</tool:NAME>                                      inline
    [TOOL:NAME] ```json {...} ``` [/TOOL]                             legacy

Tool names are bounded to 50 word characters so a runaway name cannot drive
the regex engine into long backtracking.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from src.domain.entities.tool_call import Envelope, ParsedCommand, SourceSpan

PRIMARY_PATTERN = re.compile(
    r"<tool_call>\s*<name>(\w{1,50})</name>\s*<params>\s*([\s\S]*?)\s*</params>\s*</tool_call>",
    re.IGNORECASE,
)
INLINE_PATTERN = re.compile(r"<tool:(\w{1,50})>\s*([\s\S]*?)\s*</tool:\1>", re.IGNORECASE)
LEGACY_PATTERN = re.compile(
    r"\[TOOL:(\w{1,50})\]\s*```(?:json)?\s*([\s\S]*?)\s*```\s*\[/TOOL\]",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Candidate:
    """Command-shaped match before name, size and argument checks."""

    envelope: Envelope
    name: str
    body: str
    span: SourceSpan
    raw_text: str

    def to_command(self, arguments: dict[str, Any]) -> ParsedCommand:
        return ParsedCommand(
            name=self.name,
            arguments=arguments,
            span=self.span,
            raw_text=self.raw_text,
            envelope=self.envelope,
        )


@dataclass(frozen=True)
class Extractor:
    """Scans text for one envelope, left to right."""

    envelope: Envelope
    pattern: re.Pattern[str]

    def scan(self, text: str) -> Iterator[Candidate]:
        for match in self.pattern.finditer(text):
            yield Candidate(
                envelope=self.envelope,
                name=match.group(1).lower(),
                body=match.group(2).strip(),
                span=SourceSpan(match.start(), match.end()),
                raw_text=match.group(0),
            )


# Priority order: earlier extractors claim regions first.
EXTRACTORS: tuple[Extractor, ...] = (
    Extractor("primary", PRIMARY_PATTERN),
    Extractor("inline", INLINE_PATTERN),
    Extractor("legacy", LEGACY_PATTERN),
)

"""Tool call entities - commands extracted from model output and parse outcomes."""

from dataclasses import dataclass, field
from typing import Any, Literal, NamedTuple

Envelope = Literal["primary", "inline", "legacy", "partial"]


class SourceSpan(NamedTuple):
    """Half-open [start, end) character range into the parsed text."""

    start: int
    end: int

    def overlaps(self, other: "SourceSpan") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class ParsedCommand:
    """A tool invocation recognized in model output. Never mutated after creation."""

    name: str
    arguments: dict[str, Any]
    span: SourceSpan
    raw_text: str
    envelope: Envelope = "primary"
    recovered: bool = False  # True when salvaged from truncated output


@dataclass
class ParseOutcome:
    """Result of parsing one model output.

    Contract: residual_text is the parsed text with every command span removed,
    in order. succeeded is False only for a fatal input condition with nothing
    extracted; zero commands alone is still a success.
    """

    residual_text: str
    commands: list[ParsedCommand] = field(default_factory=list)
    succeeded: bool = True
    diagnostics: list[str] = field(default_factory=list)
    truncated: bool = False  # Input exceeded the length cap

    @property
    def has_commands(self) -> bool:
        return bool(self.commands)

    @property
    def first(self) -> ParsedCommand | None:
        return self.commands[0] if self.commands else None


@dataclass(frozen=True)
class QuickValidation:
    """Advisory lint result; not used for correctness-critical decisions."""

    has_tools: bool
    tool_count: int
    issues: list[str] = field(default_factory=list)

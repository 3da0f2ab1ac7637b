"""Agent session state - iteration records and conversation history."""

from dataclasses import dataclass, field
from enum import Enum

from src.domain.entities.tool_call import ParseOutcome, ParsedCommand
from src.domain.ports.llm import LLMMessage
from src.domain.ports.tools import ToolResult
from src.domain.services.recovery import RecoveryAction


class TerminationReason(str, Enum):
    """Why a session ended."""

    FINAL_RESPONSE = "final_response"  # Explicit <response> envelope
    PLAIN_TEXT = "plain_text"  # Output without commands
    PARTIAL_OUTPUT = "partial_output"  # Timed-out output used as-is
    MAX_ITERATIONS = "max_iterations"
    ERROR = "error"


@dataclass
class IterationRecord:
    """One model call and what came of it. Append-only within a session."""

    index: int
    model: str
    model_output: str = ""
    parse_outcome: ParseOutcome | None = None
    executed_command: ParsedCommand | None = None
    execution_result: ToolResult | None = None
    recovery: RecoveryAction | None = None
    elapsed: float = 0.0


@dataclass
class AgentSession:
    """Conversation history for one agent session: seed messages plus records."""

    seed_messages: list[LLMMessage]
    messages: list[LLMMessage] = field(default_factory=list)
    records: list[IterationRecord] = field(default_factory=list)
    response: str = ""
    terminated_by: TerminationReason | None = None
    elapsed: float = 0.0

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages = list(self.seed_messages)

    @property
    def iterations(self) -> int:
        return len(self.records)

    @property
    def tools_used(self) -> list[str]:
        return [r.executed_command.name for r in self.records if r.executed_command is not None]

    def append(self, record: IterationRecord) -> None:
        self.records.append(record)

    def finish(self, response: str, reason: TerminationReason) -> str:
        self.response = response
        self.terminated_by = reason
        return response

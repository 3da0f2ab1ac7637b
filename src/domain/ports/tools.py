"""Tool execution port - contract with the external tool executor."""

from dataclasses import dataclass, field
from typing import Any, Protocol

from src.domain.entities.tool_call import ParsedCommand


@dataclass
class ToolResult:
    """Outcome of one tool execution."""

    success: bool
    message: str
    data: Any = None
    error: str | None = None
    tool: str = ""
    attempts: int = 1
    elapsed: float = 0.0
    arguments: dict[str, Any] = field(default_factory=dict)
    skipped: bool = False  # Not run (tool disabled by its circuit breaker)

    @property
    def status(self) -> str:
        if self.skipped:
            return "skipped"
        return "success" if self.success else "error"


class ToolExecutorPort(Protocol):
    """Executes a validated command. May raise; the runner maps failures."""

    async def execute(self, command: ParsedCommand) -> ToolResult:
        ...

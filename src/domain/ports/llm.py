"""LLM Port - interface for the text-completion collaborator."""

from typing import Protocol

from pydantic import BaseModel


class LLMMessage(BaseModel):
    """Single message in a conversation."""

    role: str  # "system" | "user" | "assistant"
    content: str


class LLMResponse(BaseModel):
    """Completed model output (non-streaming view)."""

    content: str
    model: str
    done: bool = True


class LLMPort(Protocol):
    """Interface for model providers.

    generate() may raise the structured errors from
    src.domain.entities.agent_errors (timeout with partial output, upstream
    status, network failure); the agent loop reacts to those.
    """

    async def generate(
        self,
        messages: list[LLMMessage],
        model: str | None = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """Generate a single response."""
        ...

    async def is_available(self) -> bool:
        """Check if the provider is reachable."""
        ...

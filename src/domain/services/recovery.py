"""Recovery strategy selection - pure decision table from structured error to action.

Policy only: callers own execution (sleeping, switching models, re-running tools).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from src.domain.entities.agent_errors import (
    AgentError,
    AgentTimeoutError,
    CircuitBreakerOpenError,
    NetworkFailureError,
    ToolFailureError,
    UpstreamError,
)


class RecoveryStrategy(str, Enum):
    """Fixed set of recovery actions."""

    RETRY_WITH_BACKOFF = "retry_with_backoff"
    USE_FALLBACK_MODEL = "use_fallback_model"
    TRY_ALTERNATIVE_TOOL = "try_alternative_tool"
    SKIP_AND_CONTINUE = "skip_and_continue"
    ABORT_WITH_PARTIAL = "abort_with_partial"


@dataclass(frozen=True)
class RecoveryAction:
    """Selected strategy with its parameters (delays in seconds)."""

    strategy: RecoveryStrategy
    description: str
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def delay(self) -> float:
        return float(self.params.get("delay", 0.0))


def select_recovery_strategy(error: AgentError) -> RecoveryAction:
    """Map a structured error to a recovery action. First matching rule wins."""
    if isinstance(error, AgentTimeoutError):
        if error.has_substantial_partial:
            return RecoveryAction(
                RecoveryStrategy.ABORT_WITH_PARTIAL,
                "Use the partial response that was received",
            )
        return RecoveryAction(
            RecoveryStrategy.RETRY_WITH_BACKOFF,
            "Retry after a brief delay",
            {"delay": 2.0, "max_attempts": 2},
        )

    if isinstance(error, ToolFailureError):
        if error.attempt < error.max_attempts:
            return RecoveryAction(
                RecoveryStrategy.RETRY_WITH_BACKOFF,
                f"Retry attempt {error.attempt + 1} of {error.max_attempts}",
                {"delay": 1.0 * error.attempt},
            )
        return RecoveryAction(
            RecoveryStrategy.TRY_ALTERNATIVE_TOOL,
            "Try an alternative approach",
            {"failed_tool": error.tool},
        )

    if isinstance(error, UpstreamError):
        if error.rate_limited:
            return RecoveryAction(
                RecoveryStrategy.USE_FALLBACK_MODEL,
                "Switch to a fallback model",
                {"original_model": error.model},
            )
        return RecoveryAction(
            RecoveryStrategy.RETRY_WITH_BACKOFF,
            "Retry after delay",
            {"delay": 3.0},
        )

    if isinstance(error, CircuitBreakerOpenError):
        return RecoveryAction(
            RecoveryStrategy.SKIP_AND_CONTINUE,
            f"Skip {error.tool} and continue",
            {"skipped_tool": error.tool},
        )

    if isinstance(error, NetworkFailureError):
        return RecoveryAction(
            RecoveryStrategy.RETRY_WITH_BACKOFF,
            "Retry after network stabilizes",
            {"delay": 5.0, "max_attempts": 3},
        )

    return RecoveryAction(RecoveryStrategy.ABORT_WITH_PARTIAL, "Stop and report current progress")

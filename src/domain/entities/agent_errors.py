"""Structured agent errors.

Raised at the failure site (model client, tool runner) and consumed once by the
recovery strategy selector. Each kind carries its own fields; ``recoverable`` is
derived from them and cannot be set independently.
"""

import time
from typing import Any, Literal

ErrorKind = Literal["agent_error", "timeout", "tool_failure", "upstream_error", "circuit_open", "network_error"]
TimeoutPhase = Literal["streaming", "tool_execution", "completion"]

DEFAULT_PARTIAL_THRESHOLD = 100  # Characters of partial output considered substantial
RATE_LIMIT_STATUSES = frozenset({429, 503})


class AgentError(Exception):
    """Base class for errors surfaced to the recovery strategy selector."""

    kind: ErrorKind = "agent_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.timestamp = time.time()

    @property
    def recoverable(self) -> bool:
        return False

    @property
    def suggestion(self) -> str:
        return ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion,
            "timestamp": self.timestamp,
        }


class AgentTimeoutError(AgentError):
    """Model call or tool execution exceeded its time limit."""

    kind: ErrorKind = "timeout"

    def __init__(
        self,
        phase: TimeoutPhase,
        elapsed: float,
        limit: float,
        partial_content: str | None = None,
        partial_threshold: int = DEFAULT_PARTIAL_THRESHOLD,
    ) -> None:
        super().__init__(f"Timeout during {phase}: {elapsed:.1f}s elapsed (limit: {limit:.1f}s)")
        self.phase = phase
        self.elapsed = elapsed
        self.limit = limit
        self.partial_content = partial_content
        self.partial_threshold = partial_threshold

    @property
    def has_substantial_partial(self) -> bool:
        return bool(self.partial_content) and len(self.partial_content) >= self.partial_threshold

    @property
    def recoverable(self) -> bool:
        return self.has_substantial_partial

    @property
    def suggestion(self) -> str:
        if self.partial_content:
            return "Partial response available - consider using it"
        return "Try a simpler request or wait and retry"

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "phase": self.phase,
            "elapsed": self.elapsed,
            "limit": self.limit,
            "partial_length": len(self.partial_content or ""),
        }


class ToolFailureError(AgentError):
    """A tool execution attempt failed."""

    kind: ErrorKind = "tool_failure"

    def __init__(
        self,
        tool: str,
        reason: str,
        attempt: int,
        max_attempts: int,
        arguments: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Tool {tool} failed (attempt {attempt}/{max_attempts}): {reason}")
        self.tool = tool
        self.reason = reason
        self.attempt = attempt
        self.max_attempts = max_attempts
        self.arguments = arguments or {}

    @property
    def recoverable(self) -> bool:
        return self.attempt < self.max_attempts

    @property
    def suggestion(self) -> str:
        if self.recoverable:
            return f"Retrying ({self.max_attempts - self.attempt} attempts remaining)"
        return "Try an alternative approach"

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "tool": self.tool,
            "reason": self.reason,
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
        }


class UpstreamError(AgentError):
    """The model provider answered with an error status."""

    kind: ErrorKind = "upstream_error"

    def __init__(self, status_code: int, model: str, detail: str = "") -> None:
        super().__init__(f"LLM error {status_code} from {model}: {detail or 'Unknown error'}")
        self.status_code = status_code
        self.model = model
        self.detail = detail

    @property
    def rate_limited(self) -> bool:
        return self.status_code in RATE_LIMIT_STATUSES

    @property
    def recoverable(self) -> bool:
        return self.rate_limited or self.status_code >= 500

    @property
    def suggestion(self) -> str:
        if self.recoverable:
            return "Try again or use a fallback model"
        return "Check API key and model availability"

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "status_code": self.status_code, "model": self.model}


class CircuitBreakerOpenError(AgentError):
    """A tool is disabled by its circuit breaker."""

    kind: ErrorKind = "circuit_open"

    def __init__(self, tool: str, failure_count: int, threshold: int, reset_after: float) -> None:
        super().__init__(
            f"Circuit breaker open for {tool}: {failure_count} failures (threshold: {threshold})"
        )
        self.tool = tool
        self.failure_count = failure_count
        self.threshold = threshold
        self.reset_after = reset_after

    @property
    def suggestion(self) -> str:
        return f"Tool {self.tool} is temporarily disabled. Will reset in {round(self.reset_after)}s"

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "tool": self.tool,
            "failure_count": self.failure_count,
            "threshold": self.threshold,
            "reset_after": self.reset_after,
        }


class NetworkFailureError(AgentError):
    """The model provider could not be reached."""

    kind: ErrorKind = "network_error"

    def __init__(self, endpoint: str, cause: str) -> None:
        super().__init__(f"Network error calling {endpoint}: {cause}")
        self.endpoint = endpoint
        self.cause = cause

    @property
    def recoverable(self) -> bool:
        return True

    @property
    def suggestion(self) -> str:
        return "Retry after network stabilizes"

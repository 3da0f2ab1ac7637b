"""Dependency Injection Container - centralized service management."""

from functools import cached_property
from typing import TYPE_CHECKING

from src.application.agent.tool_parser import ParserLimits
from src.application.agent.tool_registry import ToolRegistry, default_registry
from src.domain.ports.config import AppConfig
from src.domain.ports.llm import LLMPort
from src.infrastructure.config import load_config

if TYPE_CHECKING:
    from src.application.agent.tool_runner import ToolRunner
    from src.application.agent.tools import ToolExecutor
    from src.application.agent.use_case import AgentUseCase


class Container:
    """Dependency Injection Container with lazy initialization.

    All dependencies are created on first access and cached.

    Usage:
        container = Container()
        agent = container.agent_use_case
    """

    def __init__(self, config: AppConfig | None = None):
        """Initialize container with optional config override."""
        self._config_override = config

    @cached_property
    def config(self) -> AppConfig:
        """Application configuration."""
        if self._config_override:
            return self._config_override
        return load_config()

    @cached_property
    def llm(self) -> LLMPort:
        """LLM adapter based on config provider."""
        provider = self.config.llm.provider
        if provider not in ("openai_compatible", "lm_studio"):
            raise ValueError(f"Unsupported LLM provider: {provider}")
        from src.infrastructure.llm.openai_compatible import OpenAICompatibleAdapter

        return OpenAICompatibleAdapter(
            self.config.openai_compatible,
            partial_threshold=self.config.agent.partial_output_threshold,
        )

    @cached_property
    def parser_limits(self) -> ParserLimits:
        return ParserLimits.from_config(self.config.parser)

    @cached_property
    def tool_registry(self) -> ToolRegistry:
        """Built-in tool catalogue with configured reliability defaults."""
        return default_registry(
            default_timeout=self.config.tools.default_timeout,
            default_max_attempts=self.config.tools.default_max_attempts,
        )

    @cached_property
    def tool_executor(self) -> "ToolExecutor":
        """Executor with the tools this service can run itself."""
        from src.application.agent.tools import ToolExecutor, browse_url_handler

        return ToolExecutor({"browse_url": browse_url_handler()})

    @cached_property
    def tool_runner(self) -> "ToolRunner":
        """Tool runner (one circuit breaker per tool, shared across sessions)."""
        from src.application.agent.tool_runner import ToolRunner

        return ToolRunner(
            self.tool_executor,
            self.tool_registry,
            tools_config=self.config.tools,
            resilience_config=self.config.resilience,
        )

    @cached_property
    def agent_use_case(self) -> "AgentUseCase":
        """Agent use case (bounded tool loop)."""
        from src.application.agent.use_case import AgentUseCase

        return AgentUseCase(
            llm=self.llm,
            runner=self.tool_runner,
            registry=self.tool_registry,
            models=self.config.models,
            config=self.config.agent,
            limits=self.parser_limits,
        )

    def reset(self) -> None:
        """Reset all cached instances (useful for testing)."""
        for attr in list(self.__dict__.keys()):
            if not attr.startswith("_"):
                delattr(self, attr)


# Global container instance
_container: Container | None = None


def get_container() -> Container:
    """Get or create global container instance."""
    global _container
    if _container is None:
        _container = Container()
    return _container


def reset_container() -> None:
    """Reset global container (for testing)."""
    global _container
    if _container:
        _container.reset()
    _container = None

"""FastAPI dependencies - rate limiter, config and DI container accessors."""

from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.api.container import get_container
from src.application.agent.tool_parser import ParserLimits
from src.application.agent.tool_registry import ToolRegistry
from src.application.agent.use_case import AgentUseCase
from src.domain.ports.config import AppConfig
from src.infrastructure.config import load_config

limiter = Limiter(key_func=get_remote_address)


@lru_cache
def get_config() -> AppConfig:
    """Load config once at startup."""
    return load_config()


def get_agent_use_case() -> AgentUseCase:
    return get_container().agent_use_case


def get_tool_registry() -> ToolRegistry:
    return get_container().tool_registry


def get_parser_limits() -> ParserLimits:
    return get_container().parser_limits

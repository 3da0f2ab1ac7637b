"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock

import pytest

from src.application.agent.tool_registry import ToolRegistry, default_registry


@pytest.fixture
def registry() -> ToolRegistry:
    """Built-in tool catalogue."""
    return default_registry()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stand-in for asyncio.sleep so backoff tests run instantly."""
    return AsyncMock()


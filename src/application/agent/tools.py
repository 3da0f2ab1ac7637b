"""Agent tools - executor dispatching parsed commands to async handlers."""

import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from src.domain.entities.tool_call import ParsedCommand
from src.domain.ports.tools import ToolResult

logger = logging.getLogger(__name__)

# Handler receives the command arguments and returns a ToolResult.
ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResult]]

_TAGS = re.compile(r"<(script|style)[\s\S]*?</\1>|<[^>]+>", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class ToolExecutor:
    """Executes tools by name. Handlers may raise; the tool runner maps failures."""

    def __init__(self, handlers: dict[str, ToolHandler] | None = None) -> None:
        self._handlers: dict[str, ToolHandler] = {}
        for name, handler in (handlers or {}).items():
            self.register(name, handler)

    def register(self, name: str, handler: ToolHandler) -> None:
        self._handlers[name.lower()] = handler

    def available(self) -> list[str]:
        return list(self._handlers)

    async def execute(self, command: ParsedCommand) -> ToolResult:
        """Execute command with its arguments."""
        handler = self._handlers.get(command.name.lower())
        if handler is None:
            return ToolResult(
                success=False,
                message="",
                error=f"Tool {command.name} is not available",
                tool=command.name,
                arguments=command.arguments,
            )
        result = await handler(command.arguments)
        result.tool = result.tool or command.name
        result.arguments = result.arguments or command.arguments
        return result


def browse_url_handler(
    client_factory: Callable[[], httpx.AsyncClient] | None = None,
    max_chars: int = 8000,
) -> ToolHandler:
    """browse_url: fetch a page and return its visible text."""

    def _client() -> httpx.AsyncClient:
        if client_factory:
            return client_factory()
        return httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0), follow_redirects=True)

    async def _browse(args: dict[str, Any]) -> ToolResult:
        url = str(args.get("url", "")).strip()
        if not url.startswith(("http://", "https://")):
            return ToolResult(success=False, message="", error="url must start with http:// or https://", tool="browse_url")
        async with _client() as client:
            response = await client.get(url)
        if response.status_code >= 400:
            return ToolResult(
                success=False, message="", error=f"HTTP {response.status_code} for {url}", tool="browse_url"
            )
        text = _WHITESPACE.sub(" ", _TAGS.sub(" ", response.text)).strip()
        if not args.get("extractContent", True):
            text = ""
        logger.debug("Fetched %s (%d chars)", url, len(text))
        return ToolResult(
            success=True,
            message=f"Fetched {url}",
            data={"url": url, "status": response.status_code, "content": text[:max_chars]},
            tool="browse_url",
        )

    return _browse
